"""
WellbeingEngine tests: end-to-end flows over a fixed clock and an in-memory store.
"""
import asyncio
from datetime import timedelta

import pytest

from wellbeing_engine.core.ai_service import CoachService
from wellbeing_engine.core.database import DuplicateDateError, RecordInUseError, RecordNotFoundError
from wellbeing_engine.core.models import EngagementTier, TaskPriority, TaskSource, ValidationError
from wellbeing_engine.services.engine import WellbeingEngine

from conftest import FALLBACK, TODAY, FailingCoach, SlowCoach


class TestCheckInFlow:

    def test_submit_and_read_back(self, engine):
        check_in = engine.submit_check_in("good", "Coffee with Ana", "Go to bed earlier",
                                          sleep_level=0, activities=["friends"])
        assert check_in.date == TODAY
        today = engine.get_today_check_in()
        assert today.id == check_in.id
        assert today.happy_thing == "Coffee with Ana"
        assert [c.id for c in engine.get_check_ins("week")] == [check_in.id]

    def test_second_submission_same_day_rejected(self, engine):
        engine.submit_check_in("good")
        with pytest.raises(DuplicateDateError):
            engine.submit_check_in("bad")
        assert engine.get_today_check_in().mood_label == "good"

    def test_draft_is_finalized_and_goals_carried(self, engine):
        goal = engine.create_goal("Run a 10k", "fitness")
        result = engine.update_brain_dump_draft("Slow run. Felt strong anyway.", [goal.id])
        assert result.is_ai_chat_unlocked

        check_in = engine.submit_check_in("amazing")
        assert check_in.goal_ids == [goal.id]
        assert engine.get_brain_dump_draft().is_finalized
        with pytest.raises(ValidationError):
            engine.update_brain_dump_draft("Adding more after submitting.")

    def test_streak_over_three_days(self, engine, fake_now):
        for _ in range(3):
            engine.submit_check_in("good")
            fake_now.advance(days=1)
        fake_now.advance(days=-1)
        engagement = engine.get_engagement()
        assert engagement.current_streak == 3
        assert engagement.total_check_ins == 3
        assert engine.get_engagement_tier() == EngagementTier.NEWCOMER

    def test_window_summary(self, engine):
        engine.submit_check_in("good")
        summary = engine.get_window_summary("week")
        assert summary["check_in_days"] == 1


class TestInsights:

    def test_cached_until_store_changes(self, engine):
        engine.get_active_insights()
        engine.get_active_insights()
        assert engine.insight_cache.regenerations == 1

        engine.submit_check_in("good")
        engine.get_active_insights()
        assert engine.insight_cache.regenerations == 2

    def test_refresh_forces_regeneration(self, engine):
        engine.get_active_insights()
        engine.refresh_insights()
        assert engine.insight_cache.regenerations == 2


class TestGoals:

    def test_archive_hides_goal(self, engine):
        goal = engine.create_goal("Old habit", "personal")
        archived = engine.archive_goal(goal.id)
        assert archived.is_archived
        assert engine.list_goals() == []
        assert len(engine.list_goals(include_archived=True)) == 1

    def test_delete_blocked_by_sprint(self, engine):
        goal = engine.create_goal("Learn Spanish", "learning")
        engine.create_sprint("Basics", goal_id=goal.id)
        with pytest.raises(RecordInUseError):
            engine.delete_goal(goal.id)

    def test_milestone_completes_once(self, engine):
        goal = engine.create_goal("Run a 10k", "fitness")
        milestone_id = goal.milestones[0].id
        assert engine.complete_milestone(goal.id, milestone_id) is True
        assert engine.complete_milestone(goal.id, milestone_id) is False
        assert engine.get_goal_progress(goal.id).percentage == 25.0
        assert engine.list_goals()[0].progress_percentage == 25.0

    def test_unknown_milestone(self, engine):
        goal = engine.create_goal("Run a 10k", "fitness")
        with pytest.raises(RecordNotFoundError):
            engine.complete_milestone(goal.id, "missing")
        with pytest.raises(RecordNotFoundError):
            engine.complete_milestone("missing", "missing")

    def test_goal_progress_includes_sprint_tasks(self, engine):
        goal = engine.create_goal("Ship side project", "career", with_default_milestones=False)
        sprint = engine.create_sprint("MVP", goal_id=goal.id)
        done = engine.create_task("Landing page", sprint_id=sprint.id)
        engine.create_task("Signup form", goal_id=goal.id)
        engine.complete_task(done.id)
        progress = engine.get_goal_progress(goal.id)
        assert progress.tasks_total == 2
        assert progress.percentage == 50.0

    def test_log_progress_replaces_same_day(self, engine):
        goal = engine.create_goal("Write daily", "creativity")
        engine.log_goal_progress(goal.id, 2)
        engine.log_goal_progress(goal.id, 4, note="Two pages")
        entries = engine.store.list_goal_progress(goal.id)
        assert [e.progress_rating for e in entries] == [4]
        assert engine.get_goal_log_streak(goal.id) == (1, 1)

    def test_ai_access_after_three_days(self, engine, fake_now):
        goal = engine.create_goal("Write daily", "creativity")
        for _ in range(3):
            engine.log_goal_progress(goal.id, 3)
            fake_now.advance(days=1)
        fake_now.advance(days=-1)
        assert engine.get_ai_access(goal.id).daily
        with pytest.raises(RecordNotFoundError):
            engine.get_ai_access("missing")

    def test_history_length(self, engine, fake_now):
        goal = engine.create_goal("Write daily", "creativity")
        fake_now.advance(days=4)
        assert len(engine.get_goal_history(goal.id)) == 5


class TestSprintsTasksHabits:

    def test_sprint_progress(self, engine):
        sprint = engine.create_sprint("Week one", milestone_titles=["Plan"])
        task = engine.create_task("Draft outline", sprint_id=sprint.id)
        engine.complete_task(task.id)
        progress = engine.get_sprint_progress(sprint.id)
        assert progress.percentage == 50.0
        assert engine.complete_milestone(sprint.id, sprint.milestones[0].id)
        assert engine.get_sprint_progress(sprint.id).percentage == 100.0

    def test_sprint_completed_when_all_work_done(self, engine, fake_now):
        sprint = engine.create_sprint("Week one", milestone_titles=["Plan"])
        task = engine.create_task("Draft outline", sprint_id=sprint.id)
        engine.complete_task(task.id)
        assert not engine.store.get_sprint(sprint.id).is_completed

        engine.complete_milestone(sprint.id, sprint.milestones[0].id)
        stored = engine.store.get_sprint(sprint.id)
        assert stored.is_completed
        assert stored.completed_date == TODAY

        fake_now.advance(days=40)
        progress = engine.get_sprint_progress(sprint.id)
        assert progress.is_completed
        assert not progress.is_overdue

    def test_sprint_completion_recorded_once(self, engine, fake_now):
        sprint = engine.create_sprint("Week one")
        first = engine.create_task("Only task", sprint_id=sprint.id)
        engine.complete_task(first.id)
        assert engine.store.get_sprint(sprint.id).completed_date == TODAY

        fake_now.advance(days=2)
        engine.reopen_task(first.id)
        engine.complete_task(first.id)
        assert engine.store.get_sprint(sprint.id).completed_date == TODAY

    def test_task_ordering_and_reopen(self, engine):
        low = engine.create_task("Low", priority="low", due_date=TODAY)
        high = engine.create_task("High", priority="high")
        assert [t.id for t in engine.list_tasks()] == [high.id, low.id]
        assert [t.id for t in engine.list_tasks(order="due_date")] == [low.id, high.id]
        with pytest.raises(ValidationError):
            engine.list_tasks(order="alphabetical")

        engine.complete_task(high.id)
        assert engine.get_task_summary()["completed"] == 1
        assert not engine.reopen_task(high.id).is_completed

    def test_habit_streak(self, engine, fake_now):
        habit = engine.create_habit("Stretch")
        engine.complete_habit(habit.id)
        engine.complete_habit(habit.id)
        engine.complete_habit(habit.id, TODAY - timedelta(days=1))
        assert engine.get_habit_streak(habit.id) == (2, 2)


class TestTaskExtraction:

    def test_brain_dump_tasks_linked_to_single_goal(self, engine):
        goal = engine.create_goal("Run a 10k", "fitness")
        engine.update_brain_dump_draft("Legs were heavy today. I need to buy new running shoes.", [goal.id])
        tasks = engine.extract_tasks_from_brain_dump()
        assert [t.title for t in tasks] == ["Buy new running shoes"]
        stored = engine.store.get_task(tasks[0].id)
        assert stored.source == TaskSource.EXTRACTED
        assert stored.goal_id == goal.id
        assert stored.category == "health"

    def test_open_tasks_not_duplicated(self, engine):
        engine.update_brain_dump_draft("I should call grandma this weekend.")
        assert len(engine.extract_tasks_from_brain_dump()) == 1
        assert engine.extract_tasks_from_brain_dump() == []
        assert len(engine.store.list_tasks()) == 1

    def test_no_draft(self, engine):
        assert engine.extract_tasks_from_brain_dump() == []

    def test_text_from_conversation(self, engine):
        tasks = engine.extract_tasks("Try this:\n- Take an important 10 minute walk after lunch")
        assert tasks[0].source == TaskSource.AI_CONVERSATION
        assert tasks[0].priority == TaskPriority.MEDIUM
        with pytest.raises(ValidationError):
            engine.extract_tasks("- Something to do later", source="dream")


class TestCoach:

    @pytest.mark.asyncio
    async def test_reply_saved_on_todays_check_in(self, engine, echo_coach):
        goal = engine.create_goal("Run a 10k", "fitness")
        engine.update_brain_dump_draft("Ran 5k. Knees fine.", [goal.id])
        engine.submit_check_in("good")

        reply = await engine.request_coach_response()
        assert not reply.is_fallback
        assert engine.get_today_check_in().ai_response == echo_coach.reply

        context = echo_coach.contexts[0]
        assert context.draft_text == "Ran 5k. Knees fine."
        assert context.draft_goal_titles == ["Run a 10k"]
        assert context.current_streak == 1

    @pytest.mark.asyncio
    async def test_failure_returns_fallback_without_write(self, store, clock):
        engine = WellbeingEngine(store, clock=clock,
                                 coach_service=CoachService(FailingCoach(), timeout=1.0, fallback_message=FALLBACK))
        engine.submit_check_in("okay")
        revision = store.revision
        reply = await engine.request_coach_response("Any advice?")
        assert reply.is_fallback
        assert reply.content == FALLBACK
        assert store.revision == revision
        assert engine.get_today_check_in().ai_response is None

    @pytest.mark.asyncio
    async def test_timeout_returns_fallback(self, store, clock):
        coach = SlowCoach()
        engine = WellbeingEngine(store, clock=clock,
                                 coach_service=CoachService(coach, timeout=0.05, fallback_message=FALLBACK))
        reply = await engine.request_coach_response()
        assert reply.is_fallback
        assert engine.coach_service.stats.timeouts == 1

    @pytest.mark.asyncio
    async def test_cancelled_request_writes_nothing(self, store, clock):
        coach = SlowCoach()
        engine = WellbeingEngine(store, clock=clock,
                                 coach_service=CoachService(coach, timeout=5.0, fallback_message=FALLBACK))
        engine.submit_check_in("good")
        revision = store.revision

        task = asyncio.ensure_future(engine.request_coach_response())
        await coach.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.revision == revision
        assert engine.get_today_check_in().ai_response is None

    @pytest.mark.asyncio
    async def test_requires_coach_service(self, store, clock):
        engine = WellbeingEngine(store, clock=clock)
        with pytest.raises(RuntimeError):
            await engine.request_coach_response()


class TestHealth:

    def test_health_status(self, engine):
        engine.submit_check_in("good")
        health = engine.get_health_status()
        assert health["today"] == TODAY.isoformat()
        assert health["records"]["check_ins"] == 1
        assert "coach" in health

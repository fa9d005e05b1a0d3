from fastapi import APIRouter, HTTPException, Depends, Query, status
from typing import List, Optional, Dict, Any

from wellbeing_engine.api.dependencies import get_engine
from wellbeing_engine.api.schemas import (
    BrainDumpRequest, CheckInRequest, CoachRequest, GoalCreate, GoalProgressLog, HabitCompletion,
    HabitCreate, SprintCreate, TaskCreate, TaskExtractionRequest, TaskOrder, TimeframeParam
)
from wellbeing_engine.core.database import DuplicateDateError, RecordInUseError, RecordNotFoundError
from wellbeing_engine.core.models import ValidationError
from wellbeing_engine.services.engine import WellbeingEngine

router = APIRouter(prefix="/api", tags=["wellbeing"])


def _http_error(e: Exception) -> HTTPException:
    """Код ответа по типу ошибки движка"""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, (ValidationError, ValueError)):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, (DuplicateDateError, RecordInUseError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, RecordNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=500, detail=f"Internal error: {str(e)}")

# ===== CHECK-INS =====

@router.post("/check-ins", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def submit_check_in(
    payload: CheckInRequest,
    engine: WellbeingEngine = Depends(get_engine)
):
    """
    Отправить чекин за сегодня (один в день)
    """
    try:
        structured = payload.model_dump(exclude={'mood_label', 'happy_text', 'improve_text'}, exclude_none=True)
        check_in = engine.submit_check_in(payload.mood_label, payload.happy_text, payload.improve_text, **structured)
        return check_in.to_dict()
    except Exception as e:
        raise _http_error(e)

@router.get("/check-ins", response_model=List[Dict[str, Any]])
async def get_check_ins(
    timeframe: TimeframeParam = Query(TimeframeParam.WEEK),
    engine: WellbeingEngine = Depends(get_engine)
):
    """
    Чекины за окно по возрастанию даты
    """
    try:
        return [c.to_dict() for c in engine.get_check_ins(timeframe.value)]
    except Exception as e:
        raise _http_error(e)

@router.get("/check-ins/today", response_model=Optional[Dict[str, Any]])
async def get_today_check_in(engine: WellbeingEngine = Depends(get_engine)):
    try:
        check_in = engine.get_today_check_in()
        return check_in.to_dict() if check_in else None
    except Exception as e:
        raise _http_error(e)

@router.get("/summary", response_model=Dict[str, Any])
async def get_window_summary(
    timeframe: TimeframeParam = Query(TimeframeParam.WEEK),
    engine: WellbeingEngine = Depends(get_engine)
):
    """
    Сводка окна: настроение, доля дней с чекином, выполнение задач
    """
    try:
        return engine.get_window_summary(timeframe.value)
    except Exception as e:
        raise _http_error(e)

# ===== ENGAGEMENT & INSIGHTS =====

@router.get("/engagement", response_model=Dict[str, Any])
async def get_engagement(engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.get_engagement().to_dict()
    except Exception as e:
        raise _http_error(e)

@router.get("/insights", response_model=List[Dict[str, Any]])
async def get_insights(engine: WellbeingEngine = Depends(get_engine)):
    """
    Активные инсайты, отсортированные по уверенности
    """
    try:
        return [insight.to_dict() for insight in engine.get_active_insights()]
    except Exception as e:
        raise _http_error(e)

@router.post("/insights/refresh", response_model=List[Dict[str, Any]])
async def refresh_insights(engine: WellbeingEngine = Depends(get_engine)):
    try:
        return [insight.to_dict() for insight in engine.refresh_insights()]
    except Exception as e:
        raise _http_error(e)

@router.get("/correlations", response_model=List[Dict[str, Any]])
async def get_correlations(engine: WellbeingEngine = Depends(get_engine)):
    try:
        return [result.to_dict() for result in engine.get_correlations()]
    except Exception as e:
        raise _http_error(e)

@router.get("/ai-access", response_model=Dict[str, Any])
async def get_ai_access(engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.get_ai_access().to_dict()
    except Exception as e:
        raise _http_error(e)

# ===== GOALS =====

@router.get("/goals", response_model=List[Dict[str, Any]])
async def list_goals(
    include_archived: bool = Query(False),
    engine: WellbeingEngine = Depends(get_engine)
):
    try:
        return [goal.to_dict() for goal in engine.list_goals(include_archived=include_archived)]
    except Exception as e:
        raise _http_error(e)

@router.post("/goals", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def create_goal(payload: GoalCreate, engine: WellbeingEngine = Depends(get_engine)):
    try:
        goal = engine.create_goal(payload.title, payload.category, payload.description,
                                  with_default_milestones=payload.with_default_milestones)
        return goal.to_dict()
    except Exception as e:
        raise _http_error(e)

@router.get("/goals/{goal_id}/progress", response_model=Dict[str, Any])
async def get_goal_progress(goal_id: str, engine: WellbeingEngine = Depends(get_engine)):
    """
    Процент выполнения цели и отставание от графика
    """
    try:
        return engine.get_goal_progress(goal_id).to_dict()
    except Exception as e:
        raise _http_error(e)

@router.get("/goals/{goal_id}/history", response_model=List[Dict[str, Any]])
async def get_goal_history(goal_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        return [point.to_dict() for point in engine.get_goal_history(goal_id)]
    except Exception as e:
        raise _http_error(e)

@router.post("/goals/{goal_id}/archive", response_model=Dict[str, Any])
async def archive_goal(goal_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.archive_goal(goal_id).to_dict()
    except Exception as e:
        raise _http_error(e)

@router.delete("/goals/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_goal(goal_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        engine.delete_goal(goal_id)
    except Exception as e:
        raise _http_error(e)

@router.post("/goals/{goal_id}/milestones/{milestone_id}/complete", response_model=Dict[str, Any])
async def complete_goal_milestone(goal_id: str, milestone_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        return {"completed": engine.complete_milestone(goal_id, milestone_id)}
    except Exception as e:
        raise _http_error(e)

@router.post("/goals/{goal_id}/log", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def log_goal_progress(goal_id: str, payload: GoalProgressLog, engine: WellbeingEngine = Depends(get_engine)):
    try:
        entry = engine.log_goal_progress(goal_id, payload.progress_rating, payload.note, payload.mood_impact)
        return entry.to_dict()
    except Exception as e:
        raise _http_error(e)

@router.get("/goals/{goal_id}/ai-access", response_model=Dict[str, Any])
async def get_goal_ai_access(goal_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.get_ai_access(goal_id).to_dict()
    except Exception as e:
        raise _http_error(e)

# ===== SPRINTS =====

@router.post("/sprints", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def create_sprint(payload: SprintCreate, engine: WellbeingEngine = Depends(get_engine)):
    try:
        sprint = engine.create_sprint(payload.title, payload.start_date, payload.week_number,
                                      payload.goal_id, payload.milestone_titles)
        return sprint.to_dict()
    except Exception as e:
        raise _http_error(e)

@router.get("/sprints/{sprint_id}/progress", response_model=Dict[str, Any])
async def get_sprint_progress(sprint_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.get_sprint_progress(sprint_id).to_dict()
    except Exception as e:
        raise _http_error(e)

@router.post("/sprints/{sprint_id}/milestones/{milestone_id}/complete", response_model=Dict[str, Any])
async def complete_sprint_milestone(sprint_id: str, milestone_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        return {"completed": engine.complete_milestone(sprint_id, milestone_id)}
    except Exception as e:
        raise _http_error(e)

# ===== TASKS =====

@router.get("/tasks", response_model=List[Dict[str, Any]])
async def list_tasks(
    sprint_id: Optional[str] = Query(None),
    goal_id: Optional[str] = Query(None),
    order: TaskOrder = Query(TaskOrder.PRIORITY),
    engine: WellbeingEngine = Depends(get_engine)
):
    try:
        return [task.to_dict() for task in engine.list_tasks(sprint_id, goal_id, order.value)]
    except Exception as e:
        raise _http_error(e)

@router.get("/tasks/summary", response_model=Dict[str, Any])
async def get_task_summary(engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.get_task_summary()
    except Exception as e:
        raise _http_error(e)

@router.post("/tasks", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def create_task(payload: TaskCreate, engine: WellbeingEngine = Depends(get_engine)):
    try:
        fields = payload.model_dump(exclude={'title'}, exclude_none=True)
        return engine.create_task(payload.title, **fields).to_dict()
    except Exception as e:
        raise _http_error(e)

@router.post("/tasks/extract", status_code=status.HTTP_201_CREATED, response_model=List[Dict[str, Any]])
async def extract_tasks(payload: TaskExtractionRequest, engine: WellbeingEngine = Depends(get_engine)):
    """
    Создать задачи из произвольного текста (например, разговора с коучем)
    """
    try:
        tasks = engine.extract_tasks(payload.text, payload.source, goal_id=payload.goal_id)
        return [task.to_dict() for task in tasks]
    except Exception as e:
        raise _http_error(e)

@router.post("/tasks/{task_id}/complete", response_model=Dict[str, Any])
async def complete_task(task_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.complete_task(task_id).to_dict()
    except Exception as e:
        raise _http_error(e)

@router.post("/tasks/{task_id}/reopen", response_model=Dict[str, Any])
async def reopen_task(task_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.reopen_task(task_id).to_dict()
    except Exception as e:
        raise _http_error(e)

# ===== HABITS =====

@router.post("/habits", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def create_habit(payload: HabitCreate, engine: WellbeingEngine = Depends(get_engine)):
    try:
        habit = engine.create_habit(payload.title, frequency=payload.frequency, time_of_day=payload.time_of_day)
        return habit.to_dict()
    except Exception as e:
        raise _http_error(e)

@router.post("/habits/{habit_id}/complete", response_model=Dict[str, Any])
async def complete_habit(habit_id: str, payload: HabitCompletion, engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.complete_habit(habit_id, payload.day).to_dict()
    except Exception as e:
        raise _http_error(e)

@router.get("/habits/{habit_id}/streak", response_model=Dict[str, Any])
async def get_habit_streak(habit_id: str, engine: WellbeingEngine = Depends(get_engine)):
    try:
        current, longest = engine.get_habit_streak(habit_id)
        return {"habit_id": habit_id, "current_streak": current, "longest_streak": longest}
    except Exception as e:
        raise _http_error(e)

# ===== BRAIN DUMP & COACH =====

@router.get("/brain-dump", response_model=Dict[str, Any])
async def get_brain_dump(engine: WellbeingEngine = Depends(get_engine)):
    try:
        return engine.get_brain_dump_draft().to_dict()
    except Exception as e:
        raise _http_error(e)

@router.put("/brain-dump", response_model=Dict[str, Any])
async def update_brain_dump(payload: BrainDumpRequest, engine: WellbeingEngine = Depends(get_engine)):
    """
    Сохранить черновик и вернуть статус разблокировки AI-чата
    """
    try:
        return engine.update_brain_dump_draft(payload.text, payload.goal_ids).to_dict()
    except Exception as e:
        raise _http_error(e)

@router.post("/brain-dump/extract-tasks", status_code=status.HTTP_201_CREATED, response_model=List[Dict[str, Any]])
async def extract_brain_dump_tasks(engine: WellbeingEngine = Depends(get_engine)):
    """
    Создать задачи из черновика дня
    """
    try:
        return [task.to_dict() for task in engine.extract_tasks_from_brain_dump()]
    except Exception as e:
        raise _http_error(e)

@router.post("/coach", response_model=Dict[str, Any])
async def request_coach_response(payload: CoachRequest, engine: WellbeingEngine = Depends(get_engine)):
    """
    Ответ AI-коуча; при сбое провайдера возвращается резервное сообщение
    """
    try:
        reply = await engine.request_coach_response(payload.message)
        result = reply.to_dict()
        if payload.extract_tasks:
            tasks = [] if reply.is_fallback else engine.extract_tasks(reply.content)
            result["tasks"] = [task.to_dict() for task in tasks]
        return result
    except Exception as e:
        raise _http_error(e)

"""
EngineConfig tests: environment parsing, validation and logging config.
"""
import logging

import pytest

from wellbeing_engine.config import EngineConfig, Environment
from wellbeing_engine.utils.logger import setup_logger, setup_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("PORT", "USER_TIMEZONE", "AI_CHAT_ENABLED", "OPENAI_API_KEY", "LOG_TO_FILE",
                 "ENVIRONMENT", "MIN_INSIGHT_CONFIDENCE", "AI_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("BACKUP_DIR", str(tmp_path / "backups"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.environment == Environment.DEVELOPMENT
        assert config.server.port == 8080
        assert config.analytics.timezone == "UTC"
        assert config.store.path.name == "wellbeing_data.json"
        assert not config.ai.ai_chat_enabled

    def test_invalid_port(self, monkeypatch):
        monkeypatch.setenv("PORT", "80")
        with pytest.raises(ValueError, match="Port 80"):
            EngineConfig()

    def test_unknown_timezone(self, monkeypatch):
        monkeypatch.setenv("USER_TIMEZONE", "Mars/Olympus_Mons")
        with pytest.raises(ValueError, match="Unknown timezone"):
            EngineConfig()

    def test_confidence_out_of_range(self, monkeypatch):
        monkeypatch.setenv("MIN_INSIGHT_CONFIDENCE", "1.5")
        with pytest.raises(ValueError):
            EngineConfig()

    def test_ai_chat_disabled_without_key(self, monkeypatch):
        monkeypatch.setenv("AI_CHAT_ENABLED", "true")
        config = EngineConfig()
        assert not config.ai.ai_chat_enabled
        assert not config.to_dict()["ai_enabled"]

    def test_ai_chat_enabled_with_key(self, monkeypatch):
        monkeypatch.setenv("AI_CHAT_ENABLED", "true")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert EngineConfig().ai.ai_chat_enabled

    def test_ensure_directories(self, tmp_path):
        EngineConfig().ensure_directories()
        assert (tmp_path / "data").is_dir()
        assert (tmp_path / "backups").is_dir()


class TestLoggingConfig:

    def test_console_only_by_default(self):
        config = EngineConfig().get_logging_config()
        assert list(config["handlers"]) == ["console"]

    def test_file_handler_when_enabled(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_TO_FILE", "true")
        engine_config = EngineConfig()
        handlers = engine_config.get_logging_config()["handlers"]
        assert handlers["file"]["filename"] == str(tmp_path / "logs" / "wellbeing_development.log")

    def test_setup_logging_applies_level(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            logger = setup_logging(EngineConfig())
            assert logger.level == logging.INFO
            assert any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_setup_logger_adds_rotating_handler(self, tmp_path):
        log_file = tmp_path / "extra" / "engine.log"
        logger = setup_logger(str(log_file))
        handler = logger.handlers[-1]
        try:
            assert handler.baseFilename == str(log_file)
            assert (tmp_path / "extra").is_dir()
        finally:
            logger.removeHandler(handler)
            handler.close()

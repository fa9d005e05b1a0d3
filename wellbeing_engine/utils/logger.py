import logging
import logging.config
from logging.handlers import RotatingFileHandler
from pathlib import Path


def setup_logging(engine_config) -> logging.Logger:
    """Применить dictConfig (консоль + RotatingFileHandler) из конфигурации движка"""
    if engine_config.log_to_file:
        engine_config.log_dir.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(engine_config.get_logging_config())
    logger = logging.getLogger()
    logger.info(
        f"Logging configured: level={engine_config.log_level.value}, file={engine_config.log_to_file}"
    )
    return logger


def setup_logger(log_file: str = "logs/wellbeing_engine.log", max_bytes: int = 10_000_000, backup_count: int = 5):
    Path(log_file).parent.mkdir(exist_ok=True, parents=True)
    logger = logging.getLogger()
    logger.setLevel(logging.INFO)
    handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger

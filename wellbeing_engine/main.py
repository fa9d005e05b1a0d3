#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wellbeing Engine v1.0 - Entry Point
Запуск HTTP-сервера движка

Версия: 1.0.0
"""

import argparse
import logging
import sys

import uvicorn

from wellbeing_engine.api.app import create_app
from wellbeing_engine.config import EngineConfig
from wellbeing_engine.utils.logger import setup_logger, setup_logging

logger = logging.getLogger(__name__)


def main():
    """Главная функция запуска сервера"""

    # Парсинг аргументов
    parser = argparse.ArgumentParser(description='Запуск Wellbeing Engine API')
    parser.add_argument('--port', type=int, default=None, help='Порт сервера')
    parser.add_argument('--host', default=None, help='Хост сервера')
    parser.add_argument('--log-file', default=None, help='Дополнительный файл лога с ротацией')
    parser.add_argument('--no-scheduler', action='store_true', help='Не запускать ежедневный пересчет инсайтов')

    args = parser.parse_args()

    try:
        engine_config = EngineConfig()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Настройка логирования
    setup_logging(engine_config)
    if args.log_file:
        setup_logger(args.log_file)

    host = args.host or engine_config.server.host
    port = args.port or engine_config.server.port
    app = create_app(engine_config=engine_config, enable_scheduler=not args.no_scheduler)

    logger.info(f"Starting server on http://{host}:{port} ({engine_config.environment.value})")

    # Запуск сервера
    try:
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level=engine_config.log_level.value.lower(),
            access_log=engine_config.is_development()
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Critical error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wellbeing Engine v1.0 - FastAPI Application
HTTP-интерфейс движка: чекины, цели, инсайты, черновики и AI-коуч

Версия: 1.0.0
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from wellbeing_engine.api.routes import router
from wellbeing_engine.config import EngineConfig
from wellbeing_engine.services.engine import WellbeingEngine
from wellbeing_engine.services.scheduler import InsightScheduler

logger = logging.getLogger(__name__)


def create_app(engine: Optional[WellbeingEngine] = None,
               engine_config: Optional[EngineConfig] = None,
               enable_scheduler: bool = True) -> FastAPI:
    """Создание приложения; движок создается из конфигурации, если не передан"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Управление жизненным циклом приложения"""
        logger.info("Starting Wellbeing Engine API...")
        app.state.start_time = time.time()

        if app.state.engine is None:
            app.state.engine = WellbeingEngine.from_config(engine_config or EngineConfig())

        scheduler = None
        if enable_scheduler:
            scheduler = InsightScheduler(app.state.engine, engine_config)
            scheduler.start()

        counts = app.state.engine.store.counts()
        logger.info(f"Engine ready: {counts.get('check_ins', 0)} check-ins, {counts.get('goals', 0)} goals")

        yield

        logger.info("Stopping Wellbeing Engine API...")
        if scheduler is not None:
            scheduler.shutdown()

    app = FastAPI(
        title="Wellbeing Engine API",
        description="Behavioral analytics and progress engine for a personal wellbeing tracker",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.engine = engine
    app.state.start_time = time.time()

    debug_mode = engine_config.server.debug_mode if engine_config else False
    if debug_mode:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(router)

    @app.get("/health")
    async def health_check(request: Request):
        """Проверка состояния сервиса"""
        current = request.app.state.engine
        uptime = time.time() - request.app.state.start_time
        if current is None:
            return {"status": "starting", "uptime_seconds": round(uptime, 2)}
        health = current.get_health_status()
        health['uptime_seconds'] = round(uptime, 2)
        return health

    @app.get("/ping")
    async def ping():
        return {"status": "ok", "message": "pong"}

    return app

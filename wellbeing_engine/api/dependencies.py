"""
Зависимости FastAPI: доступ к движку, созданному при старте приложения
"""

from fastapi import HTTPException, Request, status

from wellbeing_engine.services.engine import WellbeingEngine

# ===== ПРОВАЙДЕРЫ ЗАВИСИМОСТЕЙ =====

async def get_engine(request: Request) -> WellbeingEngine:
    """Получить экземпляр WellbeingEngine из состояния приложения"""
    engine = getattr(request.app.state, 'engine', None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Engine is not initialized"
        )
    return engine

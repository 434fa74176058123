"""
Outcome Planner

FastAPI application: inbox, chunks y conversión a outcomes.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from planner import __version__
from planner.api import inbox_router
from planner.api.errors import planner_error_handler
from planner.config import get_settings
from planner.utils.errors import PlannerError

# Configurar logging
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle de la aplicación."""
    logger.info("Iniciando Outcome Planner...")

    from planner.db.database import init_db
    await init_db()

    # Retomar conversiones que quedaron a mitad en la ejecución anterior
    from planner.domain.services import get_conversion_service
    recovered = await get_conversion_service().recover_stalled()
    if recovered:
        logger.info(f"{len(recovered)} conversiones retomadas al iniciar")

    logger.info("Outcome Planner listo")

    yield

    logger.info("Deteniendo Outcome Planner...")

    from planner.db.database import close_db
    await close_db()

    logger.info("Outcome Planner detenido.")


# Crear aplicación FastAPI
app = FastAPI(
    title="Outcome Planner",
    description="Inbox, chunks y conversión a outcomes",
    version=__version__,
    lifespan=lifespan,
)

app.add_exception_handler(PlannerError, planner_error_handler)
app.include_router(inbox_router)


# ==================== ROUTES ====================


@app.get("/health")
async def health_check():
    """Health check básico."""
    return {"status": "healthy", "service": "outcome-planner"}


@app.get("/health/detailed")
async def health_check_detailed():
    """Health check con estado de la base de datos."""
    from planner.db.database import check_db_connection

    database_ok = await check_db_connection()

    return {
        "status": "healthy" if database_ok else "degraded",
        "service": "outcome-planner",
        "version": __version__,
        "environment": settings.app_env,
        "checks": {
            "database": {"status": "healthy" if database_ok else "unhealthy"},
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "planner.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )

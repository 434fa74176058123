"""
Database - SQLAlchemy async.

PostgreSQL (asyncpg) en produccion, SQLite (aiosqlite) en desarrollo y tests.
Cada operacion de dominio corre en su propia unidad de trabajo
(`session_scope`), que hace commit al salir o rollback si algo falla.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from planner.config import get_settings
from planner.utils.errors import TransientStoreError

logger = logging.getLogger(__name__)
settings = get_settings()


class Base(DeclarativeBase):
    """Base class para modelos SQLAlchemy."""
    pass


# Engine y session factory
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignora las FK (ON DELETE CASCADE/SET NULL) salvo que se activen por conexion."""

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_engine() -> AsyncEngine:
    """Obtiene el engine de la base de datos."""
    global _engine
    if _engine is None:
        if settings.database_url.startswith("sqlite"):
            _engine = create_async_engine(settings.database_url, echo=settings.debug)
            enable_sqlite_foreign_keys(_engine)
        else:
            _engine = create_async_engine(
                settings.database_url,
                echo=settings.debug,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
            )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Obtiene la factory de sesiones."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = make_session_factory(get_engine())
    return _async_session_factory


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Crea una factory de sesiones para un engine dado."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Context manager para obtener una sesion sin transaccion explicita."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Unidad de trabajo transaccional.

    Hace commit al salir del bloque y rollback ante cualquier excepcion.
    Los errores de conexion del driver se traducen a TransientStoreError
    para que las politicas de reintento puedan actuar.
    """
    factory = factory or get_session_factory()
    try:
        async with factory() as session:
            async with session.begin():
                yield session
    except OperationalError as e:
        raise TransientStoreError(f"Base de datos no disponible: {e.orig}") from e
    except DBAPIError as e:
        if e.connection_invalidated:
            raise TransientStoreError(f"Conexion invalidada: {e.orig}") from e
        raise


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Inicializa la base de datos."""
    # Importar modelos para que se registren
    from planner.db import models  # noqa: F401

    engine = engine or get_engine()
    logger.info(f"Conectando a la base de datos: {engine.url.render_as_string(hide_password=True)}")

    # En desarrollo y tests, crear tablas automaticamente
    # En produccion, usar migraciones
    if not settings.is_production:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    logger.info("Base de datos inicializada")


async def close_db() -> None:
    """Cierra las conexiones de la base de datos."""
    global _engine, _async_session_factory

    if _engine:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None

    logger.info("Conexiones de base de datos cerradas")


async def check_db_connection() -> bool:
    """Verifica la conexion a la base de datos."""
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Error conectando a la base de datos: {e}")
        return False

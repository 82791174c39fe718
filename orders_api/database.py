import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from orders_api.config import settings

logger = logging.getLogger(__name__)

try:
    # Créer le moteur de base de données asynchrone
    engine = create_async_engine(
        settings.database_url,
        echo=settings.DB_ECHO_LOG,
    )

    # Créer une classe de session asynchrone
    AsyncSessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Empêche les objets d'expirer après commit
    )
    logger.info("Moteur et Session Factory SQLAlchemy Async configurés.")

except Exception as e:
    logger.critical(f"Erreur lors de la configuration de SQLAlchemy Async: {e}", exc_info=True)
    engine = None
    AsyncSessionLocal = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides an async database session."""
    if AsyncSessionLocal is None:
        logger.error("La factory de session SQLAlchemy n'est pas initialisée.")
        raise RuntimeError("Database session factory is not initialized.")

    async with AsyncSessionLocal() as session:
        try:
            yield session
            # Pas de commit ici : les services contrôlent leurs transactions.
        except Exception as e:
            logger.error(f"Erreur durant la session DB, rollback: {e}", exc_info=True)
            await session.rollback()
            raise
        finally:
            await session.close()
            logger.debug("Session DB fermée.")


async def create_tables():
    """Crée toutes les tables définies via SQLModel.metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

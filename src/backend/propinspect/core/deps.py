"""Dependency injection utilities for FastAPI."""

from functools import lru_cache
from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from propinspect.core.config import settings
from propinspect.services.eligibility import DeficiencyEligibilityTable, table_from_settings

# Database engine and session factory
engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


@lru_cache
def get_eligibility_table() -> DeficiencyEligibilityTable:
    """Get the configured deficiency eligibility table."""
    return table_from_settings(settings)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
EligibilityTable = Annotated[DeficiencyEligibilityTable, Depends(get_eligibility_table)]

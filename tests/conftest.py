"""Shared fixtures for taxonomy tests.

Every test gets its own in-memory SQLite database and its own resolved
filter cache.
"""

from collections.abc import AsyncGenerator
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import taxonomy_api.taxonomy.models  # noqa: F401
from taxonomy_api.infrastructure.database import Base
from taxonomy_api.taxonomy.assignments import FilterAssignmentService
from taxonomy_api.taxonomy.cache import ResolvedFilterCache
from taxonomy_api.taxonomy.categories import CategoryStore
from taxonomy_api.taxonomy.filters import FilterCatalog
from taxonomy_api.taxonomy.resolvers import AvailabilityResolver, EffectiveFilterResolver
from taxonomy_api.taxonomy.types import FilterValueType

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory database with the taxonomy schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session on the test database."""
    async with session_factory() as session:
        yield session


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def cache() -> ResolvedFilterCache:
    """Fresh resolved filter cache."""
    return ResolvedFilterCache(max_entries=64)


@pytest.fixture
def store(session: AsyncSession, cache: ResolvedFilterCache) -> CategoryStore:
    return CategoryStore(session, cache=cache)


@pytest.fixture
def catalog(session: AsyncSession, cache: ResolvedFilterCache) -> FilterCatalog:
    return FilterCatalog(session, cache=cache)


@pytest.fixture
def assignments(session: AsyncSession, cache: ResolvedFilterCache) -> FilterAssignmentService:
    return FilterAssignmentService(session, cache=cache)


@pytest.fixture
def availability(session: AsyncSession) -> AvailabilityResolver:
    return AvailabilityResolver(session)


@pytest.fixture
def resolver(session: AsyncSession, cache: ResolvedFilterCache) -> EffectiveFilterResolver:
    return EffectiveFilterResolver(session, cache=cache)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def apparel(store: CategoryStore, catalog: FilterCatalog) -> SimpleNamespace:
    """Create the Men > Clothing > T-Shirts path and a small filter catalog.

    Nothing is assigned yet.
    """
    men = await store.create("Men", "men", level=1)
    clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)
    tshirts = await store.create(
        "T-Shirts", "men-clothing-tshirts", level=3, parent_id=clothing.id
    )

    size = await catalog.create(
        "size", "Size", FilterValueType.MULTI_SELECT, ["S", "M", "L", "XL"]
    )
    sleeve = await catalog.create(
        "sleeve_length", "Sleeve Length", FilterValueType.SINGLE_SELECT, ["short", "long"]
    )
    color = await catalog.create(
        "color", "Color", FilterValueType.MULTI_SELECT, ["black", "white", "red"], sort_order=1
    )
    organic = await catalog.create(
        "organic", "Organic", FilterValueType.BOOLEAN, sort_order=2
    )
    price = await catalog.create(
        "price", "Price", FilterValueType.NUMERIC_RANGE, sort_order=3
    )

    return SimpleNamespace(
        men=men,
        clothing=clothing,
        tshirts=tshirts,
        size=size,
        sleeve=sleeve,
        color=color,
        organic=organic,
        price=price,
    )

"""Shared fixtures for API tests."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taxonomy_api.infrastructure.database import get_session
from taxonomy_api.main import app
from taxonomy_api.taxonomy.cache import get_filter_cache


@pytest.fixture(autouse=True)
def clear_filter_cache() -> None:
    """Start every API test with an empty resolved filter cache."""
    get_filter_cache().clear()


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Create an API client backed by the test database."""

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _create_category(
    client: AsyncClient, name: str, slug: str, level: int, parent_id: str | None = None
) -> dict:
    response = await client.post(
        "/categories",
        json={"name": name, "slug": slug, "level": level, "parent_id": parent_id},
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _create_filter(
    client: AsyncClient,
    name: str,
    display_name: str,
    value_type: str,
    options: list[str] | None = None,
) -> dict:
    response = await client.post(
        "/filters",
        json={
            "name": name,
            "display_name": display_name,
            "value_type": value_type,
            "options": [{"value": v} for v in options or []],
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest_asyncio.fixture
async def tshirts_path(client: AsyncClient) -> dict:
    """Men > Clothing > T-Shirts with Size, Sleeve Length and Color filters."""
    men = await _create_category(client, "Men", "men", 1)
    clothing = await _create_category(client, "Clothing", "men-clothing", 2, men["id"])
    tshirts = await _create_category(client, "T-Shirts", "men-clothing-tshirts", 3, clothing["id"])
    size = await _create_filter(client, "size", "Size", "multi_select", ["S", "M", "L", "XL"])
    sleeve = await _create_filter(
        client, "sleeve_length", "Sleeve Length", "single_select", ["short", "long"]
    )
    color = await _create_filter(client, "color", "Color", "multi_select", ["black", "white"])
    return {
        "men": men,
        "clothing": clothing,
        "tshirts": tshirts,
        "size": size,
        "sleeve": sleeve,
        "color": color,
    }

"""Category API endpoints.

Provides endpoints for creating, browsing and retiring categories.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.api.schemas import (
    CategoryCreateRequest,
    CategoryDeactivateResponse,
    CategoryResponse,
    CategoryTreeResponse,
    CategoryUpdateRequest,
    ErrorResponse,
)
from taxonomy_api.infrastructure.database import get_session
from taxonomy_api.taxonomy.categories import CategoryStore

router = APIRouter(prefix="/categories", tags=["Categories"])


# ============================================================================
# Dependencies
# ============================================================================


def get_store(session: Annotated[AsyncSession, Depends(get_session)]) -> CategoryStore:
    """Get category store bound to the request session."""
    return CategoryStore(session)


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create category",
)
async def create_category(
    request: CategoryCreateRequest,
    store: Annotated[CategoryStore, Depends(get_store)],
) -> CategoryResponse:
    """Create a category at level 1, 2 or 3.

    Levels 2 and 3 need an active parent exactly one level up.
    """
    category = await store.create(
        name=request.name,
        slug=request.slug,
        level=request.level,
        parent_id=request.parent_id,
        sort_order=request.sort_order,
    )
    return CategoryResponse.model_validate(category)


@router.get(
    "",
    response_model=list[CategoryResponse],
    summary="List categories",
)
async def list_categories(
    store: Annotated[CategoryStore, Depends(get_store)],
    level: Annotated[int | None, Query(ge=1, le=3)] = None,
    parent_id: str | None = None,
    active_only: bool = False,
) -> list[CategoryResponse]:
    """List categories ordered by level, sort order and name."""
    categories = await store.list_categories(
        level=level,
        parent_id=parent_id,
        active_only=active_only,
    )
    return [CategoryResponse.model_validate(c) for c in categories]


@router.get(
    "/tree",
    response_model=list[CategoryTreeResponse],
    summary="Get category tree",
)
async def get_category_tree(
    store: Annotated[CategoryStore, Depends(get_store)],
    active_only: bool = True,
) -> list[CategoryTreeResponse]:
    """Get the nested category tree."""
    roots = await store.tree(active_only=active_only)
    return [CategoryTreeResponse.model_validate(node.to_dict()) for node in roots]


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get category",
)
async def get_category(
    category_id: str,
    store: Annotated[CategoryStore, Depends(get_store)],
) -> CategoryResponse:
    """Get a category by ID, active or not."""
    return CategoryResponse.model_validate(await store.get(category_id))


@router.patch(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Update category",
)
async def update_category(
    category_id: str,
    request: CategoryUpdateRequest,
    store: Annotated[CategoryStore, Depends(get_store)],
) -> CategoryResponse:
    """Rename or reorder a category."""
    category = await store.update(
        category_id,
        name=request.name,
        sort_order=request.sort_order,
    )
    return CategoryResponse.model_validate(category)


@router.get(
    "/{category_id}/path",
    response_model=list[CategoryResponse],
    responses={404: {"model": ErrorResponse}},
    summary="Get category breadcrumb",
)
async def get_category_path(
    category_id: str,
    store: Annotated[CategoryStore, Depends(get_store)],
) -> list[CategoryResponse]:
    """Get the categories from level 1 down to this one."""
    return [CategoryResponse.model_validate(c) for c in await store.path(category_id)]


@router.post(
    "/{category_id}/deactivate",
    response_model=CategoryDeactivateResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Deactivate category",
)
async def deactivate_category(
    category_id: str,
    store: Annotated[CategoryStore, Depends(get_store)],
    cascade: bool = False,
) -> CategoryDeactivateResponse:
    """Deactivate a category.

    Children stay active unless ``cascade=true`` is passed.
    """
    changed = await store.deactivate(category_id, cascade=cascade)
    return CategoryDeactivateResponse(
        items=[CategoryResponse.model_validate(c) for c in changed]
    )


@router.post(
    "/{category_id}/reactivate",
    response_model=CategoryResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Reactivate category",
)
async def reactivate_category(
    category_id: str,
    store: Annotated[CategoryStore, Depends(get_store)],
) -> CategoryResponse:
    """Reactivate a category if its parent is active and its slug is free."""
    return CategoryResponse.model_validate(await store.reactivate(category_id))

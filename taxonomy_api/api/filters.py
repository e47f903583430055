"""Filter API endpoints.

Provides endpoints for managing the filter catalog.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.api.schemas import (
    AssignmentResponse,
    AssignmentsListResponse,
    ErrorResponse,
    FilterCreateRequest,
    FilterResponse,
    FiltersListResponse,
    FilterUpdateRequest,
)
from taxonomy_api.infrastructure.database import get_session
from taxonomy_api.taxonomy.assignments import FilterAssignmentService
from taxonomy_api.taxonomy.filters import FilterCatalog
from taxonomy_api.taxonomy.types import FilterOptionSpec

router = APIRouter(prefix="/filters", tags=["Filters"])


# ============================================================================
# Dependencies
# ============================================================================


def get_catalog(session: Annotated[AsyncSession, Depends(get_session)]) -> FilterCatalog:
    """Get filter catalog bound to the request session."""
    return FilterCatalog(session)


def get_assignment_service(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> FilterAssignmentService:
    """Get assignment service bound to the request session."""
    return FilterAssignmentService(session)


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=FilterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Create filter",
)
async def create_filter(
    request: FilterCreateRequest,
    catalog: Annotated[FilterCatalog, Depends(get_catalog)],
) -> FilterResponse:
    """Create a filter definition.

    Select types need at least one option; other types take none.
    """
    filter_ = await catalog.create(
        name=request.name,
        display_name=request.display_name,
        value_type=request.value_type,
        options=[
            FilterOptionSpec(value=o.value, display_value=o.display_value)
            for o in request.options
        ],
        sort_order=request.sort_order,
    )
    return FilterResponse.model_validate(filter_)


@router.get(
    "",
    response_model=FiltersListResponse,
    summary="List filters",
)
async def list_filters(
    catalog: Annotated[FilterCatalog, Depends(get_catalog)],
    active_only: bool = False,
    search: str | None = None,
) -> FiltersListResponse:
    """List filters in catalog order, optionally searching name and label."""
    filters = await catalog.list_filters(active_only=active_only, search=search)
    return FiltersListResponse(
        items=[FilterResponse.model_validate(f) for f in filters],
        total=len(filters),
    )


@router.get(
    "/{filter_id}",
    response_model=FilterResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get filter",
)
async def get_filter(
    filter_id: str,
    catalog: Annotated[FilterCatalog, Depends(get_catalog)],
) -> FilterResponse:
    """Get a filter by ID, active or not."""
    return FilterResponse.model_validate(await catalog.get(filter_id))


@router.patch(
    "/{filter_id}",
    response_model=FilterResponse,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Update filter",
)
async def update_filter(
    filter_id: str,
    request: FilterUpdateRequest,
    catalog: Annotated[FilterCatalog, Depends(get_catalog)],
) -> FilterResponse:
    """Update a filter. The value type is frozen once assigned."""
    options = None
    if request.options is not None:
        options = [
            FilterOptionSpec(value=o.value, display_value=o.display_value)
            for o in request.options
        ]
    filter_ = await catalog.update(
        filter_id,
        display_name=request.display_name,
        sort_order=request.sort_order,
        value_type=request.value_type,
        options=options,
    )
    return FilterResponse.model_validate(filter_)


@router.post(
    "/{filter_id}/deactivate",
    response_model=FilterResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Deactivate filter",
)
async def deactivate_filter(
    filter_id: str,
    catalog: Annotated[FilterCatalog, Depends(get_catalog)],
) -> FilterResponse:
    """Soft-delete a filter."""
    return FilterResponse.model_validate(await catalog.deactivate(filter_id))


@router.post(
    "/{filter_id}/reactivate",
    response_model=FilterResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Reactivate filter",
)
async def reactivate_filter(
    filter_id: str,
    catalog: Annotated[FilterCatalog, Depends(get_catalog)],
) -> FilterResponse:
    """Restore a deactivated filter. Assignments kept while it was off apply again."""
    return FilterResponse.model_validate(await catalog.reactivate(filter_id))


@router.post(
    "/{filter_id}/options/{value}/deactivate",
    response_model=FilterResponse,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Deactivate filter option",
)
async def deactivate_filter_option(
    filter_id: str,
    value: str,
    catalog: Annotated[FilterCatalog, Depends(get_catalog)],
) -> FilterResponse:
    """Withdraw one option. The last active option cannot be withdrawn."""
    filter_ = await catalog.set_option_active(filter_id, value, is_active=False)
    return FilterResponse.model_validate(filter_)


@router.post(
    "/{filter_id}/options/{value}/reactivate",
    response_model=FilterResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Reactivate filter option",
)
async def reactivate_filter_option(
    filter_id: str,
    value: str,
    catalog: Annotated[FilterCatalog, Depends(get_catalog)],
) -> FilterResponse:
    """Make a withdrawn option available again."""
    filter_ = await catalog.set_option_active(filter_id, value, is_active=True)
    return FilterResponse.model_validate(filter_)


@router.get(
    "/{filter_id}/assignments",
    response_model=AssignmentsListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List filter usage",
)
async def list_filter_assignments(
    filter_id: str,
    service: Annotated[FilterAssignmentService, Depends(get_assignment_service)],
    active_only: bool = True,
) -> AssignmentsListResponse:
    """List the categories a filter is assigned to."""
    assignments = await service.list_for_filter(filter_id, active_only=active_only)
    return AssignmentsListResponse(
        items=[AssignmentResponse.model_validate(a) for a in assignments],
        total=len(assignments),
    )

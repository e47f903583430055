"""Filter assignment API endpoints.

Provides endpoints for binding filters to categories and for listing
the filters a category can still take.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.api.schemas import (
    AssignmentResponse,
    AssignmentsListResponse,
    AssignmentUpdateRequest,
    AssignRequest,
    BulkAssignRequest,
    ErrorResponse,
    FilterResponse,
    FiltersListResponse,
)
from taxonomy_api.infrastructure.database import get_session
from taxonomy_api.taxonomy.assignments import FilterAssignmentService
from taxonomy_api.taxonomy.resolvers import AvailabilityResolver
from taxonomy_api.taxonomy.types import AssignmentSpec

router = APIRouter(tags=["Filter Assignments"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> FilterAssignmentService:
    """Get assignment service bound to the request session."""
    return FilterAssignmentService(session)


def get_availability(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AvailabilityResolver:
    """Get availability resolver bound to the request session."""
    return AvailabilityResolver(session)


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/categories/{category_id}/filter-assignments",
    response_model=AssignmentsListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List category assignments",
)
async def list_category_assignments(
    category_id: str,
    service: Annotated[FilterAssignmentService, Depends(get_service)],
    active_only: bool = False,
) -> AssignmentsListResponse:
    """List a category's filter assignments with filter details."""
    assignments = await service.list_for_category(category_id, active_only=active_only)
    return AssignmentsListResponse(
        items=[AssignmentResponse.model_validate(a) for a in assignments],
        total=len(assignments),
    )


@router.post(
    "/categories/{category_id}/filter-assignments",
    response_model=AssignmentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Assign filter",
)
async def assign_filter(
    category_id: str,
    request: AssignRequest,
    service: Annotated[FilterAssignmentService, Depends(get_service)],
) -> AssignmentResponse:
    """Bind a filter to a category.

    Assigning an already active pair returns the existing assignment.
    """
    assignment = await service.assign(
        category_id,
        request.filter_id,
        is_required=request.is_required,
        sort_order=request.sort_order,
        assigned_by=request.assigned_by,
    )
    return AssignmentResponse.model_validate(assignment)


@router.post(
    "/categories/{category_id}/filter-assignments/bulk",
    response_model=AssignmentsListResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Assign filters in bulk",
)
async def bulk_assign_filters(
    category_id: str,
    request: BulkAssignRequest,
    service: Annotated[FilterAssignmentService, Depends(get_service)],
) -> AssignmentsListResponse:
    """Bind several filters to a category. Nothing is written if any entry is invalid."""
    assignments = await service.bulk_assign(
        category_id,
        [
            AssignmentSpec(
                filter_id=entry.filter_id,
                is_required=entry.is_required,
                sort_order=entry.sort_order,
            )
            for entry in request.entries
        ],
        assigned_by=request.assigned_by,
    )
    return AssignmentsListResponse(
        items=[AssignmentResponse.model_validate(a) for a in assignments],
        total=len(assignments),
    )


@router.delete(
    "/categories/{category_id}/filter-assignments/{filter_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Unassign filter",
)
async def unassign_filter(
    category_id: str,
    filter_id: str,
    service: Annotated[FilterAssignmentService, Depends(get_service)],
) -> Response:
    """Deactivate a filter's binding to a category. Unbound pairs are a no-op."""
    await service.unassign(category_id, filter_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/filter-assignments/{assignment_id}",
    response_model=AssignmentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Update assignment",
)
async def update_assignment(
    assignment_id: str,
    request: AssignmentUpdateRequest,
    service: Annotated[FilterAssignmentService, Depends(get_service)],
) -> AssignmentResponse:
    """Change whether an assigned filter is required, or its position."""
    assignment = await service.update(
        assignment_id,
        is_required=request.is_required,
        sort_order=request.sort_order,
    )
    return AssignmentResponse.model_validate(assignment)


@router.get(
    "/categories/{category_id}/available-filters",
    response_model=FiltersListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List assignable filters",
)
async def list_available_filters(
    category_id: str,
    resolver: Annotated[AvailabilityResolver, Depends(get_availability)],
    search: str | None = None,
) -> FiltersListResponse:
    """List active filters not yet assigned to the category."""
    filters = await resolver.available_filters(category_id, search=search)
    return FiltersListResponse(
        items=[FilterResponse.model_validate(f) for f in filters],
        total=len(filters),
    )

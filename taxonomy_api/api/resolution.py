"""Resolution API endpoints.

Provides effective filter sets for category paths, product attribute
validation and facet counts.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.api.schemas import (
    AttributeValidationRequest,
    AttributeValidationResponse,
    EffectiveFiltersResponse,
    ErrorResponse,
    FacetRequest,
    FacetSchema,
    FacetsResponse,
    FacetValueSchema,
    ResolvedFilterSchema,
    ResolvedOptionSchema,
)
from taxonomy_api.infrastructure.database import get_session
from taxonomy_api.taxonomy.facets import FacetService
from taxonomy_api.taxonomy.resolvers import EffectiveFilterResolver
from taxonomy_api.taxonomy.types import EffectiveFilters, Facet, ResolvedFilter

router = APIRouter(tags=["Resolution"])


# ============================================================================
# Dependencies
# ============================================================================


def get_resolver(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> EffectiveFilterResolver:
    """Get effective filter resolver bound to the request session."""
    return EffectiveFilterResolver(session)


def get_facet_service(session: Annotated[AsyncSession, Depends(get_session)]) -> FacetService:
    """Get facet service bound to the request session."""
    return FacetService(session)


# ============================================================================
# Converters
# ============================================================================


def resolved_to_schema(resolved: ResolvedFilter) -> ResolvedFilterSchema:
    """Convert a resolved filter to its response schema."""
    return ResolvedFilterSchema(
        filter_id=resolved.filter_id,
        name=resolved.name,
        display_name=resolved.display_name,
        value_type=resolved.value_type,
        options=[
            ResolvedOptionSchema(value=o.value, display_value=o.display_value)
            for o in resolved.options
        ],
        is_required=resolved.is_required,
        sort_order=resolved.sort_order,
    )


def effective_to_response(effective: EffectiveFilters) -> EffectiveFiltersResponse:
    """Convert an effective filter set to its response schema."""
    return EffectiveFiltersResponse(
        category_id=effective.category_id,
        category_level=effective.category_level,
        filters=[resolved_to_schema(f) for f in effective.filters],
        required=[resolved_to_schema(f) for f in effective.required],
        optional=[resolved_to_schema(f) for f in effective.optional],
    )


def facet_to_schema(facet: Facet) -> FacetSchema:
    """Convert a facet to its response schema."""
    return FacetSchema(
        filter_id=facet.filter_id,
        name=facet.name,
        display_name=facet.display_name,
        value_type=facet.value_type,
        values=[
            FacetValueSchema(
                value=v.value,
                display_value=v.display_value,
                count=v.count,
                lower=v.lower,
                upper=v.upper,
            )
            for v in facet.values
        ],
        total=facet.total,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/effective-filters",
    response_model=EffectiveFiltersResponse,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Resolve effective filters",
)
async def get_effective_filters(
    resolver: Annotated[EffectiveFilterResolver, Depends(get_resolver)],
    level1_id: str,
    level2_id: str | None = None,
    level3_id: str | None = None,
) -> EffectiveFiltersResponse:
    """Get the filters a category path exposes.

    Only the most specific category supplied is consulted.
    """
    effective = await resolver.effective_filters(level1_id, level2_id, level3_id)
    return effective_to_response(effective)


@router.post(
    "/effective-filters/validate",
    response_model=AttributeValidationResponse,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Validate product attributes",
)
async def validate_product_attributes(
    request: AttributeValidationRequest,
    resolver: Annotated[EffectiveFilterResolver, Depends(get_resolver)],
) -> AttributeValidationResponse:
    """Check product attribute values against a category path.

    Problems are listed under ``details.problems`` of the 422 response.
    """
    effective = await resolver.validate_product_attributes(
        request.level1_id,
        request.level2_id,
        request.level3_id,
        request.values,
    )
    return AttributeValidationResponse(
        category_id=effective.category_id,
        checked_filter_ids=[f.filter_id for f in effective.filters],
    )


@router.post(
    "/facets",
    response_model=FacetsResponse,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
    summary="Aggregate facets",
)
async def aggregate_facets(
    request: FacetRequest,
    service: Annotated[FacetService, Depends(get_facet_service)],
) -> FacetsResponse:
    """Count filter values across a product set for a category path."""
    effective, facets = await service.facets_for_path(
        request.level1_id,
        request.level2_id,
        request.level3_id,
        request.products,
        request.buckets,
    )
    return FacetsResponse(
        category_id=effective.category_id,
        facets=[facet_to_schema(f) for f in facets],
    )

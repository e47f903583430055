"""API schemas for the Taxonomy API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from taxonomy_api.taxonomy.types import FilterValueType

# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class ORMModel(BaseModel):
    """Base for responses built from ORM objects."""

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Category Schemas
# ============================================================================


class CategoryCreateRequest(BaseModel):
    """Request to create a category."""

    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    slug: str = Field(..., min_length=1, max_length=200, description="URL-safe key")
    level: int = Field(..., description="Tree depth: 1, 2 or 3")
    parent_id: str | None = Field(
        default=None, description="Parent category (required for levels 2 and 3)"
    )
    sort_order: int = Field(default=0, description="Position among siblings")


class CategoryUpdateRequest(BaseModel):
    """Request to update a category. Level, parent and slug are fixed."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    sort_order: int | None = None


class CategoryResponse(ORMModel):
    """A category."""

    id: str
    name: str
    slug: str
    level: int
    parent_id: str | None = None
    is_active: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime
    deactivated_at: datetime | None = None


class CategoryTreeResponse(CategoryResponse):
    """A category with its children."""

    children: list["CategoryTreeResponse"] = Field(default_factory=list)


class CategoryDeactivateResponse(BaseModel):
    """Categories deactivated by one request, the target first."""

    items: list[CategoryResponse]


# ============================================================================
# Filter Schemas
# ============================================================================


class FilterOptionSchema(ORMModel):
    """An option of a select filter."""

    value: str = Field(..., min_length=1, max_length=100)
    display_value: str | None = Field(default=None, max_length=200)


class FilterOptionResponse(ORMModel):
    """An option as stored on a filter."""

    value: str
    display_value: str
    is_active: bool = True


class FilterCreateRequest(BaseModel):
    """Request to create a filter."""

    name: str = Field(..., min_length=1, max_length=100, description="Machine key")
    display_name: str = Field(..., min_length=1, max_length=200, description="Human label")
    value_type: FilterValueType
    options: list[FilterOptionSchema] = Field(
        default_factory=list, description="Options, required for select types"
    )
    sort_order: int = 0


class FilterUpdateRequest(BaseModel):
    """Request to update a filter."""

    display_name: str | None = Field(default=None, min_length=1, max_length=200)
    sort_order: int | None = None
    value_type: FilterValueType | None = None
    options: list[FilterOptionSchema] | None = None


class FilterResponse(ORMModel):
    """A filter definition."""

    id: str
    name: str
    display_name: str
    value_type: FilterValueType
    options: list[FilterOptionResponse] = Field(default_factory=list)
    is_active: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime
    deactivated_at: datetime | None = None


class FiltersListResponse(BaseModel):
    """List of filters."""

    items: list[FilterResponse]
    total: int


# ============================================================================
# Assignment Schemas
# ============================================================================


class AssignRequest(BaseModel):
    """Request to bind a filter to a category."""

    filter_id: str
    is_required: bool = False
    sort_order: int = 0
    assigned_by: str = Field(default="system", min_length=1, max_length=100)


class BulkAssignEntry(BaseModel):
    """One filter of a bulk assignment."""

    filter_id: str
    is_required: bool = False
    sort_order: int = 0


class BulkAssignRequest(BaseModel):
    """Request to bind several filters to a category at once."""

    entries: list[BulkAssignEntry] = Field(..., min_length=1)
    assigned_by: str = Field(default="system", min_length=1, max_length=100)


class AssignmentUpdateRequest(BaseModel):
    """Request to change an assignment's attributes."""

    is_required: bool | None = None
    sort_order: int | None = None


class AssignmentResponse(ORMModel):
    """A filter assignment with its filter."""

    id: str
    category_id: str
    filter_id: str
    category_level: int
    is_required: bool
    is_active: bool
    sort_order: int
    assigned_at: datetime
    assigned_by: str
    filter: FilterResponse


class AssignmentsListResponse(BaseModel):
    """List of filter assignments."""

    items: list[AssignmentResponse]
    total: int


# ============================================================================
# Resolution Schemas
# ============================================================================


class ResolvedOptionSchema(BaseModel):
    """Option of a resolved filter."""

    value: str
    display_value: str


class ResolvedFilterSchema(BaseModel):
    """A filter in an effective filter set."""

    filter_id: str
    name: str
    display_name: str
    value_type: FilterValueType
    options: list[ResolvedOptionSchema]
    is_required: bool
    sort_order: int


class EffectiveFiltersResponse(BaseModel):
    """Effective filters of a category path."""

    category_id: str
    category_level: int
    filters: list[ResolvedFilterSchema]
    required: list[ResolvedFilterSchema]
    optional: list[ResolvedFilterSchema]


class CategoryPathRequest(BaseModel):
    """A level 1/2/3 category path."""

    level1_id: str
    level2_id: str | None = None
    level3_id: str | None = None


class AttributeValidationRequest(CategoryPathRequest):
    """Product attribute values to check against a category path."""

    values: dict[str, Any] = Field(
        default_factory=dict, description="Filter id to submitted value(s)"
    )


class AttributeValidationResponse(BaseModel):
    """Outcome of a successful attribute validation."""

    valid: bool = True
    category_id: str
    checked_filter_ids: list[str]


# ============================================================================
# Facet Schemas
# ============================================================================


class FacetRequest(CategoryPathRequest):
    """Products to aggregate for a category path."""

    products: list[dict[str, Any]] = Field(
        default_factory=list, description="Per product, filter id to value(s)"
    )
    buckets: dict[str, list[float]] = Field(
        default_factory=dict, description="Bucket boundaries per numeric filter id or name"
    )


class FacetValueSchema(BaseModel):
    """A facet value and its product count."""

    value: Any
    display_value: str
    count: int
    lower: float | None = None
    upper: float | None = None


class FacetSchema(BaseModel):
    """Value counts of one filter."""

    filter_id: str
    name: str
    display_name: str
    value_type: FilterValueType
    values: list[FacetValueSchema]
    total: int


class FacetsResponse(BaseModel):
    """Facets of a category path."""

    category_id: str
    facets: list[FacetSchema]


CategoryTreeResponse.model_rebuild()

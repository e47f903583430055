"""Category Taxonomy Service.

Provides the three-level category tree, the filter catalog, filter
assignments, and the resolution and facet algorithms built on them.
"""

from taxonomy_api.taxonomy.assignments import FilterAssignmentService
from taxonomy_api.taxonomy.cache import ResolvedFilterCache, get_filter_cache
from taxonomy_api.taxonomy.categories import CategoryNode, CategoryStore
from taxonomy_api.taxonomy.facets import FacetAggregator, FacetService
from taxonomy_api.taxonomy.filters import FilterCatalog
from taxonomy_api.taxonomy.models import Category, Filter, FilterAssignment, FilterOption
from taxonomy_api.taxonomy.resolvers import AvailabilityResolver, EffectiveFilterResolver
from taxonomy_api.taxonomy.types import (
    AssignmentSpec,
    EffectiveFilters,
    Facet,
    FacetValue,
    FilterOptionSpec,
    FilterValueType,
    ResolvedFilter,
)

__all__ = [
    # Models
    "Category",
    "Filter",
    "FilterAssignment",
    "FilterOption",
    # Types
    "AssignmentSpec",
    "EffectiveFilters",
    "Facet",
    "FacetValue",
    "FilterOptionSpec",
    "FilterValueType",
    "ResolvedFilter",
    # Cache
    "ResolvedFilterCache",
    "get_filter_cache",
    # Services
    "CategoryNode",
    "CategoryStore",
    "FilterCatalog",
    "FilterAssignmentService",
    "AvailabilityResolver",
    "EffectiveFilterResolver",
    "FacetAggregator",
    "FacetService",
]

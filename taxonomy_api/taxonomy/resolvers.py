"""Filter resolution.

Two read-only resolvers over categories and assignments:

- AvailabilityResolver: which active catalog filters can still be bound
  to a category.
- EffectiveFilterResolver: which filters a category path exposes to
  product forms and search pages, plus validation of submitted product
  attribute values against that set.

Resolution is leaf-only: only the most specific category of a path is
consulted, its ancestors' assignments are not merged in.
"""

import math
from collections.abc import Mapping, Sequence
from numbers import Real
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.domain.exceptions import NotFoundError, ValidationError
from taxonomy_api.taxonomy.cache import ResolvedFilterCache, get_filter_cache
from taxonomy_api.taxonomy.models import Filter, FilterAssignment
from taxonomy_api.taxonomy.repository import (
    CategoryRepository,
    FilterAssignmentRepository,
    FilterRepository,
)
from taxonomy_api.taxonomy.types import (
    AttributeProblem,
    EffectiveFilters,
    FilterValueType,
    ResolvedFilter,
    ResolvedOption,
)

logger = structlog.get_logger()


def most_specific_id(
    level1_id: str | None,
    level2_id: str | None = None,
    level3_id: str | None = None,
) -> str:
    """Pick the deepest category id supplied for a path."""
    for category_id in (level3_id, level2_id, level1_id):
        if category_id:
            return category_id
    raise ValidationError(
        "A category path needs at least a level 1 category",
        details={"field": "level1_id"},
    )


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == ()


class AvailabilityResolver:
    """Computes the filters that can still be assigned to a category."""

    def __init__(self, session: AsyncSession) -> None:
        self.categories = CategoryRepository(session)
        self.filters = FilterRepository(session)
        self.assignments = FilterAssignmentRepository(session)

    async def available_filters(
        self,
        category_id: str,
        search: str | None = None,
    ) -> list[Filter]:
        """Get active catalog filters not actively assigned to a category.

        Catalog ordering (sort_order, display_name) is preserved. An
        inactive category has nothing available.

        Args:
            category_id: Category being edited.
            search: Optional case-insensitive match on name or display name.

        Returns:
            List of assignable filters.

        Raises:
            NotFoundError: Unknown category.
        """
        category = await self.categories.get(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        if not category.is_active:
            return []

        assigned = await self.assignments.active_filter_ids(category_id)
        available = await self.filters.find_all(
            active_only=True,
            search=search,
            exclude_ids=sorted(assigned),
        )
        return list(available)


class EffectiveFilterResolver:
    """Resolves the effective filter set of a category path.

    Example usage:
        resolver = EffectiveFilterResolver(session)
        effective = await resolver.effective_filters(men.id, clothing.id, tshirts.id)
        [f.name for f in effective.required]
    """

    def __init__(self, session: AsyncSession, cache: ResolvedFilterCache | None = None) -> None:
        """Initialize resolver.

        Args:
            session: Async SQLAlchemy session.
            cache: Cache of resolved sets keyed by category id.
        """
        self.categories = CategoryRepository(session)
        self.assignments = FilterAssignmentRepository(session)
        self.cache = cache if cache is not None else get_filter_cache()

    async def effective_filters(
        self,
        level1_id: str | None,
        level2_id: str | None = None,
        level3_id: str | None = None,
    ) -> EffectiveFilters:
        """Resolve the filters a category path exposes.

        Only the most specific supplied category is consulted. Its active
        assignments whose filter is still active are returned ordered by
        assignment sort_order, then filter display name.

        Raises:
            ValidationError: No category id supplied.
            NotFoundError: The most specific category is unknown or inactive.
        """
        category_id = most_specific_id(level1_id, level2_id, level3_id)

        category = await self.categories.get(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        if not category.is_active:
            raise NotFoundError("Category", category_id, reason="is inactive")

        cached = self.cache.get(category_id)
        if cached is not None:
            return cached

        generation = self.cache.generation(category_id)
        assignments = await self.assignments.find_by_category(
            category_id,
            active_only=True,
            active_filters_only=True,
        )
        effective = EffectiveFilters(
            category_id=category_id,
            category_level=category.level,
            filters=tuple(self._resolve(a) for a in assignments),
        )
        self.cache.put(effective, generation)

        logger.debug(
            "Resolved effective filters",
            category_id=category_id,
            filter_count=len(effective.filters),
        )
        return effective

    async def validate_product_attributes(
        self,
        level1_id: str | None,
        level2_id: str | None,
        level3_id: str | None,
        values: Mapping[str, Any],
    ) -> EffectiveFilters:
        """Check submitted product attribute values against a category path.

        Args:
            level1_id: Level 1 category.
            level2_id: Level 2 category.
            level3_id: Level 3 category.
            values: Mapping of filter id to submitted value(s).

        Returns:
            The effective filter set the values were checked against.

        Raises:
            ValidationError: One or more problems, listed under
                ``details["problems"]``.
        """
        effective = await self.effective_filters(level1_id, level2_id, level3_id)
        problems = check_attribute_values(effective, values)
        if problems:
            raise ValidationError(
                f"Product attributes have {len(problems)} problem(s)",
                details={
                    "category_id": effective.category_id,
                    "problems": [p.to_dict() for p in problems],
                },
            )
        return effective

    @staticmethod
    def _resolve(assignment: FilterAssignment) -> ResolvedFilter:
        filter_ = assignment.filter
        return ResolvedFilter(
            filter_id=filter_.id,
            name=filter_.name,
            display_name=filter_.display_name,
            value_type=filter_.type,
            options=tuple(
                ResolvedOption(value=o.value, display_value=o.display_value)
                for o in filter_.options
                if o.is_active
            ),
            is_required=assignment.is_required,
            sort_order=assignment.sort_order,
        )


def check_attribute_values(
    effective: EffectiveFilters,
    values: Mapping[str, Any],
) -> list[AttributeProblem]:
    """List every problem with a product's attribute values.

    Args:
        effective: Filters of the product's category path.
        values: Mapping of filter id to submitted value(s).

    Returns:
        Problems in filter order, followed by values for filters that do
        not apply to the path.
    """
    problems: list[AttributeProblem] = []

    for resolved in effective.filters:
        value = values.get(resolved.filter_id)
        if _is_blank(value):
            if resolved.is_required:
                problems.append(
                    AttributeProblem(
                        resolved.filter_id,
                        "required",
                        f"'{resolved.display_name}' is required",
                    )
                )
            continue
        problems.extend(_check_value(resolved, value))

    for filter_id in values:
        if effective.get(filter_id) is None:
            problems.append(
                AttributeProblem(
                    filter_id,
                    "not_applicable",
                    "Filter does not apply to this category",
                )
            )
    return problems


def _check_value(resolved: ResolvedFilter, value: Any) -> list[AttributeProblem]:
    kind = resolved.value_type
    is_list = isinstance(value, (list, tuple))

    if kind != FilterValueType.MULTI_SELECT and is_list:
        return [
            AttributeProblem(
                resolved.filter_id,
                "single_value_expected",
                f"'{resolved.display_name}' takes a single value",
            )
        ]

    if kind.is_select:
        submitted: Sequence[Any] = value if is_list else [value]
        allowed = set(resolved.option_values)
        return [
            AttributeProblem(
                resolved.filter_id,
                "invalid_option",
                f"'{item}' is not an option of '{resolved.display_name}'",
            )
            for item in submitted
            if not isinstance(item, str) or item not in allowed
        ]

    if kind == FilterValueType.BOOLEAN and not isinstance(value, bool):
        return [
            AttributeProblem(
                resolved.filter_id,
                "invalid_boolean",
                f"'{resolved.display_name}' expects true or false",
            )
        ]

    if kind == FilterValueType.NUMERIC_RANGE and (
        isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value)
    ):
        return [
            AttributeProblem(
                resolved.filter_id,
                "invalid_number",
                f"'{resolved.display_name}' expects a finite number",
            )
        ]

    return []

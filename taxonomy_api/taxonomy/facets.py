"""Facet aggregation.

Folds a product result set into per-filter value counts for browse and
search sidebars. Products are mappings of filter id to submitted
value(s), as carried by the product catalog.
"""

import math
from bisect import bisect_right
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from numbers import Real
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.domain.exceptions import ValidationError
from taxonomy_api.taxonomy.cache import ResolvedFilterCache
from taxonomy_api.taxonomy.resolvers import EffectiveFilterResolver
from taxonomy_api.taxonomy.types import (
    EffectiveFilters,
    Facet,
    FacetValue,
    FilterValueType,
    ResolvedFilter,
)

ProductValues = Mapping[str, Any]
BucketBoundaries = Mapping[str, Sequence[float]]


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _fmt(number: float) -> str:
    return f"{number:g}"


class FacetAggregator:
    """Pure fold of products into facets for an effective filter set.

    Example usage:
        facets = FacetAggregator().aggregate_facets(
            effective,
            [{size.id: ["M", "L"], sleeve.id: "short"}],
            buckets={price.id: [10, 25, 50]},
        )
    """

    def aggregate_facets(
        self,
        effective: EffectiveFilters,
        products: Iterable[ProductValues],
        buckets: BucketBoundaries | None = None,
    ) -> list[Facet]:
        """Count filter values across products.

        A product contributes at most once to each value. Values are
        ordered by count descending; ties keep option order for select
        filters, ``true`` before ``false`` for booleans, and ascending
        bucket order for numeric ranges. Zero counts are not reported.

        Args:
            effective: Resolved filters of the category path.
            products: Mappings of filter id to value(s).
            buckets: Boundaries per numeric filter, keyed by filter id or name.

        Returns:
            One facet per effective filter, in resolution order.

        Raises:
            ValidationError: A numeric filter has no usable boundaries.
        """
        buckets = buckets or {}
        boundaries = {
            resolved.filter_id: self._boundaries(resolved, buckets)
            for resolved in effective.filters
            if resolved.value_type == FilterValueType.NUMERIC_RANGE
        }

        counters: dict[str, Counter] = {f.filter_id: Counter() for f in effective.filters}
        for product in products:
            for resolved in effective.filters:
                present = self._keys(resolved, product.get(resolved.filter_id), boundaries)
                counters[resolved.filter_id].update(present)

        facets = []
        for resolved in effective.filters:
            counts = counters[resolved.filter_id]
            if resolved.value_type == FilterValueType.NUMERIC_RANGE:
                values = self._bucket_values(counts, boundaries[resolved.filter_id])
            elif resolved.value_type == FilterValueType.BOOLEAN:
                values = self._boolean_values(counts)
            else:
                values = self._option_values(resolved, counts)
            facets.append(
                Facet(
                    filter_id=resolved.filter_id,
                    name=resolved.name,
                    display_name=resolved.display_name,
                    value_type=resolved.value_type,
                    values=tuple(values),
                )
            )
        return facets

    @staticmethod
    def _boundaries(resolved: ResolvedFilter, buckets: BucketBoundaries) -> list[float]:
        raw = buckets.get(resolved.filter_id)
        if raw is None:
            raw = buckets.get(resolved.name)
        if not raw:
            raise ValidationError(
                f"Numeric filter '{resolved.name}' needs bucket boundaries",
                details={"filter_id": resolved.filter_id},
            )
        if any(not _is_number(b) for b in raw):
            raise ValidationError(
                f"Bucket boundaries of '{resolved.name}' must be numbers",
                details={"filter_id": resolved.filter_id},
            )
        ordered = sorted(float(b) for b in raw)
        if len(set(ordered)) != len(ordered):
            raise ValidationError(
                f"Bucket boundaries of '{resolved.name}' must be distinct",
                details={"filter_id": resolved.filter_id},
            )
        return ordered

    @staticmethod
    def _keys(
        resolved: ResolvedFilter,
        value: Any,
        boundaries: Mapping[str, list[float]],
    ) -> set[Any]:
        """Distinct facet keys a single product contributes to."""
        items = _as_list(value)
        kind = resolved.value_type
        if kind == FilterValueType.NUMERIC_RANGE:
            bounds = boundaries[resolved.filter_id]
            return {bisect_right(bounds, float(v)) for v in items if _is_number(v)}
        if kind == FilterValueType.BOOLEAN:
            return {v for v in items if isinstance(v, bool)}
        allowed = set(resolved.option_values)
        return {v for v in items if isinstance(v, str) and v in allowed}

    @staticmethod
    def _option_values(resolved: ResolvedFilter, counts: Counter) -> list[FacetValue]:
        position = {option.value: index for index, option in enumerate(resolved.options)}
        labels = {option.value: option.display_value for option in resolved.options}
        ordered = sorted(counts, key=lambda v: (-counts[v], position[v]))
        return [FacetValue(value=v, display_value=labels[v], count=counts[v]) for v in ordered]

    @staticmethod
    def _boolean_values(counts: Counter) -> list[FacetValue]:
        ordered = sorted(counts, key=lambda v: (-counts[v], not v))
        return [
            FacetValue(value=v, display_value="Yes" if v else "No", count=counts[v])
            for v in ordered
        ]

    @staticmethod
    def _bucket_values(counts: Counter, bounds: list[float]) -> list[FacetValue]:
        values = []
        for index in sorted(counts, key=lambda i: (-counts[i], i)):
            lower = bounds[index - 1] if index > 0 else None
            upper = bounds[index] if index < len(bounds) else None
            if lower is None:
                key, label = f"*-{_fmt(upper)}", f"Under {_fmt(upper)}"
            elif upper is None:
                key, label = f"{_fmt(lower)}-*", f"{_fmt(lower)} and above"
            else:
                key, label = f"{_fmt(lower)}-{_fmt(upper)}", f"{_fmt(lower)} to {_fmt(upper)}"
            values.append(
                FacetValue(
                    value=key,
                    display_value=label,
                    count=counts[index],
                    lower=lower,
                    upper=upper,
                )
            )
        return values


class FacetService:
    """Resolves a category path and aggregates facets over products."""

    def __init__(self, session: AsyncSession, cache: ResolvedFilterCache | None = None) -> None:
        self.resolver = EffectiveFilterResolver(session, cache=cache)
        self.aggregator = FacetAggregator()

    async def facets_for_path(
        self,
        level1_id: str | None,
        level2_id: str | None,
        level3_id: str | None,
        products: Iterable[ProductValues],
        buckets: BucketBoundaries | None = None,
    ) -> tuple[EffectiveFilters, list[Facet]]:
        """Resolve the path's effective filters and fold products into facets."""
        effective = await self.resolver.effective_filters(level1_id, level2_id, level3_id)
        return effective, self.aggregator.aggregate_facets(effective, products, buckets)

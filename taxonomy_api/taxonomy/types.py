"""Value types and result containers for the taxonomy services."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MAX_CATEGORY_LEVEL = 3

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
FILTER_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


class FilterValueType(str, Enum):
    """Value type of a filter definition."""

    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    BOOLEAN = "boolean"
    NUMERIC_RANGE = "numeric_range"

    @property
    def is_select(self) -> bool:
        """Whether values are drawn from an enumerated option set."""
        return self in (FilterValueType.SINGLE_SELECT, FilterValueType.MULTI_SELECT)


@dataclass(frozen=True)
class FilterOptionSpec:
    """An option of a select filter as supplied by callers.

    Attributes:
        value: Stored option identifier.
        display_value: Human label. Defaults to ``value``.
    """

    value: str
    display_value: str | None = None

    @property
    def label(self) -> str:
        return self.display_value or self.value


@dataclass(frozen=True)
class AssignmentSpec:
    """One entry of a bulk assignment request."""

    filter_id: str
    is_required: bool = False
    sort_order: int = 0


@dataclass(frozen=True)
class ResolvedOption:
    """An option of a resolved filter, in option order."""

    value: str
    display_value: str


@dataclass(frozen=True)
class ResolvedFilter:
    """A filter that applies to a category, with assignment metadata.

    Attributes:
        filter_id: Filter identifier.
        name: Machine key.
        display_name: Human label.
        value_type: Filter value type.
        options: Ordered options (empty for non-select types).
        is_required: Whether products must carry a value.
        sort_order: Assignment sort order.
    """

    filter_id: str
    name: str
    display_name: str
    value_type: FilterValueType
    options: tuple[ResolvedOption, ...]
    is_required: bool
    sort_order: int

    @property
    def option_values(self) -> list[str]:
        return [option.value for option in self.options]


@dataclass(frozen=True)
class EffectiveFilters:
    """Resolved filter set for a category path.

    Attributes:
        category_id: The most specific category the set was resolved for.
        category_level: Level of that category.
        filters: All filters in resolution order.
    """

    category_id: str
    category_level: int
    filters: tuple[ResolvedFilter, ...] = ()

    @property
    def required(self) -> list[ResolvedFilter]:
        return [f for f in self.filters if f.is_required]

    @property
    def optional(self) -> list[ResolvedFilter]:
        return [f for f in self.filters if not f.is_required]

    @property
    def filter_ids(self) -> set[str]:
        return {f.filter_id for f in self.filters}

    def get(self, filter_id: str) -> ResolvedFilter | None:
        for resolved in self.filters:
            if resolved.filter_id == filter_id:
                return resolved
        return None


@dataclass(frozen=True)
class AttributeProblem:
    """A single problem found while validating product attribute values."""

    filter_id: str
    code: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"filter_id": self.filter_id, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class FacetValue:
    """A value (or numeric bucket) and the number of products carrying it.

    For numeric buckets ``value`` is the bucket label and ``lower`` /
    ``upper`` hold the half-open bounds (``None`` means unbounded).
    """

    value: Any
    display_value: str
    count: int
    lower: float | None = None
    upper: float | None = None


@dataclass(frozen=True)
class Facet:
    """Aggregated value counts for one filter."""

    filter_id: str
    name: str
    display_name: str
    value_type: FilterValueType
    values: tuple[FacetValue, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return sum(v.count for v in self.values)

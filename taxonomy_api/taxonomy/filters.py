"""Filter catalog.

Reusable, typed filter definitions. Select types carry an ordered,
non-empty option set; boolean and numeric-range filters carry none.
Filters are deactivated rather than deleted once in use.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.domain.exceptions import ConflictError, NotFoundError, ValidationError
from taxonomy_api.taxonomy.cache import ResolvedFilterCache, get_filter_cache
from taxonomy_api.taxonomy.models import Filter, FilterOption
from taxonomy_api.taxonomy.repository import FilterAssignmentRepository, FilterRepository, commit
from taxonomy_api.taxonomy.types import FILTER_NAME_PATTERN, FilterOptionSpec, FilterValueType

logger = structlog.get_logger()

OptionInput = FilterOptionSpec | Mapping[str, Any] | str


def parse_value_type(value_type: FilterValueType | str) -> FilterValueType:
    """Coerce a value type, raising ValidationError for unknown ones."""
    try:
        return FilterValueType(value_type)
    except ValueError:
        allowed = [t.value for t in FilterValueType]
        raise ValidationError(
            f"Unknown filter value type '{value_type}'",
            details={"field": "value_type", "allowed": allowed},
        ) from None


def normalize_options(options: Iterable[OptionInput] | None) -> list[FilterOptionSpec]:
    """Normalize option input to FilterOptionSpec, rejecting blanks and duplicates."""
    specs: list[FilterOptionSpec] = []
    seen: set[str] = set()
    for raw in options or []:
        if isinstance(raw, FilterOptionSpec):
            spec = raw
        elif isinstance(raw, str):
            spec = FilterOptionSpec(value=raw)
        else:
            spec = FilterOptionSpec(
                value=str(raw.get("value", "")),
                display_value=raw.get("display_value"),
            )

        value = spec.value.strip()
        if not value:
            raise ValidationError("Option values cannot be blank", details={"field": "options"})
        if value in seen:
            raise ValidationError(
                f"Duplicate option value '{value}'",
                details={"field": "options", "value": value},
            )
        seen.add(value)
        specs.append(FilterOptionSpec(value=value, display_value=spec.display_value or value))
    return specs


def check_options_shape(value_type: FilterValueType, options: Sequence[FilterOptionSpec]) -> None:
    """Enforce that select types have options and other types have none."""
    if value_type.is_select and not options:
        raise ValidationError(
            f"Filters of type '{value_type.value}' require at least one option",
            details={"field": "options", "value_type": value_type.value},
        )
    if not value_type.is_select and options:
        raise ValidationError(
            f"Filters of type '{value_type.value}' cannot have options",
            details={"field": "options", "value_type": value_type.value},
        )


class FilterCatalog:
    """Service for filter definitions.

    Example usage:
        catalog = FilterCatalog(session)
        size = await catalog.create(
            "size", "Size", FilterValueType.MULTI_SELECT, ["S", "M", "L", "XL"]
        )
    """

    def __init__(self, session: AsyncSession, cache: ResolvedFilterCache | None = None) -> None:
        """Initialize catalog with database session.

        Args:
            session: Async SQLAlchemy session.
            cache: Resolved filter cache to invalidate on filter changes.
        """
        self.session = session
        self.repository = FilterRepository(session)
        self.assignments = FilterAssignmentRepository(session)
        self.cache = cache if cache is not None else get_filter_cache()

    async def create(
        self,
        name: str,
        display_name: str,
        value_type: FilterValueType | str,
        options: Iterable[OptionInput] | None = None,
        sort_order: int = 0,
    ) -> Filter:
        """Create a filter definition.

        Args:
            name: Machine key (lowercase, digits, underscores).
            display_name: Human label.
            value_type: Filter value type.
            options: Ordered options for select types.
            sort_order: Catalog position.

        Returns:
            The created filter.

        Raises:
            ValidationError: Bad name/label or options not matching the type.
            ConflictError: Name already taken.
        """
        if not FILTER_NAME_PATTERN.fullmatch(name or ""):
            raise ValidationError(
                f"Filter name '{name}' must be a lowercase machine key",
                details={"field": "name", "name": name},
            )
        display_name = (display_name or "").strip()
        if not display_name:
            raise ValidationError(
                "Filter display name is required", details={"field": "display_name"}
            )

        kind = parse_value_type(value_type)
        specs = normalize_options(options)
        check_options_shape(kind, specs)

        if await self.repository.get_by_name(name) is not None:
            raise ConflictError(
                f"Filter with name '{name}' already exists",
                details={"field": "name", "name": name},
            )

        filter_ = Filter(
            name=name,
            display_name=display_name,
            value_type=kind.value,
            sort_order=sort_order,
            is_active=True,
            options=[
                FilterOption(
                    value=spec.value,
                    display_value=spec.label,
                    sort_order=index,
                    is_active=True,
                )
                for index, spec in enumerate(specs)
            ],
        )
        try:
            await self.repository.save(filter_)
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                f"Filter with name '{name}' already exists",
                details={"field": "name", "name": name},
            ) from e
        await commit(self.session)

        logger.info(
            "Filter created",
            filter_id=filter_.id,
            name=name,
            value_type=kind.value,
            option_count=len(specs),
        )
        return filter_

    async def get(self, filter_id: str) -> Filter:
        """Get a filter, active or not.

        Raises:
            NotFoundError: Unknown filter.
        """
        filter_ = await self.repository.get(filter_id)
        if filter_ is None:
            raise NotFoundError("Filter", filter_id)
        return filter_

    async def get_live(self, filter_id: str) -> Filter:
        """Get a filter that exists and is active.

        Raises:
            NotFoundError: Missing or inactive filter.
        """
        filter_ = await self.get(filter_id)
        if not filter_.is_active:
            raise NotFoundError("Filter", filter_id, reason="is inactive")
        return filter_

    async def list_filters(
        self,
        active_only: bool = False,
        search: str | None = None,
    ) -> Sequence[Filter]:
        """List filters ordered by sort_order, then display name."""
        return await self.repository.find_all(active_only=active_only, search=search)

    async def search(self, query: str, active_only: bool = True) -> Sequence[Filter]:
        """Search filters by name or display name (case-insensitive)."""
        return await self.repository.find_all(active_only=active_only, search=query)

    async def update(
        self,
        filter_id: str,
        display_name: str | None = None,
        sort_order: int | None = None,
        value_type: FilterValueType | str | None = None,
        options: Iterable[OptionInput] | None = None,
    ) -> Filter:
        """Update a filter definition.

        The value type is frozen once the filter has ever been assigned.
        Options are matched by value, so surviving options keep their
        identity; dropped ones are removed.

        Raises:
            ValidationError: Type change on an assigned filter, or a
                type/options combination that create() would reject.
        """
        filter_ = await self.get(filter_id)
        current_type = filter_.type
        new_type = parse_value_type(value_type) if value_type is not None else current_type

        if new_type != current_type and await self.assignments.count_for_filter(filter_id) > 0:
            raise ValidationError(
                "Value type cannot change once the filter has been assigned",
                details={
                    "field": "value_type",
                    "current": current_type.value,
                    "requested": new_type.value,
                },
            )

        if options is not None:
            specs = normalize_options(options)
        elif new_type.is_select:
            specs = [
                FilterOptionSpec(value=o.value, display_value=o.display_value)
                for o in filter_.options
            ]
        else:
            specs = []
        check_options_shape(new_type, specs)
        if display_name is not None:
            display_name = display_name.strip()
            if not display_name:
                raise ValidationError(
                    "Filter display name is required", details={"field": "display_name"}
                )

        self._replace_options(filter_, specs)
        if display_name is not None:
            filter_.display_name = display_name
        if sort_order is not None:
            filter_.sort_order = sort_order
        filter_.value_type = new_type.value

        await self.repository.save(filter_)
        await commit(self.session)

        self.cache.invalidate_filter(filter_id)
        logger.info("Filter updated", filter_id=filter_id, value_type=new_type.value)
        return filter_

    async def deactivate(self, filter_id: str) -> Filter:
        """Soft-delete a filter. Existing assignments keep their records."""
        filter_ = await self.get(filter_id)
        if filter_.is_active:
            filter_.is_active = False
            filter_.deactivated_at = datetime.now(timezone.utc)
            await self.repository.save(filter_)
            await commit(self.session)
            logger.info("Filter deactivated", filter_id=filter_id)

        self.cache.invalidate_filter(filter_id)
        return filter_

    async def reactivate(self, filter_id: str) -> Filter:
        """Restore a deactivated filter.

        Assignments that stayed active while the filter was off take effect
        again, so the cached sets of their categories are evicted.

        Raises:
            NotFoundError: Unknown filter.
        """
        filter_ = await self.get(filter_id)
        if filter_.is_active:
            return filter_

        filter_.is_active = True
        filter_.deactivated_at = None
        await self.repository.save(filter_)
        await commit(self.session)

        # Inactive filters are absent from cached sets, so look the holders up
        usage = await self.assignments.find_by_filter(filter_id, active_only=True)
        category_ids = [assignment.category_id for assignment in usage]
        self.cache.invalidate_filter(filter_id)
        self.cache.invalidate_categories(*category_ids)

        logger.info(
            "Filter reactivated",
            filter_id=filter_id,
            active_assignment_count=len(category_ids),
        )
        return filter_

    async def set_option_active(self, filter_id: str, value: str, is_active: bool) -> Filter:
        """Switch a single option of a select filter on or off.

        Inactive options stay on the filter definition but are left out of
        effective filter sets, so products can no longer be given them.

        Args:
            filter_id: Owning filter.
            value: Option value.
            is_active: Desired option status.

        Returns:
            The filter with its options.

        Raises:
            NotFoundError: Unknown filter or option.
            ValidationError: The last active option would be switched off.
        """
        filter_ = await self.get(filter_id)
        option = next((o for o in filter_.options if o.value == value), None)
        if option is None:
            raise NotFoundError("FilterOption", f"{filter_id}/{value}")
        if option.is_active == is_active:
            return filter_

        if not is_active and not any(o.is_active for o in filter_.options if o is not option):
            raise ValidationError(
                "A select filter needs at least one active option",
                details={"field": "options", "value": value},
            )

        option.is_active = is_active
        await self.repository.save(filter_)
        await commit(self.session)

        self.cache.invalidate_filter(filter_id)
        logger.info(
            "Filter option status changed",
            filter_id=filter_id,
            value=value,
            is_active=is_active,
        )
        return filter_

    @staticmethod
    def _replace_options(filter_: Filter, specs: Sequence[FilterOptionSpec]) -> None:
        existing = {option.value: option for option in filter_.options}
        if specs and not any(
            spec.value not in existing or existing[spec.value].is_active for spec in specs
        ):
            raise ValidationError(
                "A select filter needs at least one active option",
                details={"field": "options"},
            )

        updated: list[FilterOption] = []
        for index, spec in enumerate(specs):
            option = existing.get(spec.value)
            if option is None:
                option = FilterOption(value=spec.value, is_active=True)
            option.display_value = spec.label
            option.sort_order = index
            updated.append(option)
        filter_.options = updated

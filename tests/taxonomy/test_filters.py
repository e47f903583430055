"""Tests for the filter catalog."""

from types import SimpleNamespace

import pytest

from taxonomy_api.domain.exceptions import ConflictError, NotFoundError, ValidationError
from taxonomy_api.taxonomy.assignments import FilterAssignmentService
from taxonomy_api.taxonomy.cache import ResolvedFilterCache
from taxonomy_api.taxonomy.filters import FilterCatalog
from taxonomy_api.taxonomy.types import (
    EffectiveFilters,
    FilterOptionSpec,
    FilterValueType,
    ResolvedFilter,
)


class TestCreateFilter:
    """Tests for FilterCatalog.create."""

    @pytest.mark.asyncio
    async def test_create_select_filter(self, catalog: FilterCatalog) -> None:
        """Select filters keep their options in the given order."""
        size = await catalog.create(
            "size", "Size", FilterValueType.MULTI_SELECT, ["S", "M", "L", "XL"]
        )

        assert size.type == FilterValueType.MULTI_SELECT
        assert [o.value for o in size.options] == ["S", "M", "L", "XL"]
        assert [o.display_value for o in size.options] == ["S", "M", "L", "XL"]
        assert size.is_active is True

    @pytest.mark.asyncio
    async def test_option_labels(self, catalog: FilterCatalog) -> None:
        """Options may carry a display value distinct from the stored value."""
        sleeve = await catalog.create(
            "sleeve_length",
            "Sleeve Length",
            "single_select",
            [
                FilterOptionSpec("short", "Short sleeve"),
                {"value": "long", "display_value": "Long sleeve"},
            ],
        )

        assert [o.to_dict() for o in sleeve.options] == [
            {"value": "short", "display_value": "Short sleeve", "is_active": True},
            {"value": "long", "display_value": "Long sleeve", "is_active": True},
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value_type", ["boolean", "numeric_range"])
    async def test_create_non_select_filter(
        self, catalog: FilterCatalog, value_type: str
    ) -> None:
        """Boolean and numeric filters carry no options."""
        created = await catalog.create("flag", "Flag", value_type)

        assert created.options == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value_type", ["single_select", "multi_select"])
    async def test_select_without_options_rejected(
        self, catalog: FilterCatalog, value_type: str
    ) -> None:
        """Select types need at least one option."""
        with pytest.raises(ValidationError):
            await catalog.create("size", "Size", value_type, [])

    @pytest.mark.asyncio
    async def test_options_on_boolean_rejected(self, catalog: FilterCatalog) -> None:
        """Non-select types cannot be given options."""
        with pytest.raises(ValidationError):
            await catalog.create("organic", "Organic", FilterValueType.BOOLEAN, ["yes"])

    @pytest.mark.asyncio
    async def test_duplicate_option_rejected(self, catalog: FilterCatalog) -> None:
        """Option values are unique within a filter."""
        with pytest.raises(ValidationError):
            await catalog.create("size", "Size", FilterValueType.MULTI_SELECT, ["S", "M", "S"])

    @pytest.mark.asyncio
    async def test_unknown_value_type_rejected(self, catalog: FilterCatalog) -> None:
        """Unknown value types are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            await catalog.create("size", "Size", "dropdown", ["S"])

        assert "single_select" in exc_info.value.details["allowed"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["Size", "1size", "size-eu", ""])
    async def test_bad_name_rejected(self, catalog: FilterCatalog, name: str) -> None:
        """Names are lowercase machine keys."""
        with pytest.raises(ValidationError):
            await catalog.create(name, "Size", FilterValueType.BOOLEAN)

    @pytest.mark.asyncio
    async def test_duplicate_name(self, catalog: FilterCatalog) -> None:
        """Filter names are unique across the catalog."""
        await catalog.create("organic", "Organic", FilterValueType.BOOLEAN)

        with pytest.raises(ConflictError):
            await catalog.create("organic", "Organic cotton", FilterValueType.BOOLEAN)


class TestListFilters:
    """Tests for listing and searching the catalog."""

    @pytest.mark.asyncio
    async def test_catalog_order(self, apparel: SimpleNamespace, catalog: FilterCatalog) -> None:
        """Filters are ordered by sort order, then display name."""
        listed = await catalog.list_filters()

        assert [f.name for f in listed] == ["size", "sleeve_length", "color", "organic", "price"]

    @pytest.mark.asyncio
    async def test_active_only(self, apparel: SimpleNamespace, catalog: FilterCatalog) -> None:
        """Deactivated filters can be left out."""
        await catalog.deactivate(apparel.color.id)

        names = [f.name for f in await catalog.list_filters(active_only=True)]

        assert "color" not in names
        assert len(await catalog.list_filters()) == 5

    @pytest.mark.asyncio
    async def test_search(self, apparel: SimpleNamespace, catalog: FilterCatalog) -> None:
        """Search matches name or display name, ignoring case."""
        assert [f.name for f in await catalog.search("SLEEVE")] == ["sleeve_length"]
        assert [f.name for f in await catalog.search("ri")] == ["price"]

    @pytest.mark.asyncio
    async def test_get_unknown(self, catalog: FilterCatalog) -> None:
        """Unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            await catalog.get("missing")


class TestUpdateFilter:
    """Tests for FilterCatalog.update."""

    @pytest.mark.asyncio
    async def test_update_label_and_options(
        self, apparel: SimpleNamespace, catalog: FilterCatalog
    ) -> None:
        """Options are replaced by value, keeping survivors."""
        original_m = next(o for o in apparel.size.options if o.value == "M")

        updated = await catalog.update(
            apparel.size.id,
            display_name="Shirt Size",
            options=["XS", "M", FilterOptionSpec("XL", "Extra large")],
        )

        assert updated.display_name == "Shirt Size"
        assert [o.value for o in updated.options] == ["XS", "M", "XL"]
        assert updated.options[1].id == original_m.id
        assert updated.options[2].display_value == "Extra large"

    @pytest.mark.asyncio
    async def test_change_type_before_assignment(
        self, apparel: SimpleNamespace, catalog: FilterCatalog
    ) -> None:
        """The value type can change while the filter is unassigned."""
        updated = await catalog.update(apparel.size.id, value_type=FilterValueType.BOOLEAN)

        assert updated.type == FilterValueType.BOOLEAN
        assert updated.options == []

    @pytest.mark.asyncio
    async def test_change_type_after_assignment_rejected(
        self,
        apparel: SimpleNamespace,
        catalog: FilterCatalog,
        assignments: FilterAssignmentService,
    ) -> None:
        """The value type is frozen once the filter has been assigned."""
        await assignments.assign(apparel.tshirts.id, apparel.size.id)
        await assignments.unassign(apparel.tshirts.id, apparel.size.id)

        with pytest.raises(ValidationError):
            await catalog.update(apparel.size.id, value_type=FilterValueType.SINGLE_SELECT)

    @pytest.mark.asyncio
    async def test_select_type_needs_options(
        self, apparel: SimpleNamespace, catalog: FilterCatalog
    ) -> None:
        """Turning a boolean into a select type requires options."""
        with pytest.raises(ValidationError):
            await catalog.update(apparel.organic.id, value_type=FilterValueType.SINGLE_SELECT)

    @pytest.mark.asyncio
    async def test_update_evicts_cached_sets(
        self,
        apparel: SimpleNamespace,
        catalog: FilterCatalog,
        cache: ResolvedFilterCache,
    ) -> None:
        """Updating a filter evicts every cached set containing it."""
        resolved = ResolvedFilter(
            filter_id=apparel.size.id,
            name="size",
            display_name="Size",
            value_type=FilterValueType.MULTI_SELECT,
            options=(),
            is_required=True,
            sort_order=0,
        )
        cache.put(EffectiveFilters(apparel.tshirts.id, 3, (resolved,)))

        await catalog.update(apparel.size.id, display_name="Shirt Size")

        assert apparel.tshirts.id not in cache


class TestDeactivateFilter:
    """Tests for FilterCatalog.deactivate."""

    @pytest.mark.asyncio
    async def test_soft_delete(self, apparel: SimpleNamespace, catalog: FilterCatalog) -> None:
        """Deactivation keeps the record."""
        deactivated = await catalog.deactivate(apparel.size.id)

        assert deactivated.is_active is False
        assert deactivated.deactivated_at is not None
        assert (await catalog.get(apparel.size.id)).name == "size"

    @pytest.mark.asyncio
    async def test_get_live_rejects_inactive(
        self, apparel: SimpleNamespace, catalog: FilterCatalog
    ) -> None:
        """Inactive filters are not usable for new bindings."""
        await catalog.deactivate(apparel.size.id)

        with pytest.raises(NotFoundError):
            await catalog.get_live(apparel.size.id)

    @pytest.mark.asyncio
    async def test_reactivate(self, apparel: SimpleNamespace, catalog: FilterCatalog) -> None:
        """Reactivation clears the deactivation timestamp."""
        await catalog.deactivate(apparel.size.id)

        restored = await catalog.reactivate(apparel.size.id)

        assert restored.is_active is True
        assert restored.deactivated_at is None
        assert (await catalog.get_live(apparel.size.id)).id == apparel.size.id

    @pytest.mark.asyncio
    async def test_reactivate_active_filter_is_noop(
        self, apparel: SimpleNamespace, catalog: FilterCatalog
    ) -> None:
        """An active filter is returned unchanged."""
        restored = await catalog.reactivate(apparel.size.id)

        assert restored.is_active is True
        assert restored.deactivated_at is None

    @pytest.mark.asyncio
    async def test_reactivate_evicts_categories_using_filter(
        self,
        apparel: SimpleNamespace,
        catalog: FilterCatalog,
        assignments: FilterAssignmentService,
        cache: ResolvedFilterCache,
    ) -> None:
        """Categories still bound to the filter lose their cached sets."""
        await assignments.assign(apparel.tshirts.id, apparel.size.id)
        await catalog.deactivate(apparel.size.id)
        # Cached while the filter was off, so the set does not mention it
        cache.put(EffectiveFilters(apparel.tshirts.id, 3))
        cache.put(EffectiveFilters(apparel.clothing.id, 2))

        await catalog.reactivate(apparel.size.id)

        assert apparel.tshirts.id not in cache
        assert apparel.clothing.id in cache

    @pytest.mark.asyncio
    async def test_reactivate_unknown(self, catalog: FilterCatalog) -> None:
        """Unknown filters raise NotFoundError."""
        with pytest.raises(NotFoundError):
            await catalog.reactivate("missing")


class TestOptionStatus:
    """Tests for FilterCatalog.set_option_active."""

    @pytest.mark.asyncio
    async def test_deactivate_and_reactivate_option(
        self, apparel: SimpleNamespace, catalog: FilterCatalog
    ) -> None:
        """An option can be withdrawn and restored without losing its identity."""
        original = next(o for o in apparel.sleeve.options if o.value == "long")

        updated = await catalog.set_option_active(apparel.sleeve.id, "long", is_active=False)
        assert [(o.value, o.is_active) for o in updated.options] == [
            ("short", True),
            ("long", False),
        ]

        restored = await catalog.set_option_active(apparel.sleeve.id, "long", is_active=True)
        assert restored.options[1].id == original.id
        assert restored.options[1].is_active is True

    @pytest.mark.asyncio
    async def test_last_active_option_kept(
        self, apparel: SimpleNamespace, catalog: FilterCatalog
    ) -> None:
        """A select filter keeps at least one active option."""
        await catalog.set_option_active(apparel.sleeve.id, "short", is_active=False)

        with pytest.raises(ValidationError):
            await catalog.set_option_active(apparel.sleeve.id, "long", is_active=False)

        filter_ = await catalog.get(apparel.sleeve.id)
        assert [o.is_active for o in filter_.options] == [False, True]

    @pytest.mark.asyncio
    async def test_unknown_option(self, apparel: SimpleNamespace, catalog: FilterCatalog) -> None:
        """Unknown option values raise NotFoundError."""
        with pytest.raises(NotFoundError):
            await catalog.set_option_active(apparel.size.id, "XXL", is_active=False)

    @pytest.mark.asyncio
    async def test_update_keeps_option_status(
        self, apparel: SimpleNamespace, catalog: FilterCatalog
    ) -> None:
        """Relabelling options leaves withdrawn ones withdrawn."""
        await catalog.set_option_active(apparel.size.id, "XL", is_active=False)

        updated = await catalog.update(apparel.size.id, options=["S", "M", "L", "XL", "XXL"])

        assert [o.value for o in updated.options if not o.is_active] == ["XL"]
        assert updated.options[-1].is_active is True

    @pytest.mark.asyncio
    async def test_update_cannot_leave_only_inactive_options(
        self, apparel: SimpleNamespace, catalog: FilterCatalog
    ) -> None:
        """Dropping every active option is rejected before anything changes."""
        await catalog.set_option_active(apparel.sleeve.id, "long", is_active=False)

        with pytest.raises(ValidationError):
            await catalog.update(apparel.sleeve.id, display_name="Sleeve", options=["long"])

        filter_ = await catalog.get(apparel.sleeve.id)
        assert filter_.display_name == "Sleeve Length"
        assert [o.value for o in filter_.options] == ["short", "long"]

    @pytest.mark.asyncio
    async def test_option_change_evicts_cached_sets(
        self,
        apparel: SimpleNamespace,
        catalog: FilterCatalog,
        cache: ResolvedFilterCache,
    ) -> None:
        """Toggling an option evicts every cached set containing the filter."""
        resolved = ResolvedFilter(
            filter_id=apparel.size.id,
            name="size",
            display_name="Size",
            value_type=FilterValueType.MULTI_SELECT,
            options=(),
            is_required=False,
            sort_order=0,
        )
        cache.put(EffectiveFilters(apparel.tshirts.id, 3, (resolved,)))

        await catalog.set_option_active(apparel.size.id, "S", is_active=False)

        assert apparel.tshirts.id not in cache

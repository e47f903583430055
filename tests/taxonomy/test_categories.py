"""Tests for the category store."""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.domain.exceptions import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from taxonomy_api.taxonomy.cache import ResolvedFilterCache
from taxonomy_api.taxonomy.categories import CategoryStore
from taxonomy_api.taxonomy.types import EffectiveFilters


class TestCreateCategory:
    """Tests for CategoryStore.create."""

    @pytest.mark.asyncio
    async def test_create_level_one(self, store: CategoryStore) -> None:
        """Level 1 categories have no parent."""
        men = await store.create("Men", "men", level=1)

        assert men.id is not None
        assert men.level == 1
        assert men.parent_id is None
        assert men.is_active is True
        assert men.deactivated_at is None

    @pytest.mark.asyncio
    async def test_create_full_path(self, store: CategoryStore) -> None:
        """Each level hangs off a parent exactly one level up."""
        men = await store.create("Men", "men", level=1)
        clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)
        tshirts = await store.create(
            "T-Shirts", "men-clothing-tshirts", level=3, parent_id=clothing.id
        )

        assert clothing.parent_id == men.id
        assert tshirts.parent_id == clothing.id
        assert tshirts.level == 3

    @pytest.mark.asyncio
    async def test_level_one_with_parent_rejected(self, store: CategoryStore) -> None:
        """A level 1 category cannot have a parent."""
        men = await store.create("Men", "men", level=1)

        with pytest.raises(ValidationError):
            await store.create("Women", "women", level=1, parent_id=men.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("level", [2, 3])
    async def test_missing_parent_rejected(self, store: CategoryStore, level: int) -> None:
        """Levels 2 and 3 require a parent."""
        with pytest.raises(ValidationError):
            await store.create("Orphan", "orphan", level=level)

    @pytest.mark.asyncio
    async def test_parent_level_mismatch_rejected(self, store: CategoryStore) -> None:
        """A level 3 category cannot hang directly off a level 1 category."""
        men = await store.create("Men", "men", level=1)

        with pytest.raises(ValidationError) as exc_info:
            await store.create("T-Shirts", "tshirts", level=3, parent_id=men.id)

        assert exc_info.value.details["parent_level"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("level", [0, 4, -1])
    async def test_level_out_of_range_rejected(self, store: CategoryStore, level: int) -> None:
        """Only levels 1 to 3 exist."""
        with pytest.raises(ValidationError):
            await store.create("Bad", "bad", level=level)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("slug", ["Men", "men clothing", "men--clothing", "-men", "", "mén"])
    async def test_unsafe_slug_rejected(self, store: CategoryStore, slug: str) -> None:
        """Slugs must be lowercase, URL-safe and single-hyphenated."""
        with pytest.raises(ValidationError):
            await store.create("Men", slug, level=1)

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, store: CategoryStore) -> None:
        """Names cannot be blank."""
        with pytest.raises(ValidationError):
            await store.create("   ", "men", level=1)

    @pytest.mark.asyncio
    async def test_unknown_parent(self, store: CategoryStore) -> None:
        """An unknown parent is reported as not found."""
        with pytest.raises(NotFoundError):
            await store.create("Clothing", "clothing", level=2, parent_id="missing")

    @pytest.mark.asyncio
    async def test_inactive_parent(self, store: CategoryStore) -> None:
        """New children cannot be added under an inactive parent."""
        men = await store.create("Men", "men", level=1)
        await store.deactivate(men.id)

        with pytest.raises(NotFoundError) as exc_info:
            await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)

        assert exc_info.value.details["reason"] == "is inactive"

    @pytest.mark.asyncio
    async def test_duplicate_active_slug(self, store: CategoryStore) -> None:
        """Two active categories cannot share a slug."""
        await store.create("Men", "men", level=1)

        with pytest.raises(ConflictError):
            await store.create("Men Again", "men", level=1)

    @pytest.mark.asyncio
    async def test_slug_reusable_after_deactivation(self, store: CategoryStore) -> None:
        """A deactivated category frees its slug."""
        old = await store.create("Men", "men", level=1)
        await store.deactivate(old.id)

        new = await store.create("Men", "men", level=1)

        assert new.id != old.id
        assert new.is_active is True


class TestListCategories:
    """Tests for listing, tree and path queries."""

    @pytest.mark.asyncio
    async def test_list_ordering(self, store: CategoryStore) -> None:
        """Categories are ordered by level, sort order, then name."""
        women = await store.create("Women", "women", level=1, sort_order=0)
        men = await store.create("Men", "men", level=1, sort_order=0)
        kids = await store.create("Kids", "kids", level=1, sort_order=-1)
        clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)

        listed = await store.list_categories()

        assert [c.id for c in listed] == [kids.id, men.id, women.id, clothing.id]

    @pytest.mark.asyncio
    async def test_list_filters(self, store: CategoryStore) -> None:
        """Listing can be narrowed by level, parent and active flag."""
        men = await store.create("Men", "men", level=1)
        women = await store.create("Women", "women", level=1)
        clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)
        shoes = await store.create("Shoes", "men-shoes", level=2, parent_id=men.id)
        await store.deactivate(women.id)

        assert [c.id for c in await store.list_categories(level=2)] == [clothing.id, shoes.id]
        assert len(await store.list_categories(parent_id=men.id)) == 2
        active_roots = await store.list_categories(level=1, active_only=True)
        assert [c.id for c in active_roots] == [men.id]

    @pytest.mark.asyncio
    async def test_tree(self, store: CategoryStore) -> None:
        """The tree nests children under their parents."""
        men = await store.create("Men", "men", level=1)
        clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)
        await store.create("T-Shirts", "men-clothing-tshirts", level=3, parent_id=clothing.id)
        await store.create("Women", "women", level=1)

        roots = await store.tree()

        assert [node.category.name for node in roots] == ["Men", "Women"]
        assert roots[0].children[0].category.id == clothing.id
        assert roots[0].children[0].children[0].category.name == "T-Shirts"
        assert roots[0].to_dict()["children"][0]["slug"] == "men-clothing"

    @pytest.mark.asyncio
    async def test_tree_hides_inactive_branches(self, store: CategoryStore) -> None:
        """Children of an inactive parent are left out of the active tree."""
        men = await store.create("Men", "men", level=1)
        await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)
        await store.deactivate(men.id)

        assert await store.tree() == []
        assert len(await store.tree(active_only=False)) == 1

    @pytest.mark.asyncio
    async def test_path(self, store: CategoryStore) -> None:
        """The path runs from level 1 down to the category."""
        men = await store.create("Men", "men", level=1)
        clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)
        tshirts = await store.create(
            "T-Shirts", "men-clothing-tshirts", level=3, parent_id=clothing.id
        )

        path = await store.path(tshirts.id)

        assert [c.id for c in path] == [men.id, clothing.id, tshirts.id]

    @pytest.mark.asyncio
    async def test_get_unknown(self, store: CategoryStore) -> None:
        """Unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            await store.get("missing")


class TestUpdateCategory:
    """Tests for CategoryStore.update."""

    @pytest.mark.asyncio
    async def test_rename_and_reorder(self, store: CategoryStore) -> None:
        """Name and sort order can change; level and slug stay."""
        men = await store.create("Men", "men", level=1)

        updated = await store.update(men.id, name="Menswear", sort_order=5)

        assert updated.name == "Menswear"
        assert updated.sort_order == 5
        assert updated.slug == "men"
        assert updated.level == 1

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, store: CategoryStore) -> None:
        """Renaming to a blank name is rejected."""
        men = await store.create("Men", "men", level=1)

        with pytest.raises(ValidationError):
            await store.update(men.id, name=" ")


class TestDeactivateCategory:
    """Tests for deactivation and reactivation."""

    @pytest.mark.asyncio
    async def test_deactivate_does_not_cascade_by_default(self, store: CategoryStore) -> None:
        """Children stay active when their parent is deactivated."""
        men = await store.create("Men", "men", level=1)
        clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)

        changed = await store.deactivate(men.id)

        assert [c.id for c in changed] == [men.id]
        assert (await store.get(men.id)).is_active is False
        assert (await store.get(men.id)).deactivated_at is not None
        assert (await store.get(clothing.id)).is_active is True

    @pytest.mark.asyncio
    async def test_deactivate_cascade(self, store: CategoryStore) -> None:
        """With cascade, every active descendant is deactivated too."""
        men = await store.create("Men", "men", level=1)
        clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)
        tshirts = await store.create(
            "T-Shirts", "men-clothing-tshirts", level=3, parent_id=clothing.id
        )

        changed = await store.deactivate(men.id, cascade=True)

        assert [c.id for c in changed] == [men.id, clothing.id, tshirts.id]
        assert all(not c.is_active for c in await store.list_categories())

    @pytest.mark.asyncio
    async def test_deactivate_is_idempotent(self, store: CategoryStore) -> None:
        """Deactivating twice keeps the first deactivation timestamp."""
        men = await store.create("Men", "men", level=1)
        await store.deactivate(men.id)
        first = (await store.get(men.id)).deactivated_at

        await store.deactivate(men.id)

        assert (await store.get(men.id)).deactivated_at == first

    @pytest.mark.asyncio
    async def test_deactivate_unknown(self, store: CategoryStore) -> None:
        """Deactivating an unknown category raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await store.deactivate("missing")

    @pytest.mark.asyncio
    async def test_deactivate_evicts_cached_sets(
        self, store: CategoryStore, cache: ResolvedFilterCache
    ) -> None:
        """Deactivation evicts resolved sets of every deactivated category."""
        men = await store.create("Men", "men", level=1)
        clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)
        cache.put(EffectiveFilters(category_id=men.id, category_level=1))
        cache.put(EffectiveFilters(category_id=clothing.id, category_level=2))

        await store.deactivate(men.id, cascade=True)

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_reactivate(self, store: CategoryStore) -> None:
        """A deactivated category can be reactivated."""
        men = await store.create("Men", "men", level=1)
        await store.deactivate(men.id)

        reactivated = await store.reactivate(men.id)

        assert reactivated.is_active is True
        assert reactivated.deactivated_at is None

    @pytest.mark.asyncio
    async def test_reactivate_slug_taken(self, store: CategoryStore) -> None:
        """Reactivation fails when another active category took the slug."""
        old = await store.create("Men", "men", level=1)
        await store.deactivate(old.id)
        await store.create("Men", "men", level=1)

        with pytest.raises(ConflictError):
            await store.reactivate(old.id)

    @pytest.mark.asyncio
    async def test_reactivate_under_inactive_parent(self, store: CategoryStore) -> None:
        """A child cannot come back while its parent is inactive."""
        men = await store.create("Men", "men", level=1)
        clothing = await store.create("Clothing", "men-clothing", level=2, parent_id=men.id)
        await store.deactivate(men.id, cascade=True)

        with pytest.raises(NotFoundError):
            await store.reactivate(clothing.id)


class TestStorageFailures:
    """Tests for driver failures surfacing from the store."""

    @pytest.mark.asyncio
    async def test_commit_failure_raises_storage_error(
        self,
        store: CategoryStore,
        session: AsyncSession,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failing commit is reported as StorageError, not a driver error."""

        async def failing_commit() -> None:
            raise OperationalError("COMMIT", {}, Exception("connection lost"))

        monkeypatch.setattr(session, "commit", failing_commit)

        with pytest.raises(StorageError):
            await store.create("Men", "men", 1)

"""Category store.

Creates and queries the three-level category tree. Parent linkage and
level are fixed at creation; categories are retired by deactivation,
never deleted, so assignments and product references stay resolvable.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.domain.exceptions import ConflictError, NotFoundError, ValidationError
from taxonomy_api.taxonomy.cache import ResolvedFilterCache, get_filter_cache
from taxonomy_api.taxonomy.models import Category
from taxonomy_api.taxonomy.repository import CategoryRepository, commit
from taxonomy_api.taxonomy.types import MAX_CATEGORY_LEVEL, SLUG_PATTERN

logger = structlog.get_logger()


@dataclass
class CategoryNode:
    """A category with its children, for tree rendering."""

    category: Category
    children: list["CategoryNode"] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.category.to_dict()
        data["children"] = [child.to_dict() for child in self.children]
        return data


class CategoryStore:
    """Service for category tree operations.

    Example usage:
        async with async_session_factory() as session:
            store = CategoryStore(session)
            men = await store.create("Men", "men", level=1)
            clothing = await store.create("Clothing", "men-clothing", 2, men.id)
    """

    def __init__(self, session: AsyncSession, cache: ResolvedFilterCache | None = None) -> None:
        """Initialize store with database session.

        Args:
            session: Async SQLAlchemy session.
            cache: Resolved filter cache to invalidate on deactivation.
        """
        self.session = session
        self.repository = CategoryRepository(session)
        self.cache = cache if cache is not None else get_filter_cache()

    async def create(
        self,
        name: str,
        slug: str,
        level: int,
        parent_id: str | None = None,
        sort_order: int = 0,
    ) -> Category:
        """Create a category.

        Args:
            name: Display name.
            slug: URL-safe key, unique among active categories.
            level: 1, 2 or 3.
            parent_id: Parent category (required for levels 2 and 3).
            sort_order: Position among siblings.

        Returns:
            The created category.

        Raises:
            ValidationError: Bad name, slug, level or level/parent combination.
            NotFoundError: Parent missing or inactive.
            ConflictError: Slug already used by an active category.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name is required", details={"field": "name"})
        if not SLUG_PATTERN.fullmatch(slug or ""):
            raise ValidationError(
                f"Slug '{slug}' is not URL-safe",
                details={"field": "slug", "slug": slug},
            )
        if level not in range(1, MAX_CATEGORY_LEVEL + 1):
            raise ValidationError(
                f"Category level must be between 1 and {MAX_CATEGORY_LEVEL}, got {level}",
                details={"field": "level", "level": level},
            )

        if level == 1 and parent_id is not None:
            raise ValidationError(
                "Level 1 categories cannot have a parent",
                details={"field": "parent_id", "level": level},
            )
        if level > 1:
            if parent_id is None:
                raise ValidationError(
                    f"Level {level} categories require a level {level - 1} parent",
                    details={"field": "parent_id", "level": level},
                )
            parent = await self._get_live(parent_id)
            if parent.level != level - 1:
                raise ValidationError(
                    f"Parent of a level {level} category must be level {level - 1}, "
                    f"got level {parent.level}",
                    details={
                        "field": "parent_id",
                        "level": level,
                        "parent_level": parent.level,
                    },
                )

        if await self.repository.get_active_by_slug(slug) is not None:
            raise ConflictError(
                f"Category with slug '{slug}' already exists",
                details={"field": "slug", "slug": slug},
            )

        category = Category(
            name=name,
            slug=slug,
            level=level,
            parent_id=parent_id,
            sort_order=sort_order,
            is_active=True,
        )
        try:
            await self.repository.save(category)
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                f"Category with slug '{slug}' already exists",
                details={"field": "slug", "slug": slug},
            ) from e
        await commit(self.session)

        logger.info(
            "Category created",
            category_id=category.id,
            slug=slug,
            level=level,
            parent_id=parent_id,
        )
        return category

    async def get(self, category_id: str) -> Category:
        """Get a category, active or not.

        Raises:
            NotFoundError: Unknown category.
        """
        category = await self.repository.get(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    async def list_categories(
        self,
        level: int | None = None,
        parent_id: str | None = None,
        active_only: bool = False,
    ) -> Sequence[Category]:
        """List categories ordered by (level, sort_order, name)."""
        return await self.repository.find_all(
            level=level,
            parent_id=parent_id,
            active_only=active_only,
        )

    async def update(
        self,
        category_id: str,
        name: str | None = None,
        sort_order: int | None = None,
    ) -> Category:
        """Update mutable attributes. Level, parent and slug never change."""
        category = await self.get(category_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Category name is required", details={"field": "name"})
            category.name = name
        if sort_order is not None:
            category.sort_order = sort_order
        await self.repository.save(category)
        await commit(self.session)
        return category

    async def deactivate(self, category_id: str, cascade: bool = False) -> list[Category]:
        """Deactivate a category.

        Children are left untouched unless ``cascade`` is set, in which
        case every active descendant is deactivated too. Filter
        assignments are never touched.

        Args:
            category_id: Category to deactivate.
            cascade: Also deactivate active descendants.

        Returns:
            The category followed by any descendants deactivated with it.
        """
        category = await self.get(category_id)
        changed = [category]
        if cascade:
            descendants = await self.repository.find_descendants(category_id)
            changed.extend(d for d in descendants if d.is_active)

        now = datetime.now(timezone.utc)
        for item in changed:
            if item.is_active:
                item.is_active = False
                item.deactivated_at = now
                await self.repository.save(item)
        await commit(self.session)

        self.cache.invalidate_categories(*(c.id for c in changed))
        logger.info(
            "Category deactivated",
            category_id=category_id,
            cascade=cascade,
            cascaded_count=len(changed) - 1,
        )
        return changed

    async def reactivate(self, category_id: str) -> Category:
        """Reactivate a category whose slug is still free and parent is live.

        Raises:
            NotFoundError: Unknown category or inactive parent.
            ConflictError: Another active category took the slug meanwhile.
        """
        category = await self.get(category_id)
        if category.is_active:
            return category

        if category.parent_id is not None:
            await self._get_live(category.parent_id)
        holder = await self.repository.get_active_by_slug(category.slug)
        if holder is not None and holder.id != category.id:
            raise ConflictError(
                f"Category with slug '{category.slug}' already exists",
                details={"field": "slug", "slug": category.slug},
            )

        category.is_active = True
        category.deactivated_at = None
        try:
            await self.repository.save(category)
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                f"Category with slug '{category.slug}' already exists",
                details={"field": "slug", "slug": category.slug},
            ) from e
        await commit(self.session)

        self.cache.invalidate_categories(category.id)
        logger.info("Category reactivated", category_id=category_id)
        return category

    async def tree(self, active_only: bool = True) -> list[CategoryNode]:
        """Build the category tree.

        Categories whose parent is filtered out (e.g. an active child of an
        inactive parent when ``active_only``) are left out of the tree.
        """
        categories = await self.repository.find_all(active_only=active_only)
        nodes = {c.id: CategoryNode(category=c) for c in categories}

        roots: list[CategoryNode] = []
        for category in categories:
            node = nodes[category.id]
            if category.parent_id is None:
                roots.append(node)
            elif category.parent_id in nodes:
                nodes[category.parent_id].children.append(node)
        return roots

    async def path(self, category_id: str) -> list[Category]:
        """Get the breadcrumb from the level 1 ancestor down to a category."""
        breadcrumb = [await self.get(category_id)]
        while breadcrumb[0].parent_id is not None:
            parent = await self.repository.get(breadcrumb[0].parent_id)
            if parent is None:
                break
            breadcrumb.insert(0, parent)
        return breadcrumb

    async def get_live(self, category_id: str) -> Category:
        """Get a category that exists and is active.

        Raises:
            NotFoundError: Missing or inactive category.
        """
        return await self._get_live(category_id)

    async def _get_live(self, category_id: str) -> Category:
        category = await self.repository.get(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        if not category.is_active:
            raise NotFoundError("Category", category_id, reason="is inactive")
        return category

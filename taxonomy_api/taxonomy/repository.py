"""Repositories for taxonomy database operations.

Query helpers for categories, filters and filter assignments. Driver and
connectivity failures are surfaced as StorageError; integrity violations
propagate as IntegrityError so services can translate the ones they own.
"""

import functools
from collections.abc import Awaitable, Callable, Sequence
from typing import ParamSpec, TypeVar

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.domain.exceptions import StorageError
from taxonomy_api.taxonomy.models import Category, Filter, FilterAssignment

logger = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")


def storage_errors(func_: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Translate driver failures raised by a repository method into StorageError."""

    @functools.wraps(func_)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func_(*args, **kwargs)
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error("Storage failure", operation=func_.__qualname__, error=str(e))
            raise StorageError(
                "Storage operation failed",
                details={"operation": func_.__qualname__},
            ) from e

    return wrapper


@storage_errors
async def commit(session: AsyncSession) -> None:
    """Commit the session's transaction, surfacing driver failures as StorageError."""
    await session.commit()


def _search_pattern(query: str) -> str:
    return f"%{query.strip().lower()}%"


class CategoryRepository:
    """Repository for Category database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    @storage_errors
    async def save(self, category: Category) -> Category:
        """Add a category to the session and flush it."""
        self.session.add(category)
        await self.session.flush()
        return category

    @storage_errors
    async def get(self, category_id: str) -> Category | None:
        """Get category by ID."""
        return await self.session.get(Category, category_id)

    @storage_errors
    async def get_many(self, category_ids: Sequence[str]) -> dict[str, Category]:
        """Get categories by IDs, keyed by ID."""
        if not category_ids:
            return {}
        result = await self.session.execute(
            select(Category).where(Category.id.in_(list(category_ids)))
        )
        return {c.id: c for c in result.scalars().all()}

    @storage_errors
    async def get_active_by_slug(self, slug: str) -> Category | None:
        """Get the active category holding a slug, if any."""
        result = await self.session.execute(
            select(Category).where(and_(Category.slug == slug, Category.is_active.is_(True)))
        )
        return result.scalars().first()

    @storage_errors
    async def find_all(
        self,
        level: int | None = None,
        parent_id: str | None = None,
        active_only: bool = False,
    ) -> Sequence[Category]:
        """Find categories ordered by (level, sort_order, name).

        Args:
            level: Filter by level.
            parent_id: Filter by parent category.
            active_only: Only return active categories.

        Returns:
            Sequence of matching categories.
        """
        conditions = []
        if level is not None:
            conditions.append(Category.level == level)
        if parent_id is not None:
            conditions.append(Category.parent_id == parent_id)
        if active_only:
            conditions.append(Category.is_active.is_(True))

        query = select(Category)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(Category.level, Category.sort_order, Category.name)

        result = await self.session.execute(query)
        return result.scalars().all()

    @storage_errors
    async def find_descendants(self, category_id: str) -> list[Category]:
        """Get every descendant of a category, breadth first."""
        descendants: list[Category] = []
        frontier = [category_id]
        while frontier:
            result = await self.session.execute(
                select(Category)
                .where(Category.parent_id.in_(frontier))
                .order_by(Category.sort_order, Category.name)
            )
            children = list(result.scalars().all())
            descendants.extend(children)
            frontier = [c.id for c in children]
        return descendants


class FilterRepository:
    """Repository for Filter database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    @storage_errors
    async def save(self, filter_: Filter) -> Filter:
        """Add a filter to the session and flush it."""
        self.session.add(filter_)
        await self.session.flush()
        return filter_

    @storage_errors
    async def get(self, filter_id: str) -> Filter | None:
        """Get filter by ID, options included."""
        return await self.session.get(Filter, filter_id)

    @storage_errors
    async def get_by_name(self, name: str) -> Filter | None:
        """Get filter by machine name."""
        result = await self.session.execute(select(Filter).where(Filter.name == name))
        return result.scalars().first()

    @storage_errors
    async def get_many(self, filter_ids: Sequence[str]) -> dict[str, Filter]:
        """Get filters by IDs, keyed by ID."""
        if not filter_ids:
            return {}
        result = await self.session.execute(
            select(Filter).where(Filter.id.in_(list(filter_ids)))
        )
        return {f.id: f for f in result.scalars().all()}

    @storage_errors
    async def find_all(
        self,
        active_only: bool = False,
        search: str | None = None,
        exclude_ids: Sequence[str] | None = None,
    ) -> Sequence[Filter]:
        """Find filters in catalog order (sort_order, display_name).

        Args:
            active_only: Only return active filters.
            search: Case-insensitive match on name or display name.
            exclude_ids: Filter IDs to leave out.

        Returns:
            Sequence of matching filters.
        """
        conditions = []
        if active_only:
            conditions.append(Filter.is_active.is_(True))
        if search:
            pattern = _search_pattern(search)
            conditions.append(
                or_(
                    func.lower(Filter.name).like(pattern),
                    func.lower(Filter.display_name).like(pattern),
                )
            )
        if exclude_ids:
            conditions.append(Filter.id.not_in(list(exclude_ids)))

        query = select(Filter)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(Filter.sort_order, Filter.display_name)

        result = await self.session.execute(query)
        return result.scalars().all()


class FilterAssignmentRepository:
    """Repository for FilterAssignment database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    @storage_errors
    async def save(self, assignment: FilterAssignment) -> FilterAssignment:
        """Add an assignment to the session and flush it."""
        self.session.add(assignment)
        await self.session.flush()
        return assignment

    @storage_errors
    async def get(self, assignment_id: str) -> FilterAssignment | None:
        """Get assignment by ID."""
        return await self.session.get(FilterAssignment, assignment_id)

    @storage_errors
    async def get_for_pair(self, category_id: str, filter_id: str) -> FilterAssignment | None:
        """Get the assignment record (active or not) for a pair."""
        result = await self.session.execute(
            select(FilterAssignment).where(
                and_(
                    FilterAssignment.category_id == category_id,
                    FilterAssignment.filter_id == filter_id,
                )
            )
        )
        return result.scalars().first()

    @storage_errors
    async def get_for_pairs(
        self,
        category_id: str,
        filter_ids: Sequence[str],
    ) -> dict[str, FilterAssignment]:
        """Get assignment records for several filters of one category, keyed by filter ID."""
        if not filter_ids:
            return {}
        result = await self.session.execute(
            select(FilterAssignment).where(
                and_(
                    FilterAssignment.category_id == category_id,
                    FilterAssignment.filter_id.in_(list(filter_ids)),
                )
            )
        )
        return {a.filter_id: a for a in result.scalars().all()}

    @storage_errors
    async def find_by_category(
        self,
        category_id: str,
        active_only: bool = False,
        active_filters_only: bool = False,
    ) -> Sequence[FilterAssignment]:
        """Find assignments of a category joined with their filters.

        Ordered by assignment sort_order, then filter display name.

        Args:
            category_id: Category ID.
            active_only: Only active assignments.
            active_filters_only: Skip assignments whose filter is inactive.

        Returns:
            Sequence of assignments.
        """
        conditions = [FilterAssignment.category_id == category_id]
        if active_only:
            conditions.append(FilterAssignment.is_active.is_(True))
        if active_filters_only:
            conditions.append(Filter.is_active.is_(True))

        query = (
            select(FilterAssignment)
            .join(Filter, FilterAssignment.filter_id == Filter.id)
            .where(and_(*conditions))
            .order_by(FilterAssignment.sort_order, Filter.display_name)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    @storage_errors
    async def find_by_filter(
        self,
        filter_id: str,
        active_only: bool = True,
    ) -> Sequence[FilterAssignment]:
        """Find assignments of a filter ordered by (category_level, sort_order)."""
        conditions = [FilterAssignment.filter_id == filter_id]
        if active_only:
            conditions.append(FilterAssignment.is_active.is_(True))

        query = (
            select(FilterAssignment)
            .where(and_(*conditions))
            .order_by(FilterAssignment.category_level, FilterAssignment.sort_order)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    @storage_errors
    async def active_filter_ids(self, category_id: str) -> set[str]:
        """IDs of filters actively assigned to a category."""
        result = await self.session.execute(
            select(FilterAssignment.filter_id).where(
                and_(
                    FilterAssignment.category_id == category_id,
                    FilterAssignment.is_active.is_(True),
                )
            )
        )
        return set(result.scalars().all())

    @storage_errors
    async def count_for_filter(self, filter_id: str) -> int:
        """Count assignment records (active or not) for a filter."""
        result = await self.session.execute(
            select(func.count(FilterAssignment.id)).where(FilterAssignment.filter_id == filter_id)
        )
        return result.scalar_one()

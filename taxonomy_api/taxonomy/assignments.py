"""Filter assignment layer.

Binds catalog filters to categories. A (category, filter) pair owns at
most one record: unbinding deactivates it and binding again reactivates
it, so the storage-level unique constraint also guarantees a single
active binding per pair.
"""

from collections.abc import Sequence
from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy_api.domain.exceptions import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from taxonomy_api.taxonomy.cache import ResolvedFilterCache, get_filter_cache
from taxonomy_api.taxonomy.categories import CategoryStore
from taxonomy_api.taxonomy.filters import FilterCatalog
from taxonomy_api.taxonomy.models import Category, Filter, FilterAssignment
from taxonomy_api.taxonomy.repository import FilterAssignmentRepository, FilterRepository, commit
from taxonomy_api.taxonomy.types import AssignmentSpec

logger = structlog.get_logger()

DEFAULT_ASSIGNED_BY = "system"


class FilterAssignmentService:
    """Service for binding filters to categories.

    Example usage:
        service = FilterAssignmentService(session)
        await service.assign(tshirts.id, size.id, is_required=True, assigned_by="ops")
    """

    def __init__(self, session: AsyncSession, cache: ResolvedFilterCache | None = None) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
            cache: Resolved filter cache to invalidate on every mutation.
        """
        self.session = session
        self.cache = cache if cache is not None else get_filter_cache()
        self.repository = FilterAssignmentRepository(session)
        self.filters = FilterRepository(session)
        self.categories = CategoryStore(session, cache=self.cache)
        self.catalog = FilterCatalog(session, cache=self.cache)

    async def assign(
        self,
        category_id: str,
        filter_id: str,
        is_required: bool = False,
        sort_order: int = 0,
        assigned_by: str = DEFAULT_ASSIGNED_BY,
    ) -> FilterAssignment:
        """Bind a filter to a category.

        An active binding is returned unchanged. An inactive one is
        reactivated with the new attributes. Otherwise a record is created
        with the category's level copied onto it.

        Args:
            category_id: Target category.
            filter_id: Filter to bind.
            is_required: Whether products must carry a value.
            sort_order: Position of the filter for the category.
            assigned_by: Operator performing the change.

        Returns:
            The active assignment.

        Raises:
            NotFoundError: Category or filter missing or inactive.
        """
        category = await self.categories.get_live(category_id)
        filter_ = await self.catalog.get_live(filter_id)

        existing = await self.repository.get_for_pair(category_id, filter_id)
        if existing is not None and existing.is_active:
            return existing

        if existing is not None:
            self._activate(existing, is_required, sort_order, assigned_by)
            assignment = existing
        else:
            assignment = self._new_assignment(
                category, filter_, is_required, sort_order, assigned_by
            )

        try:
            await self.repository.save(assignment)
        except IntegrityError:
            # Lost a race on the pair constraint; converge on the winner.
            await self.session.rollback()
            return await self._converge(
                category_id, filter_id, is_required, sort_order, assigned_by
            )
        await commit(self.session)

        self.cache.invalidate_categories(category_id)
        logger.info(
            "Filter assigned",
            category_id=category_id,
            filter_id=filter_id,
            assignment_id=assignment.id,
            is_required=is_required,
            reactivated=existing is not None,
            assigned_by=assigned_by,
        )
        return assignment

    async def bulk_assign(
        self,
        category_id: str,
        entries: Sequence[AssignmentSpec],
        assigned_by: str = DEFAULT_ASSIGNED_BY,
    ) -> list[FilterAssignment]:
        """Bind several filters to one category, all or nothing.

        Every entry is validated before anything is written. The writes
        then happen in a single transaction that is rolled back as a whole
        if any of them fails. A batch that loses a race on a pair is
        replayed once against the winner's records, so pairs another
        writer already bound are returned as they are, the same way
        :meth:`assign` converges.

        Args:
            category_id: Target category.
            entries: Filters to bind with their attributes.
            assigned_by: Operator performing the change.

        Returns:
            The resulting assignments in input order.

        Raises:
            ValidationError: The batch names a filter more than once.
            NotFoundError: Category or any filter missing or inactive.
            ConflictError: The replayed batch conflicted again.
        """
        filter_ids = [entry.filter_id for entry in entries]
        duplicates = sorted({fid for fid in filter_ids if filter_ids.count(fid) > 1})
        if duplicates:
            raise ValidationError(
                "Bulk assignment lists a filter more than once",
                details={"filter_ids": duplicates},
            )

        for attempt in range(2):
            try:
                results = await self._bulk_write(category_id, entries, assigned_by)
            except IntegrityError as e:
                await self.session.rollback()
                if attempt:
                    logger.warning("Bulk assignment conflicted", category_id=category_id)
                    raise ConflictError(
                        "Filter assignments changed concurrently, retry the batch",
                        details={"category_id": category_id},
                    ) from e
                logger.info("Bulk assignment lost a race, replaying", category_id=category_id)
            except StorageError:
                await self.session.rollback()
                raise
            else:
                break

        self.cache.invalidate_categories(category_id)
        logger.info(
            "Filters bulk assigned",
            category_id=category_id,
            filter_count=len(results),
            assigned_by=assigned_by,
        )
        return results

    async def unassign(self, category_id: str, filter_id: str) -> FilterAssignment | None:
        """Deactivate the binding of a filter to a category.

        Returns:
            The deactivated record, or None if nothing was active.

        Raises:
            NotFoundError: Unknown category.
        """
        await self.categories.get(category_id)

        assignment = await self.repository.get_for_pair(category_id, filter_id)
        if assignment is None or not assignment.is_active:
            return None

        assignment.is_active = False
        await self.repository.save(assignment)
        await commit(self.session)

        self.cache.invalidate_categories(category_id)
        logger.info(
            "Filter unassigned",
            category_id=category_id,
            filter_id=filter_id,
            assignment_id=assignment.id,
        )
        return assignment

    async def update(
        self,
        assignment_id: str,
        is_required: bool | None = None,
        sort_order: int | None = None,
    ) -> FilterAssignment:
        """Change the required flag or ordering of an assignment.

        Raises:
            NotFoundError: Unknown assignment.
        """
        assignment = await self.repository.get(assignment_id)
        if assignment is None:
            raise NotFoundError("FilterAssignment", assignment_id)

        if is_required is not None:
            assignment.is_required = is_required
        if sort_order is not None:
            assignment.sort_order = sort_order
        await self.repository.save(assignment)
        await commit(self.session)

        self.cache.invalidate_categories(assignment.category_id)
        logger.info(
            "Filter assignment updated",
            assignment_id=assignment_id,
            category_id=assignment.category_id,
            is_required=assignment.is_required,
            sort_order=assignment.sort_order,
        )
        return assignment

    async def list_for_category(
        self,
        category_id: str,
        active_only: bool = False,
    ) -> Sequence[FilterAssignment]:
        """List a category's assignments with filter details.

        Raises:
            NotFoundError: Unknown category.
        """
        await self.categories.get(category_id)
        return await self.repository.find_by_category(category_id, active_only=active_only)

    async def list_for_filter(
        self,
        filter_id: str,
        active_only: bool = True,
    ) -> Sequence[FilterAssignment]:
        """List where a filter is used, ordered by (category_level, sort_order).

        Raises:
            NotFoundError: Unknown filter.
        """
        await self.catalog.get(filter_id)
        return await self.repository.find_by_filter(filter_id, active_only=active_only)

    async def _converge(
        self,
        category_id: str,
        filter_id: str,
        is_required: bool,
        sort_order: int,
        assigned_by: str,
    ) -> FilterAssignment:
        winner = await self.repository.get_for_pair(category_id, filter_id)
        if winner is None:
            raise ConflictError(
                "Filter assignment changed concurrently, retry",
                details={"category_id": category_id, "filter_id": filter_id},
            )
        if not winner.is_active:
            self._activate(winner, is_required, sort_order, assigned_by)
            await self.repository.save(winner)
            await commit(self.session)

        self.cache.invalidate_categories(category_id)
        logger.info(
            "Filter assignment converged",
            category_id=category_id,
            filter_id=filter_id,
            assignment_id=winner.id,
        )
        return winner

    async def _bulk_write(
        self,
        category_id: str,
        entries: Sequence[AssignmentSpec],
        assigned_by: str,
    ) -> list[FilterAssignment]:
        # Reloads everything by id, rows read before a rollback are expired
        category = await self.categories.get_live(category_id)

        filter_ids = [entry.filter_id for entry in entries]
        filters = await self.filters.get_many(filter_ids)
        for filter_id in filter_ids:
            filter_ = filters.get(filter_id)
            if filter_ is None:
                raise NotFoundError("Filter", filter_id)
            if not filter_.is_active:
                raise NotFoundError("Filter", filter_id, reason="is inactive")

        existing = await self.repository.get_for_pairs(category_id, filter_ids)

        results: list[FilterAssignment] = []
        for entry in entries:
            assignment = existing.get(entry.filter_id)
            if assignment is None:
                assignment = self._new_assignment(
                    category,
                    filters[entry.filter_id],
                    entry.is_required,
                    entry.sort_order,
                    assigned_by,
                )
            elif not assignment.is_active:
                self._activate(assignment, entry.is_required, entry.sort_order, assigned_by)
            results.append(assignment)

        for assignment in results:
            await self.repository.save(assignment)
        await commit(self.session)
        return results

    @staticmethod
    def _new_assignment(
        category: Category,
        filter_: Filter,
        is_required: bool,
        sort_order: int,
        assigned_by: str,
    ) -> FilterAssignment:
        return FilterAssignment(
            category=category,
            filter=filter_,
            category_id=category.id,
            filter_id=filter_.id,
            category_level=category.level,
            is_required=is_required,
            is_active=True,
            sort_order=sort_order,
            assigned_at=datetime.now(timezone.utc),
            assigned_by=assigned_by,
        )

    @staticmethod
    def _activate(
        assignment: FilterAssignment,
        is_required: bool,
        sort_order: int,
        assigned_by: str,
    ) -> None:
        assignment.is_active = True
        assignment.is_required = is_required
        assignment.sort_order = sort_order
        assignment.assigned_by = assigned_by
        assignment.assigned_at = datetime.now(timezone.utc)

"""SQLAlchemy models for the category taxonomy.

Defines the categories, filters, filter_options and filter_assignments
tables. Categories and filters are never physically deleted; they carry
an ``is_active`` flag plus a ``deactivated_at`` timestamp instead.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taxonomy_api.infrastructure.database import Base
from taxonomy_api.taxonomy.types import FilterValueType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class Category(Base):
    """A node of the three-level category tree.

    Attributes:
        id: Unique category identifier (UUID string).
        name: Display name.
        slug: URL-safe key, unique among active categories.
        level: Depth in the tree (1 = top, 3 = leaf).
        parent_id: Parent category one level up (None for level 1).
        is_active: Soft-delete flag.
        sort_order: Position among siblings.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
        deactivated_at: When the category was last deactivated.
    """

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    parent_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("categories.id"),
        nullable=True,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Slug is only unique among active categories
    __table_args__ = (
        CheckConstraint("level BETWEEN 1 AND 3", name="level"),
        Index(
            "uq_categories_active_slug",
            "slug",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, slug={self.slug}, level={self.level})>"

    def to_dict(self) -> dict:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "level": self.level,
            "parent_id": self.parent_id,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "deactivated_at": self.deactivated_at,
        }


class Filter(Base):
    """A reusable, typed filter definition (e.g. "Size").

    Attributes:
        id: Unique filter identifier.
        name: Machine key, unique.
        display_name: Human label.
        value_type: One of FilterValueType.
        is_active: Soft-delete flag.
        sort_order: Catalog ordering.
        options: Ordered options for select types.
    """

    __tablename__ = "filters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    options: Mapped[list["FilterOption"]] = relationship(
        "FilterOption",
        back_populates="filter",
        cascade="all, delete-orphan",
        order_by="FilterOption.sort_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Filter(id={self.id}, name={self.name}, type={self.value_type})>"

    @property
    def type(self) -> FilterValueType:
        """Get value type as enum."""
        return FilterValueType(self.value_type)

    def to_dict(self) -> dict:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "value_type": self.value_type,
            "options": [o.to_dict() for o in self.options],
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "deactivated_at": self.deactivated_at,
        }


class FilterOption(Base):
    """An allowed value of a select-type filter.

    Attributes:
        id: Unique option identifier.
        filter_id: Owning filter.
        value: Stored value referenced by product attributes.
        display_value: Human label.
        sort_order: Position in the option list.
        is_active: Whether products may use the option.
    """

    __tablename__ = "filter_options"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    filter_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("filters.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    value: Mapped[str] = mapped_column(String(100), nullable=False)
    display_value: Mapped[str] = mapped_column(String(200), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    filter: Mapped["Filter"] = relationship("Filter", back_populates="options")

    __table_args__ = (
        UniqueConstraint("filter_id", "value", name="uq_filter_options_filter_value"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<FilterOption(filter_id={self.filter_id}, value={self.value})>"

    def to_dict(self) -> dict:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "value": self.value,
            "display_value": self.display_value,
            "is_active": self.is_active,
        }


class FilterAssignment(Base):
    """Binding of a filter to a category.

    At most one record exists per (category, filter) pair; unbinding
    deactivates the record and binding again reactivates it.

    Attributes:
        id: Unique assignment identifier.
        category_id: Bound category.
        filter_id: Bound filter.
        category_level: Category level copied at assignment time.
        is_required: Whether products must carry a value.
        is_active: Whether the binding is in effect.
        sort_order: Position of the filter for the category.
        assigned_at: When the binding was (re)activated.
        assigned_by: Operator who (re)activated it.
    """

    __tablename__ = "filter_assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    category_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("categories.id"),
        nullable=False,
        index=True,
    )
    filter_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("filters.id"),
        nullable=False,
        index=True,
    )
    category_level: Mapped[int] = mapped_column(Integer, nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    assigned_by: Mapped[str] = mapped_column(String(100), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    # Relationships
    category: Mapped["Category"] = relationship("Category", lazy="selectin")
    filter: Mapped["Filter"] = relationship("Filter", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("category_id", "filter_id", name="uq_filter_assignments_category_filter"),
        Index("ix_filter_assignments_level_active", "category_level", "is_active"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<FilterAssignment(category_id={self.category_id}, "
            f"filter_id={self.filter_id}, active={self.is_active})>"
        )

    def to_dict(self) -> dict:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "id": self.id,
            "category_id": self.category_id,
            "filter_id": self.filter_id,
            "category_level": self.category_level,
            "is_required": self.is_required,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "assigned_at": self.assigned_at,
            "assigned_by": self.assigned_by,
            "filter": self.filter.to_dict() if self.filter else None,
        }

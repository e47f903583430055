#!/usr/bin/env python3
"""Seed taxonomy script.

Creates a small category tree with a filter catalog and assignments,
useful for local development and demos.

Usage:
    python scripts/seed_taxonomy.py
    python scripts/seed_taxonomy.py --assigned-by ops
    python scripts/seed_taxonomy.py --skip-assignments
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from taxonomy_api.domain.exceptions import ConflictError
from taxonomy_api.infrastructure.database import async_session_factory, create_tables
from taxonomy_api.infrastructure.logging import configure_logging
from taxonomy_api.taxonomy import (
    AssignmentSpec,
    CategoryStore,
    FilterAssignmentService,
    FilterCatalog,
    FilterValueType,
)

# (name, slug, children)
CATEGORY_TREE = [
    ("Men", "men", [
        ("Clothing", "men-clothing", [
            ("T-Shirts", "men-t-shirts", []),
            ("Jeans", "men-jeans", []),
        ]),
        ("Shoes", "men-shoes", [
            ("Sneakers", "men-sneakers", []),
        ]),
    ]),
    ("Women", "women", [
        ("Clothing", "women-clothing", [
            ("Dresses", "women-dresses", []),
        ]),
    ]),
]

# (name, display_name, value_type, options)
FILTERS = [
    ("size", "Size", FilterValueType.MULTI_SELECT, ["XS", "S", "M", "L", "XL"]),
    ("color", "Color", FilterValueType.MULTI_SELECT, ["Black", "White", "Red", "Blue"]),
    ("sleeve_length", "Sleeve Length", FilterValueType.SINGLE_SELECT, ["Short", "Long"]),
    ("material", "Material", FilterValueType.SINGLE_SELECT, ["Cotton", "Polyester", "Denim"]),
    ("organic", "Organic", FilterValueType.BOOLEAN, []),
    ("price", "Price", FilterValueType.NUMERIC_RANGE, []),
]

# leaf slug -> [(filter name, required)]
ASSIGNMENTS = {
    "men-t-shirts": [("size", True), ("color", True), ("sleeve_length", False), ("organic", False)],
    "men-jeans": [("size", True), ("material", False), ("price", False)],
    "women-dresses": [("size", True), ("color", False), ("material", False)],
}


async def seed_categories(store: CategoryStore) -> dict[str, str]:
    """Create the category tree.

    Returns:
        Mapping of slug to category id.
    """
    ids: dict[str, str] = {}

    async def create(nodes: list, level: int, parent_id: str | None) -> None:
        for position, (name, slug, children) in enumerate(nodes):
            category = await store.create(name, slug, level, parent_id, sort_order=position)
            ids[slug] = category.id
            await create(children, level + 1, category.id)

    await create(CATEGORY_TREE, 1, None)
    return ids


async def seed(assigned_by: str, with_assignments: bool) -> dict:
    """Seed categories, filters and assignments.

    Args:
        assigned_by: Operator recorded on assignments.
        with_assignments: Whether to bind filters to leaf categories.

    Returns:
        Seeding result.
    """
    async with async_session_factory() as session:
        categories = await seed_categories(CategoryStore(session))

        catalog = FilterCatalog(session)
        filters: dict[str, str] = {}
        for position, (name, display_name, value_type, options) in enumerate(FILTERS):
            created = await catalog.create(name, display_name, value_type, options, position)
            filters[name] = created.id

        assignment_count = 0
        if with_assignments:
            service = FilterAssignmentService(session)
            for slug, entries in ASSIGNMENTS.items():
                assigned = await service.bulk_assign(
                    categories[slug],
                    [
                        AssignmentSpec(filters[name], is_required=required, sort_order=position)
                        for position, (name, required) in enumerate(entries)
                    ],
                    assigned_by=assigned_by,
                )
                assignment_count += len(assigned)

        return {
            "categories_created": len(categories),
            "filters_created": len(filters),
            "assignments_created": assignment_count,
        }


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed category taxonomy and filters",
    )
    parser.add_argument(
        "--assigned-by",
        default="seed-script",
        help="Operator recorded on filter assignments (default: seed-script)",
    )
    parser.add_argument(
        "--skip-assignments",
        action="store_true",
        help="Only create categories and filters",
    )

    args = parser.parse_args()
    configure_logging(json_output=False)

    print("=" * 60)
    print("Taxonomy Seeder")
    print("=" * 60)

    # Create tables
    print("Creating database tables...")
    await create_tables()
    print("Tables ready.")
    print()

    try:
        result = await seed(args.assigned_by, not args.skip_assignments)
    except ConflictError as e:
        print(f"  ✗ Already seeded: {e.message}")
        sys.exit(1)

    print(f"  ✓ Categories: {result['categories_created']}")
    print(f"  ✓ Filters: {result['filters_created']}")
    print(f"  ✓ Assignments: {result['assignments_created']}")
    print()
    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())

"""
Database seeding utilities for demo reference data.

Seeds:
- Locations (Main Warehouse, Workshop, Site Office)
- Sample items (HAMMER-01, DRILL-18V, GLOVES-L)
- Opening stock for each item, recorded as ADD transactions

Everything goes through the services, so seeded stock has the same ledger
history as stock added over the API. Re-running is safe: existing locations
and items are reused and opening stock is only added to items with none.

Usage:
  python -m stockledger.db.run_migrations upgrade head
  python -m stockledger.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Tuple
from uuid import UUID

from stockledger.domain.entities import OperationMetadata
from stockledger.services.container import ServiceContainer

logger = logging.getLogger(__name__)

DEMO_LOCATIONS: List[Tuple[str, str]] = [
    ("Main Warehouse", "1 Depot Road"),
    ("Workshop", "Building B"),
    ("Site Office", "Gate 3"),
]

# sku, name, unit, threshold, opening stock per location name
DEMO_ITEMS: List[Tuple[str, str, str, int, Dict[str, int]]] = [
    ("HAMMER-01", "Claw Hammer", "pcs", 5, {"Main Warehouse": 20, "Workshop": 4}),
    ("DRILL-18V", "Cordless Drill 18V", "pcs", 2, {"Main Warehouse": 6}),
    ("GLOVES-L", "Work Gloves (L)", "pairs", 10, {"Main Warehouse": 8}),
]


async def _ensure_locations(services: ServiceContainer) -> Dict[str, UUID]:
    existing = {loc.name: loc.id for loc in await services.catalog.list_locations(include_inactive=True)}
    for name, address in DEMO_LOCATIONS:
        if name not in existing:
            location = await services.catalog.create_location(name, address=address)
            existing[name] = location.id
    return existing


async def _ensure_items(services: ServiceContainer, locations: Dict[str, UUID]) -> int:
    """Register missing demo items and give stockless ones their opening stock. Returns items stocked."""
    by_sku = {item.sku: item for item in await services.catalog.list_items(include_inactive=True)}
    stocked = 0
    for sku, name, unit, threshold, opening in DEMO_ITEMS:
        item = by_sku.get(sku)
        if item is None:
            item = await services.catalog.register_item(name, sku, unit, threshold=threshold)
            item = await services.catalog.assign_barcode(item.id)
        if item.total_stock > 0:
            continue
        for location_name, quantity in opening.items():
            await services.ledger.apply_add(
                item.id,
                locations[location_name],
                quantity,
                OperationMetadata(note="Opening stock"),
            )
        stocked += 1
    return stocked


# PUBLIC_INTERFACE
async def seed_demo_data(services: ServiceContainer) -> None:
    """
    Seed demo locations, items and opening stock through ``services``.

    This function:
      - Creates any demo location that does not exist yet
      - Registers missing demo items with a generated barcode
      - Adds opening stock to demo items that hold none
    """
    locations = await _ensure_locations(services)
    stocked = await _ensure_items(services, locations)
    logger.info("Seeded %d locations, stocked %d items", len(DEMO_LOCATIONS), stocked)


# PUBLIC_INTERFACE
def main() -> None:
    """Entrypoint to run the asynchronous seeding against the configured database."""
    from stockledger.core.deps import get_services
    from stockledger.core.logging import configure_logging

    configure_logging()
    asyncio.run(seed_demo_data(get_services()))


if __name__ == "__main__":
    main()

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.db.models.catalog import Item as ItemRow
from stockledger.db.models.catalog import ItemLocation as ItemLocationRow
from stockledger.db.models.catalog import Location as LocationRow
from stockledger.domain.entities import Item, Location, utcnow
from stockledger.domain.enums import ItemStatus
from stockledger.domain.errors import ConcurrentModification, UnknownItem, UnknownLocation
from .base import BaseRepository


class ItemRepository(BaseRepository):
    """
    Repository for catalog items and their location entries.

    Items are returned as detached domain copies; changes reach the database
    only through save().
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get(self, item_id: UUID, *, for_update: bool = False) -> Optional[Item]:
        stmt = select(ItemRow).where(ItemRow.id == item_id)
        if for_update:
            # Row lock for the rest of the transaction; also refresh any cached copy.
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = await self.scalar_one_or_none(stmt)
        return Item.model_validate(row) if row is not None else None

    async def get_by_sku(self, sku: str) -> Optional[Item]:
        row = await self.scalar_one_or_none(select(ItemRow).where(ItemRow.sku == sku))
        return Item.model_validate(row) if row is not None else None

    async def get_by_barcode(self, barcode: str) -> Optional[Item]:
        row = await self.scalar_one_or_none(select(ItemRow).where(ItemRow.barcode == barcode))
        return Item.model_validate(row) if row is not None else None

    async def add(self, item: Item) -> None:
        row = ItemRow(
            id=item.id,
            sku=item.sku,
            barcode=item.barcode,
            name=item.name,
            unit=item.unit,
            threshold=item.threshold,
            status=item.status.value,
            image_ref=item.image_ref,
            created_by=item.created_by,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )
        row.locations = [
            ItemLocationRow(location_id=e.location_id, quantity=e.quantity, position=i)
            for i, e in enumerate(item.locations)
        ]
        self.session.add(row)

    async def save(self, item: Item) -> None:
        """
        Write item attributes and location entries back to the loaded row.

        Raises:
            ConcurrentModification: the row changed since ``item`` was read.
        """
        row = await self.get_row(ItemRow, item.id)
        if row is None:
            raise UnknownItem(item.id)
        if row.version != item.version:
            raise ConcurrentModification(
                "Item was modified concurrently",
                {"item_id": str(item.id), "expected_version": item.version, "found_version": row.version},
            )
        row.sku = item.sku
        row.barcode = item.barcode
        row.name = item.name
        row.unit = item.unit
        row.threshold = item.threshold
        row.status = item.status.value
        row.image_ref = item.image_ref
        # Always touch the parent row so the version check runs even when only entries change.
        row.updated_at = utcnow()

        existing = {loc.location_id: loc for loc in row.locations}
        for position, entry in enumerate(item.locations):
            current = existing.get(entry.location_id)
            if current is None:
                row.locations.append(
                    ItemLocationRow(location_id=entry.location_id, quantity=entry.quantity, position=position)
                )
            else:
                current.quantity = entry.quantity

    async def list(self, *, include_inactive: bool = False) -> List[Item]:
        stmt = select(ItemRow)
        if not include_inactive:
            stmt = stmt.where(ItemRow.status == ItemStatus.ACTIVE.value)
        stmt = stmt.order_by(ItemRow.name)
        return [Item.model_validate(r) for r in await self.scalars(stmt)]

    async def list_at_location(self, location_id: UUID) -> List[Item]:
        stmt = (
            select(ItemRow)
            .join(ItemLocationRow, ItemLocationRow.item_id == ItemRow.id)
            .where(ItemLocationRow.location_id == location_id)
            .where(ItemRow.status == ItemStatus.ACTIVE.value)
            .order_by(ItemRow.name)
        )
        return [Item.model_validate(r) for r in await self.scalars(stmt)]


class LocationRepository(BaseRepository):
    """Repository for Locations."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get(self, location_id: UUID) -> Optional[Location]:
        row = await self.get_row(LocationRow, location_id)
        return Location.model_validate(row) if row is not None else None

    async def get_by_name(self, name: str) -> Optional[Location]:
        row = await self.scalar_one_or_none(select(LocationRow).where(LocationRow.name == name))
        return Location.model_validate(row) if row is not None else None

    async def add(self, location: Location) -> None:
        self.session.add(
            LocationRow(
                id=location.id,
                name=location.name,
                address=location.address,
                is_active=location.is_active,
                created_by=location.created_by,
                created_at=location.created_at,
                updated_at=location.updated_at,
            )
        )

    async def save(self, location: Location) -> None:
        row = await self.get_row(LocationRow, location.id)
        if row is None:
            raise UnknownLocation(location.id)
        row.name = location.name
        row.address = location.address
        row.is_active = location.is_active
        row.updated_at = location.updated_at

    async def list(self, *, include_inactive: bool = False) -> List[Location]:
        stmt = select(LocationRow)
        if not include_inactive:
            stmt = stmt.where(LocationRow.is_active.is_(True))
        stmt = stmt.order_by(LocationRow.name)
        return [Location.model_validate(r) for r in await self.scalars(stmt)]

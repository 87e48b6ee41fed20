from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError

from stockledger.domain.entities import Item, Location, utcnow
from stockledger.domain.enums import ItemStatus
from stockledger.domain.errors import Conflict, InvalidArgument, NotFound, UnknownItem, UnknownLocation
from stockledger.repositories.unit_of_work import UnitOfWork, UnitOfWorkFactory
from .base import BaseService
from .locks import ItemLockRegistry

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

BARCODE_BYTES = 4


def _build(model: Type[M], **fields: Any) -> M:
    try:
        return model(**fields)
    except ValidationError as exc:
        raise InvalidArgument(
            f"Invalid {model.__name__.lower()} fields",
            {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from None


def _check_threshold(threshold: Any) -> int:
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
        raise InvalidArgument("Threshold must be a non-negative integer", {"threshold": repr(threshold)})
    return threshold


def _check_status(status: Any) -> ItemStatus:
    try:
        return ItemStatus(status)
    except ValueError:
        raise InvalidArgument("Invalid item status", {"status": str(status)}) from None


def generate_barcode() -> str:
    """Random 8-digit uppercase hex code."""
    return secrets.token_hex(BARCODE_BYTES).upper()


class CatalogService(BaseService):
    """
    Item catalog and location registry.

    Item writes share the ledger's item locks so an edit never interleaves
    with a stock operation on the same item. Location quantities are never
    touched here.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        locks: Optional[ItemLockRegistry] = None,
        max_retries: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(uow_factory, locks=locks, max_retries=max_retries)
        self.clock = clock

    # ----- items -----

    # PUBLIC_INTERFACE
    async def register_item(
        self,
        name: str,
        sku: str,
        unit: str,
        threshold: int = 0,
        barcode: Optional[str] = None,
        image_ref: Optional[str] = None,
        created_by: Optional[UUID] = None,
    ) -> Item:
        """
        Add an item with no stock.

        Raises:
            InvalidArgument: empty name, sku or unit, or a negative threshold.
            Conflict: the SKU or barcode is already used by another item.
        """
        now = self.clock()
        item = _build(
            Item,
            name=name,
            sku=sku,
            unit=unit,
            threshold=_check_threshold(threshold),
            barcode=barcode or None,
            image_ref=image_ref,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )

        async def unit_(uow: UnitOfWork) -> Item:
            if await uow.items.get_by_sku(item.sku) is not None:
                raise Conflict("SKU already exists", {"sku": item.sku})
            if item.barcode and await uow.items.get_by_barcode(item.barcode) is not None:
                raise Conflict("Barcode already exists", {"barcode": item.barcode})
            await uow.items.add(item)
            return item

        created = await self.write(unit_)
        logger.info("Registered item %s (sku=%s)", created.id, created.sku)
        return created

    # PUBLIC_INTERFACE
    async def update_item(
        self,
        item_id: UUID,
        *,
        name: Optional[str] = None,
        unit: Optional[str] = None,
        threshold: Optional[int] = None,
        status: Optional[Any] = None,
        image_ref: Optional[str] = None,
    ) -> Item:
        """Change descriptive fields. Setting status to inactive soft-deletes the item."""
        if threshold is not None:
            _check_threshold(threshold)
        new_status = _check_status(status) if status is not None else None

        async def unit_(uow: UnitOfWork) -> Item:
            item = await uow.items.get(item_id, for_update=True)
            if item is None:
                raise UnknownItem(item_id)
            changes = {
                "name": name,
                "unit": unit,
                "threshold": threshold,
                "status": new_status,
                "image_ref": image_ref,
            }
            updated = _build(
                Item,
                **{
                    **item.model_dump(),
                    **{k: v for k, v in changes.items() if v is not None},
                    "updated_at": self.clock(),
                },
            )
            await uow.items.save(updated)
            return updated

        return await self.run_exclusive(item_id, unit_)

    # PUBLIC_INTERFACE
    async def assign_barcode(
        self, item_id: UUID, barcode: Optional[str] = None, overwrite: bool = False
    ) -> Item:
        """
        Give an item a barcode, generating a unique one when none is supplied.

        Raises:
            Conflict: the item already has a barcode and ``overwrite`` is false,
                or the barcode belongs to another item.
        """

        async def unit_(uow: UnitOfWork) -> Item:
            item = await uow.items.get(item_id, for_update=True)
            if item is None:
                raise UnknownItem(item_id)
            if item.barcode and not overwrite:
                raise Conflict(
                    "Item already has a barcode. Set overwrite to replace it.",
                    {"item_id": str(item_id), "barcode": item.barcode},
                )
            code = barcode
            if not code:
                code = generate_barcode()
                while await uow.items.get_by_barcode(code) is not None:
                    code = generate_barcode()
            else:
                holder = await uow.items.get_by_barcode(code)
                if holder is not None and holder.id != item_id:
                    raise Conflict("Barcode already assigned to another item", {"barcode": code})
            item.barcode = code
            item.updated_at = self.clock()
            await uow.items.save(item)
            return item

        item = await self.run_exclusive(item_id, unit_)
        logger.info("Assigned barcode %s to item %s", item.barcode, item_id)
        return item

    # PUBLIC_INTERFACE
    async def get_item(self, item_id: UUID) -> Item:
        async def unit_(uow: UnitOfWork) -> Item:
            item = await uow.items.get(item_id)
            if item is None:
                raise UnknownItem(item_id)
            return item

        return await self.read(unit_)

    # PUBLIC_INTERFACE
    async def get_item_by_barcode(self, barcode: str) -> Item:
        async def unit_(uow: UnitOfWork) -> Item:
            item = await uow.items.get_by_barcode(barcode)
            if item is None:
                raise NotFound("Item not found for the provided barcode", {"barcode": barcode})
            return item

        return await self.read(unit_)

    # PUBLIC_INTERFACE
    async def list_items(self, include_inactive: bool = False) -> List[Item]:
        """Items ordered by name; ``total_stock`` and ``stock_status`` are derived per item."""
        return await self.read(lambda uow: uow.items.list(include_inactive=include_inactive))

    # PUBLIC_INTERFACE
    async def stock_at_location(self, location_id: UUID) -> Tuple[Location, List[Tuple[Item, int]]]:
        """Active items holding an entry at ``location_id`` with their quantity there."""

        async def unit_(uow: UnitOfWork) -> Tuple[Location, List[Tuple[Item, int]]]:
            location = await uow.locations.get(location_id)
            if location is None:
                raise UnknownLocation(location_id)
            items = await uow.items.list_at_location(location_id)
            return location, [(item, item.quantity_at(location_id)) for item in items]

        return await self.read(unit_)

    # ----- locations -----

    # PUBLIC_INTERFACE
    async def create_location(
        self, name: str, address: Optional[str] = None, created_by: Optional[UUID] = None
    ) -> Location:
        """Raises Conflict when the name is taken."""
        now = self.clock()
        location = _build(
            Location, name=name, address=address, created_by=created_by, created_at=now, updated_at=now
        )

        async def unit_(uow: UnitOfWork) -> Location:
            if await uow.locations.get_by_name(location.name) is not None:
                raise Conflict("Location name already exists", {"name": location.name})
            await uow.locations.add(location)
            return location

        created = await self.write(unit_)
        logger.info("Created location %s (%s)", created.id, created.name)
        return created

    # PUBLIC_INTERFACE
    async def update_location(
        self,
        location_id: UUID,
        *,
        name: Optional[str] = None,
        address: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Location:
        async def unit_(uow: UnitOfWork) -> Location:
            location = await uow.locations.get(location_id)
            if location is None:
                raise UnknownLocation(location_id)
            if name is not None and name != location.name:
                if await uow.locations.get_by_name(name) is not None:
                    raise Conflict("Location name already exists", {"name": name})
            changes = {"name": name, "address": address, "is_active": is_active}
            updated = _build(
                Location,
                **{
                    **location.model_dump(),
                    **{k: v for k, v in changes.items() if v is not None},
                    "updated_at": self.clock(),
                },
            )
            await uow.locations.save(updated)
            return updated

        return await self.write(unit_)

    # PUBLIC_INTERFACE
    async def deactivate_location(self, location_id: UUID) -> Location:
        """Locations are never deleted; existing stock entries stay in place."""
        location = await self.update_location(location_id, is_active=False)
        logger.info("Deactivated location %s", location_id)
        return location

    # PUBLIC_INTERFACE
    async def get_location(self, location_id: UUID) -> Location:
        async def unit_(uow: UnitOfWork) -> Location:
            location = await uow.locations.get(location_id)
            if location is None:
                raise UnknownLocation(location_id)
            return location

        return await self.read(unit_)

    # PUBLIC_INTERFACE
    async def list_locations(self, include_inactive: bool = False) -> List[Location]:
        return await self.read(lambda uow: uow.locations.list(include_inactive=include_inactive))

"""
Stock ledger: the only writer of item location quantities and transaction status.

Every operation runs as one unit of work under the item's lock:
read the item, validate, apply the quantity effect, stage the item and the
transaction, commit. Notifications go out after the commit and are
best-effort.

Workflow-gated operations (non-privileged transfers, every disposal) record a
pending transaction with no quantity effect. The effect is applied, after
re-validating the balance, when the transaction is approved.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Sequence, Tuple
from uuid import UUID

from stockledger.domain.effects import apply_effects
from stockledger.domain.entities import (
    AddDetail,
    DisposeDetail,
    Item,
    Location,
    OperationMetadata,
    Transaction,
    TransferDetail,
    utcnow,
)
from stockledger.domain.enums import DisposalReason, TransactionKind, TransactionStatus
from stockledger.domain.errors import AlreadyProcessed, InvalidArgument, NotFound, UnknownItem, UnknownLocation
from stockledger.repositories.unit_of_work import UnitOfWork, UnitOfWorkFactory
from .alerts import notify_low_stock
from .base import BaseService
from .locks import ItemLockRegistry
from .notifications import Audience, BestEffortNotifier, EmailRendering

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_REQUEST_LABELS = {
    TransactionKind.TRANSFER: "Transfer request",
    TransactionKind.DISPOSE: "Disposal request",
}


# PUBLIC_INTERFACE
def check_quantity(quantity: Any) -> int:
    """Return ``quantity`` if it is a positive integer, else raise InvalidArgument."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidArgument("Quantity must be a positive integer", {"quantity": repr(quantity)})
    return quantity


# PUBLIC_INTERFACE
def check_reason(reason: Any) -> DisposalReason:
    """Coerce a disposal reason, raising InvalidArgument outside the fixed set."""
    try:
        return DisposalReason(reason)
    except ValueError:
        raise InvalidArgument(
            "Invalid disposal reason",
            {"reason": str(reason), "allowed": [r.value for r in DisposalReason]},
        ) from None


async def require_item(uow: UnitOfWork, item_id: UUID, *, for_update: bool = False) -> Item:
    item = await uow.items.get(item_id, for_update=for_update)
    if item is None:
        raise UnknownItem(item_id)
    return item


async def require_location(uow: UnitOfWork, location_id: UUID) -> Location:
    location = await uow.locations.get(location_id)
    if location is None:
        raise UnknownLocation(location_id)
    return location


async def require_pending(uow: UnitOfWork, transaction_id: UUID, kind: TransactionKind) -> Transaction:
    """
    Load a pending transaction of ``kind``.

    Raises:
        NotFound: no transaction of that kind exists.
        AlreadyProcessed: it exists but was already approved or rejected.
    """
    txn = await uow.transactions.get(transaction_id)
    if txn is None or txn.kind is not kind:
        raise NotFound(
            f"{_REQUEST_LABELS.get(kind, kind.value)} not found", {"transaction_id": str(transaction_id)}
        )
    if not txn.is_pending:
        raise AlreadyProcessed(
            txn.id, txn.status.value, f"{_REQUEST_LABELS.get(kind, kind.value)} already processed"
        )
    return txn


class StockLedger(BaseService):
    """Applies add, transfer and disposal operations and decides pending requests."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        notifier: BestEffortNotifier,
        *,
        locks: Optional[ItemLockRegistry] = None,
        privileged_roles: Sequence[str] = ("admin",),
        max_retries: int = 3,
        clock: Clock = utcnow,
    ) -> None:
        super().__init__(uow_factory, locks=locks, max_retries=max_retries)
        self._notifier = notifier
        self.privileged_roles = tuple(privileged_roles)
        self.clock = clock

    @property
    def notifier(self) -> BestEffortNotifier:
        return self._notifier

    def privileged_audience(self) -> Audience:
        return Audience.for_roles(*self.privileged_roles)

    async def check_low_stock(self, item: Item) -> bool:
        return await notify_low_stock(self._notifier, item, self.privileged_roles)

    # PUBLIC_INTERFACE
    async def apply_add(
        self,
        item_id: UUID,
        location_id: UUID,
        quantity: int,
        metadata: Optional[OperationMetadata] = None,
    ) -> Transaction:
        """Credit ``quantity`` at ``location_id``. Always approved."""
        check_quantity(quantity)
        meta = metadata or OperationMetadata()

        async def unit(uow: UnitOfWork) -> Tuple[Item, Transaction]:
            item = await require_item(uow, item_id, for_update=True)
            await require_location(uow, location_id)
            txn = Transaction(
                item_id=item_id,
                quantity=quantity,
                detail=AddDetail(to_location_id=location_id, note=meta.note, photo_ref=meta.photo_ref),
                status=TransactionStatus.APPROVED,
                created_by=meta.actor_id,
                created_at=self.clock(),
            )
            apply_effects(item, txn)
            await uow.items.save(item)
            await uow.transactions.add(txn)
            return item, txn

        item, txn = await self.run_exclusive(item_id, unit)
        logger.info("Added %d of item %s at %s (txn=%s)", quantity, item_id, location_id, txn.id)
        await self._notifier.notify(
            Audience.all_users(),
            "Stock Added",
            f"{item.name} stock increased by {quantity} {item.unit}.",
            {"item_id": str(item.id), "transaction_id": str(txn.id)},
        )
        await self.check_low_stock(item)
        return txn

    # PUBLIC_INTERFACE
    async def apply_transfer(
        self,
        item_id: UUID,
        from_location_id: UUID,
        to_location_id: UUID,
        quantity: int,
        requester_is_privileged: bool,
        metadata: Optional[OperationMetadata] = None,
    ) -> Transaction:
        """
        Move stock between two locations of one item.

        A privileged requester's transfer is applied and approved at once, with
        the requester as approver. Anyone else gets a pending request whose
        effect waits for review_transfer().

        Raises:
            InvalidArgument: bad quantity, or source equals destination.
            UnknownItem / UnknownLocation: a reference does not resolve.
            InsufficientStock: the source holds less than ``quantity``.
        """
        check_quantity(quantity)
        if from_location_id == to_location_id:
            raise InvalidArgument(
                "Source and destination locations must differ", {"location_id": str(from_location_id)}
            )
        meta = metadata or OperationMetadata()

        async def unit(uow: UnitOfWork) -> Tuple[Item, Transaction]:
            item = await require_item(uow, item_id, for_update=True)
            await require_location(uow, from_location_id)
            await require_location(uow, to_location_id)
            item.ensure_available(from_location_id, quantity)
            now = self.clock()
            detail = TransferDetail(
                from_location_id=from_location_id, to_location_id=to_location_id, note=meta.note
            )
            if requester_is_privileged:
                txn = Transaction(
                    item_id=item_id,
                    quantity=quantity,
                    detail=detail,
                    status=TransactionStatus.APPROVED,
                    approved_by=meta.actor_id,
                    approved_at=now,
                    created_by=meta.actor_id,
                    created_at=now,
                )
                apply_effects(item, txn)
                await uow.items.save(item)
            else:
                txn = Transaction(
                    item_id=item_id,
                    quantity=quantity,
                    detail=detail,
                    status=TransactionStatus.PENDING,
                    created_by=meta.actor_id,
                    created_at=now,
                )
            await uow.transactions.add(txn)
            return item, txn

        item, txn = await self.run_exclusive(item_id, unit)
        data = {"item_id": str(item.id), "transaction_id": str(txn.id)}
        if txn.is_pending:
            logger.info("Transfer request %s for item %s awaits approval", txn.id, item_id)
            await self._notifier.notify(
                self.privileged_audience(),
                "Stock Transfer Approval Needed",
                f"Transfer request for {quantity} {item.unit} of {item.name} requires approval.",
                data,
                EmailRendering(
                    subject=f"Action Required - Transfer approval for {item.name}",
                    html=f"<p>A transfer of {quantity} {item.unit} of <strong>{item.name}</strong> requires your approval.</p>",
                ),
            )
        else:
            logger.info(
                "Transferred %d of item %s from %s to %s (txn=%s)",
                quantity, item_id, from_location_id, to_location_id, txn.id,
            )
            await self._notifier.notify(
                Audience.all_users(),
                "Stock Transfer Completed",
                f"{item.name} moved from location {from_location_id} to {to_location_id}.",
                data,
            )
            await self.check_low_stock(item)
        return txn

    # PUBLIC_INTERFACE
    async def apply_dispose(
        self,
        item_id: UUID,
        location_id: UUID,
        quantity: int,
        reason: Any,
        metadata: Optional[OperationMetadata] = None,
    ) -> Transaction:
        """
        Request disposal of stock. Always pending; nothing is debited until approval.

        Raises:
            InvalidArgument: bad quantity or reason.
            InsufficientStock: the location holds less than ``quantity`` now.
        """
        check_quantity(quantity)
        disposal_reason = check_reason(reason)
        meta = metadata or OperationMetadata()

        async def unit(uow: UnitOfWork) -> Tuple[Item, Transaction]:
            item = await require_item(uow, item_id, for_update=True)
            await require_location(uow, location_id)
            item.ensure_available(location_id, quantity)
            txn = Transaction(
                item_id=item_id,
                quantity=quantity,
                detail=DisposeDetail(
                    from_location_id=location_id,
                    reason=disposal_reason,
                    note=meta.note,
                    photo_ref=meta.photo_ref,
                ),
                status=TransactionStatus.PENDING,
                created_by=meta.actor_id,
                created_at=self.clock(),
            )
            await uow.transactions.add(txn)
            return item, txn

        item, txn = await self.run_exclusive(item_id, unit)
        logger.info("Disposal request %s for item %s awaits approval", txn.id, item_id)
        await self._notifier.notify(
            self.privileged_audience(),
            "Disposal Approval Needed",
            f"Disposal request for {quantity} {item.unit} of {item.name} requires approval.",
            {"item_id": str(item.id), "transaction_id": str(txn.id), "reason": disposal_reason.value},
            EmailRendering(
                subject=f"Action Required - Disposal approval for {item.name}",
                html=(
                    f"<p>A disposal of {quantity} {item.unit} of <strong>{item.name}</strong> "
                    f"({disposal_reason.value}) requires your approval.</p>"
                ),
            ),
        )
        return txn

    # PUBLIC_INTERFACE
    async def review_transfer(
        self,
        transaction_id: UUID,
        approve: bool,
        approver_id: Optional[UUID],
        note: Optional[str] = None,
    ) -> Transaction:
        """
        Approve or reject a pending transfer.

        Approval re-validates the source balance and applies the debit and
        credit together with the status change.

        Raises:
            NotFound: no such transfer.
            AlreadyProcessed: the transfer was already decided.
            InsufficientStock: on approval, the source no longer holds enough.
        """
        item, txn = await self._decide(TransactionKind.TRANSFER, transaction_id, approve, approver_id, note)
        data = {"item_id": str(item.id), "transaction_id": str(txn.id)}
        if approve:
            await self._notifier.notify(
                Audience.all_users(),
                "Stock Transfer Approved",
                f"{item.name} transfer request has been approved.",
                data,
            )
            await self.check_low_stock(item)
        else:
            await self._notifier.notify(
                Audience.all_users(),
                "Stock Transfer Rejected",
                f"Transfer request for {item.name} was rejected.",
                data,
            )
        return txn

    # PUBLIC_INTERFACE
    async def approve_disposal(
        self,
        transaction_id: UUID,
        approve: bool,
        approver_id: Optional[UUID],
    ) -> Transaction:
        """
        Approve (debit) or reject a pending disposal. Same failures as review_transfer().

        The requester's note and photo are kept as recorded.
        """
        item, txn = await self._decide(TransactionKind.DISPOSE, transaction_id, approve, approver_id, None)
        data = {"item_id": str(item.id), "transaction_id": str(txn.id)}
        if approve:
            await self._notifier.notify(
                Audience.all_users(),
                "Disposal Approved",
                f"Disposal of {txn.quantity} {item.unit} for {item.name} has been approved.",
                data,
            )
            await self.check_low_stock(item)
        else:
            await self._notifier.notify(
                Audience.all_users(),
                "Disposal Rejected",
                f"Disposal request for {txn.quantity} {item.unit} of {item.name} was rejected.",
                data,
            )
        return txn

    async def _decide(
        self,
        kind: TransactionKind,
        transaction_id: UUID,
        approve: bool,
        approver_id: Optional[UUID],
        note: Optional[str],
    ) -> Tuple[Item, Transaction]:
        # The item id is only known from the transaction; read it before taking the lock.
        peek = await self.read(lambda uow: require_pending(uow, transaction_id, kind))

        async def unit(uow: UnitOfWork) -> Tuple[Item, Transaction]:
            # Lock the item first, then re-read the transaction so a concurrent decision is seen.
            item = await require_item(uow, peek.item_id, for_update=True)
            txn = await require_pending(uow, transaction_id, kind)
            decided = txn.decide(approve, approver_id, self.clock(), note)
            if approve:
                apply_effects(item, decided)
                await uow.items.save(item)
            await uow.transactions.save(decided)
            return item, decided

        item, decided = await self.run_exclusive(peek.item_id, unit)
        logger.info(
            "%s %s %s by %s", _REQUEST_LABELS.get(kind, kind.value), transaction_id, decided.status.value, approver_id
        )
        return item, decided

from __future__ import annotations

from typing import Sequence

from stockledger.domain.entities import Item
from .notifications import Audience, BestEffortNotifier, EmailRendering


async def notify_low_stock(notifier: BestEffortNotifier, item: Item, roles: Sequence[str]) -> bool:
    """
    Send a low-stock alert to ``roles`` when the item's total stock is at or below its threshold.

    Returns True when an alert was due, whether or not its delivery succeeded.
    """
    total = item.total_stock
    if total > item.threshold:
        return False
    await notifier.notify(
        Audience.for_roles(*roles),
        "Low Stock Alert",
        f"{item.name} ({item.sku}) is at {total} {item.unit}, below the threshold of {item.threshold}.",
        {"item_id": str(item.id), "sku": item.sku, "total_stock": total},
        EmailRendering(
            subject=f"Stock Alert - {item.name} is Low",
            html=(
                f"<p><strong>{item.name}</strong> ({item.sku}) is low on stock.</p>"
                f"<p>Current stock: {total} {item.unit}</p>"
                f"<p>Threshold: {item.threshold} {item.unit}</p>"
                "<p>Please review and take action.</p>"
            ),
        ),
    )
    return True

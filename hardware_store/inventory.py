from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Protocol

import structlog

from .errors import PersistenceError, StockError
from .storage import CatalogStore

logger = structlog.get_logger(__name__)


class StockLine(Protocol):
    id: str
    quantity: int


@dataclass
class Availability:
    ok: bool
    shortfalls: List[Dict] = field(default_factory=list)


def merge_lines(lines: Iterable[StockLine]) -> Dict[str, int]:
    """Sum quantities of repeated item ids, keeping first-seen order."""
    merged: Dict[str, int] = {}
    for line in lines:
        merged[line.id] = merged.get(line.id, 0) + int(line.quantity)
    return merged


class StockLedger:
    """Stock accounting over the catalog.

    ``reserve`` and ``release`` persist the catalog before returning. Callers
    that need check-then-reserve to be atomic must hold their own lock around
    both calls.
    """

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog

    def check_availability(self, lines: Iterable[StockLine]) -> Availability:
        shortfalls = []
        for item_id, requested in merge_lines(lines).items():
            item = self.catalog.get(item_id)
            available = item.stock if item else 0
            if item is None or available < requested:
                shortfalls.append(
                    {
                        "id": item_id,
                        "name": item.name if item else item_id,
                        "requested": requested,
                        "available": available,
                    }
                )
        return Availability(ok=not shortfalls, shortfalls=shortfalls)

    def reserve(self, lines: Iterable[StockLine]) -> None:
        lines = list(lines)
        # Re-check right before mutating; nothing is decremented on failure
        availability = self.check_availability(lines)
        if not availability.ok:
            raise StockError(availability.shortfalls)

        merged = merge_lines(lines)
        self._adjust(merged, -1)
        logger.info("stock_reserved", items=merged)

    def release(self, lines: Iterable[StockLine]) -> None:
        merged = merge_lines(lines)
        unknown = [item_id for item_id in merged if self.catalog.get(item_id) is None]
        for item_id in unknown:
            logger.warning("release_unknown_item", item_id=item_id, quantity=merged.pop(item_id))
        self._adjust(merged, 1)
        logger.info("stock_released", items=merged)

    def _adjust(self, merged: Dict[str, int], sign: int) -> None:
        """Apply the change in memory and persist it, or leave stock untouched."""
        for item_id, quantity in merged.items():
            self.catalog.get(item_id).stock += sign * quantity
        try:
            self.catalog.save()
        except PersistenceError:
            for item_id, quantity in merged.items():
                self.catalog.get(item_id).stock -= sign * quantity
            raise

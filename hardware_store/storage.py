"""In-memory stores mirrored to JSON files.

Each store owns its state and writes a full snapshot after every mutation.
Writes go to a temporary file in the same directory which then replaces the
target, so a crash mid-write never leaves a truncated document behind.
"""
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import structlog

from .errors import PersistenceError
from .schemas import Item, Order, Subscription

logger = structlog.get_logger(__name__)


class JsonFile:
    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self, default: Any = None) -> Any:
        if not self.path.exists():
            return default
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("snapshot_read_failed", path=str(self.path), error=str(e))
            raise PersistenceError(f"Failed to read {self.path.name}: {e}") from e

    def write(self, data: Any) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("snapshot_write_failed", path=str(self.path), error=str(e))
            raise PersistenceError(f"Failed to save {self.path.name}") from e


class CatalogStore:
    """Orderable items keyed by id, in catalog order."""

    def __init__(self, file: JsonFile, items: Iterable[Item] = ()):
        self._file = file
        self._lock = threading.Lock()
        self._items: Dict[str, Item] = {item.id: item for item in items}

    @classmethod
    def load(cls, path: Path) -> "CatalogStore":
        file = JsonFile(path)
        rows = file.read(default=[])
        return cls(file, [Item.model_validate(row) for row in rows])

    def all(self) -> List[Item]:
        return list(self._items.values())

    def get(self, item_id: str) -> Optional[Item]:
        return self._items.get(item_id)

    def replace_all(self, items: Iterable[Item]) -> None:
        with self._lock:
            self._items = {item.id: item for item in items}
        self.save()

    def save(self) -> None:
        with self._lock:
            snapshot = [item.model_dump(mode="json", by_alias=True) for item in self._items.values()]
            self._file.write(snapshot)


class OrderStore:
    def __init__(self, file: JsonFile, orders: Optional[Dict[str, Order]] = None):
        self._file = file
        self._lock = threading.Lock()
        self._orders: Dict[str, Order] = dict(orders or {})

    @classmethod
    def load(cls, path: Path) -> "OrderStore":
        file = JsonFile(path)
        raw = file.read(default={})
        return cls(file, {order_id: Order.model_validate(row) for order_id, row in raw.items()})

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def all(self) -> Dict[str, Order]:
        return dict(self._orders)

    def add(self, order: Order) -> None:
        with self._lock:
            self._orders[order.id] = order

    def discard(self, order_id: str) -> None:
        with self._lock:
            self._orders.pop(order_id, None)

    def snapshot(self) -> Dict[str, Any]:
        return {
            order_id: order.model_dump(mode="json", by_alias=True)
            for order_id, order in self._orders.items()
        }

    def save(self) -> None:
        with self._lock:
            self._file.write(self.snapshot())


class SubscriptionStore:
    """Push subscriptions keyed by the order they follow."""

    def __init__(self, file: JsonFile, subscriptions: Optional[Dict[str, Subscription]] = None):
        self._file = file
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, Subscription] = dict(subscriptions or {})

    @classmethod
    def load(cls, path: Path) -> "SubscriptionStore":
        file = JsonFile(path)
        raw = file.read(default={})
        subscriptions = {}
        for order_id, row in raw.items():
            subscriptions[order_id] = Subscription.model_validate({"orderId": order_id, **row})
        return cls(file, subscriptions)

    def get(self, order_id: str) -> Optional[Subscription]:
        return self._subscriptions.get(order_id)

    def all(self) -> Dict[str, Subscription]:
        return dict(self._subscriptions)

    def put(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions[subscription.order_id] = subscription
        self.save()

    def delete(self, order_id: str) -> bool:
        with self._lock:
            removed = self._subscriptions.pop(order_id, None) is not None
        if removed:
            self.save()
        return removed

    def save(self) -> None:
        with self._lock:
            snapshot = {
                order_id: sub.model_dump(mode="json", by_alias=True)
                for order_id, sub in self._subscriptions.items()
            }
            self._file.write(snapshot)

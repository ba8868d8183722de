"""Order lifecycle: placement, lookup and organizer status changes.

Stock is reserved when an order is placed. ``pending`` and ``approved``
orders hold their stock; moving to ``denied`` or ``cancelled`` gives back
exactly the quantities in the order's item snapshot.
"""
import threading
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

import structlog

from .auth import verify_admin_code
from .errors import ConflictError, NotFound, PersistenceError, StockError, ValidationError
from .inventory import StockLedger, merge_lines
from .schemas import CartLine, Order, OrderLine, OrderStatus, StatusEvent
from .storage import CatalogStore, OrderStore

logger = structlog.get_logger(__name__)


class Dispatcher(Protocol):
    def send(self, order_id: str, status: str, note: Optional[str]) -> None: ...


STOCK_HOLDING = {OrderStatus.PENDING, OrderStatus.APPROVED}

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.APPROVED, OrderStatus.DENIED, OrderStatus.CANCELLED},
    OrderStatus.APPROVED: {OrderStatus.CANCELLED},
    OrderStatus.DENIED: set(),
    OrderStatus.CANCELLED: set(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_order_id() -> str:
    return str(uuid.uuid4())


class OrderService:
    def __init__(
        self,
        catalog: CatalogStore,
        orders: OrderStore,
        ledger: StockLedger,
        dispatcher: Dispatcher,
        admin_code: str,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_order_id,
    ):
        self.catalog = catalog
        self.orders = orders
        self.ledger = ledger
        self.dispatcher = dispatcher
        self._admin_code = admin_code
        self._clock = clock
        self._id_factory = id_factory
        # Single writer for every check-then-mutate sequence
        self._lock = threading.RLock()

    def place_order(self, username: Optional[str], cart: Optional[Iterable[CartLine]]) -> Order:
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required")
        cart = list(cart or [])
        if not cart:
            raise ValidationError("Cart must contain at least one item")

        invalid = [
            {"id": line.id, "quantity": line.quantity, "error": "quantity must be greater than 0"}
            for line in cart
            if line.quantity <= 0
        ]
        invalid += [{"id": line.id, "error": "id is required"} for line in cart if not line.id]
        if invalid:
            raise ValidationError("Invalid order data", details=invalid)

        with self._lock:
            availability = self.ledger.check_availability(cart)
            if not availability.ok:
                logger.info("order_rejected", username=username, shortfalls=availability.shortfalls)
                raise StockError(availability.shortfalls)

            # Name and price always come from the catalog, never from the client
            lines = []
            for item_id, quantity in merge_lines(cart).items():
                item = self.catalog.get(item_id)
                lines.append(OrderLine(id=item.id, name=item.name or item.id, price=item.price, quantity=quantity))

            self.ledger.reserve(lines)

            now = self._clock()
            order = Order(
                id=self._id_factory(),
                username=username,
                items=lines,
                status=OrderStatus.PENDING,
                total_price=sum((line.price * line.quantity for line in lines), Decimal("0")),
                timestamp=now,
                status_history=[StatusEvent(status=OrderStatus.PENDING, timestamp=now, note="Order placed")],
            )
            self.orders.add(order)
            try:
                self.orders.save()
            except PersistenceError:
                self.orders.discard(order.id)
                self.ledger.release(lines)
                raise

        logger.info("order_placed", order_id=order.id, username=username, total_price=str(order.total_price))
        return order

    def get_order(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFound("Order not found")
        return order

    def list_all_orders(self, admin_code: Optional[str]) -> Dict[str, Order]:
        verify_admin_code(admin_code, self._admin_code)
        return self.orders.all()

    def update_status(
        self,
        order_id: str,
        status: Any,
        note: Any = None,
        admin_code: Any = None,
    ) -> Order:
        verify_admin_code(admin_code, self._admin_code)
        order = self.get_order(order_id)
        try:
            new_status = OrderStatus(status)
        except (ValueError, TypeError):
            allowed = ", ".join(s.value for s in OrderStatus)
            raise ValidationError(f"Status must be one of: {allowed}")
        if note is not None and not isinstance(note, str):
            raise ValidationError("Note must be a string")
        note = note or None

        with self._lock:
            old_status = order.status
            if new_status == old_status:
                if note:
                    order.status_history.append(StatusEvent(status=old_status, timestamp=self._clock(), note=note))
                    try:
                        self.orders.save()
                    except PersistenceError:
                        order.status_history.pop()
                        raise
                    logger.info("order_note_added", order_id=order_id, status=old_status.value)
                return order

            if new_status not in ALLOWED_TRANSITIONS[old_status]:
                raise ConflictError(f"Cannot change order from {old_status.value} to {new_status.value}")

            releases_stock = old_status in STOCK_HOLDING and new_status not in STOCK_HOLDING
            if releases_stock:
                self.ledger.release(order.items)

            order.status = new_status
            order.status_history.append(
                StatusEvent(status=new_status, timestamp=self._clock(), note=note or f"Order {new_status.value}")
            )
            try:
                self.orders.save()
            except PersistenceError:
                order.status = old_status
                order.status_history.pop()
                if releases_stock:
                    # Stock was just returned under this lock, so taking it back cannot fall short
                    self.ledger.reserve(order.items)
                raise

        logger.info("order_status_changed", order_id=order_id, old=old_status.value, new=new_status.value)
        self.dispatcher.send(order_id, new_status.value, note)
        return order

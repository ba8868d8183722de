"""Shared pytest fixtures for the store tests."""

import json
from decimal import Decimal

import pytest

from hardware_store.inventory import StockLedger
from hardware_store.orders import OrderService
from hardware_store.schemas import Item
from hardware_store.storage import CatalogStore, JsonFile, OrderStore

ADMIN_CODE = "letmein"


class RecordingDispatcher:
    """Stands in for push delivery and remembers every call."""

    def __init__(self):
        self.calls = []

    def send(self, order_id, status, note=None):
        self.calls.append((order_id, status, note))


def make_items():
    return [
        Item(id="A", name="Arduino Uno", price=Decimal("20.00"), stock=5),
        Item(id="B", name="Breadboard", price=Decimal("2.50"), stock=10),
        Item(id="C", name="Servo", price=Decimal("4.75"), stock=0),
    ]


@pytest.fixture
def catalog(tmp_path):
    return CatalogStore(JsonFile(tmp_path / "items.json"), make_items())


@pytest.fixture
def ledger(catalog):
    return StockLedger(catalog)


@pytest.fixture
def order_store(tmp_path):
    return OrderStore(JsonFile(tmp_path / "orders.json"))


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def service(catalog, order_store, ledger, dispatcher):
    return OrderService(catalog, order_store, ledger, dispatcher, admin_code=ADMIN_CODE)


@pytest.fixture
def seeded_data_dir(tmp_path):
    """A data directory whose items.json already holds the test catalog."""
    rows = [item.model_dump(mode="json", by_alias=True) for item in make_items()]
    (tmp_path / "items.json").write_text(json.dumps(rows), encoding="utf-8")
    return tmp_path

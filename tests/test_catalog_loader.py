"""Tests for building the catalog from CSV files and DigiKey metadata."""

import json
import os
import time
from decimal import Decimal

import pytest

from hardware_store.catalog_loader import load_catalog, read_enrichment_cache
from hardware_store.config import Settings
from hardware_store.errors import CatalogError

CUSTOM_CSV = """part number,name,description,datasheet,manufacturer,image url,price,stock
BADGE-1,Hackathon Badge,Blinky badge,,Crew,img/badge.png,0,40
LIPO-500,LiPo 500mAh,,,,,4.50,12
"""

DIGIKEY_CSV = """digikey_part_number,price,stock
296-1395-5-ND,0.55,100
MISSING-ND,1.00,3
"""


class FakeDigiKey:
    def __init__(self, known):
        self.known = known
        self.lookups = []

    def get_product_details(self, part_number):
        self.lookups.append(part_number)
        return self.known.get(part_number)


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path, admin_code="letmein")


def _write(path, text):
    path.write_text(text, encoding="utf-8")


def test_existing_items_json_wins(settings, seeded_data_dir):
    client = FakeDigiKey({})
    _write(settings.custom_csv_path, CUSTOM_CSV)

    catalog = load_catalog(settings, client, request_delay=0)

    assert [item.id for item in catalog.all()] == ["A", "B", "C"]
    assert client.lookups == []


def test_builds_from_csv_and_enriches(settings):
    _write(settings.custom_csv_path, CUSTOM_CSV)
    _write(settings.digikey_csv_path, DIGIKEY_CSV)
    client = FakeDigiKey(
        {
            "296-1395-5-ND": {
                "name": "NE555P",
                "description": "IC OSC SINGLE TIMER",
                "manufacturer": "Texas Instruments",
                "datasheet": "https://example.com/ne555.pdf",
                "image_url": "https://example.com/ne555.jpg",
            }
        }
    )

    catalog = load_catalog(settings, client, request_delay=0)

    assert [item.id for item in catalog.all()] == ["BADGE-1", "LIPO-500", "296-1395-5-ND", "MISSING-ND"]
    timer = catalog.get("296-1395-5-ND")
    assert timer.name == "NE555P"
    assert timer.price == Decimal("0.55")
    assert timer.stock == 100
    assert timer.supplier == "DigiKey"
    assert catalog.get("MISSING-ND").name == "DigiKey Part MISSING-ND"
    assert catalog.get("LIPO-500").name == "LiPo 500mAh"
    assert catalog.get("BADGE-1").image_url == "img/badge.png"

    saved = json.loads(settings.items_path.read_text())
    assert [row["id"] for row in saved] == ["BADGE-1", "LIPO-500", "296-1395-5-ND", "MISSING-ND"]
    cached = json.loads(settings.items_cache_path.read_text())
    assert [row["id"] for row in cached] == ["296-1395-5-ND", "MISSING-ND"]


def test_fresh_cache_skips_lookups(settings):
    _write(settings.digikey_csv_path, DIGIKEY_CSV)
    _write(
        settings.items_cache_path,
        json.dumps(
            [
                {"id": "296-1395-5-ND", "name": "NE555P", "price": "0.40", "stock": 1},
                {"id": "MISSING-ND", "name": "Mystery", "price": "1", "stock": 1},
            ]
        ),
    )
    client = FakeDigiKey({})

    catalog = load_catalog(settings, client, request_delay=0)

    assert client.lookups == []
    timer = catalog.get("296-1395-5-ND")
    assert timer.name == "NE555P"
    # Price and stock always come from the CSV
    assert timer.price == Decimal("0.55")
    assert timer.stock == 100


def test_stale_cache_is_ignored(settings):
    _write(settings.items_cache_path, json.dumps([{"id": "X", "name": "Old", "price": "1", "stock": 1}]))
    old = time.time() - 2 * 24 * 60 * 60
    os.utime(settings.items_cache_path, (old, old))

    assert read_enrichment_cache(settings.items_cache_path) == {}


@pytest.mark.parametrize(
    "content",
    [
        "[{\"id\": \"296-1395-5-ND\", \"name\": ",
        json.dumps([{"id": "296-1395-5-ND", "name": "NE555P", "price": "free", "stock": 1}]),
        json.dumps([{"name": "no id"}]),
        "42",
    ],
)
def test_unreadable_cache_is_a_miss(settings, content):
    _write(settings.digikey_csv_path, DIGIKEY_CSV)
    _write(settings.items_cache_path, content)
    client = FakeDigiKey({"296-1395-5-ND": {"name": "NE555P"}})

    assert read_enrichment_cache(settings.items_cache_path) == {}

    catalog = load_catalog(settings, client, request_delay=0)

    assert client.lookups == ["296-1395-5-ND", "MISSING-ND"]
    assert catalog.get("296-1395-5-ND").name == "NE555P"
    # The rebuilt cache replaces the broken one
    cached = json.loads(settings.items_cache_path.read_text())
    assert [row["id"] for row in cached] == ["296-1395-5-ND", "MISSING-ND"]


def test_duplicate_id_across_csvs(settings):
    _write(settings.custom_csv_path, CUSTOM_CSV)
    _write(settings.digikey_csv_path, DIGIKEY_CSV + "LIPO-500,3.00,5\n")
    client = FakeDigiKey({})

    with pytest.raises(CatalogError, match="Duplicate item id LIPO-500"):
        load_catalog(settings, client, request_delay=0)

    assert client.lookups == []
    assert not settings.items_path.exists()


def test_duplicate_id_within_one_csv(settings):
    _write(settings.custom_csv_path, CUSTOM_CSV + "BADGE-1,Second Badge,,,,,1.00,2\n")

    with pytest.raises(CatalogError, match="Duplicate item id BADGE-1"):
        load_catalog(settings, FakeDigiKey({}), request_delay=0)


@pytest.mark.parametrize(
    "row, message",
    [
        ("LIPO-500,LiPo,,,,,,12", "Missing price for item LIPO-500 at line 2 in custom.csv"),
        ("LIPO-500,LiPo,,,,,4.50,", "Missing stock for item LIPO-500 at line 2 in custom.csv"),
    ],
)
def test_missing_price_or_stock(settings, row, message):
    header = CUSTOM_CSV.splitlines()[0]
    _write(settings.custom_csv_path, f"{header}\n{row}\n")

    with pytest.raises(CatalogError, match=message):
        load_catalog(settings, FakeDigiKey({}), request_delay=0)


def test_no_csv_files_gives_empty_catalog(settings):
    catalog = load_catalog(settings, FakeDigiKey({}), request_delay=0)

    assert catalog.all() == []

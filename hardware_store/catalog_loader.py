"""Builds the catalog at startup.

``items.json`` wins when present, so stock levels survive restarts. On a
fresh data directory the catalog comes from ``custom.csv`` and
``digikey.csv``; DigiKey rows only carry id, price and stock and get the
rest of their metadata from the enrichment cache or the DigiKey API.
"""
import csv
import time
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional

import structlog
from pydantic import ValidationError as SchemaError

from .config import Settings
from .errors import CatalogError, PersistenceError
from .external_services import DigiKeyClient
from .schemas import Item
from .storage import CatalogStore, JsonFile

logger = structlog.get_logger(__name__)

CACHE_MAX_AGE_SECONDS = 24 * 60 * 60

METADATA_FIELDS = ("name", "description", "manufacturer", "datasheet", "image_url")


def _fallback_metadata(part_number: str) -> Dict[str, str]:
    return {
        "name": f"DigiKey Part {part_number}",
        "description": "No description available",
        "manufacturer": "DigiKey",
        "datasheet": "#",
        "image_url": "img/placeholder.svg",
    }


def _read_rows(path: Path) -> List[Dict[str, str]]:
    if not path.exists():
        logger.warning("csv_not_found", path=str(path))
        return []
    with path.open(newline="", encoding="utf-8-sig") as fh:
        return list(csv.DictReader(fh))


def _parse_price_and_stock(row: Dict[str, str], item_id: str, line: int, filename: str):
    if not (row.get("price") or "").strip():
        raise CatalogError(f"Missing price for item {item_id} at line {line} in {filename}")
    if not (row.get("stock") or "").strip():
        raise CatalogError(f"Missing stock for item {item_id} at line {line} in {filename}")
    try:
        price = Decimal(row["price"].strip())
        stock = int(row["stock"].strip())
    except (InvalidOperation, ValueError):
        raise CatalogError(f"Invalid price or stock for item {item_id} at line {line} in {filename}")
    if price < 0 or stock < 0:
        raise CatalogError(f"Negative price or stock for item {item_id} at line {line} in {filename}")
    return price, stock


def _split_tags(value: Optional[str]) -> List[str]:
    return [tag.strip() for tag in (value or "").split(",") if tag.strip()]


def read_custom_items(path: Path) -> List[Item]:
    items = []
    # Header is line 1
    for line, row in enumerate(_read_rows(path), start=2):
        item_id = (row.get("part number") or row.get("sku") or "").strip()
        if not item_id:
            continue
        price, stock = _parse_price_and_stock(row, item_id, line, path.name)
        items.append(
            Item(
                id=item_id,
                name=row.get("name") or item_id,
                description=row.get("description") or "",
                datasheet=row.get("datasheet") or "",
                manufacturer=row.get("manufacturer") or "",
                image_url=row.get("image url") or row.get("imageUrl") or "",
                category=row.get("category") or "Components",
                tags=_split_tags(row.get("tags")),
                supplier=row.get("supplier") or "Custom",
                price=price,
                stock=stock,
            )
        )
    logger.info("custom_items_loaded", count=len(items))
    return items


def read_digikey_rows(path: Path) -> List[Dict]:
    rows = []
    for line, row in enumerate(_read_rows(path), start=2):
        item_id = (row.get("digikey_part_number") or row.get("sku") or "").strip()
        if not item_id:
            continue
        price, stock = _parse_price_and_stock(row, item_id, line, path.name)
        rows.append(
            {
                "id": item_id,
                "price": price,
                "stock": stock,
                "category": row.get("category") or "Components",
                "tags": _split_tags(row.get("tags")),
            }
        )
    logger.info("digikey_items_loaded", count=len(rows))
    return rows


def read_enrichment_cache(path: Path, max_age: int = CACHE_MAX_AGE_SECONDS) -> Dict[str, Dict]:
    if not path.exists():
        return {}
    if time.time() - path.stat().st_mtime >= max_age:
        logger.info("enrichment_cache_stale", path=str(path))
        return {}
    cached = {}
    try:
        for row in JsonFile(path).read(default=[]):
            item = Item.model_validate(row)
            cached[item.id] = {field: getattr(item, field) for field in METADATA_FIELDS}
    except (PersistenceError, SchemaError, TypeError) as e:
        # The cache only saves API calls; an unreadable one is rebuilt
        logger.warning("enrichment_cache_unreadable", path=str(path), error=str(e))
        return {}
    return cached


def check_unique_ids(item_ids: List[str]) -> None:
    seen = set()
    for item_id in item_ids:
        if item_id in seen:
            raise CatalogError(f"Duplicate item id {item_id} in catalog sources")
        seen.add(item_id)


def enrich_digikey_items(
    rows: List[Dict],
    client: DigiKeyClient,
    cache: Dict[str, Dict],
    request_delay: float = 1.0,
) -> List[Item]:
    items = []
    for row in rows:
        part_number = row["id"]
        metadata = cache.get(part_number)
        if metadata is None:
            if request_delay:
                # DigiKey rate-limits bursts
                time.sleep(request_delay)
            metadata = client.get_product_details(part_number)
            if metadata is None:
                logger.warning("digikey_fallback_metadata", part_number=part_number)
                metadata = _fallback_metadata(part_number)
        items.append(Item(**row, supplier="DigiKey", **metadata))
    return items


def load_catalog(
    settings: Settings,
    client: Optional[DigiKeyClient] = None,
    request_delay: float = 1.0,
) -> CatalogStore:
    if settings.items_path.exists():
        store = CatalogStore.load(settings.items_path)
        logger.info("catalog_loaded", source=settings.items_path.name, count=len(store.all()))
        return store

    client = client or DigiKeyClient(
        settings.digikey_client_id,
        settings.digikey_client_secret,
        api_url=settings.digikey_api_url,
        token_url=settings.digikey_token_url,
    )
    custom_items = read_custom_items(settings.custom_csv_path)
    digikey_rows = read_digikey_rows(settings.digikey_csv_path)
    check_unique_ids([item.id for item in custom_items] + [row["id"] for row in digikey_rows])
    digikey_items = enrich_digikey_items(
        digikey_rows,
        client,
        read_enrichment_cache(settings.items_cache_path),
        request_delay=request_delay,
    )

    store = CatalogStore(JsonFile(settings.items_path), custom_items + digikey_items)
    store.save()
    JsonFile(settings.items_cache_path).write(
        [item.model_dump(mode="json", by_alias=True) for item in digikey_items]
    )
    logger.info("catalog_built", count=len(store.all()))
    return store

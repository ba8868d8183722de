from typing import List

from fastapi import APIRouter, Depends

from ..deps import get_catalog
from ..errors import NotFound
from ..schemas import Item
from ..storage import CatalogStore

router = APIRouter(prefix="/items", tags=["Items"])


@router.get("", response_model=List[Item])
def list_items(catalog: CatalogStore = Depends(get_catalog)):
    return catalog.all()


@router.get("/{item_id}", response_model=Item)
def get_item(item_id: str, catalog: CatalogStore = Depends(get_catalog)):
    item = catalog.get(item_id)
    if item is None:
        raise NotFound("Item not found")
    return item

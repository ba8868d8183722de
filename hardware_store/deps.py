from fastapi import Request

from .notifications import NotificationDispatcher
from .orders import OrderService
from .storage import CatalogStore


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_catalog(request: Request) -> CatalogStore:
    return request.app.state.catalog


def get_notifier(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier

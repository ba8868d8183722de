from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pywebpush import webpush

from .catalog_loader import load_catalog
from .config import Settings
from .errors import StoreError
from .external_services import DigiKeyClient
from .inventory import StockLedger
from .logs import configure_logging
from .notifications import NotificationDispatcher, VapidKeys
from .orders import Dispatcher, OrderService
from .routers import item_router, notification_router, order_router
from .storage import OrderStore, SubscriptionStore

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    dispatcher: Optional[Dispatcher] = None,
    digikey_client: Optional[DigiKeyClient] = None,
    push_transport: Callable[..., Any] = webpush,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for key in settings.missing_required():
            logger.error("missing_config", key=key)

        catalog = load_catalog(settings, digikey_client)
        orders = OrderStore.load(settings.orders_path)
        subscriptions = SubscriptionStore.load(settings.subscriptions_path)
        logger.info(
            "data_loaded",
            items=len(catalog.all()),
            orders=len(orders.all()),
            subscriptions=len(subscriptions.all()),
        )

        notifier = NotificationDispatcher(
            subscriptions,
            VapidKeys.from_settings(settings),
            settings.contact_email,
            transport=push_transport,
        )
        app.state.settings = settings
        app.state.catalog = catalog
        app.state.notifier = notifier
        app.state.order_service = OrderService(
            catalog,
            orders,
            StockLedger(catalog),
            dispatcher or notifier,
            settings.admin_code,
        )
        logger.info("server_ready", api_prefix=settings.api_prefix)
        yield

    app = FastAPI(
        title="Hackathon Hardware Store",
        description="Inventory and order management for hackathon hardware giveaways",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})

    app.include_router(item_router.router, prefix=settings.api_prefix)
    app.include_router(order_router.router, prefix=settings.api_prefix)
    app.include_router(notification_router.router, prefix=settings.api_prefix)

    @app.get("/")
    def root():
        return {
            "service": "Hackathon Hardware Store",
            "status": "running",
            "version": "1.0.0",
        }

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "service": "hardware-store"
        }

    return app


def run() -> None:
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()

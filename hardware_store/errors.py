"""Error taxonomy shared by the stores, the order service and the routers.

Every error maps to one HTTP status and renders as a JSON body with a
human-readable ``error`` field.
"""
from typing import Any, Dict, List, Optional


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(StoreError):
    status_code = 400

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.details = details or []

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        if self.details:
            body["details"] = self.details
        return body


class StockError(StoreError):
    status_code = 400

    def __init__(self, shortfalls: List[Dict[str, Any]]):
        super().__init__("Some items are out of stock or not available in requested quantity")
        self.shortfalls = shortfalls

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, "shortfalls": self.shortfalls}


class NotFound(StoreError):
    status_code = 404


class Forbidden(StoreError):
    status_code = 403


class ConflictError(StoreError):
    status_code = 409


class PersistenceError(StoreError):
    status_code = 500


class CatalogError(Exception):
    """Raised at startup when the source CSV files cannot be turned into a catalog."""

"""
Client for the DigiKey product API, used to fill in catalog metadata
"""
import time
from typing import Dict, Optional

import requests
import structlog

logger = structlog.get_logger(__name__)

# Refresh the token this many seconds before DigiKey says it expires
TOKEN_EXPIRY_MARGIN = 300


class DigiKeyClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_url: str = "https://api.digikey.com",
        token_url: str = "https://api.digikey.com/v1/oauth2/token",
        session: Optional[requests.Session] = None,
        timeout: int = 5,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_url = api_url.rstrip("/")
        self.token_url = token_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_access_token(self) -> str:
        if self._token and time.time() < self._token_expires_at:
            return self._token

        logger.info("digikey_token_requested")
        response = self.session.post(
            self.token_url,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        self._token = data["access_token"]
        self._token_expires_at = time.time() + int(data.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN
        return self._token

    def get_product_details(self, part_number: str) -> Optional[Dict]:
        """Return catalog metadata for a DigiKey part, or None if it can't be fetched."""
        if not self.configured:
            return None
        try:
            token = self.get_access_token()
            response = self.session.get(
                f"{self.api_url}/products/v4/search/{part_number}/productdetails",
                headers={
                    "Authorization": f"Bearer {token}",
                    "X-DIGIKEY-Client-Id": self.client_id,
                    "X-DIGIKEY-Locale-Site": "US",
                    "X-DIGIKEY-Locale-Language": "en",
                    "X-DIGIKEY-Locale-Currency": "USD",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            product = response.json().get("Product")
        except (requests.exceptions.RequestException, KeyError, ValueError) as e:
            logger.error("digikey_lookup_failed", part_number=part_number, error=str(e))
            return None

        if not product:
            return None
        return {
            "name": product.get("ManufacturerProductNumber") or f"DigiKey Part {part_number}",
            "description": (product.get("Description") or {}).get("ProductDescription")
            or "No description available",
            "manufacturer": (product.get("Manufacturer") or {}).get("Name") or "DigiKey",
            "datasheet": product.get("DatasheetUrl") or "#",
            "image_url": product.get("PhotoUrl") or "img/placeholder.svg",
        }

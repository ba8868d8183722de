import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    api_prefix: str = "/hackathon"

    # No default: the admin gate stays closed until one is configured
    admin_code: str = ""

    data_dir: Path = Path("data")

    digikey_client_id: str = ""
    digikey_client_secret: str = ""
    digikey_api_url: str = "https://api.digikey.com"
    digikey_token_url: str = "https://api.digikey.com/v1/oauth2/token"

    vapid_public_key: str = ""
    vapid_private_key: str = ""
    contact_email: str = "example@yourdomain.org"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            api_prefix=os.getenv("API_PREFIX", "/hackathon"),
            admin_code=os.getenv("ADMIN_CODE", ""),
            data_dir=Path(os.getenv("DATA_DIR", "data")),
            digikey_client_id=os.getenv("DIGIKEY_CLIENT_ID", ""),
            digikey_client_secret=os.getenv("DIGIKEY_CLIENT_SECRET", ""),
            digikey_api_url=os.getenv("DIGIKEY_API_URL", "https://api.digikey.com"),
            digikey_token_url=os.getenv(
                "DIGIKEY_TOKEN_URL", "https://api.digikey.com/v1/oauth2/token"
            ),
            vapid_public_key=os.getenv("VAPID_PUBLIC_KEY", ""),
            vapid_private_key=os.getenv("VAPID_PRIVATE_KEY", ""),
            contact_email=os.getenv("CONTACT_EMAIL", "example@yourdomain.org"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def missing_required(self) -> List[str]:
        required = {
            "ADMIN_CODE": self.admin_code,
            "DIGIKEY_CLIENT_ID": self.digikey_client_id,
            "DIGIKEY_CLIENT_SECRET": self.digikey_client_secret,
        }
        return [name for name, value in required.items() if not value]

    @property
    def items_path(self) -> Path:
        return self.data_dir / "items.json"

    @property
    def items_cache_path(self) -> Path:
        return self.data_dir / "items_cache.json"

    @property
    def orders_path(self) -> Path:
        return self.data_dir / "orders.json"

    @property
    def subscriptions_path(self) -> Path:
        return self.data_dir / "subscriptions.json"

    @property
    def custom_csv_path(self) -> Path:
        return self.data_dir / "custom.csv"

    @property
    def digikey_csv_path(self) -> Path:
        return self.data_dir / "digikey.csv"

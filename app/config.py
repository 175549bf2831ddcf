import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class Settings:
    tabby_secret_key: str = ""
    tabby_public_key: str = ""
    tabby_merchant_code: str = ""
    stripe_secret_key: str = ""
    success_url: str = "https://your-site.com/thank-you"
    failure_url: str = "https://your-site.com/payment-failed"
    cancel_url: str = "https://your-site.com/payment-cancelled"
    ghl_api_key: str = ""
    ghl_location_id: str = ""
    tabby_api_url: str = "https://api.tabby.ai"
    ghl_api_url: str = "https://services.leadconnectorhq.com"
    ghl_api_version: str = "2021-07-28"
    ghl_product_tag: str = "ems-suit"
    http_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            tabby_secret_key=_env("TABBY_SECRET_KEY"),
            tabby_public_key=_env("TABBY_PUBLIC_KEY"),
            tabby_merchant_code=_env("TABBY_MERCHANT_CODE"),
            stripe_secret_key=_env("STRIPE_SECRET_KEY"),
            success_url=_env("SUCCESS_URL", defaults.success_url),
            failure_url=_env("FAILURE_URL", defaults.failure_url),
            cancel_url=_env("CANCEL_URL", defaults.cancel_url),
            ghl_api_key=_env("GHL_API_KEY"),
            ghl_location_id=_env("GHL_LOCATION_ID"),
            tabby_api_url=_env("TABBY_API_URL", defaults.tabby_api_url).rstrip("/"),
            ghl_api_url=_env("GHL_API_URL", defaults.ghl_api_url).rstrip("/"),
            ghl_api_version=_env("GHL_API_VERSION", defaults.ghl_api_version),
            ghl_product_tag=_env("GHL_PRODUCT_TAG", defaults.ghl_product_tag),
            http_timeout=float(_env("HTTP_TIMEOUT_SECONDS", "30")),
        )

    @property
    def stripe_enabled(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def tabby_enabled(self) -> bool:
        return bool(self.tabby_secret_key and self.tabby_public_key and self.tabby_merchant_code)

    @property
    def crm_enabled(self) -> bool:
        return bool(self.ghl_api_key and self.ghl_location_id)

    def warnings(self) -> list:
        """Describe providers that are only partly configured."""
        found = []
        tabby_keys = (self.tabby_secret_key, self.tabby_public_key, self.tabby_merchant_code)
        if any(tabby_keys) and not all(tabby_keys):
            found.append("Tabby is partially configured; TABBY_SECRET_KEY, "
                         "TABBY_PUBLIC_KEY and TABBY_MERCHANT_CODE are all required")
        if bool(self.ghl_api_key) != bool(self.ghl_location_id):
            found.append("GHL is partially configured; CRM integration is disabled")
        return found


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()

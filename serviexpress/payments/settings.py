# serviexpress/payments/settings.py
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class WompiSettings:
    """
    Wompi gateway configuration.

    integrity_secret signs checkout requests, events_secret signs webhook
    events. Neither may ever be rendered to the browser.
    """

    public_key: str = ""
    integrity_secret: str = ""
    events_secret: Optional[str] = None
    currency: str = "COP"
    redirect_url: str = ""
    checkout_url: str = "https://checkout.wompi.co/p/"
    use_widget: bool = True
    delivery_fee_cents: int = 1_000_000   # $10.000 COP
    min_amount_cents: int = 500_000       # $5.000 COP
    expiration_minutes: int = 20

    @classmethod
    def from_env(cls) -> "WompiSettings":
        return cls(
            public_key=os.getenv("WOMPI_PUBLIC_KEY", ""),
            integrity_secret=os.getenv("WOMPI_INTEGRITY_SECRET", ""),
            events_secret=os.getenv("WOMPI_EVENTS_SECRET") or None,
            currency=os.getenv("WOMPI_CURRENCY", "COP"),
            redirect_url=os.getenv("WOMPI_REDIRECT_URL", "http://localhost:8000/pagos/wompi/callback"),
            checkout_url=os.getenv("WOMPI_CHECKOUT_URL", "https://checkout.wompi.co/p/"),
            use_widget=_env_bool("WOMPI_USE_WIDGET", True),
            delivery_fee_cents=int(os.getenv("WOMPI_DELIVERY_FEE_CENTS", "1000000")),
            min_amount_cents=int(os.getenv("WOMPI_MIN_AMOUNT_CENTS", "500000")),
            expiration_minutes=int(os.getenv("WOMPI_EXPIRATION_MINUTES", "20")),
        )


@lru_cache
def get_wompi_settings() -> WompiSettings:
    return WompiSettings.from_env()

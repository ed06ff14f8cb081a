# serviexpress/payments/signature.py
"""
Formatting and hashing helpers for the Wompi checkout and event signatures.

Nothing here talks to the network. Wompi's integrity signature is the SHA-256
hex digest of ``reference + amount_in_cents + currency [+ expiration] + secret``;
an event checksum is the SHA-256 of the values listed in
``signature.properties`` followed by ``timestamp`` and the events secret.
"""
import hashlib
import time
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional
from urllib.parse import urlencode


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def to_cents(amount: Optional[Decimal]) -> int:
    """COP with decimals -> integer cents, rounding half up."""
    if amount is None:
        return 0
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))


def build_reference(request_id: int, now_millis: Optional[int] = None) -> str:
    if now_millis is None:
        now_millis = int(time.time() * 1000)
    return f"SOL-{request_id}-{now_millis}"


def expiration_time(now: Optional[datetime] = None, minutes: int = 20) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(minutes=minutes)


def format_iso_utc(moment: datetime) -> str:
    """2024-05-01T13:45:00.123Z, milliseconds and a literal Z."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def integrity_signature(
    reference: str,
    amount_in_cents: int,
    currency: str,
    secret: str,
    expiration_iso: Optional[str] = None,
) -> str:
    base = f"{reference}{amount_in_cents}{currency}"
    if expiration_iso:
        base += expiration_iso
    return sha256_hex(base + secret)


def _lookup(data: Mapping[str, Any], dotted: str) -> Any:
    current: Any = data
    for part in dotted.split("."):
        if not isinstance(current, Mapping) or part not in current:
            raise KeyError(dotted)
        current = current[part]
    return current


def event_checksum(event: Mapping[str, Any], secret: str) -> str:
    """
    Checksum Wompi expects for an event body. Property paths such as
    ``transaction.id`` are resolved under ``event["data"]``.
    Raises KeyError when the event lacks a referenced property.
    """
    signature = event.get("signature") or {}
    properties = signature.get("properties") or []
    data = event.get("data") or {}
    values = "".join(str(_lookup(data, prop)) for prop in properties)
    return sha256_hex(f"{values}{event.get('timestamp', '')}{secret}")


def checkout_url(
    base_url: str,
    public_key: str,
    currency: str,
    amount_in_cents: int,
    reference: str,
    signature: str,
    redirect_url: Optional[str] = None,
    expiration_iso: Optional[str] = None,
    customer_email: Optional[str] = None,
) -> str:
    """Web checkout redirect URL (Wompi's /p/ endpoint with query parameters)."""
    params = {
        "public-key": public_key,
        "currency": currency,
        "amount-in-cents": amount_in_cents,
        "reference": reference,
        "signature:integrity": signature,
    }
    if redirect_url:
        params["redirect-url"] = redirect_url
    if expiration_iso:
        params["expiration-time"] = expiration_iso
    if customer_email:
        params["customer-data:email"] = customer_email
    return f"{base_url}?{urlencode(params)}"

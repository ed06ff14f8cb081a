# serviexpress/api/templating.py
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def cop(cents_or_amount, cents: bool = False) -> str:
    """1234567.5 -> '$1.234.568' (Colombian grouping, no decimals)."""
    if cents_or_amount is None:
        return "$0"
    value = float(cents_or_amount) / 100 if cents else float(cents_or_amount)
    return "$" + f"{value:,.0f}".replace(",", ".")


templates.env.filters["cop"] = cop


def render(request: Request, name: str, user=None, status_code: int = 200, **context):
    """
    Render a page. `?error=` and `?success=` left by a redirect are picked up
    unless the caller passes its own.
    """
    context.setdefault("error", request.query_params.get("error"))
    context.setdefault("success", request.query_params.get("success"))
    context["user"] = user
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def redirect(url: str, error: Optional[str] = None, success: Optional[str] = None) -> RedirectResponse:
    params = {}
    if error:
        params["error"] = error
    if success:
        params["success"] = success
    if params:
        url = f"{url}{'&' if '?' in url else '?'}{urlencode(params)}"
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)

# serviexpress/api/routes/home.py
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from serviexpress.api.templating import render
from serviexpress.core.security import get_current_user
from serviexpress.db.base import get_db
from serviexpress.db.models.user import User
from serviexpress.services import catalog, ratings

router = APIRouter(tags=["home"])


@router.get("/", response_class=HTMLResponse)
@router.get("/index", response_class=HTMLResponse)
def home(
    request: Request,
    page: int = 0,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_current_user),
):
    pagina = catalog.list_available_page(db, max(page, 0))
    return render(
        request,
        "index.html",
        user,
        services=pagina.items,
        current_page=pagina.number,
        total_pages=pagina.total_pages,
        top_providers=ratings.top_providers(db, n=3, min_reviews=1),
    )

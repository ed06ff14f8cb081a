from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from serviexpress.core import config
from serviexpress.core.errors import ConflictError, NotFoundError, PermissionDeniedError
from serviexpress.core.logging_config import setup_logging
from serviexpress.db.base import SessionLocal, engine
from serviexpress.db.init_db import create_tables, seed_defaults
from serviexpress.api.routes import admin as admin_router
from serviexpress.api.routes import auth as auth_router
from serviexpress.api.routes import calificaciones as calificaciones_router
from serviexpress.api.routes import checkout as checkout_router
from serviexpress.api.routes import cliente as cliente_router
from serviexpress.api.routes import home as home_router
from serviexpress.api.routes import pagos_api as pagos_api_router
from serviexpress.api.routes import proveedor as proveedor_router
from serviexpress.api.routes import servicio as servicio_router
from serviexpress.api.routes import servicios_api as servicios_api_router
from serviexpress.api.routes import solicitud as solicitud_router

setup_logging(config.LOG_LEVEL)

app = FastAPI(title="ServiExpress")

app.add_middleware(
    SessionMiddleware,
    secret_key=config.SECRET_KEY,
    max_age=config.SESSION_MAX_AGE,
    same_site="lax",
    https_only=False,
)


@app.on_event("startup")
def startup():
    create_tables(engine)
    db = SessionLocal()
    try:
        seed_defaults(db)
    finally:
        db.close()


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PermissionDeniedError)
def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


app.include_router(home_router.router)
app.include_router(auth_router.router)
app.include_router(admin_router.router)
app.include_router(servicio_router.router)
app.include_router(cliente_router.router)
app.include_router(proveedor_router.router)
app.include_router(solicitud_router.router)
app.include_router(calificaciones_router.router)
app.include_router(checkout_router.router)
app.include_router(servicios_api_router.router)
app.include_router(pagos_api_router.router)

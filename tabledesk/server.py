from __future__ import annotations
import logging
from typing import Optional
from urllib.parse import quote

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse, RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_303_SEE_OTHER

from .config import Settings, configure_logging
from .deps import get_db
from .errors import NotAuthenticated, TableDeskError, describe_db_error
from .infra.sql import make_async_engine
from .infra.timings import snapshot
from .payments import HostedCheckout
from .routes import auth as auth_routes
from .routes import database as database_routes
from .routes import payment as payment_routes
from .routes import web as web_routes

logger = logging.getLogger(__name__)


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api")


def install_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(NotAuthenticated)
    async def _not_authenticated(request: Request, exc: NotAuthenticated):
        if _is_api(request):
            return ORJSONResponse(exc.to_envelope(), status_code=401)
        # web pages bounce to the login form
        dest = quote(request.url.path, safe="/")
        return RedirectResponse(url=f"/login?next={dest}",
                                status_code=HTTP_303_SEE_OTHER)

    @app.exception_handler(TableDeskError)
    async def _tabledesk_error(request: Request, exc: TableDeskError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method,
                         request.url.path, exc.message, exc.error)
        return ORJSONResponse(exc.to_envelope(), status_code=exc.status_code)

    @app.exception_handler(SQLAlchemyError)
    async def _db_error(request: Request, exc: SQLAlchemyError):
        logger.error("%s %s database error: %s", request.method,
                     request.url.path, exc)
        return ORJSONResponse(
            {"success": False, "message": "Database error",
             "error": describe_db_error(exc)},
            status_code=500,
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return ORJSONResponse(
            {"success": False, "message": str(exc.detail)},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request,
                                exc: RequestValidationError):
        return ORJSONResponse(
            {"success": False, "message": "Invalid request",
             "error": [
                 {"loc": list(e.get("loc", ())), "msg": e.get("msg")}
                 for e in exc.errors()
             ]},
            status_code=400,
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    engine, SessionAsync = make_async_engine(settings.database_url)

    app = FastAPI(
        title="TableDesk",
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = SessionAsync
    app.state.payments = HostedCheckout(
        secret_key=settings.flutterwave_secret_key,
        base_url=settings.flutterwave_base_url,
    )
    app.state.http = None

    # ---
    # startup / shutdown
    # ---
    @app.on_event("startup")
    async def _say_hello():
        logger.info("TableDesk is starting up (schema=%s, ad-hoc mode=%s)",
                    settings.db_schema, settings.adhoc_query_mode)

    @app.on_event("startup")
    async def _http_client_start():
        app.state.http = httpx.AsyncClient(
            timeout=settings.http_timeout,
            limits=httpx.Limits(
                max_connections=64, max_keepalive_connections=16
            ),
        )

    @app.on_event("shutdown")
    async def _http_client_stop():
        http = getattr(app.state, "http", None)
        if http is not None:
            await http.aclose()
            app.state.http = None

    @app.on_event("shutdown")
    async def _engine_stop():
        await engine.dispose()

    install_error_handlers(app)

    @app.get("/health")
    async def health(db: AsyncSession = Depends(get_db)):
        try:
            await db.execute(text("SELECT 1"))
            database = "ok"
        except SQLAlchemyError as e:
            logger.warning("health check: database unreachable: %s", e)
            database = describe_db_error(e)
        return {
            "success": database == "ok",
            "database": database,
            "timings": snapshot(),
        }

    app.include_router(auth_routes.router)
    app.include_router(database_routes.router)
    # before web: /payment/callback must win over /payment/{outcome}
    app.include_router(payment_routes.router)
    app.include_router(web_routes.router)

    return app

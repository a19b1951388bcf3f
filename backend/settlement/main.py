import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from settlement.core.config import settings
from settlement.core.database import init_db
from settlement.core.errors import SettlementError
from settlement.routes.auth import router as auth_router
from settlement.routes.credits import router as credits_router
from settlement.routes.deposits import router as deposits_router
from settlement.routes.health import router as health_router
from settlement.routes.notifications import router as notifications_router
from settlement.routes.orders import router as orders_router
from settlement.routes.pending_settlements import router as pending_settlements_router
from settlement.routes.settlements import router as settlements_router
from settlement.routes.status_history import router as status_history_router


logger = logging.getLogger(__name__)


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__},
    )


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Settlement & Credit API", version="0.1.0")

    origins = settings.cors_origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(SettlementError, settlement_error_handler)

    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(orders_router, prefix="/orders", tags=["orders"])
    app.include_router(deposits_router, prefix="/orders", tags=["deposits"])
    app.include_router(credits_router, prefix="/credits", tags=["credits"])
    app.include_router(settlements_router, prefix="/settlements", tags=["settlements"])
    app.include_router(pending_settlements_router, prefix="/pending-settlements", tags=["pending-settlements"])
    app.include_router(status_history_router, prefix="/status-history", tags=["status-history"])
    app.include_router(notifications_router, prefix="/notifications", tags=["notifications"])

    return app


app = create_app()

# Tablas sin Alembic sólo en desarrollo y tests
if settings.env in {"dev", "test"}:
    init_db()

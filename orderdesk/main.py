# orderdesk/main.py
"""
OrderDesk - Order Management API Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import uvicorn

from .api.v1.endpoints import batch_orders, orders
from .config.database import check_database_health, cleanup_database, get_db, init_database
from .config.logging import get_logger, setup_logging
from .config.settings import get_settings
from .core.exceptions import custom_exception_handler
from .core.middleware import register_middleware
from .utils.date_utils import utc_now

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} {settings.VERSION}...")
    init_database()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    cleanup_database()


async def validation_exception_handler(request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation errors with the standard error body"""
    get_logger("api").info(f"{request.method} {request.url.path} rejected: VALIDATION_ERROR (422)")
    return JSONResponse(
        status_code=422,
        content={
            "error": True,
            "error_code": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "status_code": 422,
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


def create_app(with_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Multi-tenant order placement and lifecycle management",
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if with_lifespan else None
    )

    register_middleware(app)

    app.add_exception_handler(HTTPException, custom_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Batch routes first so /orders/batch/* never matches an order id route
    app.include_router(
        batch_orders.router,
        prefix=f"{settings.API_PREFIX}/orders/batch",
        tags=["Batch Orders"]
    )
    app.include_router(
        orders.router,
        prefix=f"{settings.API_PREFIX}/orders",
        tags=["Orders"]
    )

    @app.get("/health")
    def health_check(db: Session = Depends(get_db)):
        """Health check endpoint"""
        database_ok = check_database_health(db.get_bind())
        return {
            "status": "healthy" if database_ok else "degraded",
            "database": "ok" if database_ok else "unavailable",
            "timestamp": utc_now().isoformat() + "Z",
            "version": settings.VERSION
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "orderdesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )

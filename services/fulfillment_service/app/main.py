"""FastAPI application for the Fulfillment Service."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from libs.common.logging import configure_logging, get_logger
from services.fulfillment_service.errors import FulfillmentError
from services.fulfillment_service.routers import admin_router, orders_router

logger = get_logger(__name__)


async def fulfillment_error_handler(
    request: Request, exc: FulfillmentError
) -> JSONResponse:
    """Render business errors as ``{"code", "message"}`` with their HTTP status."""
    if exc.status_code >= 500:
        logger.warning(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure the Fulfillment Service FastAPI app."""
    configure_logging()

    app = FastAPI(
        title="Order Fulfillment Service",
        version="0.1.0",
        description="Order creation, stock reservation, status workflow and payment tracking.",
    )

    app.add_exception_handler(FulfillmentError, fulfillment_error_handler)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "fulfillment"}

    # Storefront routes (checkout, tracking, delivery zones)
    app.include_router(orders_router)

    # Back-office routes (status workflow, inventory, payments)
    app.include_router(admin_router, prefix="/admin")

    return app


app = create_app()

"""Mock cart service application.

Serves the remote cart service contract from memory so the client engine
can be developed and integration-tested without the real backend.

Usage:
    uvicorn storefront.mock_service.app:app --port 8000 --root-path /api
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.mock_service.backend import BackendError, MockCartBackend
from storefront.mock_service.routes import cart_router

DEMO_CATALOGUE = {
    "prod-tee": 500.0,
    "prod-mug": 250.0,
    "prod-poster": 120.0,
}

DEMO_COUPONS = [
    {"id": "cpn-save10", "code": "SAVE10", "type": "percentage", "value": 10, "maximumDiscount": 100},
    {"id": "cpn-flat50", "code": "FLAT50", "type": "fixed", "value": 50, "minimumAmount": 300},
    {"id": "cpn-freeship", "code": "FREESHIP", "type": "free_shipping", "value": 0},
]


def create_app(backend: MockCartBackend | None = None) -> FastAPI:
    app = FastAPI(
        title="Storefront Mock Cart Service",
        description="In-memory implementation of the cart service contract",
    )
    app.state.backend = backend or MockCartBackend(catalogue=DEMO_CATALOGUE, coupons=DEMO_COUPONS)

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=422, content={"message": "Invalid request"})

    app.include_router(cart_router)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok"})

    return app


app = create_app()

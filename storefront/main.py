# storefront/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from storefront.config import get_settings
from storefront.database import init_db
from storefront.utils.errors import (
    CheckoutValidationError, OrderNotFound, StorefrontError, Unauthenticated, UpstreamFailure,
    SignatureRejected,
)

load_dotenv()

# Routers
from storefront.routes.cart import router as cart_router
from storefront.routes.checkout import router as checkout_router
from storefront.routes.orders import router as orders_router
from storefront.routes.webhooks import router as webhooks_router

logger = logging.getLogger(__name__)

# Status codes for the error taxonomy; anything else is a 500
ERROR_STATUS = (
    (Unauthenticated, 401),
    (CheckoutValidationError, 400),
    (SignatureRejected, 403),
    (OrderNotFound, 404),
    (UpstreamFailure, 500),
)


def _status_for(exc: StorefrontError) -> int:
    for cls, code in ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return 500


def create_app(create_tables: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if create_tables:
            init_db()
        yield

    app = FastAPI(title="Storefront Checkout API", version="1.0.0", lifespan=lifespan)

    # CORS Configuration
    origins = ["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:8888"]
    frontend_url = get_settings().FRONTEND_URL
    if frontend_url:
        origins.append(frontend_url)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        code = _status_for(exc)
        if code == 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        body = {"error": exc.message}
        if code == 500 and exc.details is not None:
            body["details"] = exc.details
        headers = {"WWW-Authenticate": "Bearer"} if code == 401 else None
        return JSONResponse(status_code=code, content=body, headers=headers)

    # Register routers
    app.include_router(checkout_router)
    app.include_router(webhooks_router)
    app.include_router(cart_router)
    app.include_router(orders_router)

    @app.get("/")
    def read_root():
        return {"message": "Storefront checkout API is running"}

    return app


app = create_app()

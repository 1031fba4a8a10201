"""
Gestionnaires d'exceptions utilisés par la factory.
- CheckoutError: {"error": message} + en-têtes CORS du checkout (400 par défaut)
- StoreError non gérée: 503 JSON (Supabase indisponible)
- HTTPException: JSON {"detail": ...} pour les clients programmatiques
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from cursoshub.app_setup.middlewares import CHECKOUT_CORS_HEADERS
from cursoshub.errors import CheckoutError, StoreError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error(request: Request, exc: CheckoutError):
        logger.info("checkout.error code=%s path=%s message=%s", exc.code, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
            headers=CHECKOUT_CORS_HEADERS,
        )

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError):
        logger.error("store.error path=%s error=%s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Service de données indisponible"})

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

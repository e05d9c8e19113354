"""
FastAPI application exposing the wallet engine.

Usage:
    wallet-api                      # via the console script
    uvicorn wallet_api.app:app      # directly
"""

import os
import sys

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from wallet_api.routers import data, trading, wallet
from wallet_api.session import http_error
from wallet_core.errors import WalletError

# =============================================================================
# CONFIGURATION
# =============================================================================
API_HOST = os.getenv("WALLET_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("WALLET_API_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Send loguru output to stderr at the given level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def wallet_error_handler(request: Request, exc: WalletError) -> JSONResponse:
    error = http_error(exc)
    if error.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


def create_app() -> FastAPI:
    app = FastAPI(title="Wallet Engine API")
    app.add_exception_handler(WalletError, wallet_error_handler)
    app.include_router(wallet.router, prefix="/wallet", tags=["wallet"])
    app.include_router(trading.router, prefix="/trading", tags=["trading"])
    app.include_router(data.router, prefix="/data", tags=["data"])
    return app


app = create_app()


def run() -> None:
    configure_logging()
    logger.info(f"Starting wallet API on {API_HOST}:{API_PORT}")
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    run()

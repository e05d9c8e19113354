"""API routers."""

from wallet_api.routers import (
    data as data,
    trading as trading,
    wallet as wallet,
)

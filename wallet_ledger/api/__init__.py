"""
Wallet Ledger API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import uvicorn

from .dependencies import WalletSystem, get_wallet_system, shutdown_wallet_system
from .wallet import router as wallet_router
from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    yield
    shutdown_wallet_system()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Wallet Ledger API",
        description="Wallet balances with an append-only transaction ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.include_router(wallet_router, prefix="/v1/wallet", tags=["Wallet"])

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "wallet_ledger_api",
            "version": __version__
        }

    @app.get("/")
    def get_api_info():
        """Get API information"""
        return {
            "name": "Wallet Ledger API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "create_account": "/v1/wallet/account",
                "top_up": "/v1/wallet/top-up",
                "charge": "/v1/wallet/charge",
                "balance": "/v1/wallet/balance/{account_id}",
                "transactions": "/v1/wallet/transactions/{account_id}",
                "reconcile": "/v1/wallet/reconcile/{account_id}",
            }
        }

    return app


app = create_app()


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "wallet_ledger.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )


__all__ = ["app", "create_app", "run_server", "WalletSystem", "get_wallet_system"]

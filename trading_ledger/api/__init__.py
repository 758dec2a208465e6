"""
Trading Ledger API Application Factory
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .accounts import router as accounts_router
from .trades import router as trades_router
from .funding import router as funding_router
from .verification import router as verification_router
from .admin import router as admin_router
from .markets import router as markets_router
from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Trading Ledger API",
        description="Account balances, trade settlement and approval workflows",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(accounts_router, prefix="/api", tags=["Accounts"])
    app.include_router(trades_router, prefix="/api", tags=["Trades"])
    app.include_router(funding_router, prefix="/api", tags=["Funding"])
    app.include_router(verification_router, prefix="/api/verification", tags=["Verification"])
    app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])
    app.include_router(markets_router, prefix="/api", tags=["Markets"])

    # Health check endpoint
    @app.get("/api/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "ok"}

    return app


def run_server(host: str = None, port: int = None) -> None:
    """Configure logging and serve the API with uvicorn"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    uvicorn.run(create_app(), host=host or config.api_host, port=port or config.api_port)


app = create_app()

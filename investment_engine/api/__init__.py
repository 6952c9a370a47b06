"""
Investment Engine API Application Factory
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .plans import router as plans_router
from .transactions import router as transactions_router, users_router
from .admin import router as admin_router
from .. import __version__
from ..system import InvestmentSystem


def create_app(system: Optional[InvestmentSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Investment Engine API",
        description="Investment plans, deposits and withdrawals with admin approvals",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.system = system or InvestmentSystem()

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(plans_router, prefix="/plans", tags=["Plans"])
    app.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
    app.include_router(users_router, prefix="/users", tags=["Balances"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "investment_engine_api",
            "version": __version__,
            "plans": len(app.state.system.catalog),
        }

    return app

import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from finanalyst.core.config import Settings, get_settings
from finanalyst.core.errors import register_error_handlers
from finanalyst.core.security import TokenSigner
from finanalyst.db.store import TransactionStore, UserStore
from finanalyst.routers import auth, health, transactions as transactions_router
from finanalyst.utils.analyzer import TransactionAnalyzer
from finanalyst.utils.auth_service import AuthService

logger = logging.getLogger(__name__)


def build_stores(settings: Settings):
    """Pick the record store implementation named by STORE_BACKEND."""
    if settings.STORE_BACKEND == "memory":
        from finanalyst.db.memory import InMemoryTransactionStore, InMemoryUserStore

        return InMemoryTransactionStore(), InMemoryUserStore()

    if settings.STORE_BACKEND == "dynamo":
        from finanalyst.db.dynamo import DynamoTransactionStore, DynamoUserStore, get_dynamo_resource

        dynamodb = get_dynamo_resource(settings)
        return (
            DynamoTransactionStore(dynamodb.Table(settings.DYNAMO_TRANSACTIONS_TABLE)),
            DynamoUserStore(dynamodb.Table(settings.DYNAMO_USERS_TABLE)),
        )

    raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")


def create_app(
    settings: Optional[Settings] = None,
    transactions: Optional[TransactionStore] = None,
    users: Optional[UserStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if transactions is None or users is None:
        default_transactions, default_users = build_stores(settings)
        if transactions is None:
            transactions = default_transactions
        if users is None:
            users = default_users

    app = FastAPI(title=settings.PROJECT_NAME, debug=settings.DEBUG)

    signer = TokenSigner(
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        expire_days=settings.JWT_ACCESS_TOKEN_EXPIRE_DAYS,
        clock=clock,
    )
    app.state.settings = settings
    app.state.transactions = transactions
    app.state.users = users
    app.state.auth = AuthService(users, signer)
    app.state.analyzer = TransactionAnalyzer()

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )
    register_error_handlers(app)

    # Root endpoint
    @app.get("/")
    def root():
        return {"message": f"Welcome to {settings.PROJECT_NAME} API"}

    # Register routers
    app.include_router(health.router, prefix=f"{settings.API_PREFIX}", tags=["Health"])  # /api/health
    app.include_router(auth.router, prefix=f"{settings.API_PREFIX}/auth", tags=["Auth"])
    app.include_router(
        transactions_router.router, prefix=f"{settings.API_PREFIX}/transactions", tags=["Transactions"]
    )

    logger.info(f"{settings.PROJECT_NAME} ready with {settings.STORE_BACKEND} store")
    return app

"""
Health Check Router
Liveness plus a reachability check of the record stores
"""
from fastapi import APIRouter, Depends, Request
from datetime import datetime

from finanalyst.db.store import TransactionStore, UserStore
from finanalyst.routers.deps import get_transaction_store, get_user_store

router = APIRouter()


@router.get("/health")
def health_check(request: Request):
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": request.app.title,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/status")
def store_status(
    request: Request,
    transactions: TransactionStore = Depends(get_transaction_store),
    users: UserStore = Depends(get_user_store),
):
    """
    Check that the users and transactions collections answer a trivial read.
    """
    services = {
        "transactions": {"connected": transactions.ping()},
        "users": {"connected": users.ping()},
    }
    all_connected = all(service["connected"] for service in services.values())
    return {
        "timestamp": datetime.utcnow().isoformat(),
        "backend": request.app.state.settings.STORE_BACKEND,
        "services": services,
        "overall_status": "healthy" if all_connected else "degraded",
    }

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from finanalyst.core.errors import BadRequestError, NotFoundError
from finanalyst.db.store import TransactionStore
from finanalyst.models.report import ExportRequest
from finanalyst.models.transaction import (
    Transaction,
    TransactionCreate,
    TransactionFilter,
    TransactionImport,
    TransactionUpdate,
)
from finanalyst.models.user import UserPublic
from finanalyst.routers.deps import authorize, get_analyzer, get_current_user, get_transaction_store
from finanalyst.utils.analyzer import TransactionAnalyzer
from finanalyst.utils.csv_export import csv_config_options, export_transactions
from finanalyst.utils.query import build_query, paginate

router = APIRouter()
logger = logging.getLogger(__name__)


def _public(record: dict) -> dict:
    return Transaction(**record).model_dump(mode="json")


@router.get("")
def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    sort_by: str = Query("date", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    category: Optional[List[str]] = Query(None),
    status_: Optional[List[str]] = Query(None, alias="status"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    amount_min: Optional[float] = Query(None, alias="amountMin"),
    amount_max: Optional[float] = Query(None, alias="amountMax"),
    user_id: Optional[str] = Query(None),
    store: TransactionStore = Depends(get_transaction_store),
):
    query = build_query(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        category=category,
        status=status_,
        date_from=date_from,
        date_to=date_to,
        amount_min=amount_min,
        amount_max=amount_max,
        user_id=user_id,
    )
    result = paginate(store, query)
    return {"success": True, "data": result.model_dump(mode="json", by_alias=True)}


@router.get("/stats")
def transaction_stats(
    user_id: Optional[str] = Query(None),
    store: TransactionStore = Depends(get_transaction_store),
    analyzer: TransactionAnalyzer = Depends(get_analyzer),
):
    records = store.find(TransactionFilter(user_id=user_id))
    return {
        "success": True,
        "data": {
            "stats": analyzer.stats(records).model_dump(by_alias=True),
            "revenueBreakdown": [b.model_dump() for b in analyzer.category_breakdown(records, "Revenue")],
            "expenseBreakdown": [b.model_dump() for b in analyzer.category_breakdown(records, "Expense")],
        },
    }


@router.get("/filters")
def available_filters(
    user_id: Optional[str] = Query(None),
    store: TransactionStore = Depends(get_transaction_store),
):
    scope = TransactionFilter(user_id=user_id)
    return {
        "success": True,
        "data": {
            "categories": store.distinct("category", scope),
            "statuses": store.distinct("status", scope),
        },
    }


@router.get("/dashboard")
def dashboard_overview(
    user_id: Optional[str] = Query(None),
    store: TransactionStore = Depends(get_transaction_store),
    analyzer: TransactionAnalyzer = Depends(get_analyzer),
):
    records = store.find(TransactionFilter(user_id=user_id))
    return {
        "success": True,
        "data": {
            "stats": analyzer.stats(records).model_dump(by_alias=True),
            "recentTransactions": [_public(r) for r in analyzer.recent(records, 5)],
            "monthlyTrends": [t.model_dump() for t in analyzer.monthly_trends(records)],
        },
    }


@router.get("/csv-config")
def csv_config():
    return {"success": True, "data": csv_config_options()}


@router.post("/export-csv")
def export_csv(export_request: ExportRequest, store: TransactionStore = Depends(get_transaction_store)):
    content = export_transactions(store, export_request)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=transactions.csv"},
    )


@router.post("/import", status_code=status.HTTP_201_CREATED)
def import_transactions(
    transactions: List[TransactionImport],
    user: UserPublic = Depends(authorize("admin")),
    store: TransactionStore = Depends(get_transaction_store),
):
    imported = store.insert_many([t.model_dump() for t in transactions])
    logger.info(f"User {user.id} imported {imported} transactions")
    return {"success": True, "data": {"imported": imported}}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_transaction(
    transaction: TransactionCreate,
    user: UserPublic = Depends(get_current_user),
    store: TransactionStore = Depends(get_transaction_store),
):
    record = transaction.model_dump()
    if record["id"] is None:
        record["id"] = store.next_id(user.id)
    record["user_id"] = user.id

    created = store.insert(record)
    logger.info(f"Created transaction {created['id']} for user {user.id}")
    return {"success": True, "data": _public(created)}


@router.get("/{transaction_id}")
def get_transaction(
    transaction_id: int,
    user_id: str = Query(..., min_length=1),
    store: TransactionStore = Depends(get_transaction_store),
):
    record = store.get(user_id, transaction_id)
    if not record:
        raise NotFoundError("Transaction not found")
    return {"success": True, "data": _public(record)}


@router.put("/{transaction_id}")
def update_transaction(
    transaction_id: int,
    transaction_update: TransactionUpdate,
    user: UserPublic = Depends(get_current_user),
    store: TransactionStore = Depends(get_transaction_store),
):
    changes = {
        k: v for k, v in transaction_update.model_dump(exclude_unset=True).items() if v is not None
    }
    if not changes:
        raise BadRequestError("No fields to update")

    updated = store.update(user.id, transaction_id, changes)
    if not updated:
        raise NotFoundError("Transaction not found")

    logger.info(f"Updated transaction {transaction_id} for user {user.id}")
    return {"success": True, "data": _public(updated)}


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    user: UserPublic = Depends(get_current_user),
    store: TransactionStore = Depends(get_transaction_store),
):
    deleted = store.delete(user.id, transaction_id)
    if not deleted:
        raise NotFoundError("Transaction not found")

    logger.info(f"Deleted transaction {transaction_id} for user {user.id}")
    return {"success": True, "message": "Transaction deleted successfully"}

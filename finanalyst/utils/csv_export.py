import csv
import io
import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List

from finanalyst.db.store import TransactionStore
from finanalyst.models.report import CSVColumn, CSVConfig, ExportRequest

logger = logging.getLogger(__name__)

# Fixed so output does not depend on the process locale
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

AVAILABLE_COLUMNS = [
    CSVColumn(key="id", label="ID", type="number"),
    CSVColumn(key="date", label="Date", type="date"),
    CSVColumn(key="amount", label="Amount", type="number"),
    CSVColumn(key="category", label="Category", type="string"),
    CSVColumn(key="status", label="Status", type="string"),
    CSVColumn(key="user_id", label="User ID", type="string"),
]

SEARCH_FIELDS = ("user_id", "status", "category")


def csv_config_options() -> Dict[str, Any]:
    return {
        "availableColumns": [column.model_dump() for column in AVAILABLE_COLUMNS],
        "defaultConfig": CSVConfig().model_dump(by_alias=True),
    }


def format_date(value: Any) -> str:
    """``2024-01-15`` -> ``Jan 15, 2024``"""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, date):
        return str(value)
    return f"{MONTH_ABBR[value.month - 1]} {value.day:02d}, {value.year:04d}"


def format_currency(value: Any) -> str:
    """US dollars with thousands separators, e.g. ``$5,000.00`` or ``-$12.50``."""
    amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def amount_text(value: Any) -> str:
    """Shortest decimal form of an amount: 5000.0 -> "5000", 12.50 -> "12.5"."""
    amount = Decimal(str(value))
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal(1)))
    return format(amount.normalize(), "f")


def matches_search(record: Dict[str, Any], term: str) -> bool:
    needle = term.strip().lower()
    if not needle:
        return True
    haystack = [str(record.get(field, "")) for field in SEARCH_FIELDS]
    haystack.append(amount_text(record.get("amount", 0)))
    return any(needle in value.lower() for value in haystack)


def format_cell(column: str, record: Dict[str, Any]) -> str:
    value = record.get(column)
    if value is None:
        return ""
    if column == "date":
        return format_date(value)
    if column == "amount":
        return format_currency(value)
    return str(value)


def generate_csv(
    records: Iterable[Dict[str, Any]],
    columns: List[str],
    include_headers: bool = True,
    delimiter: str = ",",
) -> str:
    """
    Every cell is quoted, rows are separated by "\\n" and there is no trailing
    newline. Rows keep the order of ``records``.
    """
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter, quoting=csv.QUOTE_ALL, lineterminator="\n")
    if include_headers:
        writer.writerow(columns)
    for record in records:
        writer.writerow([format_cell(column, record) for column in columns])
    return output.getvalue().rstrip("\n")


def export_transactions(store: TransactionStore, request: ExportRequest) -> str:
    records = store.find(request.filters.to_filter())
    if request.filters.search_term:
        records = [r for r in records if matches_search(r, request.filters.search_term)]

    logger.info(f"Exporting {len(records)} transactions with columns {request.config.columns}")
    return generate_csv(
        records,
        request.config.columns,
        include_headers=request.config.include_headers,
        delimiter=request.config.delimiter,
    )

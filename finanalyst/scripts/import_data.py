"""
Bulk import of transactions from a JSON file.

    python -m finanalyst.scripts.import_data load transactions.json
    python -m finanalyst.scripts.import_data create-tables
"""
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Dict, List

import typer
from pydantic import TypeAdapter, ValidationError

from finanalyst.core.config import get_settings
from finanalyst.db.store import TransactionStore
from finanalyst.main import build_stores
from finanalyst.models.transaction import TransactionImport
from finanalyst.utils.analyzer import TransactionAnalyzer

logger = logging.getLogger(__name__)

app = typer.Typer(help="Load transaction data into the record store.", no_args_is_help=True)

_records_adapter = TypeAdapter(List[TransactionImport])


def parse_transactions(raw: Any) -> List[Dict[str, Any]]:
    """Validate a decoded JSON array; unknown keys such as ``user_profile`` are dropped."""
    return [t.model_dump() for t in _records_adapter.validate_python(raw)]


def import_transactions(
    store: TransactionStore,
    records: List[Dict[str, Any]],
    keep_existing: bool = False,
) -> int:
    if not keep_existing:
        removed = store.clear()
        logger.info(f"Cleared {removed} existing transactions")
    imported = store.insert_many(records)
    logger.info(f"Imported {imported} transactions")
    return imported


@app.command()
def load(
    path: Annotated[Path, typer.Argument(help="JSON file holding an array of transactions")],
    keep_existing: Annotated[bool, typer.Option(help="Do not clear the store first")] = False,
) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    try:
        records = parse_transactions(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        typer.echo(f"Could not read {path}: {e}", err=True)
        raise typer.Exit(1)

    transactions, _ = build_stores(settings)
    imported = import_transactions(transactions, records, keep_existing=keep_existing)

    stats = TransactionAnalyzer().stats(records)
    typer.echo(f"Imported {imported} transactions")
    typer.echo(json.dumps(stats.model_dump(by_alias=True), indent=2))


@app.command("create-tables")
def create_tables_command() -> None:
    from finanalyst.db.dynamo import create_tables, get_dynamo_resource

    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    created = create_tables(get_dynamo_resource(settings), settings)
    typer.echo(f"Created tables: {', '.join(created)}" if created else "Tables already exist")


if __name__ == "__main__":
    app()

# ruff: noqa: I001
"""CLI for the ``finance_flow`` package.

This module exposes callable command handlers (``cmd_parse_text``,
``cmd_import_sheet``) and a Typer-based console interface. Environment
variables (``FINANCE_FLOW_STORE_PATH``, ``FINANCE_FLOW_RULES_PATH``,
``FINANCE_FLOW_LOG_LEVEL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Business logic lives in
``finance_flow.api``; file handling lives in ``finance_flow.store``.

Every command prints one JSON object to stdout and exits ``0`` on success or
``1`` when the input could not be processed.
"""

from __future__ import annotations

import json
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any
from collections.abc import Callable

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging
from .models import ExistingRecords, ProcessResult, StatementType


# ---- Small module-level helpers used by CLI commands -------------------------


def result_to_json(result: ProcessResult) -> dict[str, Any]:
    """Render ``result`` with the camelCase keys hosts expect."""

    from .store import StoredCashRecord, StoredCreditRecord, StoredDepositRecord

    def _dump(model: Any) -> dict[str, Any]:
        return model.model_dump(mode="json", by_alias=True)

    return {
        "success": result.success,
        "creditData": [_dump(StoredCreditRecord.from_record(r)) for r in result.credit_data],
        "depositData": [_dump(StoredDepositRecord.from_record(r)) for r in result.deposit_data],
        "cashData": [_dump(StoredCashRecord.from_record(r)) for r in result.cash_data],
        "detectedCategories": list(result.detected_categories),
        "skippedDuplicates": {
            "credit": result.skipped_duplicates.credit,
            "deposit": result.skipped_duplicates.deposit,
            "cash": result.skipped_duplicates.cash,
        },
        "error": result.error,
    }


def _emit(result: ProcessResult) -> int:
    print(json.dumps(result_to_json(result), ensure_ascii=False, indent=2))
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    return 0


def _finish(
    result: ProcessResult,
    *,
    store_path: Path,
    existing: ExistingRecords,
    persist: bool,
) -> int:
    from .store import merge_into_store, save_store

    if persist and result.success:
        try:
            save_store(store_path, merge_into_store(existing, result))
        except OSError as e:
            print(f"Error: failed to write store {store_path}: {e}", file=sys.stderr)
            return 1
    return _emit(result)


def _fixed_classifier(hint: StatementType) -> Callable[[str], StatementType]:
    def _classify(_section: str) -> StatementType:
        return hint

    return _classify


def _file_date(path: str | Path) -> str:
    stamp = os.path.getmtime(path)
    return datetime.fromtimestamp(stamp).strftime("%Y/%m/%d")


def read_csv_grid(csv_path: str | Path) -> list[list[str]]:
    """Read a CSV export into a grid of string cells (BOM tolerated)."""

    import csv

    with open(csv_path, encoding="utf-8-sig", newline="") as f:
        return [list(row) for row in csv.reader(f)]


# ---- Command handlers ---------------------------------------------------------


def cmd_parse_text(
    text_path: str,
    *,
    rules_path: str | None = None,
    store_path: str | None = None,
    hint: StatementType | None = None,
    default_date: str | None = None,
    persist: bool = False,
) -> int:
    """Parse pasted statement text and print the result as JSON.

    Behavior
    --------
    - Rules come from ``rules_path`` (or ``FINANCE_FLOW_RULES_PATH``); no rules
      file means no rules.
    - Records already in the store are skipped and counted.
    - ``hint`` pre-selects the parser family for every section; the other
      family is still tried when it extracts nothing.
    - Deposit transactions printed before any date header are stamped with
      ``default_date`` (``YYYY/MM/DD``), else with the text file's
      modification date, so re-running the same file yields the same ids.
    - With ``persist`` the accepted records are appended to the store.
    """

    from .api import process_statement
    from .ingest.utils import normalize_full_date
    from .store import load_rules, load_store, resolve_rules_path, resolve_store_path

    try:
        text = Path(text_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: failed to read text file {text_path}: {e}", file=sys.stderr)
        return 1

    if default_date is not None:
        fallback_date = normalize_full_date(default_date)
        if fallback_date is None:
            print(
                f"Error: --default-date must be YYYY/MM/DD, got {default_date!r}",
                file=sys.stderr,
            )
            return 1
    else:
        fallback_date = _file_date(text_path)

    store_file = resolve_store_path(store_path)
    try:
        rules = load_rules(resolve_rules_path(rules_path))
        existing = load_store(store_file)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    classifier = _fixed_classifier(hint) if hint is not None else None
    result = process_statement(
        text,
        replacement_rules=rules.replacement_rules,
        category_rules=rules.category_rules,
        existing=existing,
        classifier=classifier,
        default_date=fallback_date,
    )
    return _finish(result, store_path=store_file, existing=existing, persist=persist)


def cmd_import_sheet(
    csv_path: str,
    *,
    store_path: str | None = None,
    persist: bool = False,
) -> int:
    """Import a spreadsheet exported as CSV and print the result as JSON.

    Columns: date, category, description, amount, type tag, notes. An optional
    header row is skipped.
    """

    import csv

    from .api import process_statement
    from .store import load_store, resolve_store_path

    try:
        grid = read_csv_grid(csv_path)
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        print(f"Error: failed to read CSV {csv_path}: {e}", file=sys.stderr)
        return 1

    store_file = resolve_store_path(store_path)
    try:
        existing = load_store(store_file)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    result = process_statement(grid=grid, existing=existing)
    return _finish(result, store_path=store_file, existing=existing, persist=persist)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Parse Taiwanese bank and credit-card statements into categorized, "
        "deduplicated records. Loads settings from a local .env before running."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect these when used as default values below.
TEXT_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--text-path",
    help="Path to a UTF-8 text file holding pasted statement text",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files
)
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--csv-path",
    help="Path to a spreadsheet exported as CSV",
    dir_okay=False,
    file_okay=True,
    exists=False,
)
RULES_PATH_OPTION: OptionInfo = typer.Option(
    ...,
    "--rules-path",
    help="Rules JSON file (falls back to FINANCE_FLOW_RULES_PATH).",
)
STORE_PATH_OPTION: OptionInfo = typer.Option(
    ...,
    "--store-path",
    help="Record store JSON file (falls back to FINANCE_FLOW_STORE_PATH).",
)


@app.command("parse-text")
def parse_text_cmd(
    text_path: Annotated[Path, TEXT_PATH_OPTION],
    rules_path: Annotated[Path | None, RULES_PATH_OPTION] = None,
    store_path: Annotated[Path | None, STORE_PATH_OPTION] = None,
    *,
    hint: StatementType | None = typer.Option(
        None, help="Statement type to try first for every section."
    ),
    default_date: str | None = typer.Option(
        None,
        help="YYYY/MM/DD for deposit rows printed before any date header "
        "(defaults to the text file's modification date).",
    ),
    persist: bool = typer.Option(False, help="Append accepted records to the store."),
) -> None:
    """Parse pasted credit-card or deposit-account statement text."""

    code = cmd_parse_text(
        str(text_path),
        rules_path=str(rules_path) if rules_path is not None else None,
        store_path=str(store_path) if store_path is not None else None,
        hint=hint,
        default_date=default_date,
        persist=persist,
    )
    raise typer.Exit(code)


@app.command("import-sheet")
def import_sheet_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    store_path: Annotated[Path | None, STORE_PATH_OPTION] = None,
    *,
    persist: bool = typer.Option(False, help="Append accepted records to the store."),
) -> None:
    """Import spreadsheet rows (date, category, description, amount, type, notes)."""

    code = cmd_import_sheet(
        str(csv_path),
        store_path=str(store_path) if store_path is not None else None,
        persist=persist,
    )
    raise typer.Exit(code)


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None, help="Log level for stderr diagnostics (falls back to FINANCE_FLOW_LOG_LEVEL)."
    ),
) -> None:
    """Load ``.env`` from the current working directory and configure logging."""

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m finance_flow.cli`
    app()

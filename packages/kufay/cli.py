# ruff: noqa: I001
"""CLI for the ``kufay`` package.

A Typer-based console interface over the extraction engine and the
notification store. Environment variables (``DATABASE_URL``,
``KUFAY_RULES_PATH``, ``KUFAY_DUPLICATE_WINDOW_MS``, ``KUFAY_LOG_LEVEL``) are
loaded from a local ``.env`` using ``python-dotenv`` before any command runs.
Business logic lives in ``kufay.api`` and related modules; handlers only parse
options, report results and translate errors into a non-zero exit.
"""

from __future__ import annotations

import json
import sys
import time
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging
from .models import ExtractedTransaction, RawNotification
from .rules import RuleSet


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str) -> typer.Exit:
    print(f"Error: {message}", file=sys.stderr)
    return typer.Exit(1)


def _rules_from(ctx: typer.Context) -> RuleSet | None:
    obj = ctx.obj or {}
    return obj.get("rules")


def _decimal_str(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _transaction_to_json(tx: ExtractedTransaction) -> dict[str, Any]:
    return {
        "amount": _decimal_str(tx.amount),
        "amountRawText": tx.amount_raw_text,
        "currencyLabel": tx.currency_label,
        "counterpartyLabel": tx.counterparty_label,
        "isIncoming": tx.is_incoming,
        "providerTag": tx.provider_tag.value,
        "templateId": tx.template_id.value,
        "isRecognizedPattern": tx.is_recognized_pattern,
        "displayTag": tx.display_tag,
    }


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Extract structured transactions from mobile-money notifications. "
        "Loads DATABASE_URL and KUFAY_* settings from a local .env before running."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect these when used as default values below.
JSONL_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--jsonl",
    help="Path to a JSON Lines export of raw notifications",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler reports a clean error
    readable=True,
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)


@app.command("extract")
def extract_cmd(
    ctx: typer.Context,
    *,
    sender_id: str = typer.Option(..., "--sender-id", help="Notifying app/channel id."),
    title: str = typer.Option("", "--title", help="Notification title."),
    body: str = typer.Option("", "--body", help="Notification body text."),
    received_at_ms: int | None = typer.Option(
        None, "--received-at-ms", help="Arrival time in epoch ms (defaults to now)."
    ),
) -> None:
    """Extract one notification and print the result as JSON (no database)."""

    from .engine import extract_transaction

    raw = RawNotification(
        sender_id=sender_id,
        title=title,
        body=body,
        received_at_ms=received_at_ms if received_at_ms is not None else int(time.time() * 1000),
    )
    tx = extract_transaction(raw, _rules_from(ctx))
    typer.echo(json.dumps(_transaction_to_json(tx), ensure_ascii=False, indent=2))


@app.command("ingest")
def ingest_cmd(
    ctx: typer.Context,
    jsonl_path: Annotated[Path, JSONL_PATH_OPTION],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
    window_ms: int | None = typer.Option(
        None,
        "--window-ms",
        help="Duplicate window in ms (falls back to KUFAY_DUPLICATE_WINDOW_MS, then 3000).",
    ),
) -> None:
    """Ingest a JSON Lines export: gate, extract, de-duplicate and store."""

    from .api import ingest_notifications
    from .ingest.utils import load_notifications_from_jsonl

    try:
        items = load_notifications_from_jsonl(jsonl_path)
    except FileNotFoundError:
        raise _fail(f"file not found: {jsonl_path}") from None
    except ValueError as e:
        raise _fail(str(e)) from None

    try:
        summary = ingest_notifications(
            items, database_url=database_url, rules=_rules_from(ctx), window_ms=window_ms
        )
    except (RuntimeError, ValueError) as e:
        raise _fail(str(e)) from None

    typer.echo(
        f"Processed {summary.total}: saved={summary.saved} "
        f"duplicates={summary.duplicates} filtered={summary.filtered}"
    )


@app.command("repair")
def repair_cmd(
    ctx: typer.Context,
    *,
    database_url: str | None = DATABASE_URL_OPTION,
    dry_run: bool = typer.Option(False, "--dry-run", help="Report changes without writing."),
) -> None:
    """Re-extract stored aggregator amounts with the current rules and fix drift."""

    from .api import run_repair

    try:
        updates = run_repair(database_url=database_url, rules=_rules_from(ctx), dry_run=dry_run)
    except (RuntimeError, ValueError) as e:
        raise _fail(str(e)) from None

    for u in updates:
        typer.echo(f"{u.id}\t{_decimal_str(u.old_amount)}\t{u.new_amount}")
    verb = "Would repair" if dry_run else "Repaired"
    typer.echo(f"{verb} {len(updates)} record(s)")


@app.command("purge")
def purge_cmd(
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Permanently delete trashed records whose retention period has elapsed."""

    from db.client import session_scope

    from .persistence import purge_expired

    try:
        with session_scope(database_url=database_url) as session:
            purged = purge_expired(session, int(time.time() * 1000))
    except RuntimeError as e:
        raise _fail(str(e)) from None
    typer.echo(f"Purged {purged} record(s)")


@app.command("totals")
def totals_cmd(
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Print incoming totals per provider display tag and overall."""

    from db.client import session_scope

    from .persistence import incoming_totals_by_tag, total_incoming_amount

    try:
        with session_scope(database_url=database_url) as session:
            by_tag = incoming_totals_by_tag(session)
            overall = total_incoming_amount(session)
    except RuntimeError as e:
        raise _fail(str(e)) from None
    for tag, amount in by_tag.items():
        typer.echo(f"{tag}\t{amount}")
    typer.echo(f"TOTAL\t{overall}")


@app.command("dump-rules")
def dump_rules_cmd() -> None:
    """Print the built-in rule table as JSON (a starting point for a rules file)."""

    from .rules import dump_default_rules

    typer.echo(dump_default_rules())


@app.callback()
def _root(
    ctx: typer.Context,
    *,
    rules_path: Path | None = typer.Option(
        None,
        "--rules",
        help="Rule table JSON file (falls back to KUFAY_RULES_PATH, then built-in rules).",
        dir_okay=False,
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables), configures logging and resolves the
    active rule table once for the invoked subcommand.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    from .rules import resolve_rule_set

    try:
        rules = resolve_rule_set(rules_path)
    except ValueError as e:
        raise _fail(str(e)) from None
    ctx.obj = {"rules": rules}


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m kufay.cli`
    app()

# ruff: noqa: I001
from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest
from typer.testing import CliRunner

from kufay.cli import app

from tests.helpers.db import bootstrap_sqlite_db, insert_notification

runner = CliRunner()

T0 = 1_735_689_600_000


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "kufay.db")


def _write_jsonl(path: Path, rows: list[dict]) -> Path:
    path.write_text("\n".join(json.dumps(r, ensure_ascii=False) for r in rows) + "\n", "utf-8")
    return path


def test_extract_prints_camel_case_json():
    result = runner.invoke(
        app,
        [
            "extract",
            "--sender-id",
            "com.wave.personal",
            "--title",
            "Paiement réussi!",
            "--body",
            "Vous avez payé 15.500F à Boutique Fatou. Solde Wave: 40.000F",
            "--received-at-ms",
            str(T0),
        ],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["amount"] == "15500"
    assert data["amountRawText"] == "15.500F"
    assert data["counterpartyLabel"] == "Boutique Fatou"
    assert data["templateId"] == "payment_made"
    assert data["providerTag"] == "personal_wallet"
    assert data["isIncoming"] is False
    assert data["isRecognizedPattern"] is True


def test_ingest_then_totals(tmp_path: Path, db_url: str):
    received = {
        "senderId": "com.wave.personal",
        "title": "Transfert reçu",
        "body": "Vous avez reçu 5.000F de Awa Ndiaye. Nouveau solde: 10.000F",
        "receivedAtMillis": T0,
    }
    rows = [
        received,
        {**received, "receivedAtMillis": T0 + 1000},
        {"senderId": "com.example", "title": "x", "body": "y", "receivedAtMillis": T0},
    ]
    path = _write_jsonl(tmp_path / "export.jsonl", rows)

    result = runner.invoke(app, ["ingest", "--jsonl", str(path), "--database-url", db_url])
    assert result.exit_code == 0, result.output
    assert "Processed 3: saved=1 duplicates=1 filtered=1" in result.stdout

    totals = runner.invoke(app, ["totals", "--database-url", db_url])
    assert totals.exit_code == 0, totals.output
    lines = totals.stdout.strip().splitlines()
    assert lines[0].split("\t")[0] == "WAVE_PERSONAL"
    assert Decimal(lines[0].split("\t")[1]) == Decimal(5000)
    assert lines[-1].startswith("TOTAL\t")


def test_ingest_reads_database_url_from_dotenv(tmp_path: Path, db_url: str):
    # The autouse fixture runs every test from tmp_path
    (tmp_path / ".env").write_text(f"DATABASE_URL={db_url}\n", encoding="utf-8")
    path = _write_jsonl(
        tmp_path / "export.jsonl",
        [{"senderId": "com.wave.personal", "body": "Vous avez reçu 1.000F", "receivedAtMillis": 1}],
    )
    result = runner.invoke(app, ["ingest", "--jsonl", str(path)])
    assert result.exit_code == 0, result.output
    assert "saved=1" in result.stdout


def test_ingest_without_database_url_fails(tmp_path: Path):
    path = _write_jsonl(tmp_path / "export.jsonl", [])
    result = runner.invoke(app, ["ingest", "--jsonl", str(path)])
    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "DATABASE_URL" in result.output


def test_ingest_reports_malformed_line(tmp_path: Path, db_url: str):
    path = tmp_path / "export.jsonl"
    path.write_text("{broken\n", encoding="utf-8")
    result = runner.invoke(app, ["ingest", "--jsonl", str(path), "--database-url", db_url])
    assert result.exit_code == 1
    assert "export.jsonl:1:" in result.output


def test_ingest_missing_file(tmp_path: Path, db_url: str):
    result = runner.invoke(
        app, ["ingest", "--jsonl", str(tmp_path / "nope.jsonl"), "--database-url", db_url]
    )
    assert result.exit_code == 1
    assert "file not found" in result.output


def test_repair_dry_run_then_apply(db_url: str):
    stale_id = insert_notification(
        database_url=db_url,
        sender_id="com.google.android.apps.messaging",
        title="OrangeMoney",
        body="Vous avez recu un transfert de 5000.00F de 771234**89. Votre solde est 12345.00F",
        received_at_ms=T0,
        provider_tag="aggregator_a",
        amount=Decimal(500000),
    )

    dry = runner.invoke(app, ["repair", "--database-url", db_url, "--dry-run"])
    assert dry.exit_code == 0, dry.output
    assert dry.stdout.splitlines()[0].split("\t")[0] == str(stale_id)
    assert "Would repair 1 record(s)" in dry.stdout

    real = runner.invoke(app, ["repair", "--database-url", db_url])
    assert "Repaired 1 record(s)" in real.stdout

    again = runner.invoke(app, ["repair", "--database-url", db_url])
    assert "Repaired 0 record(s)" in again.stdout


def test_purge_on_empty_store(db_url: str):
    result = runner.invoke(app, ["purge", "--database-url", db_url])
    assert result.exit_code == 0, result.output
    assert "Purged 0 record(s)" in result.stdout


def test_bad_rules_file_fails_cleanly(tmp_path: Path):
    rules = tmp_path / "rules.json"
    rules.write_text("{not json", encoding="utf-8")
    result = runner.invoke(
        app, ["--rules", str(rules), "extract", "--sender-id", "com.wave.personal"]
    )
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_dump_rules_output_is_loadable(tmp_path: Path):
    result = runner.invoke(app, ["dump-rules"])
    assert result.exit_code == 0, result.output
    rules = tmp_path / "rules.json"
    rules.write_text(result.stdout, encoding="utf-8")

    data = json.loads(result.stdout)
    assert data["version"] == "2025.2"

    extracted = runner.invoke(
        app,
        ["--rules", str(rules), "extract", "--sender-id", "com.wave.personal", "--body", "x"],
    )
    assert extracted.exit_code == 0, extracted.output

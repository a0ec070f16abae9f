# ruff: noqa: I001
from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from db.client import session_scope
from db.models.notifications import KfNotification

from kufay.engine import extract_transaction
from kufay.models import RawNotification, RepairUpdate
from kufay.persistence import (
    DAY_MS,
    apply_repairs,
    get_notification,
    incoming_totals_by_tag,
    load_repair_candidates,
    mark_as_read,
    move_to_trash,
    purge_expired,
    restore_from_trash,
    save_transaction,
    total_incoming_amount,
)
from kufay.providers import AGGREGATOR_SENDER, PERSONAL_WALLET_SENDER

from tests.helpers.db import bootstrap_sqlite_db, insert_notification

T0 = 1_735_689_600_000
OM_BODY = "Vous avez recu un transfert de 5000.00F de 771234**89 Ref:123. Votre solde est 12345.00F"


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "kufay.db")


def _save(db_url: str, raw: RawNotification, reference: str | None = None) -> int:
    with session_scope(database_url=db_url) as s:
        return save_transaction(s, raw, extract_transaction(raw), reference=reference)


def _received(ts: int = T0) -> RawNotification:
    return RawNotification(
        sender_id=PERSONAL_WALLET_SENDER,
        title="Transfert reçu",
        body="Vous avez reçu 5.000F de Awa Ndiaye. Nouveau solde: 10.000F",
        received_at_ms=ts,
    )


def test_save_round_trips_extracted_fields(db_url: str):
    new_id = _save(db_url, _received(), reference="ABC")

    with session_scope(database_url=db_url) as s:
        row = get_notification(s, new_id)
        assert row is not None
        assert row.sender_id == PERSONAL_WALLET_SENDER
        assert row.received_at_ms == T0
        assert row.amount == Decimal(5000)
        assert row.amount_text == "5.000F"
        assert row.counterparty_label == "Awa Ndiaye"
        assert row.currency_label == "Franc CFA"
        assert row.provider_tag == "personal_wallet"
        assert row.template_id == "transfer_received"
        assert row.is_recognized is True
        assert row.is_incoming is True
        assert row.display_tag == "WAVE_PERSONAL"
        assert row.reference == "ABC"
        assert row.is_read is False
        assert row.is_deleted is False
        assert row.deletion_at_ms is None


def test_identities_are_unique_and_increasing(db_url: str):
    first = _save(db_url, _received(T0))
    second = _save(db_url, _received(T0 + 60_000))
    assert second > first


def test_trash_then_purge_respects_retention(db_url: str):
    new_id = _save(db_url, _received())
    with session_scope(database_url=db_url) as s:
        assert move_to_trash(s, new_id, now_ms=T0) is True

    with session_scope(database_url=db_url) as s:
        row = get_notification(s, new_id)
        assert row.is_deleted is True
        assert row.deletion_at_ms == T0 + 30 * DAY_MS
        # Day 29: still in the trash
        assert purge_expired(s, T0 + 29 * DAY_MS) == 0

    with session_scope(database_url=db_url) as s:
        assert purge_expired(s, T0 + 30 * DAY_MS) == 1

    with session_scope(database_url=db_url) as s:
        assert get_notification(s, new_id) is None


def test_purge_ignores_live_records(db_url: str):
    _save(db_url, _received())
    with session_scope(database_url=db_url) as s:
        assert purge_expired(s, T0 + 365 * DAY_MS) == 0


def test_trash_with_negative_retention_is_rejected(db_url: str):
    new_id = _save(db_url, _received())
    with session_scope(database_url=db_url) as s:
        with pytest.raises(ValueError):
            move_to_trash(s, new_id, now_ms=T0, retention_days=-1)


def test_missing_identity_is_reported(db_url: str):
    with session_scope(database_url=db_url) as s:
        assert move_to_trash(s, 999, now_ms=T0) is False
        assert mark_as_read(s, 999) is False
        assert restore_from_trash(s, 999) is False


def test_restore_clears_trash_and_repairs_amount(db_url: str):
    new_id = insert_notification(
        database_url=db_url,
        sender_id=AGGREGATOR_SENDER,
        title="OrangeMoney",
        body=OM_BODY,
        received_at_ms=T0,
        provider_tag="aggregator_a",
        amount=Decimal(500000),
        amount_text="500000",
    )
    with session_scope(database_url=db_url) as s:
        move_to_trash(s, new_id, now_ms=T0)

    with session_scope(database_url=db_url) as s:
        assert restore_from_trash(s, new_id) is True

    with session_scope(database_url=db_url) as s:
        row = get_notification(s, new_id)
        assert row.is_deleted is False
        assert row.deletion_at_ms is None
        assert row.amount == Decimal(5000)
        assert row.amount_text == "5000.00"


def test_mark_as_read_toggles_flag(db_url: str):
    new_id = _save(db_url, _received())
    with session_scope(database_url=db_url) as s:
        assert mark_as_read(s, new_id) is True
    with session_scope(database_url=db_url) as s:
        assert get_notification(s, new_id).is_read is True
        mark_as_read(s, new_id, is_read=False)
    with session_scope(database_url=db_url) as s:
        assert get_notification(s, new_id).is_read is False


def test_apply_repairs_touches_only_amount_fields(db_url: str):
    new_id = insert_notification(
        database_url=db_url,
        sender_id=AGGREGATOR_SENDER,
        title="OrangeMoney",
        body=OM_BODY,
        received_at_ms=T0,
        provider_tag="aggregator_a",
        amount=Decimal(500000),
        is_read=True,
    )
    update = RepairUpdate(
        id=new_id, old_amount=Decimal(500000), new_amount=Decimal(5000), new_amount_text="5000.00"
    )
    with session_scope(database_url=db_url) as s:
        assert apply_repairs(s, [update]) == 1

    with session_scope(database_url=db_url) as s:
        row = s.get(KfNotification, new_id)
        assert row.amount == Decimal(5000)
        assert row.amount_text == "5000.00"
        assert row.counterparty_label == "Kept As Is"
        assert row.title == "OrangeMoney"
        assert row.body == OM_BODY
        assert row.received_at_ms == T0
        assert row.is_read is True
        assert row.provider_tag == "aggregator_a"


def test_repair_candidates_include_trashed_records(db_url: str):
    a = _save(db_url, _received(T0))
    b = _save(db_url, _received(T0 + 60_000))
    with session_scope(database_url=db_url) as s:
        move_to_trash(s, b, now_ms=T0)
    with session_scope(database_url=db_url) as s:
        assert [r.id for r in load_repair_candidates(s)] == [a, b]


def test_incoming_totals(db_url: str):
    _save(db_url, _received(T0))
    _save(db_url, _received(T0 + DAY_MS))
    _save(
        db_url,
        RawNotification(
            sender_id=AGGREGATOR_SENDER,
            title="OrangeMoney",
            body=OM_BODY,
            received_at_ms=T0 + 2 * DAY_MS,
        ),
    )
    # Outgoing payments never count
    _save(
        db_url,
        RawNotification(
            sender_id=PERSONAL_WALLET_SENDER,
            title="Paiement réussi!",
            body="Vous avez payé 15.500F à Boutique Fatou. Solde Wave: 40.000F",
            received_at_ms=T0,
        ),
    )
    trashed = _save(db_url, _received(T0 + 3 * DAY_MS))
    with session_scope(database_url=db_url) as s:
        move_to_trash(s, trashed, now_ms=T0)

    with session_scope(database_url=db_url) as s:
        assert total_incoming_amount(s) == Decimal(15000)
        assert total_incoming_amount(s, start_ms=T0 + DAY_MS) == Decimal(10000)
        assert total_incoming_amount(s, start_ms=T0, end_ms=T0) == Decimal(5000)
        assert incoming_totals_by_tag(s) == {
            "ORANGE_MONEY": Decimal(5000),
            "WAVE_PERSONAL": Decimal(10000),
        }


def test_totals_on_empty_store_are_zero(db_url: str):
    with session_scope(database_url=db_url) as s:
        assert total_incoming_amount(s) == Decimal(0)
        assert incoming_totals_by_tag(s) == {}

"""Tests for payout batches: build, lifecycle, reversal and their invariants."""

import logging
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from app import balance_service, payout_service
from app.errors import IllegalStateError, NotFoundError, TransactionAbortError, ValidationError
from models.orders import Order, PaymentStatus, PayoutStatus
from models.payout_batches import BatchStatus, PayoutBatch, VendorPayoutStatus
from models.vendors import Vendor

ADMIN = "admin@example.com"


def _orders(db, *ids):
    return [db.get(Order, oid) for oid in ids]


def _assert_total_matches(batch: PayoutBatch):
    assert Decimal(str(batch.total_amount)) == sum(
        (Decimal(vp["amount"]) for vp in batch.vendor_payouts), Decimal("0")
    )


class TestCreateBatch:

    def test_single_vendor_scenario(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN, notes="weekly run")

        batch = db.get(PayoutBatch, batch_id)
        assert batch.status == BatchStatus.QUEUED
        assert batch.total_amount == Decimal("3325.00")
        assert batch.created_by == ADMIN
        assert batch.notes == "weekly run"
        assert batch.batch_number.startswith("BATCH-")
        assert len(batch.vendor_payouts) == 1

        vp = batch.vendor_payouts[0]
        assert vp["vendor_id"] == "V"
        assert vp["vendor_name"] == "Spice Route"
        assert Decimal(vp["amount"]) == Decimal("3325")
        assert vp["transaction_count"] == 3
        assert sorted(vp["order_ids"]) == ["V-1", "V-2", "V-3"]
        assert vp["status"] == VendorPayoutStatus.QUEUED.value
        assert vp["utr_number"] is None

        for order in _orders(db, "V-1", "V-2", "V-3"):
            assert order.payout_status == PayoutStatus.QUEUED
            assert order.payout_batch_id == batch_id
        assert db.get(Order, "V-1").vendor_earnings == Decimal("950.00")

        assert db.get(Vendor, "V").pending_balance == Decimal("0.00")

    def test_unselected_vendor_untouched(self, db, vendor_v, make_vendor, make_order):
        make_vendor("W", pending_balance="95.00")
        make_order("W", 100, order_id="W-1")

        payout_service.create_batch(db, ["V"], created_by=ADMIN)

        other = db.get(Order, "W-1")
        assert other.payout_status == PayoutStatus.PENDING
        assert other.payout_batch_id is None
        assert db.get(Vendor, "W").pending_balance == Decimal("95.00")

    def test_multi_vendor_total(self, db, vendor_v, make_vendor, make_order):
        make_vendor("W", pending_balance="190.00")
        make_order("W", 200, order_id="W-1")

        batch_id = payout_service.create_batch(db, ["V", "W", "V"], created_by=ADMIN)

        batch = db.get(PayoutBatch, batch_id)
        assert [vp["vendor_id"] for vp in batch.vendor_payouts] == ["V", "W"]
        assert batch.total_amount == Decimal("3515.00")
        _assert_total_matches(batch)

    def test_only_eligible_orders_are_claimed(self, db, vendor_v, make_order):
        make_order("V", 300, order_id="V-prep", fulfillment_status="preparing")
        make_order("V", 300, order_id="V-refund", payment_status=PaymentStatus.REFUNDED)

        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)

        assert db.get(PayoutBatch, batch_id).vendor_payouts[0]["transaction_count"] == 3
        for oid in ("V-prep", "V-refund"):
            order = db.get(Order, oid)
            assert order.payout_status == PayoutStatus.PENDING
            assert order.payout_batch_id is None

    @pytest.mark.parametrize("status", [" delivered ", "DELIVERED", "Ready "])
    def test_listed_balance_is_claimable_whatever_the_status_spelling(
        self, db, make_vendor, make_order, status
    ):
        make_vendor("A")
        make_order("A", 1000, fulfillment_status=status, order_id="A-1")

        [balance] = balance_service.list_vendor_balances(db)
        batch_id = payout_service.create_batch(db, ["A"], created_by=ADMIN)

        batch = db.get(PayoutBatch, batch_id)
        assert Decimal(batch.vendor_payouts[0]["amount"]) == balance.pending_balance
        assert db.get(Order, "A-1").payout_status == PayoutStatus.QUEUED

    def test_vendor_without_pending_is_left_out(self, db, vendor_v, make_vendor):
        make_vendor("empty")

        batch_id = payout_service.create_batch(db, ["V", "empty"], created_by=ADMIN)

        vendor_ids = [vp["vendor_id"] for vp in db.get(PayoutBatch, batch_id).vendor_payouts]
        assert vendor_ids == ["V"]

    @pytest.mark.parametrize("vendor_ids", [[], ["", "  "], None])
    def test_no_vendors_selected(self, db, vendor_v, vendor_ids):
        with pytest.raises(ValidationError):
            payout_service.create_batch(db, vendor_ids, created_by=ADMIN)
        assert db.query(PayoutBatch).count() == 0

    def test_no_pending_balance(self, db, make_vendor):
        make_vendor("empty")

        with pytest.raises(ValidationError):
            payout_service.create_batch(db, ["empty"], created_by=ADMIN)
        assert db.query(PayoutBatch).count() == 0

    def test_created_by_required(self, db, vendor_v):
        with pytest.raises(ValidationError):
            payout_service.create_batch(db, ["V"], created_by=" ")

    def test_unknown_vendor(self, db, vendor_v):
        with pytest.raises(NotFoundError):
            payout_service.create_batch(db, ["V", "nope"], created_by=ADMIN)
        assert db.get(Order, "V-1").payout_status == PayoutStatus.PENDING

    def test_second_batch_for_same_vendor_finds_nothing(self, db, vendor_v):
        payout_service.create_batch(db, ["V"], created_by=ADMIN)

        with pytest.raises(ValidationError):
            payout_service.create_batch(db, ["V"], created_by=ADMIN)
        assert db.query(PayoutBatch).count() == 1


class TestCreateBatchConcurrency:
    """The eligibility read and the claiming write race with other admins."""

    def test_order_claimed_by_another_batch_aborts(self, db, vendor_v, monkeypatch):
        stale = db.query(Order).filter(Order.vendor_id == "V").all()
        first_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)

        # Second admin still works from the read taken before the first commit
        monkeypatch.setattr(payout_service, "_eligible_orders", lambda _db, _vid: stale)

        with pytest.raises(TransactionAbortError):
            payout_service.create_batch(db, ["V"], created_by="other@example.com")

        assert [b.id for b in db.query(PayoutBatch).all()] == [first_id]
        for order in _orders(db, "V-1", "V-2", "V-3"):
            assert order.payout_status == PayoutStatus.QUEUED
            assert order.payout_batch_id == first_id
        assert db.get(Vendor, "V").pending_balance == Decimal("0.00")

    def test_order_leaving_eligibility_aborts_everything(self, db, vendor_v, monkeypatch):
        real = payout_service._eligible_orders

        def refund_after_read(_db, vendor_id):
            orders = real(_db, vendor_id)
            # A refund lands between the read and the claiming write
            _db.execute(
                update(Order)
                .where(Order.id == "V-2")
                .values(payment_status=PaymentStatus.REFUNDED)
            )
            _db.commit()
            return orders

        monkeypatch.setattr(payout_service, "_eligible_orders", refund_after_read)

        with pytest.raises(TransactionAbortError):
            payout_service.create_batch(db, ["V"], created_by=ADMIN)

        assert db.query(PayoutBatch).count() == 0
        for order in _orders(db, "V-1", "V-3"):
            assert order.payout_status == PayoutStatus.PENDING
            assert order.payout_batch_id is None
        assert db.get(Vendor, "V").pending_balance == Decimal("3325.00")


class TestAdvanceBatch:

    def test_queued_to_processing(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)

        payout_service.advance_batch(db, batch_id)

        batch = db.get(PayoutBatch, batch_id)
        assert batch.status == BatchStatus.PROCESSING
        assert batch.vendor_payouts[0]["status"] == VendorPayoutStatus.PROCESSING.value
        _assert_total_matches(batch)
        for order in _orders(db, "V-1", "V-2", "V-3"):
            assert order.payout_status == PayoutStatus.PROCESSING
            assert order.payout_batch_id == batch_id

    def test_not_found(self, db):
        with pytest.raises(NotFoundError):
            payout_service.advance_batch(db, "missing")

    def test_twice_is_illegal(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)
        payout_service.advance_batch(db, batch_id)

        with pytest.raises(IllegalStateError):
            payout_service.advance_batch(db, batch_id)

    def test_order_tampered_with_aborts(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)
        db.execute(
            update(Order).where(Order.id == "V-3").values(payout_status=PayoutStatus.PAID)
        )
        db.commit()

        with pytest.raises(TransactionAbortError):
            payout_service.advance_batch(db, batch_id)

        assert db.get(PayoutBatch, batch_id).status == BatchStatus.QUEUED
        assert db.get(Order, "V-1").payout_status == PayoutStatus.QUEUED


class TestFinalizeBatch:

    def _processing_batch(self, db):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)
        payout_service.advance_batch(db, batch_id)
        return batch_id

    def test_processing_to_completed(self, db, vendor_v):
        batch_id = self._processing_batch(db)

        payout_service.finalize_batch(db, batch_id, {"V": "UTR123"})

        batch = db.get(PayoutBatch, batch_id)
        assert batch.status == BatchStatus.COMPLETED
        assert batch.processed_at is not None
        vp = batch.vendor_payouts[0]
        assert vp["utr_number"] == "UTR123"
        assert vp["status"] == VendorPayoutStatus.PAID.value
        _assert_total_matches(batch)

        for order in _orders(db, "V-1", "V-2", "V-3"):
            assert order.payout_status == PayoutStatus.PAID
            assert order.payout_batch_id == batch_id
            assert order.payout_date is not None

        vendor = db.get(Vendor, "V")
        assert vendor.total_payouts == Decimal("3325.00")
        assert vendor.last_payout_amount == Decimal("3325.00")
        assert vendor.last_payout_date is not None

    def test_missing_reference_left_unset(self, db, vendor_v):
        batch_id = self._processing_batch(db)

        payout_service.finalize_batch(db, batch_id, {"V": "   "})

        assert db.get(PayoutBatch, batch_id).vendor_payouts[0]["utr_number"] is None

    def test_queued_batch_is_illegal_and_untouched(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)

        with pytest.raises(IllegalStateError):
            payout_service.finalize_batch(db, batch_id, {"V": "UTR123"})

        batch = db.get(PayoutBatch, batch_id)
        assert batch.status == BatchStatus.QUEUED
        assert batch.vendor_payouts[0]["utr_number"] is None
        assert db.get(Order, "V-1").payout_status == PayoutStatus.QUEUED
        assert db.get(Vendor, "V").total_payouts == Decimal("0.00")

    def test_completed_batch_cannot_be_finalized_again(self, db, vendor_v):
        batch_id = self._processing_batch(db)
        payout_service.finalize_batch(db, batch_id, {"V": "UTR123"})

        with pytest.raises(IllegalStateError):
            payout_service.finalize_batch(db, batch_id, {"V": "UTR999"})
        assert db.get(Vendor, "V").total_payouts == Decimal("3325.00")

    def test_reference_for_vendor_outside_batch(self, db, vendor_v):
        batch_id = self._processing_batch(db)

        with pytest.raises(ValidationError):
            payout_service.finalize_batch(db, batch_id, {"V": "UTR1", "X": "UTR2"})
        assert db.get(PayoutBatch, batch_id).status == BatchStatus.PROCESSING

    def test_missing_vendor_rolls_back_everything(self, db, vendor_v):
        batch_id = self._processing_batch(db)
        db.delete(db.get(Vendor, "V"))
        db.commit()

        with pytest.raises(TransactionAbortError):
            payout_service.finalize_batch(db, batch_id, {"V": "UTR123"})

        batch = db.get(PayoutBatch, batch_id)
        assert batch.status == BatchStatus.PROCESSING
        assert batch.processed_at is None
        for order in _orders(db, "V-1", "V-2", "V-3"):
            assert order.payout_status == PayoutStatus.PROCESSING
            assert order.payout_date is None

    def test_vendor_is_notified(self, db, vendor_v, monkeypatch):
        sent = []
        monkeypatch.setattr(
            payout_service,
            "send_payout_completed_email",
            lambda **kwargs: sent.append(kwargs),
        )
        batch_id = self._processing_batch(db)

        payout_service.finalize_batch(db, batch_id, {"V": "UTR123"})

        assert len(sent) == 1
        assert sent[0]["to_email"] == "spice@example.com"
        assert sent[0]["utr_number"] == "UTR123"
        assert Decimal(sent[0]["amount"]) == Decimal("3325")

    def test_notification_failure_keeps_payout(self, db, vendor_v, monkeypatch, caplog):
        def boom(**kwargs):
            raise RuntimeError("SMTP down")

        monkeypatch.setattr(payout_service, "send_payout_completed_email", boom)
        batch_id = self._processing_batch(db)

        with caplog.at_level(logging.ERROR, logger="app.payout_service"):
            payout_service.finalize_batch(db, batch_id, {"V": "UTR123"})

        assert db.get(PayoutBatch, batch_id).status == BatchStatus.COMPLETED
        assert db.get(Order, "V-1").payout_status == PayoutStatus.PAID
        assert "payout completed FAILED" in caplog.text


class TestDeleteBatch:

    def test_create_then_delete_restores_everything(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)

        payout_service.delete_batch(db, batch_id)

        assert db.get(PayoutBatch, batch_id) is None
        for order in _orders(db, "V-1", "V-2", "V-3"):
            assert order.payout_status == PayoutStatus.PENDING
            assert order.payout_batch_id is None
        assert db.get(Vendor, "V").pending_balance == Decimal("3325.00")

    def test_processing_batch_can_be_reversed(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)
        payout_service.advance_batch(db, batch_id)

        payout_service.delete_batch(db, batch_id)

        assert db.get(Order, "V-2").payout_status == PayoutStatus.PENDING
        assert db.get(Vendor, "V").pending_balance == Decimal("3325.00")

    def test_orders_can_be_batched_again(self, db, vendor_v):
        first = payout_service.create_batch(db, ["V"], created_by=ADMIN)
        payout_service.delete_batch(db, first)

        second = payout_service.create_batch(db, ["V"], created_by=ADMIN)

        assert db.get(Order, "V-1").payout_batch_id == second
        assert db.get(PayoutBatch, second).total_amount == Decimal("3325.00")

    def test_order_moved_out_of_batch_aborts_reversal(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)
        db.execute(
            update(Order).where(Order.id == "V-2").values(payout_status=PayoutStatus.PAID)
        )
        db.commit()

        with pytest.raises(TransactionAbortError):
            payout_service.delete_batch(db, batch_id)

        assert db.get(PayoutBatch, batch_id) is not None
        for order in _orders(db, "V-1", "V-3"):
            assert order.payout_status == PayoutStatus.QUEUED
            assert order.payout_batch_id == batch_id
        assert db.get(Vendor, "V").pending_balance == Decimal("0.00")

    def test_completed_batch_cannot_be_reversed(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)
        payout_service.advance_batch(db, batch_id)
        payout_service.finalize_batch(db, batch_id, {"V": "UTR123"})

        with pytest.raises(IllegalStateError):
            payout_service.delete_batch(db, batch_id)

        assert db.get(PayoutBatch, batch_id) is not None
        assert db.get(Order, "V-1").payout_status == PayoutStatus.PAID
        assert db.get(Vendor, "V").pending_balance == Decimal("0.00")

    def test_not_found(self, db):
        with pytest.raises(NotFoundError):
            payout_service.delete_batch(db, "missing")


class TestReads:

    def test_list_batches_newest_first(self, db, vendor_v, make_vendor, make_order):
        make_vendor("W")
        make_order("W", 100, order_id="W-1")
        first = payout_service.create_batch(db, ["V"], created_by=ADMIN)
        second = payout_service.create_batch(db, ["W"], created_by=ADMIN)

        batches = payout_service.list_batches(db)

        assert [b.id for b in batches] == [second, first]
        assert batches[1].vendor_payouts[0].transaction_count == 3

    def test_get_batch(self, db, vendor_v):
        batch_id = payout_service.create_batch(db, ["V"], created_by=ADMIN)

        batch = payout_service.get_batch(db, batch_id)

        assert batch.status == BatchStatus.QUEUED
        assert batch.total_amount == Decimal("3325.00")

    def test_get_batch_not_found(self, db):
        with pytest.raises(NotFoundError):
            payout_service.get_batch(db, "missing")

    def test_vendor_history_is_narrowed_to_vendor(self, db, vendor_v, make_vendor, make_order):
        make_vendor("W")
        make_order("W", 200, order_id="W-1")
        make_vendor("X")
        make_order("X", 100, order_id="X-1")
        shared = payout_service.create_batch(db, ["V", "W"], created_by=ADMIN)
        payout_service.create_batch(db, ["X"], created_by=ADMIN)

        history = payout_service.get_vendor_payout_history(db, "W")

        assert [b.id for b in history] == [shared]
        assert history[0].total_amount == Decimal("190.00")
        assert [vp.vendor_id for vp in history[0].vendor_payouts] == ["W"]

    def test_vendor_history_unknown_vendor(self, db):
        with pytest.raises(NotFoundError):
            payout_service.get_vendor_payout_history(db, "nope")


def test_batch_number_format():
    now = datetime(2026, 10, 19, 14, 30, 15, 4821, tzinfo=timezone.utc)

    assert payout_service.new_batch_number(now) == "BATCH-2026-1019-143015-004821"

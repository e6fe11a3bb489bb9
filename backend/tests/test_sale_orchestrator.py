from decimal import Decimal

import pytest

from pharmacy_pos.core.exceptions import (
    EmptySale,
    InvalidStateTransition,
    InventoryInconsistent,
    PersistenceFailure,
    SaleNotFound,
)
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.models.sale import Sale, SaleStatus
from pharmacy_pos.services import inventory_service, sale_service
from pharmacy_pos.services.sale_orchestrator import (
    REASON_INSUFFICIENT_STOCK,
    REASON_MEDICINE_NOT_FOUND,
    Committed,
    Failed,
    SaleOrchestrator,
    StockDelta,
)
from pharmacy_pos.services.stock_ledger import StockLedger


@pytest.fixture
def cart(repo, ledger, make_medicine):
    """A pending sale: 2 x A @ 10.00 and 3 x B @ 5.00, both with 10 in stock."""
    a = make_medicine(name="Amoxicillin 250mg", price="10.00", stock=10)
    b = make_medicine(name="Cetirizine 10mg", price="5.00", stock=10)
    sale = sale_service.create_sale(repo, "Ravi", "cashier-1")
    sale_service.add_item(repo, ledger, sale.id, a.id, 2)
    sale_service.add_item(repo, ledger, sale.id, b.id, 3)
    return sale, a, b


def _force_line(repo, sale_id, medicine, quantity):
    """Put a line on the sale without the add-time stock check."""
    sale = repo.load_sale(sale_id)
    sale.add_item(medicine, quantity)
    repo.update_sale(sale)
    repo.commit()


# ---------------------------------------------------------------------------
# Success
# ---------------------------------------------------------------------------

def test_complete_sale_deducts_every_line(orchestrator, repo, cart):
    sale, a, b = cart

    outcome = orchestrator.complete_sale(sale.id)

    assert isinstance(outcome, Committed)
    assert outcome.succeeded
    assert outcome.final_amount == Decimal("35.00")
    assert outcome.deltas == (StockDelta(a.id, -2, 8), StockDelta(b.id, -3, 7))
    assert repo.current_stock(a.id) == 8
    assert repo.current_stock(b.id) == 7

    stored = repo.load_sale(sale.id)
    assert stored.status == SaleStatus.COMPLETED.value
    assert stored.completed_at is not None


def test_discount_carries_into_committed_amount(orchestrator, repo, cart):
    sale, _, _ = cart
    sale_service.apply_discount(repo, sale.id, "5.00")
    outcome = orchestrator.complete_sale(sale.id)
    assert outcome.final_amount == Decimal("30.00")


# ---------------------------------------------------------------------------
# Failure with rollback
# ---------------------------------------------------------------------------

def test_shortfall_on_second_line_restores_first(orchestrator, repo, ledger, make_medicine):
    a = make_medicine(name="A", stock=5)
    b = make_medicine(name="B", stock=0)
    sale = sale_service.create_sale(repo, None, "cashier-1")
    sale_service.add_item(repo, ledger, sale.id, a.id, 3)
    _force_line(repo, sale.id, b, 1)

    outcome = orchestrator.complete_sale(sale.id)

    assert isinstance(outcome, Failed)
    assert not outcome.succeeded
    assert outcome.reason == REASON_INSUFFICIENT_STOCK
    assert outcome.failed_index == 1
    assert outcome.failed_medicine_id == b.id
    assert outcome.rolled_back == ((a.id, 3),)
    assert repo.current_stock(a.id) == 5
    assert repo.current_stock(b.id) == 0
    assert repo.load_sale(sale.id).status == SaleStatus.PENDING.value


def test_stock_sold_elsewhere_after_cart_was_built(orchestrator, repo, ledger, cart):
    sale, a, b = cart
    ledger.reduce(b.id, 9)  # another till takes most of B

    outcome = orchestrator.complete_sale(sale.id)

    assert isinstance(outcome, Failed)
    assert outcome.failed_index == 1
    assert "available 1" in outcome.message
    assert repo.current_stock(a.id) == 10
    assert repo.current_stock(b.id) == 1


def test_first_line_failing_touches_nothing(orchestrator, repo, ledger, cart):
    sale, a, b = cart
    ledger.set_absolute(a.id, 1)

    outcome = orchestrator.complete_sale(sale.id)

    assert outcome.failed_index == 0
    assert outcome.rolled_back == ()
    assert repo.current_stock(a.id) == 1
    assert repo.current_stock(b.id) == 10


def test_medicine_removed_from_catalog_mid_sale(orchestrator, repo, db, cart):
    sale, a, b = cart
    db.delete(repo.load_medicine(b.id))
    db.commit()

    outcome = orchestrator.complete_sale(sale.id)

    assert isinstance(outcome, Failed)
    assert outcome.reason == REASON_MEDICINE_NOT_FOUND
    assert outcome.failed_medicine_id == b.id
    assert repo.current_stock(a.id) == 10


def test_retry_after_restock_succeeds(orchestrator, repo, ledger, make_medicine):
    a = make_medicine(name="A", stock=5)
    b = make_medicine(name="B", stock=0)
    sale = sale_service.create_sale(repo, None, "cashier-1")
    sale_service.add_item(repo, ledger, sale.id, a.id, 2)
    _force_line(repo, sale.id, b, 1)

    assert not orchestrator.complete_sale(sale.id).succeeded
    ledger.add(b.id, 4)

    outcome = orchestrator.complete_sale(sale.id)
    assert outcome.succeeded
    assert repo.current_stock(a.id) == 3
    assert repo.current_stock(b.id) == 3


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------

def test_empty_sale_is_rejected(orchestrator, repo):
    sale = sale_service.create_sale(repo, None, "cashier-1")
    with pytest.raises(EmptySale):
        orchestrator.complete_sale(sale.id)
    assert repo.load_sale(sale.id).status == SaleStatus.PENDING.value


def test_completed_sale_cannot_complete_again(orchestrator, repo, cart):
    sale, a, _ = cart
    orchestrator.complete_sale(sale.id)
    with pytest.raises(InvalidStateTransition):
        orchestrator.complete_sale(sale.id)
    assert repo.current_stock(a.id) == 8


def test_cancelled_sale_cannot_complete(orchestrator, repo, cart):
    sale, a, _ = cart
    sale_service.cancel_sale(repo, sale.id)
    with pytest.raises(InvalidStateTransition):
        orchestrator.complete_sale(sale.id)
    assert repo.current_stock(a.id) == 10


def test_unknown_sale(orchestrator):
    with pytest.raises(SaleNotFound):
        orchestrator.complete_sale("INV-missing")


# ---------------------------------------------------------------------------
# Store failures
# ---------------------------------------------------------------------------

def test_failed_restore_reports_inventory_inconsistent(orchestrator, repo, ledger, make_medicine, monkeypatch):
    a = make_medicine(name="A", stock=5)
    b = make_medicine(name="B", stock=5)
    c = make_medicine(name="C", stock=5)
    sale = sale_service.create_sale(repo, None, "cashier-1")
    sale_service.add_item(repo, ledger, sale.id, a.id, 2)
    sale_service.add_item(repo, ledger, sale.id, b.id, 1)
    sale_service.add_item(repo, ledger, sale.id, c.id, 5)
    ledger.set_absolute(c.id, 0)

    def broken_add(medicine_id, quantity, reference=None):
        raise PersistenceFailure("increment_stock failed")

    monkeypatch.setattr(ledger, "add", broken_add)

    with pytest.raises(InventoryInconsistent) as excinfo:
        orchestrator.complete_sale(sale.id)

    assert excinfo.value.sale_id == sale.id
    assert excinfo.value.unrestored == [(b.id, 1), (a.id, 2)]
    assert repo.current_stock(a.id) == 3
    assert repo.current_stock(b.id) == 4
    assert repo.load_sale(sale.id).status == SaleStatus.PENDING.value


def test_failure_saving_completed_sale_restores_stock(orchestrator, repo, cart, monkeypatch):
    sale, a, b = cart

    def broken_transition(*args, **kwargs):
        raise PersistenceFailure("transition_sale_status failed")

    monkeypatch.setattr(repo, "transition_sale_status", broken_transition)

    with pytest.raises(PersistenceFailure):
        orchestrator.complete_sale(sale.id)

    monkeypatch.undo()
    assert repo.current_stock(a.id) == 10
    assert repo.current_stock(b.id) == 10
    assert repo.load_sale(sale.id).status == SaleStatus.PENDING.value


def test_refused_completion_after_deduction_restores_stock(orchestrator, repo, cart, monkeypatch):
    sale, a, b = cart

    def refuse(self):
        raise InvalidStateTransition("Sale", self.id, self.status, SaleStatus.COMPLETED.value)

    monkeypatch.setattr(Sale, "complete", refuse)

    with pytest.raises(InvalidStateTransition):
        orchestrator.complete_sale(sale.id)

    monkeypatch.undo()
    assert repo.current_stock(a.id) == 10
    assert repo.current_stock(b.id) == 10
    assert repo.load_sale(sale.id).status == SaleStatus.PENDING.value


# ---------------------------------------------------------------------------
# Two tills on one sale
# ---------------------------------------------------------------------------

@pytest.fixture
def shared_sale(file_store):
    """A pending sale of 3 x Dolo 650 (stock 10) in an on-disk store; returns (sale_id, medicine_id)."""
    setup = file_store()
    try:
        setup_repo = PharmacyRepository(setup)
        med = inventory_service.create_medicine(setup_repo, name="Dolo 650", price="3.00", stock=10)
        sale = sale_service.create_sale(setup_repo, "Ravi", "cashier-1")
        sale_service.add_item(setup_repo, StockLedger(setup_repo), sale.id, med.id, 3)
        return sale.id, med.id
    finally:
        setup.close()


def _stored(file_store, sale_id, medicine_id):
    check = file_store()
    try:
        check_repo = PharmacyRepository(check)
        return check_repo.current_stock(medicine_id), check_repo.sale_status(sale_id)
    finally:
        check.close()


def _interrupt_after_first_reduce(monkeypatch, ledger, action):
    """Run `action` once, right after the first stock deduction made through `ledger`."""
    real_reduce = ledger.reduce
    fired = []

    def reduce_then_interrupt(medicine_id, quantity, reference=None):
        medicine = real_reduce(medicine_id, quantity, reference=reference)
        if not fired:
            fired.append(action())
        return medicine

    monkeypatch.setattr(ledger, "reduce", reduce_then_interrupt)
    return fired


def test_two_tills_completing_same_sale_deduct_once(file_store, shared_sale, monkeypatch):
    sale_id, med_id = shared_sale
    till_a, till_b = file_store(), file_store()
    try:
        repo_a = PharmacyRepository(till_a)
        ledger_a = StockLedger(repo_a)
        orchestrator_a = SaleOrchestrator(repo_a, ledger_a)
        orchestrator_b = SaleOrchestrator(PharmacyRepository(till_b))
        other = _interrupt_after_first_reduce(monkeypatch, ledger_a, lambda: orchestrator_b.complete_sale(sale_id))

        with pytest.raises(InvalidStateTransition):
            orchestrator_a.complete_sale(sale_id)

        assert isinstance(other[0], Committed)
    finally:
        till_a.close()
        till_b.close()

    assert _stored(file_store, sale_id, med_id) == (7, SaleStatus.COMPLETED.value)


def test_sale_cancelled_at_other_till_mid_completion(file_store, shared_sale, monkeypatch):
    sale_id, med_id = shared_sale
    till_a, till_b = file_store(), file_store()
    try:
        repo_a = PharmacyRepository(till_a)
        ledger_a = StockLedger(repo_a)
        orchestrator_a = SaleOrchestrator(repo_a, ledger_a)
        _interrupt_after_first_reduce(
            monkeypatch, ledger_a, lambda: sale_service.cancel_sale(PharmacyRepository(till_b), sale_id)
        )

        with pytest.raises(InvalidStateTransition):
            orchestrator_a.complete_sale(sale_id)
    finally:
        till_a.close()
        till_b.close()

    assert _stored(file_store, sale_id, med_id) == (10, SaleStatus.CANCELLED.value)


@pytest.mark.parametrize("other_till_completes", [True, False])
def test_status_write_loses_to_other_till(file_store, shared_sale, monkeypatch, other_till_completes):
    """The other till gets in between our re-read of the sale and our status UPDATE."""
    sale_id, med_id = shared_sale
    till_a, till_b = file_store(), file_store()
    try:
        repo_a = PharmacyRepository(till_a)
        repo_b = PharmacyRepository(till_b)
        orchestrator_a = SaleOrchestrator(repo_a)
        real_transition = repo_a.transition_sale_status

        def other_till_first(*args, **kwargs):
            if other_till_completes:
                assert SaleOrchestrator(repo_b).complete_sale(sale_id).succeeded
            else:
                sale_service.cancel_sale(repo_b, sale_id)
            return real_transition(*args, **kwargs)

        monkeypatch.setattr(repo_a, "transition_sale_status", other_till_first)

        with pytest.raises(InvalidStateTransition) as excinfo:
            orchestrator_a.complete_sale(sale_id)
    finally:
        till_a.close()
        till_b.close()

    expected_status = SaleStatus.COMPLETED.value if other_till_completes else SaleStatus.CANCELLED.value
    assert excinfo.value.current == expected_status
    assert _stored(file_store, sale_id, med_id) == (7 if other_till_completes else 10, expected_status)

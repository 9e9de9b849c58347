"""
Tests for the expense ledger and its installment cascades

All flows run against the in-memory document store.
"""

from datetime import date
from decimal import Decimal

import pytest

from spendtrack.audit import AuditLogger
from spendtrack.ledger import (
    ExpenseLedger,
    NotFoundError,
    OrphanedPaymentWarning,
    StorageError,
    ValidationError,
)
from spendtrack.models import (
    Expense,
    ExpenseCategory,
    ExpenseInput,
    ExpenseType,
    PaymentType,
)
from spendtrack.services.storage.memory import InMemoryDocumentStore, InMemoryWriteBatch


UID = "user-1"

EXPENSES = f"users/{UID}/expenses"
INSTALLMENTS = f"users/{UID}/installments"
AUDIT_LOG = f"users/{UID}/auditLog"


def plan_input(amount="1200", total=12, card_id="visa", purchase_date=date(2024, 1, 15)):
    return {
        "amount": amount,
        "category": "other",
        "date": purchase_date,
        "payment": {
            "method": "credit",
            "card_id": card_id,
            "plan": {"kind": "installment_plan", "total_installments": total},
        },
    }


def payment_input(amount="100", installment_number=None):
    return {
        "amount": amount,
        "date": date(2024, 2, 15),
        "installment_number": installment_number,
    }


def paid_numbers(installments):
    return [i.installment_number for i in installments if i.is_paid]


class FailingBatch(InMemoryWriteBatch):

    async def commit(self) -> None:
        raise StorageError("write rejected")


class FailingBatchStore(InMemoryDocumentStore):

    def batch(self):
        return FailingBatch(self)


class TestAddExpense:
    """Tests for recording expenses."""

    def test_cash_expense(self, app, run):
        """Test a plain cash expense with defaults filled in."""
        expense_id = run(app.expenses.add_expense(ExpenseInput(amount=Decimal("12.50"), date=date(2024, 1, 15))))
        expense = run(app.expenses.get_expense(expense_id))

        assert expense.amount == Decimal("12.50")
        assert expense.payment_type == PaymentType.CASH
        assert expense.category == ExpenseCategory.OTHER
        assert expense.type == ExpenseType.DAILY
        assert expense.credit_data is None
        assert expense.created_at is not None
        assert run(app.installments.list_for_expense(expense_id)) == []

    def test_installment_plan_creates_all_installments(self, app, run):
        """Test that a plan yields installments numbered 1..N on the plan's card."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        installments = run(app.installments.list_for_expense(plan_id))

        assert [i.installment_number for i in installments] == list(range(1, 13))
        assert all(i.card_id == "visa" for i in installments)
        assert all(i.amount == Decimal("100.00") for i in installments)
        assert all(i.expense_id == plan_id for i in installments)
        assert installments[0].due_date == date(2024, 2, 15)
        assert installments[-1].due_date == date(2025, 1, 15)
        assert paid_numbers(installments) == []

        expense = run(app.expenses.get_expense(plan_id))
        assert expense.is_plan_root
        assert expense.credit_data.monthly_amount == Decimal("100.00")
        assert expense.credit_data.total_installments == 12

    def test_uneven_plan_installments_are_exact_shares(self, app, run):
        """Test that 100 over 3 months schedules purchase / 3 per installment."""
        plan_id = run(app.expenses.add_expense(plan_input(amount="100", total=3)))
        installments = run(app.installments.list_for_expense(plan_id))

        share = Decimal(100) / 3
        assert len(installments) == 3
        assert all(abs(i.amount - share) < Decimal("1e-9") for i in installments)
        assert abs(sum(i.amount for i in installments) - Decimal("100")) < Decimal("1e-20")
        expense = run(app.expenses.get_expense(plan_id))
        assert abs(expense.credit_data.monthly_amount - share) < Decimal("1e-9")

    def test_single_credit_payment_has_no_installments(self, app, run):
        """Test a one-off credit purchase."""
        expense_id = run(app.expenses.add_expense({
            "amount": "40",
            "date": date(2024, 1, 15),
            "payment": {"method": "credit", "card_id": "visa"},
        }))
        expense = run(app.expenses.get_expense(expense_id))
        assert expense.payment_type == PaymentType.CREDIT
        assert not expense.is_plan_root
        assert run(app.installments.list_for_expense(expense_id)) == []

    def test_single_credit_payment_requires_card(self, app, run, store):
        """Test that a single credit payment without a card is rejected."""
        with pytest.raises(ValidationError):
            run(app.expenses.add_expense({"amount": "40", "payment": {"method": "credit"}}))
        assert store.count(EXPENSES) == 0

    def test_plan_without_card_uses_default_card(self, app, run):
        """Test the configured fallback card for installment plans."""
        plan_id = run(app.expenses.add_expense(plan_input(card_id=None, total=3)))
        installments = run(app.installments.list_for_expense(plan_id))
        assert {i.card_id for i in installments} == {"default_credit"}

    @pytest.mark.parametrize("amount", ["0", "-10", "abc"])
    def test_invalid_amount_rejected(self, app, run, store, amount):
        """Test that invalid amounts never reach the store."""
        with pytest.raises(ValidationError):
            run(app.expenses.add_expense({"amount": amount}))
        assert store.count(EXPENSES) == 0

    def test_card_key_resolved_to_internal_id(self, app, run):
        """Test that a user-facing card id is stored as the card's internal id."""
        card_doc_id = run(app.cards.add_card("HNB Visa"))
        plan_id = run(app.expenses.add_expense(plan_input(card_id="hnb_visa", total=2)))

        expense = run(app.expenses.get_expense(plan_id))
        assert expense.credit_data.card_id == card_doc_id
        installments = run(app.installments.list_for_expense(plan_id))
        assert {i.card_id for i in installments} == {card_doc_id}

    def test_failed_commit_writes_nothing(self, run):
        """Test that a plan and its installments are written together or not at all."""
        store = FailingBatchStore()
        ledger = ExpenseLedger(store, UID)
        with pytest.raises(StorageError):
            run(ledger.add_expense(plan_input()))
        assert store.count(EXPENSES) == 0
        assert store.count(INSTALLMENTS) == 0

    def test_variant_b_prepays_first_installment(self, store, run, variant_b_settings):
        """Test the first-due-on-purchase convention."""
        ledger = ExpenseLedger(store, UID, settings=variant_b_settings)
        plan_id = run(ledger.add_expense(plan_input(total=3)))
        installments = run(ledger.installments.list_for_expense(plan_id))

        assert installments[0].due_date == date(2024, 1, 15)
        assert installments[0].is_paid
        assert installments[0].paid_by_expense_id is None
        assert paid_numbers(installments) == [1]

        result = run(ledger.pay_installment(plan_id, payment_input()))
        assert result.installment_number == 2


class TestPayInstallment:
    """Tests for paying installments of a plan."""

    def test_pays_lowest_unpaid(self, app, run):
        """Test that without a number the lowest unpaid installment is paid."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        result = run(app.expenses.pay_installment(plan_id, payment_input()))

        assert not result.orphaned
        assert result.installment_number == 1
        installments = run(app.installments.list_for_expense(plan_id))
        assert paid_numbers(installments) == [1]
        first = installments[0]
        assert first.due_date == date(2024, 2, 15)
        assert first.paid_by_expense_id == result.payment_expense_id
        assert first.paid_at is not None

        result = run(app.expenses.pay_installment(plan_id, payment_input()))
        assert result.installment_number == 2

    def test_pays_explicit_number(self, app, run):
        """Test that an explicit number pays exactly that installment."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        result = run(app.expenses.pay_installment(plan_id, payment_input(installment_number=5)))

        assert result.installment_number == 5
        installments = run(app.installments.list_for_expense(plan_id))
        assert paid_numbers(installments) == [5]

    def test_payment_expense_links_to_plan(self, app, run):
        """Test the shape of the recorded payment expense."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        result = run(app.expenses.pay_installment(plan_id, payment_input(installment_number=2)))
        payment = run(app.expenses.get_expense(result.payment_expense_id))

        assert payment.is_payment
        assert payment.payment_for_expense_id == plan_id
        assert payment.applied_installment_number == 2
        assert payment.category == ExpenseCategory.INSTALLMENT
        assert payment.type == ExpenseType.OTHER
        assert payment.payment_type == PaymentType.CREDIT
        assert payment.credit_data is None

    def test_unknown_number_records_orphaned_payment(self, app, run):
        """Test that a payment with no target is kept and flagged."""
        plan_id = run(app.expenses.add_expense(plan_input(total=3)))
        with pytest.warns(OrphanedPaymentWarning):
            result = run(app.expenses.pay_installment(plan_id, payment_input(installment_number=9)))

        assert result.orphaned
        assert run(app.expenses.get_expense(result.payment_expense_id)) is not None
        assert paid_numbers(run(app.installments.list_for_expense(plan_id))) == []

        orphans = run(app.installments.find_orphaned_payments())
        assert [o.id for o in orphans] == [result.payment_expense_id]

    def test_fully_paid_plan_orphans_next_payment(self, app, run):
        """Test paying a plan with nothing left to pay."""
        plan_id = run(app.expenses.add_expense(plan_input(total=1)))
        run(app.expenses.pay_installment(plan_id, payment_input()))
        with pytest.warns(OrphanedPaymentWarning):
            result = run(app.expenses.pay_installment(plan_id, payment_input()))
        assert result.orphaned

    def test_requires_plan_selection(self, app, run, store):
        """Test that a payment must name its plan."""
        with pytest.raises(ValidationError):
            run(app.expenses.pay_installment("", payment_input()))
        assert store.count(EXPENSES) == 0

    def test_rejects_non_positive_amount(self, app, run):
        """Test that payment amounts must be positive."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        with pytest.raises(ValidationError):
            run(app.expenses.pay_installment(plan_id, payment_input(amount="0")))


class TestDeleteExpense:
    """Tests for delete cascades."""

    def test_delete_plan_root_removes_installments(self, app, run, store):
        """Test that deleting a plan root deletes all its installments."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        other_id = run(app.expenses.add_expense(plan_input(total=2)))

        assert run(app.expenses.delete_expense(plan_id)) is True
        assert run(app.expenses.get_expense(plan_id)) is None
        assert run(app.installments.list_for_expense(plan_id)) == []
        assert len(run(app.installments.list_for_expense(other_id))) == 2
        assert store.count(INSTALLMENTS) == 2

    def test_delete_payment_reverts_its_installment(self, app, run):
        """Test that deleting the payment for #k makes #k unpaid again."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        run(app.expenses.pay_installment(plan_id, payment_input()))
        result = run(app.expenses.pay_installment(plan_id, payment_input(installment_number=3)))

        assert run(app.expenses.delete_expense(result.payment_expense_id)) is True

        installments = run(app.installments.list_for_expense(plan_id))
        assert paid_numbers(installments) == [1]
        third = installments[2]
        assert third.paid_at is None
        assert third.paid_by_expense_id is None

    def test_legacy_payment_reverts_applied_number(self, app, run, store):
        """Test reversal by applied installment number when no link exists."""
        plan_id = run(app.expenses.add_expense(plan_input(total=3)))
        installments = run(app.installments.list_for_expense(plan_id))
        run(app.installments.set_paid(installments[0].id))
        run(app.installments.set_paid(installments[1].id))
        legacy_id = run(store.create(EXPENSES, Expense(
            amount=Decimal("400"),
            date=date(2024, 2, 15),
            payment_type=PaymentType.CREDIT,
            payment_for_expense_id=plan_id,
            applied_installment_number=1,
        ).to_document()))

        run(app.expenses.delete_expense(legacy_id))
        assert paid_numbers(run(app.installments.list_for_expense(plan_id))) == [2]

    def test_legacy_payment_reverts_highest_paid(self, app, run, store):
        """Test the highest-numbered fallback when nothing else identifies the target."""
        plan_id = run(app.expenses.add_expense(plan_input(total=3)))
        installments = run(app.installments.list_for_expense(plan_id))
        run(app.installments.set_paid(installments[0].id))
        run(app.installments.set_paid(installments[1].id))
        legacy_id = run(store.create(EXPENSES, Expense(
            amount=Decimal("400"),
            date=date(2024, 2, 15),
            payment_type=PaymentType.CREDIT,
            payment_for_expense_id=plan_id,
        ).to_document()))

        run(app.expenses.delete_expense(legacy_id))
        assert paid_numbers(run(app.installments.list_for_expense(plan_id))) == [1]

    def test_delete_missing_is_noop(self, app, run):
        """Test that deleting twice is harmless."""
        expense_id = run(app.expenses.add_expense({"amount": "5"}))
        assert run(app.expenses.delete_expense(expense_id)) is True
        assert run(app.expenses.delete_expense(expense_id)) is False


class TestUpdateExpense:
    """Tests for editing expenses."""

    def test_plan_edit_regenerates_installments(self, app, run):
        """Test that editing 12 to 6 installments leaves exactly 6 unpaid ones."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        run(app.expenses.pay_installment(plan_id, payment_input()))

        run(app.expenses.update_expense(plan_id, plan_input(total=6)))

        installments = run(app.installments.list_for_expense(plan_id))
        assert [i.installment_number for i in installments] == list(range(1, 7))
        assert paid_numbers(installments) == []
        assert all(i.amount == Decimal("200.00") for i in installments)
        assert run(app.expenses.get_expense(plan_id)).credit_data.total_installments == 6

    def test_plan_edit_to_cash_removes_installments(self, app, run, store):
        """Test that a plan edited into a cash expense loses its schedule."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        run(app.expenses.update_expense(plan_id, {"amount": "1200", "date": date(2024, 1, 15)}))

        assert store.count(INSTALLMENTS) == 0
        expense = run(app.expenses.get_expense(plan_id))
        assert expense.payment_type == PaymentType.CASH
        assert expense.credit_data is None

    def test_edit_keeps_payment_link(self, app, run):
        """Test that editing a payment expense keeps it linked to its plan."""
        plan_id = run(app.expenses.add_expense(plan_input()))
        result = run(app.expenses.pay_installment(plan_id, payment_input(installment_number=2)))

        run(app.expenses.update_expense(result.payment_expense_id, {
            "amount": "110",
            "category": "installment",
            "date": date(2024, 2, 16),
        }))
        payment = run(app.expenses.get_expense(result.payment_expense_id))
        assert payment.amount == Decimal("110")
        assert payment.payment_for_expense_id == plan_id
        assert payment.applied_installment_number == 2

    def test_edit_missing_raises(self, app, run):
        """Test that editing a deleted expense raises NotFoundError."""
        with pytest.raises(NotFoundError):
            run(app.expenses.update_expense("gone", {"amount": "5"}))

    def test_update_or_create_falls_back_to_add(self, app, run, store):
        """Test that a deleted expense is recreated on edit."""
        new_id = run(app.expenses.update_or_create("gone", {"amount": "5"}))
        assert new_id != "gone"
        assert store.count(EXPENSES) == 1


class TestExpenseQueries:
    """Tests for expense reads."""

    def test_list_by_date_and_type(self, app, run):
        """Test filtering by date and expense type."""
        run(app.expenses.add_expense({"amount": "5", "date": date(2024, 1, 15), "type": "daily"}))
        run(app.expenses.add_expense({"amount": "6", "date": date(2024, 1, 15), "type": "other"}))
        run(app.expenses.add_expense({"amount": "7", "date": date(2024, 1, 16)}))

        on_day = run(app.expenses.list_expenses(on_date=date(2024, 1, 15)))
        assert [e.amount for e in on_day] == [Decimal("6"), Decimal("5")]

        daily = run(app.expenses.list_expenses(expense_type=ExpenseType.DAILY))
        assert len(daily) == 2

    def test_monthly_expenses_newest_first(self, app, run):
        """Test the month window and its ordering."""
        run(app.expenses.add_expense({"amount": "1", "date": date(2023, 12, 31)}))
        run(app.expenses.add_expense({"amount": "2", "date": date(2024, 1, 1)}))
        run(app.expenses.add_expense({"amount": "3", "date": date(2024, 1, 31)}))
        run(app.expenses.add_expense({"amount": "4", "date": date(2024, 2, 1)}))

        january = run(app.expenses.list_monthly_expenses(2024, 1))
        assert [e.amount for e in january] == [Decimal("3"), Decimal("2")]

    def test_invalid_month_rejected(self, app, run):
        """Test that months are 1-based."""
        with pytest.raises(ValidationError):
            run(app.expenses.list_monthly_expenses(2024, 13))


class TestInstallmentLedger:
    """Tests for direct installment operations."""

    def test_set_paid_toggles_state(self, app, run):
        """Test manual paid/unpaid toggling."""
        plan_id = run(app.expenses.add_expense(plan_input(total=2)))
        first = run(app.installments.list_for_expense(plan_id))[0]

        paid = run(app.installments.set_paid(first.id))
        assert paid.is_paid and paid.paid_at is not None

        unpaid = run(app.installments.set_paid(first.id, is_paid=False))
        assert not unpaid.is_paid
        stored = run(app.installments.get(first.id))
        assert stored.paid_at is None and stored.paid_by_expense_id is None

    def test_set_paid_missing_raises(self, app, run):
        """Test toggling an installment that doesn't exist."""
        with pytest.raises(NotFoundError):
            run(app.installments.set_paid("nope"))

    def test_list_installments_by_due_date(self, app, run):
        """Test ordering and due-date filtering across plans."""
        run(app.expenses.add_expense(plan_input(total=2, purchase_date=date(2024, 3, 1))))
        run(app.expenses.add_expense(plan_input(total=2, purchase_date=date(2024, 1, 1))))

        due = [i.due_date for i in run(app.installments.list_installments())]
        assert due == sorted(due)
        on_day = run(app.installments.list_installments(due_date=date(2024, 4, 1)))
        assert len(on_day) == 1

    def test_delete_for_expense(self, app, run):
        """Test deleting a plan's installments directly."""
        plan_id = run(app.expenses.add_expense(plan_input(total=4)))
        assert run(app.installments.delete_for_expense(plan_id)) == 4
        assert run(app.installments.delete_for_expense(plan_id)) == 0


class TestAuditTrail:
    """Tests for persisted audit events."""

    def test_mutations_are_audited(self, store, run):
        """Test that ledger mutations append audit events."""
        ledger = ExpenseLedger(store, UID, audit_logger=AuditLogger(store, AUDIT_LOG))
        plan_id = run(ledger.add_expense(plan_input(total=2)))
        run(ledger.pay_installment(plan_id, payment_input()))

        events = [d.data["event_type"] for d in run(store.query(AUDIT_LOG))]
        assert "expense_added" in events
        assert "installments_scheduled" in events
        assert "installment_paid" in events

    def test_validation_failures_are_audited(self, store, run):
        """Test that rejected input leaves a warning event."""
        ledger = ExpenseLedger(store, UID, audit_logger=AuditLogger(store, AUDIT_LOG))
        with pytest.raises(ValidationError):
            run(ledger.add_expense({"amount": "40", "payment": {"method": "credit"}}))

        events = run(store.query(AUDIT_LOG))
        assert [d.data["event_type"] for d in events] == ["validation_failed"]
        assert events[0].data["severity"] == "warning"

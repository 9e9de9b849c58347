"""Tests for the installment scheduler."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from spendtrack.config import ScheduleVariant
from spendtrack.ledger import ValidationError, due_date_for, monthly_amount, schedule


NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class TestMonthlyAmount:
    """Tests for the monthly share of a purchase."""

    def test_even_split(self):
        """Test 1200 over 12 months."""
        assert monthly_amount(Decimal("1200"), 12) == Decimal("100.00")

    def test_uneven_split_is_not_rounded(self):
        """Test that 100 over 3 keeps the full quotient instead of 33.33."""
        share = monthly_amount(Decimal("100"), 3)
        assert abs(share - Decimal(100) / 3) < Decimal("1e-9")
        assert share != Decimal("33.33")
        assert abs(share * 3 - Decimal("100")) < Decimal("1e-20")
        assert monthly_amount(Decimal("0.05"), 2) == Decimal("0.025")

    def test_rejects_zero_installments(self):
        """Test that N < 1 is rejected."""
        with pytest.raises(ValidationError):
            monthly_amount(Decimal("100"), 0)

    def test_rejects_invalid_amounts(self):
        """Test that non-positive and non-numeric amounts are rejected."""
        with pytest.raises(ValidationError):
            monthly_amount(Decimal("0"), 3)
        with pytest.raises(ValidationError):
            monthly_amount("abc", 3)


class TestDueDates:
    """Tests for the two due-date conventions."""

    def test_variant_a_starts_next_month(self):
        """Test that installment 1 falls due one month after purchase."""
        assert due_date_for(date(2024, 1, 15), 1) == date(2024, 2, 15)
        assert due_date_for(date(2024, 1, 15), 12) == date(2025, 1, 15)

    def test_variant_b_starts_on_purchase(self):
        """Test that installment 1 falls due on the purchase date."""
        variant = ScheduleVariant.FIRST_DUE_ON_PURCHASE
        assert due_date_for(date(2024, 1, 15), 1, variant) == date(2024, 1, 15)
        assert due_date_for(date(2024, 1, 15), 3, variant) == date(2024, 3, 15)

    def test_month_end_is_clamped(self):
        """Test that Jan 31 + 1 month is the last day of February."""
        assert due_date_for(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert due_date_for(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert due_date_for(date(2024, 1, 31), 2) == date(2024, 3, 31)


class TestSchedule:
    """Tests for draft generation."""

    def test_twelve_month_plan(self):
        """Test 1200 over 12 from 2024-01-15 under variant A."""
        drafts = schedule(date(2024, 1, 15), 12, Decimal("100.00"), "visa")

        assert [d.installment_number for d in drafts] == list(range(1, 13))
        assert drafts[0].due_date == date(2024, 2, 15)
        assert drafts[-1].due_date == date(2025, 1, 15)
        assert all(d.amount == Decimal("100.00") for d in drafts)
        assert all(d.card_id == "visa" for d in drafts)
        assert all(d.total_installments == 12 for d in drafts)
        assert not any(d.is_paid for d in drafts)

    def test_variant_b_prepays_first_installment(self):
        """Test that variant B creates installment 1 already paid."""
        drafts = schedule(
            date(2024, 1, 15),
            3,
            Decimal("100.00"),
            "visa",
            variant=ScheduleVariant.FIRST_DUE_ON_PURCHASE,
            now=NOW,
        )
        assert drafts[0].is_paid
        assert drafts[0].paid_at == NOW
        assert drafts[0].due_date == date(2024, 1, 15)
        assert not drafts[1].is_paid
        assert drafts[1].paid_at is None

    def test_single_installment_plan(self):
        """Test that N = 1 yields exactly one draft."""
        drafts = schedule(date(2024, 1, 15), 1, Decimal("50"), "visa")
        assert len(drafts) == 1

    @pytest.mark.parametrize(
        "total, monthly, card",
        [
            (0, Decimal("100"), "visa"),
            (3, Decimal("0"), "visa"),
            (3, Decimal("100"), ""),
        ],
    )
    def test_invalid_plans_rejected(self, total, monthly, card):
        """Test that bad counts, amounts or cards are rejected."""
        with pytest.raises(ValidationError):
            schedule(date(2024, 1, 15), total, monthly, card)

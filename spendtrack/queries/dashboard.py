"""
Dashboard Queries

DESIGN DECISION: Reads are fetch-then-aggregate.
This class only fetches from the ledgers; every number comes from the
pure aggregation functions. The selected date and month are passed in
by the caller on every call, nothing is remembered between calls.
"""

from datetime import date, timedelta
from decimal import Decimal

from spendtrack.aggregation import (
    group_by_card,
    group_by_week,
    installments_summary,
    monthly_total,
    target_progress,
    today_total,
    weekly_total,
)
from spendtrack.ledger import (
    CreditCardRegistry,
    DailyTargetService,
    ExpenseLedger,
    InstallmentLedger,
)
from spendtrack.models.summary import (
    CardGroup,
    InstallmentsSummary,
    MonthlyTotal,
    TargetProgress,
    TodayTotal,
    WeekBucket,
)


class DashboardQueries:
    """
    Read side for one user's dashboard.

    GUARANTEES:
    - Only returns numbers derived from stored data
    - Empty ledgers give zero totals, never an error
    """

    def __init__(
        self,
        expenses: ExpenseLedger,
        installments: InstallmentLedger,
        cards: CreditCardRegistry,
        targets: DailyTargetService,
    ):
        self._expenses = expenses
        self._installments = installments
        self._cards = cards
        self._targets = targets

    async def today(self, on_date: date) -> TodayTotal:
        return today_total(await self._expenses.list_expenses(on_date=on_date))

    async def weekly_total(self, today: date) -> Decimal:
        """Spending over the 7 days ending on `today` (inclusive)."""
        expenses = await self._expenses.list_expenses_in_range(today - timedelta(days=6), today)
        return weekly_total(expenses)

    async def month(self, year: int, month: int) -> MonthlyTotal:
        return monthly_total(await self._expenses.list_monthly_expenses(year, month))

    async def installments(self, today: date) -> InstallmentsSummary:
        return installments_summary(await self._installments.list_installments(), today)

    async def cards(self, today: date) -> dict[str, CardGroup]:
        """Installment progress per card, keyed by the card's internal id."""
        cards = await self._cards.list_cards()
        expenses = await self._expenses.list_expenses()
        summary = await self.installments(today)
        return group_by_card(cards, expenses, summary, today)

    async def weekly_breakdown(self, year: int, month: int) -> list[WeekBucket]:
        return group_by_week(await self._expenses.list_monthly_expenses(year, month))

    async def target_progress(self, on_date: date) -> TargetProgress:
        target = await self._targets.get_daily_target(on_date)
        return target_progress(target, await self.today(on_date))

# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Core financial aggregation engine for SMB Ledger.

This module turns raw records into period-filtered, categorized financial
views. Every function is pure: inputs are immutable snapshots (pandas
DataFrames built by `models.*_to_frame`, or sequences of dataclasses) and
outputs are new values. No I/O is performed here.

The engine covers:

1. Transaction views
   ------------------
   - filter_transactions()  period + category filter (inclusive bounds),
   - compute_totals()       income / expenses / net / margin / averages,
   - category_breakdown()   per-category sums (first-encountered order),
   - top_categories()       stable descending selection,
   - monthly_trend()        YYYY-MM buckets,
   - income_growth()        current vs previous interval of equal length.

2. Statements
   ----------
   - profit_and_loss()      revenue and expense lines, net profit,
   - cash_flow_statement()  operating / investing / financing / petty cash,
   - balance_sheet_analysis() grouped totals and balance check.

3. Budgets and petty cash
   ----------------------
   - budget_analysis() / budget_summary(),
   - petty_cash_balance().

4. Composite views
   ---------------
   - dashboard_metrics()    all-time dashboard figures,
   - analytics_report()     everything shown on the analytics page.

Notes
-----
- The engine never raises on empty input. Every ratio goes through
  `ratios.safe_percentage` / `ratios.safe_divide` so that degenerate
  denominators resolve to 0.
- Monetary amounts are rounded to 2 decimals. Percentages are returned
  unrounded and rounded at formatting time.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Optional

import pandas as pd

from .models import Budget
from .periods import Period, filter_frame_by_period, previous_interval
from .ratios import KpiResult, build_kpis, growth_rate, safe_divide, safe_percentage

ALL_CATEGORIES = "all"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Totals:
    """Income/expense totals for a set of transactions."""

    total_income: float
    total_expenses: float
    net_profit: float
    profit_margin: float
    transaction_count: int
    average_transaction_value: float


@dataclass(frozen=True)
class MonthlyBucket:
    """Income and expense sums for one ISO year-month ("YYYY-MM")."""

    month: str
    income: float
    expenses: float


@dataclass(frozen=True)
class BudgetStatus:
    """
    Budget-vs-actual figures for one budget.

    Attributes
    ----------
    budget :
        The budget this status was computed for.
    actual :
        Sum of expense transactions with the budget's category dated
        within [start_date, end_date].
    variance :
        budgeted_amount - actual (negative when over budget).
    percentage_used :
        actual / budgeted_amount * 100, 0 when nothing was budgeted.
    status :
        "within" when variance >= 0, "over" otherwise.
    """

    budget: Budget
    actual: float
    variance: float
    percentage_used: float
    status: str


@dataclass(frozen=True)
class BudgetSummary:
    total_budgeted: float
    total_actual: float
    total_variance: float
    over_budget_count: int


@dataclass(frozen=True)
class BalanceSheetSummary:
    """
    Balance-sheet totals grouped by category, then subcategory.

    `balanced` is computed on integer cents; an unbalanced sheet is a
    reported state, not an error.
    """

    groups: dict[str, dict[str, float]]
    total_assets: float
    total_liabilities: float
    total_equity: float
    balanced: bool
    difference: float

    @property
    def total_liabilities_and_equity(self) -> float:
        return round(self.total_liabilities + self.total_equity, 2)


@dataclass(frozen=True)
class CashFlowStatement:
    """
    Cash-flow statement for a period.

    Investing and financing sections are always present with zero values:
    no record kind models capital activity.
    """

    period: Period
    operating_inflow: float
    operating_outflow: float
    inflows_by_category: dict[str, float]
    outflows_by_category: dict[str, float]
    investing_net: float
    financing_net: float
    petty_cash_inflow: float
    petty_cash_outflow: float

    @property
    def operating_net(self) -> float:
        return round(self.operating_inflow - self.operating_outflow, 2)

    @property
    def petty_cash_net(self) -> float:
        return round(self.petty_cash_inflow - self.petty_cash_outflow, 2)

    @property
    def net_cash_flow(self) -> float:
        return round(
            self.operating_net
            + self.investing_net
            + self.financing_net
            + self.petty_cash_net,
            2,
        )


@dataclass(frozen=True)
class ProfitAndLoss:
    period: Period
    revenue: dict[str, float]
    expenses: dict[str, float]
    total_revenue: float
    total_expenses: float
    net_profit: float


@dataclass(frozen=True)
class DashboardMetrics:
    """All-time figures shown on the dashboard."""

    total_income: float
    total_expenses: float
    net_profit: float
    petty_cash_balance: float
    recent_transactions: list[dict[str, Any]]
    income_by_category: dict[str, float]


@dataclass(frozen=True)
class AnalyticsReport:
    """Everything displayed on the analytics page for a period and category."""

    period: Period
    category: str
    totals: Totals
    income_by_category: dict[str, float]
    expenses_by_category: dict[str, float]
    top_income: list[tuple[str, float]]
    top_expenses: list[tuple[str, float]]
    monthly: list[MonthlyBucket]
    income_growth: float
    kpis: list[KpiResult] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Transaction views
# ---------------------------------------------------------------------------


def _sum_amount(frame: pd.DataFrame) -> float:
    if frame.empty:
        return 0.0
    return round(float(frame["amount"].sum()), 2)


def _sum_of_type(frame: pd.DataFrame, kind: str) -> float:
    return _sum_amount(frame.loc[frame["type"] == kind])


def filter_transactions(
    frame: pd.DataFrame,
    period: Period,
    category: str = ALL_CATEGORIES,
) -> pd.DataFrame:
    """
    Select transactions dated within the period (inclusive on both ends)
    and, unless `category` is "all", matching the category exactly.

    An inverted period (start after end) selects nothing.
    """
    filtered = filter_frame_by_period(frame, period)
    if category != ALL_CATEGORIES:
        filtered = filtered.loc[filtered["category"] == category]
    return filtered


def compute_totals(frame: pd.DataFrame) -> Totals:
    """
    Compute income/expense totals for a (usually pre-filtered) frame.

    profit_margin = net / income * 100 (0 without income) and
    average_transaction_value = (income + expenses) / count (0 when empty).
    """
    total_income = _sum_of_type(frame, "income")
    total_expenses = _sum_of_type(frame, "expense")
    net_profit = round(total_income - total_expenses, 2)
    count = int(len(frame))

    return Totals(
        total_income=total_income,
        total_expenses=total_expenses,
        net_profit=net_profit,
        profit_margin=safe_percentage(net_profit, total_income),
        transaction_count=count,
        average_transaction_value=round(
            safe_divide(total_income + total_expenses, count), 2
        ),
    )


def category_breakdown(frame: pd.DataFrame, transaction_type: str) -> dict[str, float]:
    """
    Sum amounts per category for one transaction type.

    Categories appear in the order they are first encountered in `frame`.
    """
    subset = frame.loc[frame["type"] == transaction_type]
    if subset.empty:
        return {}
    sums = subset.groupby("category", sort=False)["amount"].sum()
    return {str(cat): round(float(amount), 2) for cat, amount in sums.items()}


def top_categories(breakdown: dict[str, float], n: int = 5) -> list[tuple[str, float]]:
    """
    Return the `n` largest categories, descending by amount.

    Ties keep their first-encountered order (sorted() is stable).
    """
    ranked = sorted(breakdown.items(), key=lambda item: item[1], reverse=True)
    return ranked[:n]


def monthly_trend(frame: pd.DataFrame) -> list[MonthlyBucket]:
    """Bucket transactions by year-month, ascending."""
    if frame.empty:
        return []

    months = frame["date"].dt.strftime("%Y-%m")
    buckets: list[MonthlyBucket] = []
    for month in sorted(months.unique()):
        in_month = frame.loc[months == month]
        buckets.append(
            MonthlyBucket(
                month=str(month),
                income=_sum_of_type(in_month, "income"),
                expenses=_sum_of_type(in_month, "expense"),
            )
        )
    return buckets


def income_growth(
    frame: pd.DataFrame,
    period: Period,
    current_income: Optional[float] = None,
) -> float:
    """
    Income growth (%) of `period` over the preceding interval of equal length.

    The previous income is computed on the whole transaction set (no
    category filter). `current_income` is the income already shown for the
    period, filtered or not; when omitted it is summed from `frame`.
    Returns 0 when the previous income is 0 or the interval is inverted.
    """
    previous = previous_interval(period)
    if previous is None:
        return 0.0

    if current_income is None:
        current_income = _sum_of_type(
            filter_frame_by_period(frame, period), "income"
        )
    previous_income = _sum_of_type(filter_frame_by_period(frame, previous), "income")
    if previous_income <= 0:
        return 0.0
    return growth_rate(current_income, previous_income)


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


def budget_analysis(
    budgets: Iterable[Budget],
    transactions: pd.DataFrame,
) -> list[BudgetStatus]:
    """
    Compute budget-vs-actual figures for each budget, in input order.

    Expenditure is matched by category and inclusive date range; there is
    no direct link between a budget and its transactions.
    """
    expenses = transactions.loc[transactions["type"] == "expense"]
    statuses: list[BudgetStatus] = []

    for budget in budgets:
        in_range = expenses.loc[
            (expenses["category"] == budget.category)
            & (expenses["date"] >= pd.Timestamp(budget.start_date))
            & (expenses["date"] <= pd.Timestamp(budget.end_date))
        ]
        actual = _sum_amount(in_range)
        variance = round(budget.budgeted_amount - actual, 2)
        statuses.append(
            BudgetStatus(
                budget=budget,
                actual=actual,
                variance=variance,
                percentage_used=safe_percentage(actual, budget.budgeted_amount),
                status="within" if variance >= 0 else "over",
            )
        )
    return statuses


def budget_summary(statuses: Iterable[BudgetStatus]) -> BudgetSummary:
    statuses = list(statuses)
    total_budgeted = round(sum(s.budget.budgeted_amount for s in statuses), 2)
    total_actual = round(sum(s.actual for s in statuses), 2)
    return BudgetSummary(
        total_budgeted=total_budgeted,
        total_actual=total_actual,
        total_variance=round(total_budgeted - total_actual, 2),
        over_budget_count=sum(1 for s in statuses if s.status == "over"),
    )


# ---------------------------------------------------------------------------
# Balance sheet
# ---------------------------------------------------------------------------


def _to_cents(amount: float) -> int:
    return int(round(amount * 100))


def balance_sheet_analysis(items: pd.DataFrame) -> BalanceSheetSummary:
    """
    Group balance-sheet items by category then subcategory and check
    that assets == liabilities + equity.

    The balance check compares integer cents so that binary floating
    noise never reports a false imbalance.
    """
    groups: dict[str, dict[str, float]] = {}
    for row in items.itertuples(index=False):
        by_sub = groups.setdefault(str(row.category), {})
        sub = str(row.subcategory)
        by_sub[sub] = by_sub.get(sub, 0.0) + float(row.amount)

    groups = {
        cat: {sub: round(amount, 2) for sub, amount in subs.items()}
        for cat, subs in groups.items()
    }

    def _total(category: str) -> float:
        return round(sum(groups.get(category, {}).values()), 2)

    assets = _total("assets")
    liabilities = _total("liabilities")
    equity = _total("equity")
    diff_cents = _to_cents(assets) - _to_cents(liabilities + equity)

    return BalanceSheetSummary(
        groups=groups,
        total_assets=assets,
        total_liabilities=liabilities,
        total_equity=equity,
        balanced=diff_cents == 0,
        difference=diff_cents / 100,
    )


# ---------------------------------------------------------------------------
# Cash flow, petty cash, P&L
# ---------------------------------------------------------------------------


def petty_cash_balance(entries: pd.DataFrame) -> float:
    """Sum of 'add' entries minus sum of 'withdraw' entries (order-free)."""
    added = _sum_of_type(entries, "add")
    withdrawn = _sum_of_type(entries, "withdraw")
    return round(added - withdrawn, 2)


def cash_flow_statement(
    transactions: pd.DataFrame,
    petty_cash: pd.DataFrame,
    period: Period,
) -> CashFlowStatement:
    """
    Build the cash-flow statement for a period.

    The category filter is never applied here: cash flow always reports
    the full category set.
    """
    in_period = filter_frame_by_period(transactions, period)
    petty_in_period = filter_frame_by_period(petty_cash, period)

    return CashFlowStatement(
        period=period,
        operating_inflow=_sum_of_type(in_period, "income"),
        operating_outflow=_sum_of_type(in_period, "expense"),
        inflows_by_category=category_breakdown(in_period, "income"),
        outflows_by_category=category_breakdown(in_period, "expense"),
        investing_net=0.0,
        financing_net=0.0,
        petty_cash_inflow=_sum_of_type(petty_in_period, "add"),
        petty_cash_outflow=_sum_of_type(petty_in_period, "withdraw"),
    )


def profit_and_loss(frame: pd.DataFrame, period: Period) -> ProfitAndLoss:
    """Revenue and expense lines per category over the period."""
    in_period = filter_frame_by_period(frame, period)
    totals = compute_totals(in_period)
    return ProfitAndLoss(
        period=period,
        revenue=category_breakdown(in_period, "income"),
        expenses=category_breakdown(in_period, "expense"),
        total_revenue=totals.total_income,
        total_expenses=totals.total_expenses,
        net_profit=totals.net_profit,
    )


# ---------------------------------------------------------------------------
# Composite views
# ---------------------------------------------------------------------------


def dashboard_metrics(
    transactions: pd.DataFrame,
    petty_cash: pd.DataFrame,
    recent: int = 5,
) -> DashboardMetrics:
    """All-time totals, petty-cash balance and the most recent transactions."""
    totals = compute_totals(transactions)

    latest = transactions.sort_values("date", ascending=False, kind="stable")
    latest = latest.head(recent)
    recent_rows = [
        {
            "id": row.id,
            "date": row.date.date(),
            "type": row.type,
            "category": row.category,
            "description": row.description,
            "amount": float(row.amount),
        }
        for row in latest.itertuples(index=False)
    ]

    return DashboardMetrics(
        total_income=totals.total_income,
        total_expenses=totals.total_expenses,
        net_profit=totals.net_profit,
        petty_cash_balance=petty_cash_balance(petty_cash),
        recent_transactions=recent_rows,
        income_by_category=category_breakdown(transactions, "income"),
    )


def analytics_report(
    transactions: pd.DataFrame,
    period: Period,
    category: str = ALL_CATEGORIES,
    top_n: int = 5,
) -> AnalyticsReport:
    """
    Compute the analytics view for a period and an optional category.

    Growth compares the filtered period income with the unfiltered income
    of the previous interval.
    """
    filtered = filter_transactions(transactions, period, category)
    totals = compute_totals(filtered)
    income_by_category = category_breakdown(filtered, "income")
    expenses_by_category = category_breakdown(filtered, "expense")
    growth = income_growth(transactions, period, totals.total_income)

    return AnalyticsReport(
        period=period,
        category=category,
        totals=totals,
        income_by_category=income_by_category,
        expenses_by_category=expenses_by_category,
        top_income=top_categories(income_by_category, top_n),
        top_expenses=top_categories(expenses_by_category, top_n),
        monthly=monthly_trend(filtered),
        income_growth=growth,
        kpis=build_kpis(totals, growth),
    )

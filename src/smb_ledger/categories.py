# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Category catalog for SMB Ledger.

Categories are free-text labels. The lists below are the suggested values
offered by the entry forms and import templates; storage does not enforce
them.

Responsibilities:
- Provide the suggested income and expense categories.
- Provide the balance-sheet subcategories for each balance-sheet category.
- Expose the default category used when an imported row leaves it blank.
"""

from typing import Optional

INCOME_CATEGORIES: tuple[str, ...] = (
    "Advertisements",
    "Powerbank Sales",
    "Powerbank Rentals",
    "Events",
    "Other",
)

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Sales Department",
    "Immersions",
    "Locations Department",
    "Media Department",
    "Operations Department",
    "Finance Department",
    "IT Department",
    "Executive/Admin Department",
    "Brand Ambassadors Department",
    "Events Department",
    "Miscellaneous",
)

# Budgets are planned against expense categories.
BUDGET_CATEGORIES: tuple[str, ...] = EXPENSE_CATEGORIES

BALANCE_SHEET_SUBCATEGORIES: dict[str, tuple[str, ...]] = {
    "assets": (
        "Cash and Cash Equivalents",
        "Accounts Receivable",
        "Inventory",
        "Equipment",
        "Powerbank Machines",
        "Software",
        "Other Current Assets",
        "Other Fixed Assets",
    ),
    "liabilities": (
        "Accounts Payable",
        "Short-term Loans",
        "Accrued Expenses",
        "Long-term Debt",
        "Other Liabilities",
    ),
    "equity": (
        "Share Capital",
        "Retained Earnings",
        "Additional Paid-in Capital",
        "Other Equity",
    ),
}

DEFAULT_INCOME_CATEGORY = "Other"
DEFAULT_EXPENSE_CATEGORY = "Miscellaneous"


def categories_for(transaction_type: str) -> tuple[str, ...]:
    """Return the suggested categories for 'income' or 'expense'."""
    if transaction_type == "income":
        return INCOME_CATEGORIES
    if transaction_type == "expense":
        return EXPENSE_CATEGORIES
    raise ValueError(f"Unknown transaction type: {transaction_type!r}")


def default_category_for(kind: str) -> str:
    """
    Return the sentinel category used when an imported row has none.

    Income rows fall back to "Other"; expense and budget rows fall back to
    "Miscellaneous".
    """
    if kind == "income":
        return DEFAULT_INCOME_CATEGORY
    return DEFAULT_EXPENSE_CATEGORY


def is_suggested_subcategory(category: str, subcategory: str) -> bool:
    """Return True if `subcategory` is in the suggested list for `category`."""
    return subcategory in BALANCE_SHEET_SUBCATEGORIES.get(category, ())


def find_category(label: str, candidates: tuple[str, ...]) -> Optional[str]:
    """
    Case-insensitive lookup of a category label in a list of candidates.

    Returns the canonical spelling when found, None otherwise.
    """
    wanted = label.strip().lower()
    for candidate in candidates:
        if candidate.lower() == wanted:
            return candidate
    return None

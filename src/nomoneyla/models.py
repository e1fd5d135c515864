"""Pydantic domain models for NoMoneyLa."""

from datetime import date as Date
from decimal import Decimal
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field

TransactionType = Literal["income", "expense"]
ContributionStatus = Literal["no_contributions", "balanced", "excess", "insufficient"]
Severity = Literal["valid", "warning", "error"]


def new_id() -> str:
    """Generate an opaque record identifier."""
    return str(uuid4())


# ============================================================================
# Ledger Records
# ============================================================================


class Payer(BaseModel):
    """A participant who can contribute money and hold a settlement balance."""

    id: str = Field(default_factory=new_id)
    name: str
    order: int = 0
    color_hex: str | None = None
    is_default: bool = False


class Category(BaseModel):
    """A top-level spending category.

    assigned_payer_ids is a manually curated participant set. When non-empty it
    overrides the participants inferred from contributions. It may hold ids of
    payers that have since been deleted; filter with dangling_payer_ids().
    """

    id: str = Field(default_factory=new_id)
    name: str
    order: int = 0
    color_hex: str | None = None
    is_default: bool = False
    assigned_payer_ids: list[str] = Field(default_factory=list)


class Subcategory(BaseModel):
    """A subcategory belonging to exactly one Category."""

    id: str = Field(default_factory=new_id)
    name: str
    parent_id: str
    order: int = 0
    color_hex: str | None = None
    is_default: bool = False


class Contribution(BaseModel):
    """A single payer's portion of a transaction."""

    id: str = Field(default_factory=new_id)
    amount: Decimal = Field(ge=0)  # zero = participated but paid nothing
    payer_id: str
    transaction_id: str


class Transaction(BaseModel):
    """A recorded income or expense with its contributions."""

    id: str = Field(default_factory=new_id)
    amount: Decimal  # total
    date: Date
    note: str | None = None
    type: TransactionType = "expense"
    currency_code: str = "HKD"
    subcategory_id: str | None = None  # None = uncategorized
    contributions: list[Contribution] = Field(default_factory=list)
    participant_ids: list[str] = Field(default_factory=list)  # empty = infer

    @property
    def contribution_total(self) -> Decimal:
        """Sum of all contribution amounts."""
        return sum((c.amount for c in self.contributions), Decimal("0"))

    def get_payer_contribution(self, payer_id: str) -> Decimal:
        """Get the amount a payer contributed (0 if not a contributor)."""
        return sum(
            (c.amount for c in self.contributions if c.payer_id == payer_id),
            Decimal("0"),
        )

    def has_contribution_from(self, payer_id: str) -> bool:
        """Check whether a payer holds any contribution on this transaction."""
        return any(c.payer_id == payer_id for c in self.contributions)


# ============================================================================
# Results
# ============================================================================


class ContributionCheck(BaseModel):
    """Outcome of validating one transaction's contributions."""

    status: ContributionStatus
    severity: Severity
    difference: Decimal  # signed: contributions - total


class ContributionIssue(BaseModel):
    """An expense transaction whose contributions don't match its total."""

    transaction: Transaction
    check: ContributionCheck

    @property
    def missing_amount(self) -> Decimal:
        """Amount still to be assigned (negative when over-assigned)."""
        return -self.check.difference


class PayerBalance(BaseModel):
    """A payer's rollup within one category."""

    payer_id: str
    payer_name: str
    total_paid: Decimal
    total_should_pay: Decimal
    net_balance: Decimal  # positive = owed money, negative = owes money


class Transfer(BaseModel):
    """A recommended payment from a debtor to a creditor."""

    from_payer_id: str
    to_payer_id: str
    amount: Decimal


class CategorySettlement(BaseModel):
    """Everything computed when settling one category."""

    category: Category
    transaction_count: int
    total_amount: Decimal
    balances: list[PayerBalance]
    transfers: list[Transfer]
    issues: list[ContributionIssue] = Field(default_factory=list)
    dangling_payer_ids: list[str] = Field(default_factory=list)
    residual: Decimal = Decimal("0")  # sum of net balances
    is_balanced: bool = True

    def payer_name(self, payer_id: str) -> str:
        """Look up a participant's display name by id."""
        for balance in self.balances:
            if balance.payer_id == payer_id:
                return balance.payer_name
        return payer_id

"""
Record Models for Personal Ledger

One model per collection kind. These models define:
1. Which fields are required on a persisted record
2. How fields are named on storage (camelCase, the historical wire format)
3. The read-side derived values (profit, amount remaining, ...)

DESIGN DECISION: Derived values are exposed as properties and are NEVER
persisted. Only the fields a caller supplied end up in storage.

DESIGN DECISION: Records allow extra fields. Older app versions wrote fields
we don't model, and a full replace must not drop them.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CollectionKind(str, Enum):
    """The four independent collections owned by the document store."""
    TRANSACTION = "transaction"
    LOAN = "loan"
    LOCAL_INSTITUTION = "local_institution"
    INSTITUTIONAL_BANK = "institutional_bank"


class TransactionStatus(str, Enum):
    """Trade lifecycle of a product lot."""
    BUYING = "buying"
    SELLING = "selling"
    SOLD = "sold"


class LoanType(str, Enum):
    """Direction of a peer loan."""
    GIVEN = "given"
    TAKEN = "taken"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    PAID = "paid"


class ContributionType(str, Enum):
    """
    Share of the weekly amount a member contributes to a savings group.
    """
    FULL = "full"
    HALF = "half"
    QUARTER = "quarter"


class ContributionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class BankTransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


# Whole numbers stay ints so stored JSON round-trips unchanged
Number = Union[int, float]
Amount = Union[NonNegativeInt, NonNegativeFloat]


CONTRIBUTION_MULTIPLIERS = {
    ContributionType.FULL: 1.0,
    ContributionType.HALF: 0.5,
    ContributionType.QUARTER: 0.25,
}


# =============================================================================
# BASE
# =============================================================================

class StoredRecord(BaseModel):
    """
    Base for everything that lives inside a collection.

    Attributes are snake_case in Python and camelCase on storage.
    Both spellings are accepted on input.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        str_strip_whitespace=True,
    )

    id: Optional[str] = Field(
        default=None,
        description="Stable identifier, assigned by the store on first persistence"
    )

    def to_storage(self) -> dict:
        """Serialize to the JSON-ready mapping written to the backend."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# NESTED RECORDS
# =============================================================================

class Payment(StoredRecord):
    """A repayment on a loan or a contribution to a savings group."""

    amount: Amount = Field(
        ...,
        description="Amount paid"
    )
    entry_date: Optional[date] = Field(
        default=None,
        alias="date",
        description="Business date of the payment (defaults to today on append)"
    )


class BankTransaction(StoredRecord):
    """A deposit or withdrawal logged against a bank account."""

    type: BankTransactionType
    amount: Amount = Field(
        ...,
        description="Absolute amount moved"
    )
    description: str = Field(
        ...,
        max_length=500,
    )
    entry_date: Optional[date] = Field(
        default=None,
        alias="date",
    )
    created_at: Optional[datetime] = None

    @property
    def signed_amount(self) -> float:
        """Amount as it affects the balance."""
        if self.type == BankTransactionType.WITHDRAWAL:
            return -self.amount
        return self.amount


# =============================================================================
# TOP-LEVEL RECORDS
# =============================================================================

class Transaction(StoredRecord):
    """
    A trade of one product lot: bought, then offered, then sold.

    Profit and outstanding amounts are computed, never stored.
    """

    product_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    quantity: Amount
    unit_price: Amount = Field(
        ...,
        description="Price paid per unit when buying"
    )
    status: TransactionStatus
    entry_date: date = Field(..., alias="date")

    money_paid: Optional[Amount] = None
    other_expenses: Optional[Amount] = None
    sold_price: Optional[Amount] = Field(
        default=None,
        description="Price received per unit when sold"
    )
    money_received: Optional[Amount] = None

    @property
    def total_cost(self) -> float:
        return self.quantity * self.unit_price + (self.other_expenses or 0)

    @property
    def profit(self) -> float:
        """Zero until the lot is sold with a known price."""
        if self.status == TransactionStatus.SOLD and self.sold_price:
            return self.quantity * self.sold_price - self.total_cost
        return 0.0

    @property
    def amount_to_be_paid(self) -> float:
        if self.status == TransactionStatus.BUYING:
            return self.quantity * self.unit_price - (self.money_paid or 0)
        return 0.0

    @property
    def amount_to_be_received(self) -> float:
        if self.status in (TransactionStatus.SELLING, TransactionStatus.SOLD) and self.sold_price:
            return self.quantity * self.sold_price - (self.money_received or 0)
        return 0.0


class Loan(StoredRecord):
    """
    A loan given to or taken from a counterparty.

    The amount still owed is the principal minus all logged payments.
    """

    type: LoanType
    party_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Counterparty name"
    )
    amount: Amount
    status: LoanStatus
    entry_date: date = Field(..., alias="date")
    payments: list[Payment] = Field(default_factory=list)

    @property
    def payments_total(self) -> float:
        return sum(p.amount for p in self.payments)

    @property
    def remaining(self) -> float:
        return self.amount - self.payments_total

    @property
    def is_settled(self) -> bool:
        return self.remaining <= 0


class LocalInstitution(StoredRecord):
    """
    Membership in a local savings group.

    A member owes weekly_amount x week_number, scaled by their contribution
    type (full / half / quarter share).
    """

    group_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    weekly_amount: Amount
    type: ContributionType
    status: ContributionStatus
    week_number: int = Field(..., ge=0)
    entry_date: date = Field(..., alias="date")
    created_at: Optional[datetime] = Field(
        default=None,
        description="Audit timestamp, stamped by the store when missing"
    )
    payments: list[Payment] = Field(default_factory=list)

    @property
    def multiplier(self) -> float:
        return CONTRIBUTION_MULTIPLIERS[self.type]

    @property
    def expected_amount(self) -> float:
        return self.weekly_amount * self.week_number * self.multiplier

    @property
    def payments_total(self) -> float:
        return sum(p.amount for p in self.payments)

    @property
    def remaining_amount(self) -> float:
        return self.expected_amount - self.payments_total


class InstitutionalBank(StoredRecord):
    """
    A bank account with a logged transaction history.

    CRITICAL: balance is stored independently and is NOT recomputed from
    transactions. Callers decide when to move it (see update_bank_balance
    and post_bank_transaction on the document store).
    """

    bank_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    account_type: str = Field(
        ...,
        max_length=50,
        description="e.g. savings, current"
    )
    balance: Number
    created_at: Optional[datetime] = None
    transactions: list[BankTransaction] = Field(default_factory=list)

    @property
    def transactions_total(self) -> float:
        """Sum of absolute amounts moved, as shown on the detail screen."""
        return sum(t.amount for t in self.transactions)

    @property
    def net_transactions(self) -> float:
        """Deposits minus withdrawals."""
        return sum(t.signed_amount for t in self.transactions)

    def balance_after(self, transaction: BankTransaction) -> float:
        return self.balance + transaction.signed_amount

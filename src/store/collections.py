"""
Static description of the four collections.

Everything kind-specific the document store needs (identifier prefixes,
nested collection, audit stamping, the words used in error messages) lives
here, so the store itself has one code path for all kinds.
"""

from dataclasses import dataclass
from typing import Optional, Union

from src.models.records import (
    BankTransaction,
    CollectionKind,
    InstitutionalBank,
    Loan,
    LocalInstitution,
    Payment,
    StoredRecord,
    Transaction,
)
from src.store.identifiers import (
    BANK_TRANSACTION_PREFIX,
    INSTITUTIONAL_BANK_PREFIX,
    LOAN_PREFIX,
    LOCAL_INSTITUTION_PREFIX,
    PAYMENT_PREFIX,
    TRANSACTION_PREFIX,
)


@dataclass(frozen=True)
class CollectionSpec:
    kind: CollectionKind
    label: str
    plural: str
    prefix: str
    model: type[StoredRecord]
    # Storage name of the nested sub-collection, if the kind has one
    nested_field: Optional[str] = None
    nested_model: Optional[type[StoredRecord]] = None
    nested_prefix: Optional[str] = None
    append_intent: Optional[str] = None
    stamps_created_at: bool = False

    @property
    def nested_stamps_created_at(self) -> bool:
        return self.nested_model is BankTransaction


COLLECTIONS: dict[CollectionKind, CollectionSpec] = {
    CollectionKind.TRANSACTION: CollectionSpec(
        kind=CollectionKind.TRANSACTION,
        label="transaction",
        plural="transactions",
        prefix=TRANSACTION_PREFIX,
        model=Transaction,
    ),
    CollectionKind.LOAN: CollectionSpec(
        kind=CollectionKind.LOAN,
        label="loan",
        plural="loans",
        prefix=LOAN_PREFIX,
        model=Loan,
        nested_field="payments",
        nested_model=Payment,
        nested_prefix=PAYMENT_PREFIX,
        append_intent="add loan payment",
    ),
    CollectionKind.LOCAL_INSTITUTION: CollectionSpec(
        kind=CollectionKind.LOCAL_INSTITUTION,
        label="local institution",
        plural="local institutions",
        prefix=LOCAL_INSTITUTION_PREFIX,
        model=LocalInstitution,
        nested_field="payments",
        nested_model=Payment,
        nested_prefix=PAYMENT_PREFIX,
        append_intent="add local institution payment",
        stamps_created_at=True,
    ),
    CollectionKind.INSTITUTIONAL_BANK: CollectionSpec(
        kind=CollectionKind.INSTITUTIONAL_BANK,
        label="institutional bank",
        plural="institutional banks",
        prefix=INSTITUTIONAL_BANK_PREFIX,
        model=InstitutionalBank,
        nested_field="transactions",
        nested_model=BankTransaction,
        nested_prefix=BANK_TRANSACTION_PREFIX,
        append_intent="add bank transaction",
        stamps_created_at=True,
    ),
}


def get_collection_spec(kind: Union[CollectionKind, str]) -> CollectionSpec:
    """Look up a collection by kind; accepts the enum or its string value."""
    return COLLECTIONS[CollectionKind(kind)]

"""
Data Models Package

This package contains all Pydantic models used in the Personal Ledger.
Every record read from or written to a collection conforms to these schemas.
"""

from src.models.records import (
    BankTransaction,
    BankTransactionType,
    CollectionKind,
    ContributionStatus,
    ContributionType,
    InstitutionalBank,
    Loan,
    LoanStatus,
    LoanType,
    LocalInstitution,
    Payment,
    StoredRecord,
    Transaction,
    TransactionStatus,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "BankTransaction",
    "BankTransactionType",
    "CollectionKind",
    "ContributionStatus",
    "ContributionType",
    "InstitutionalBank",
    "Loan",
    "LoanStatus",
    "LoanType",
    "LocalInstitution",
    "Payment",
    "StoredRecord",
    "Transaction",
    "TransactionStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

"""
Audit Models for Personal Ledger

Every mutation of a collection is logged for audit purposes.
This provides:
1. Traceability of identifier assignment and self-healing
2. Debugging information when a backend write fails
3. A record of values that were quarantined instead of silently dropped

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each document store operation has its own event type.
    """
    # Collection lifecycle
    COLLECTION_INITIALIZED = "collection_initialized"
    RECORDS_HEALED = "records_healed"
    RECORDS_INVALID = "records_invalid"
    VALUE_QUARANTINED = "value_quarantined"

    # Record mutations
    RECORD_CREATED = "record_created"
    RECORD_REPLACED = "record_replaced"
    RECORD_DELETED = "record_deleted"
    DELETE_TARGET_MISSING = "delete_target_missing"
    SUB_RECORD_APPENDED = "sub_record_appended"
    FIELD_UPDATED = "field_updated"
    TARGET_NOT_FOUND = "target_not_found"

    # Failures
    OPERATION_FAILED = "operation_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which collection and record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection kind (e.g., 'transaction', 'loan')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Identifier of the record this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., append then balance update)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_json(self) -> str:
        """Serialize for key-value audit storage."""
        return json.dumps(self.model_dump(mode="json"))


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("loan", loan_id)
        event = AuditEventBuilder.operation_failed("save_loan", "Failed to save loan", str(e))
    """

    @staticmethod
    def collection_initialized(kind: str, key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_INITIALIZED,
            entity_type=kind,
            description=f"Initialized {kind} storage",
            details={"key": key},
        )

    @staticmethod
    def records_healed(kind: str, healed_ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDS_HEALED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            description=f"Backfilled missing fields on {len(healed_ids)} {kind} record(s)",
            details={"healed_ids": healed_ids},
        )

    @staticmethod
    def records_invalid(kind: str, record_ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORDS_INVALID,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            description=f"Kept {len(record_ids)} {kind} record(s) that do not validate",
            details={"record_ids": record_ids},
        )

    @staticmethod
    def value_quarantined(
        kind: str,
        key: str,
        quarantine_key: Optional[str],
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALUE_QUARANTINED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            description=f"Unreadable {kind} data moved out of {key}",
            details={
                "key": key,
                "quarantine_key": quarantine_key,
                "reason": reason,
            },
        )

    @staticmethod
    def record_created(kind: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type=kind,
            entity_id=record_id,
            description=f"Created {kind} {record_id}",
        )

    @staticmethod
    def record_replaced(kind: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_REPLACED,
            entity_type=kind,
            entity_id=record_id,
            description=f"Replaced {kind} {record_id}",
        )

    @staticmethod
    def record_deleted(kind: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type=kind,
            entity_id=record_id,
            description=f"Deleted {kind} {record_id}",
        )

    @staticmethod
    def delete_target_missing(kind: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_TARGET_MISSING,
            entity_type=kind,
            entity_id=record_id,
            description=f"Nothing to delete: no {kind} with id {record_id}",
        )

    @staticmethod
    def sub_record_appended(
        kind: str,
        parent_id: str,
        field_name: str,
        sub_record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUB_RECORD_APPENDED,
            entity_type=kind,
            entity_id=parent_id,
            correlation_id=correlation_id,
            description=f"Appended {sub_record_id} to {kind} {parent_id}.{field_name}",
            details={"field": field_name, "sub_record_id": sub_record_id},
        )

    @staticmethod
    def field_updated(
        kind: str,
        record_id: str,
        field_name: str,
        value: Any,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIELD_UPDATED,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Updated {field_name} on {kind} {record_id}",
            details={"field": field_name, "value": value},
        )

    @staticmethod
    def target_not_found(kind: str, record_id: str, operation: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TARGET_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            entity_id=record_id,
            description=f"{operation}: no {kind} with id {record_id}",
            details={"operation": operation},
        )

    @staticmethod
    def operation_failed(
        operation: str,
        message: str,
        error_message: str,
        kind: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=kind,
            description=message,
            error_code=operation,
            error_message=error_message,
            details={"operation": operation},
        )

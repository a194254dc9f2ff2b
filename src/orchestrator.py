"""
Application wiring for Personal Ledger

Builds the key-value backend, the audit logger and the document store once,
at process start. Everything else receives the store by reference.

DESIGN DECISION: The store is an explicit object, never a module-level
singleton. Tests build their own around an in-memory backend.
"""

from typing import Optional

import structlog

from src.audit import AuditLogger
from src.config import StoreSettings, get_settings
from src.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsKeyValueBackend,
    InMemoryKeyValueBackend,
    KeyValueAuditStorage,
    KeyValueBackend,
)
from src.store import DocumentStore


logger = structlog.get_logger("ledger.orchestrator")


def create_backend(settings: Optional[StoreSettings] = None) -> KeyValueBackend:
    """Instantiate the backend named by StoreSettings.backend."""
    settings = settings or get_settings().store

    if settings.backend == "google_sheets":
        return GoogleSheetsKeyValueBackend(GoogleSheetsClient())
    return InMemoryKeyValueBackend()


def create_app_components(
    backend: Optional[KeyValueBackend] = None,
    settings: Optional[StoreSettings] = None,
    persist_audit: bool = True,
) -> tuple[DocumentStore, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        backend: Backend to use; built from settings when omitted
        settings: Store settings; loaded from the environment when omitted
        persist_audit: Also keep the audit trail in the backend.
                      Set to False for local-only logging.

    Returns:
        (document_store, audit_logger)
    """
    settings = settings or get_settings().store
    backend = backend or create_backend(settings)

    if persist_audit:
        audit_logger = AuditLogger(
            KeyValueAuditStorage(
                backend,
                key=settings.audit_log_key,
                max_events=settings.audit_log_max_events,
            )
        )
    else:
        audit_logger = AuditLogger()

    store = DocumentStore(backend, settings=settings, audit_logger=audit_logger)
    logger.info(
        "store_created",
        backend=type(backend).__name__,
        serialize_writes=settings.serialize_writes,
    )
    return store, audit_logger

"""
Document Store

Turns four independent collections (transactions, loans, local savings-group
memberships, bank accounts) into durable, identifiable, mutable records on
top of an asynchronous key-value backend.

Every operation follows the same protocol:
1. Ensure the collection key exists (write `[]` the first time)
2. Read and parse the whole collection, healing malformed records
3. Transform the collection in memory
4. Write the whole collection back as a single value
5. Return the affected record(s)

CONCURRENCY: There is no locking by default. Two overlapping operations on
the same collection are last-writer-wins; the UI awaits each action before
enabling the next. Set StoreSettings.serialize_writes to run overlapping
operations on one collection one at a time within this process.
Operations spanning two writes are never atomic; post_bank_transaction
exists so the common append-then-rebalance case needs only one.

ERRORS: Backend failures are logged and re-raised at the operation boundary
as StoreOperationError("Failed to <intent>"). Invalid caller input raises
pydantic.ValidationError before anything is written. A missing target is
not an error: delete() returns False, append_sub() and update_field()
return NotFound.
"""

import asyncio
import json
import time
from contextlib import asynccontextmanager
from typing import Annotated, Any, AsyncIterator, Mapping, Optional, Union
from uuid import UUID

from pydantic import ConfigDict, TypeAdapter

from src.audit import AuditLogger
from src.config import StoreSettings
from src.models.audit import AuditEventBuilder
from src.models.records import (
    BankTransaction,
    CollectionKind,
    InstitutionalBank,
    Loan,
    LocalInstitution,
    Number,
    Payment,
    StoredRecord,
    Transaction,
)
from src.services.storage import (
    BackendUnavailableError,
    KeyValueBackend,
    MalformedStoredValueError,
    StorageError,
    StoreInitializationError,
    StoreOperationError,
)
from src.store.collections import COLLECTIONS, CollectionSpec, get_collection_spec
from src.store.healing import HealedCollection, build_record, heal_collection
from src.store.identifiers import generate_id, now_iso, today_iso
from src.store.results import Found, LookupResult, NotFound


KindLike = Union[CollectionKind, str]
RecordInput = Union[StoredRecord, Mapping[str, Any]]

_FIELD_CONFIG = ConfigDict(str_strip_whitespace=True)


def serialize_collection(entries: list) -> str:
    """Compact JSON, the format the collections have always been stored in."""
    return json.dumps(entries, separators=(",", ":"), ensure_ascii=False)


def _coerce(model: type[StoredRecord], record: RecordInput) -> StoredRecord:
    """Accept a model instance of the right type, or a plain mapping."""
    if isinstance(record, model):
        return record
    if isinstance(record, StoredRecord):
        raise TypeError(f"Expected {model.__name__}, got {type(record).__name__}")
    if isinstance(record, Mapping):
        return model.model_validate(dict(record))
    raise TypeError(f"Expected {model.__name__} or a mapping, got {type(record).__name__}")


def _id_first(record_id: str, entry: dict) -> dict:
    return {"id": record_id, **{k: v for k, v in entry.items() if k != "id"}}


class DocumentStore:
    """
    The persistent document store.

    Construct one at process start and pass it to whatever needs it;
    there is no module-level instance.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        settings: Optional[StoreSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._settings = settings or StoreSettings()
        self._audit = audit_logger or AuditLogger()
        self._locks: dict[str, asyncio.Lock] = {}

    def key_for(self, kind: KindLike) -> str:
        return self._settings.key_for(CollectionKind(kind))

    # =========================================================================
    # Backend I/O
    # =========================================================================

    async def _read(self, key: str) -> Optional[str]:
        try:
            return await self._backend.get(key)
        except BackendUnavailableError:
            raise
        except Exception as e:
            raise BackendUnavailableError("get", key, str(e)) from e

    async def _write(self, key: str, value: str) -> None:
        try:
            await self._backend.set(key, value)
        except BackendUnavailableError:
            raise
        except Exception as e:
            raise BackendUnavailableError("set", key, str(e)) from e

    @asynccontextmanager
    async def _exclusive(self, key: str) -> AsyncIterator[None]:
        if not self._settings.serialize_writes:
            yield
            return
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            yield

    @asynccontextmanager
    async def _boundary(
        self,
        operation: str,
        message: str,
        kind: Optional[CollectionKind] = None,
        error_cls: type[StoreOperationError] = StoreOperationError,
    ) -> AsyncIterator[None]:
        """Log any storage failure and re-raise it carrying the caller's intent."""
        try:
            yield
        except StorageError as e:
            await self._audit.log(
                AuditEventBuilder.operation_failed(
                    operation,
                    message,
                    str(e),
                    kind=kind.value if kind else None,
                )
            )
            raise error_cls(operation, message) from e

    # =========================================================================
    # Load protocol: ensure -> read -> parse -> heal
    # =========================================================================

    async def _ensure(self, spec: CollectionSpec) -> str:
        """Return the stored value, writing an empty array if the key is unset."""
        key = self.key_for(spec.kind)
        raw = await self._read(key)
        if raw is None:
            raw = serialize_collection([])
            await self._write(key, raw)
            await self._audit.log(
                AuditEventBuilder.collection_initialized(spec.kind.value, key)
            )
        return raw

    @staticmethod
    def _parse(key: str, raw: str) -> list:
        try:
            value = json.loads(raw)
        except ValueError as e:
            raise MalformedStoredValueError(key, raw, f"invalid JSON: {e}") from e
        if not isinstance(value, list):
            raise MalformedStoredValueError(
                key, raw, f"expected a JSON array, got {type(value).__name__}"
            )
        return value

    async def _quarantine(
        self,
        spec: CollectionSpec,
        key: str,
        raw_value: str,
        reason: str,
    ) -> None:
        quarantine_key = None
        if self._settings.quarantine_malformed and raw_value.strip():
            quarantine_key = f"{key}.quarantine.{int(time.time() * 1000)}"
            await self._write(quarantine_key, raw_value)
        await self._audit.log(
            AuditEventBuilder.value_quarantined(spec.kind.value, key, quarantine_key, reason)
        )

    async def _load(self, spec: CollectionSpec) -> HealedCollection:
        key = self.key_for(spec.kind)
        raw = await self._ensure(spec)

        try:
            parsed = self._parse(key, raw)
        except MalformedStoredValueError as e:
            # Keep the unreadable value somewhere before we overwrite it
            await self._quarantine(spec, key, e.raw_value, e.reason)
            await self._write(key, serialize_collection([]))
            parsed = []

        healed = heal_collection(spec, parsed)

        if healed.rejected:
            await self._quarantine(
                spec,
                key,
                serialize_collection(healed.rejected),
                f"{len(healed.rejected)} non-object entries",
            )
        if healed.invalid_ids:
            await self._audit.log(
                AuditEventBuilder.records_invalid(spec.kind.value, healed.invalid_ids)
            )
        if healed.changed:
            await self._write(key, serialize_collection(healed.entries))
            if healed.healed_ids:
                await self._audit.log(
                    AuditEventBuilder.records_healed(spec.kind.value, healed.healed_ids)
                )

        return healed

    @staticmethod
    def _index_of(entries: list[dict], record_id: Optional[str]) -> Optional[int]:
        if not record_id:
            return None
        for index, entry in enumerate(entries):
            if entry["id"] == record_id:
                return index
        return None

    # =========================================================================
    # Entry construction
    # =========================================================================

    @staticmethod
    def _with_sub_ids(spec: CollectionSpec, nested: list) -> list:
        taken = {e.get("id") for e in nested if isinstance(e, dict)}
        patched = []
        for entry in nested:
            if isinstance(entry, dict) and not entry.get("id"):
                new_id = generate_id(spec.nested_prefix, taken=taken)
                taken.add(new_id)
                entry = _id_first(new_id, entry)
            patched.append(entry)
        return patched

    def _prepare_entry(
        self,
        spec: CollectionSpec,
        record: StoredRecord,
        existing: Optional[dict],
        taken: set[str],
    ) -> dict:
        """Storage mapping for a full replace (existing given) or an append."""
        record_id = existing["id"] if existing else generate_id(spec.prefix, taken=taken)
        entry = _id_first(record_id, record.to_storage())

        if spec.nested_field:
            entry[spec.nested_field] = self._with_sub_ids(
                spec, entry.get(spec.nested_field) or []
            )
        if spec.stamps_created_at and not entry.get("createdAt"):
            entry["createdAt"] = (existing or {}).get("createdAt") or now_iso()

        return entry

    @staticmethod
    def _prepare_sub_entry(spec: CollectionSpec, sub: StoredRecord, taken: set) -> dict:
        entry = _id_first(generate_id(spec.nested_prefix, taken=taken), sub.to_storage())
        if not entry.get("date"):
            entry["date"] = today_iso()
        if spec.nested_stamps_created_at and not entry.get("createdAt"):
            entry["createdAt"] = now_iso()
        return entry

    @staticmethod
    def _storage_field_name(spec: CollectionSpec, field_name: str) -> str:
        """Resolve an attribute or storage name to the storage name."""
        storage_name = field_name
        for name, info in spec.model.model_fields.items():
            alias = info.alias or name
            if field_name in (name, alias):
                storage_name = alias
                break

        if storage_name == "id":
            raise ValueError("Identifiers are assigned by the store and cannot be updated")
        if spec.nested_field and storage_name == spec.nested_field:
            raise ValueError(
                f"{spec.nested_field} is a nested collection; use append_sub instead"
            )
        return storage_name

    @staticmethod
    def _validate_field(spec: CollectionSpec, storage_name: str, value: Any) -> Any:
        """Validate one field value against the model and return its stored form."""
        for info in spec.model.model_fields.values():
            if (info.alias or "") == storage_name:
                annotation = info.annotation
                if info.metadata:
                    annotation = Annotated[(annotation, *info.metadata)]
                adapter = TypeAdapter(annotation, config=_FIELD_CONFIG)
                return adapter.dump_python(adapter.validate_python(value), mode="json")
        # Not a modelled field; kept as an extra
        return value

    def _require_nested(self, spec: CollectionSpec) -> None:
        if not spec.nested_field:
            raise ValueError(f"{spec.label} records have no nested collection")

    # =========================================================================
    # Generic operations
    # =========================================================================

    async def ensure_collection(self, kind: KindLike) -> None:
        """Make sure the key for `kind` holds a JSON array. Idempotent."""
        spec = get_collection_spec(kind)
        async with self._boundary(
            f"initialize_{spec.plural.replace(' ', '_')}",
            f"Failed to initialize {spec.label} storage",
            spec.kind,
            StoreInitializationError,
        ):
            async with self._exclusive(self.key_for(spec.kind)):
                await self._ensure(spec)

    async def initialize(self) -> None:
        """Ensure all four collections exist."""
        async with self._boundary(
            "initialize_storage",
            "Failed to initialize storage",
            error_cls=StoreInitializationError,
        ):
            for spec in COLLECTIONS.values():
                async with self._exclusive(self.key_for(spec.kind)):
                    await self._ensure(spec)

    async def fetch_all(self, kind: KindLike) -> list[StoredRecord]:
        """
        Return every record of `kind`, in insertion order.

        Records missing an identifier or a nested collection are healed and
        the healed collection is written back, so each record is healed once.
        """
        spec = get_collection_spec(kind)
        async with self._boundary(
            f"fetch_{spec.plural.replace(' ', '_')}",
            f"Failed to fetch {spec.plural}",
            spec.kind,
        ):
            async with self._exclusive(self.key_for(spec.kind)):
                healed = await self._load(spec)
        return list(healed.records)

    async def save(self, kind: KindLike, record: RecordInput) -> StoredRecord:
        """
        Upsert a record.

        A record whose id matches an existing one fully replaces it in place.
        Anything else (no id, or an id matching nothing) is appended under a
        freshly synthesized id.
        """
        spec = get_collection_spec(kind)
        incoming = _coerce(spec.model, record)
        key = self.key_for(spec.kind)

        async with self._boundary(
            f"save_{spec.kind.value}",
            f"Failed to save {spec.label}",
            spec.kind,
        ):
            async with self._exclusive(key):
                healed = await self._load(spec)
                entries = list(healed.entries)
                index = self._index_of(entries, incoming.id)
                existing = entries[index] if index is not None else None

                entry = self._prepare_entry(
                    spec, incoming, existing, taken={e["id"] for e in entries}
                )
                saved = spec.model.model_validate(entry)

                if index is None:
                    entries.append(entry)
                else:
                    entries[index] = entry
                await self._write(key, serialize_collection(entries))

        if existing is None:
            await self._audit.log(AuditEventBuilder.record_created(spec.kind.value, saved.id))
        else:
            await self._audit.log(AuditEventBuilder.record_replaced(spec.kind.value, saved.id))
        return saved

    async def delete(self, kind: KindLike, record_id: str) -> bool:
        """
        Remove the record with `record_id`.

        Returns False (and rewrites the collection unchanged) when no record
        has that id.
        """
        spec = get_collection_spec(kind)
        key = self.key_for(spec.kind)

        async with self._boundary(
            f"delete_{spec.kind.value}",
            f"Failed to delete {spec.label}",
            spec.kind,
        ):
            async with self._exclusive(key):
                healed = await self._load(spec)
                remaining = [e for e in healed.entries if e["id"] != record_id]
                await self._write(key, serialize_collection(remaining))

        removed = len(remaining) != len(healed.entries)
        if removed:
            await self._audit.log(AuditEventBuilder.record_deleted(spec.kind.value, record_id))
        else:
            await self._audit.log(
                AuditEventBuilder.delete_target_missing(spec.kind.value, record_id)
            )
        return removed

    async def append_sub(
        self,
        kind: KindLike,
        parent_id: str,
        sub_record: RecordInput,
        correlation_id: Optional[UUID] = None,
    ) -> LookupResult:
        """
        Append a payment or bank transaction to its parent record.

        The sub-record always gets a fresh identifier, and today's date when
        it has none. Returns Found with the entire updated parent, or
        NotFound when no parent has `parent_id`.
        """
        spec = get_collection_spec(kind)
        self._require_nested(spec)
        sub = _coerce(spec.nested_model, sub_record)
        key = self.key_for(spec.kind)

        async with self._boundary(
            spec.append_intent.replace(" ", "_"),
            f"Failed to {spec.append_intent}",
            spec.kind,
        ):
            async with self._exclusive(key):
                healed = await self._load(spec)
                entries = list(healed.entries)
                index = self._index_of(entries, parent_id)
                updated = None

                if index is not None:
                    parent = dict(entries[index])
                    nested = list(parent.get(spec.nested_field) or [])
                    sub_entry = self._prepare_sub_entry(
                        spec, sub, taken={e.get("id") for e in nested if isinstance(e, dict)}
                    )
                    parent[spec.nested_field] = nested + [sub_entry]
                    updated = build_record(spec.model, parent)
                    entries[index] = parent

                await self._write(key, serialize_collection(entries))

        if updated is None:
            await self._audit.log(
                AuditEventBuilder.target_not_found(spec.kind.value, parent_id, "append_sub")
            )
            return NotFound(kind=spec.kind, record_id=parent_id)

        await self._audit.log(
            AuditEventBuilder.sub_record_appended(
                spec.kind.value,
                parent_id,
                spec.nested_field,
                sub_entry["id"],
                correlation_id=correlation_id,
            )
        )
        return Found[spec.model](record=updated)

    async def update_field(
        self,
        kind: KindLike,
        record_id: str,
        field_name: str,
        value: Any,
        correlation_id: Optional[UUID] = None,
    ) -> LookupResult:
        """
        Replace one scalar field, leaving everything else on the record as is.

        `field_name` may be the attribute name (`balance`, `party_name`) or
        the storage name (`partyName`). The new value is validated by the
        record model before anything is written.
        """
        spec = get_collection_spec(kind)
        storage_name = self._storage_field_name(spec, field_name)
        stored_value = self._validate_field(spec, storage_name, value)
        key = self.key_for(spec.kind)

        async with self._boundary(
            f"update_{spec.kind.value}_{field_name}",
            f"Failed to update {spec.label} {field_name}",
            spec.kind,
        ):
            async with self._exclusive(key):
                healed = await self._load(spec)
                entries = list(healed.entries)
                index = self._index_of(entries, record_id)
                updated = None

                if index is not None:
                    entry = dict(entries[index])
                    if stored_value is None:
                        entry.pop(storage_name, None)
                    else:
                        entry[storage_name] = stored_value
                    updated = build_record(spec.model, entry)
                    entries[index] = entry

                await self._write(key, serialize_collection(entries))

        if updated is None:
            await self._audit.log(
                AuditEventBuilder.target_not_found(spec.kind.value, record_id, "update_field")
            )
            return NotFound(kind=spec.kind, record_id=record_id)

        await self._audit.log(
            AuditEventBuilder.field_updated(
                spec.kind.value,
                record_id,
                storage_name,
                entry.get(storage_name),
                correlation_id=correlation_id,
            )
        )
        return Found[spec.model](record=updated)

    async def post_bank_transaction(
        self,
        bank_id: str,
        transaction: RecordInput,
        correlation_id: Optional[UUID] = None,
    ) -> LookupResult:
        """
        Append a bank transaction and move the balance in a single write.

        Deposits add to the balance, withdrawals subtract. Overdrafts are
        not checked here.
        """
        spec = get_collection_spec(CollectionKind.INSTITUTIONAL_BANK)
        sub = _coerce(BankTransaction, transaction)
        key = self.key_for(spec.kind)

        async with self._boundary(
            "post_bank_transaction",
            "Failed to post bank transaction",
            spec.kind,
        ):
            async with self._exclusive(key):
                healed = await self._load(spec)
                entries = list(healed.entries)
                index = self._index_of(entries, bank_id)
                updated = None

                if index is not None:
                    bank = healed.records[index]
                    parent = dict(entries[index])
                    nested = list(parent.get(spec.nested_field) or [])
                    sub_entry = self._prepare_sub_entry(
                        spec, sub, taken={e.get("id") for e in nested if isinstance(e, dict)}
                    )
                    parent[spec.nested_field] = nested + [sub_entry]
                    parent["balance"] = bank.balance_after(sub)
                    updated = build_record(spec.model, parent)
                    entries[index] = parent

                await self._write(key, serialize_collection(entries))

        if updated is None:
            await self._audit.log(
                AuditEventBuilder.target_not_found(
                    spec.kind.value, bank_id, "post_bank_transaction"
                )
            )
            return NotFound(kind=spec.kind, record_id=bank_id)

        await self._audit.log(
            AuditEventBuilder.sub_record_appended(
                spec.kind.value,
                bank_id,
                spec.nested_field,
                sub_entry["id"],
                correlation_id=correlation_id,
            )
        )
        await self._audit.log(
            AuditEventBuilder.field_updated(
                spec.kind.value,
                bank_id,
                "balance",
                updated.balance,
                correlation_id=correlation_id,
            )
        )
        return Found[InstitutionalBank](record=updated)

    # =========================================================================
    # Typed per-collection operations
    # =========================================================================

    async def save_transaction(self, transaction: RecordInput) -> Transaction:
        return await self.save(CollectionKind.TRANSACTION, transaction)

    async def fetch_transactions(self) -> list[Transaction]:
        return await self.fetch_all(CollectionKind.TRANSACTION)

    async def delete_transaction(self, transaction_id: str) -> bool:
        return await self.delete(CollectionKind.TRANSACTION, transaction_id)

    async def save_loan(self, loan: RecordInput) -> Loan:
        return await self.save(CollectionKind.LOAN, loan)

    async def fetch_loans(self) -> list[Loan]:
        return await self.fetch_all(CollectionKind.LOAN)

    async def delete_loan(self, loan_id: str) -> bool:
        return await self.delete(CollectionKind.LOAN, loan_id)

    async def add_loan_payment(
        self,
        loan_id: str,
        payment: Union[Payment, Mapping[str, Any]],
    ) -> LookupResult:
        return await self.append_sub(CollectionKind.LOAN, loan_id, payment)

    async def save_local_institution(self, institution: RecordInput) -> LocalInstitution:
        return await self.save(CollectionKind.LOCAL_INSTITUTION, institution)

    async def fetch_local_institutions(self) -> list[LocalInstitution]:
        return await self.fetch_all(CollectionKind.LOCAL_INSTITUTION)

    async def delete_local_institution(self, institution_id: str) -> bool:
        return await self.delete(CollectionKind.LOCAL_INSTITUTION, institution_id)

    async def add_local_institution_payment(
        self,
        institution_id: str,
        payment: Union[Payment, Mapping[str, Any]],
    ) -> LookupResult:
        return await self.append_sub(CollectionKind.LOCAL_INSTITUTION, institution_id, payment)

    async def save_institutional_bank(self, bank: RecordInput) -> InstitutionalBank:
        return await self.save(CollectionKind.INSTITUTIONAL_BANK, bank)

    async def fetch_institutional_banks(self) -> list[InstitutionalBank]:
        return await self.fetch_all(CollectionKind.INSTITUTIONAL_BANK)

    async def delete_institutional_bank(self, bank_id: str) -> bool:
        return await self.delete(CollectionKind.INSTITUTIONAL_BANK, bank_id)

    async def add_bank_transaction(
        self,
        bank_id: str,
        transaction: Union[BankTransaction, Mapping[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> LookupResult:
        """Append only; the balance is left for update_bank_balance."""
        return await self.append_sub(
            CollectionKind.INSTITUTIONAL_BANK, bank_id, transaction, correlation_id
        )

    async def update_bank_balance(
        self,
        bank_id: str,
        new_balance: Number,
        correlation_id: Optional[UUID] = None,
    ) -> LookupResult:
        return await self.update_field(
            CollectionKind.INSTITUTIONAL_BANK, bank_id, "balance", new_balance, correlation_id
        )

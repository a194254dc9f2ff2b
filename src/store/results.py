"""
Lookup results for operations that target a single record.

An append or field update on a missing record must never look like success,
so those operations return Found(record) or NotFound(...) instead of
Optional[record].
"""

from typing import Generic, TypeVar, Union

from pydantic import BaseModel

from src.models.records import CollectionKind, StoredRecord
from src.services.storage.interface import NotFoundError


RecordT = TypeVar("RecordT", bound=StoredRecord)


class Found(BaseModel, Generic[RecordT]):
    """The targeted record, after the operation was applied."""

    record: RecordT

    @property
    def found(self) -> bool:
        return True

    def unwrap(self) -> RecordT:
        return self.record


class NotFound(BaseModel):
    """No record of `kind` carries `record_id`; nothing was changed."""

    kind: CollectionKind
    record_id: str

    @property
    def found(self) -> bool:
        return False

    def unwrap(self):
        raise NotFoundError(f"{self.kind.value} not found: {self.record_id}")


LookupResult = Union[Found[RecordT], NotFound]

"""
Self-healing of stored records.

DESIGN DECISION: This is the only migration path in the system. There is no
schema version; instead every read passes the stored array through
heal_collection(), which backfills what older writers left out:

- a missing identifier (or one duplicating an earlier record's)
- a missing nested collection (payments / transactions)
- identifiers on nested entries
- createdAt on kinds that carry an audit timestamp

Nothing else is repaired, and no stored object is ever dropped. An object
that still doesn't validate is kept as written and handed to callers as a
partially populated record (see build_record). Only entries that are not
JSON objects at all are rejected; the caller decides what to do with them
(the store quarantines them).

The healed entries are plain dicts, so records nobody touched are written
back exactly as they were read.
"""

from typing import Any, NamedTuple

from pydantic import ValidationError

from src.models.records import StoredRecord
from src.store.collections import CollectionSpec
from src.store.identifiers import generate_id, now_iso


class HealedCollection(NamedTuple):
    # Healed storage mappings, aligned with `records`
    entries: list[dict]
    records: list[StoredRecord]
    healed_ids: list[str]
    rejected: list[Any]
    # Ids of kept entries that did not pass validation
    invalid_ids: list[str] = []

    @property
    def changed(self) -> bool:
        return bool(self.healed_ids or self.rejected)


def build_record(model: type[StoredRecord], mapping: dict) -> StoredRecord:
    """
    Turn a stored mapping into a record, even when it doesn't validate.

    Valid mappings go through normal validation. Anything else is built
    without validation: known fields are taken as stored, missing required
    fields read as None, and unknown keys stay as extras. Derived
    properties on such a record may fail; the stored data is never lost.
    """
    try:
        return model.model_validate(mapping)
    except ValidationError:
        pass

    by_storage_name = {
        (info.alias or name): name for name, info in model.model_fields.items()
    }
    values: dict[str, Any] = {}
    for key, value in mapping.items():
        name = by_storage_name.get(key, key)
        annotation = model.model_fields[name].annotation if name in model.model_fields else None
        nested_model = _nested_model_of(annotation)
        if nested_model is not None and isinstance(value, list):
            value = [
                build_record(nested_model, item) if isinstance(item, dict) else item
                for item in value
            ]
        values[name] = value

    for name, info in model.model_fields.items():
        if name not in values and info.is_required():
            values[name] = None

    return model.model_construct(**values)


def _nested_model_of(annotation: Any):
    """The record type inside `list[Record]`, if that is what `annotation` is."""
    for arg in getattr(annotation, "__args__", ()):
        if isinstance(arg, type) and issubclass(arg, StoredRecord):
            return arg
    return None


def _as_identifier(value: Any):
    """Stored id as a string; legacy numeric ids are kept, just stringified."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def heal_record(
    spec: CollectionSpec,
    raw: dict,
    index: int,
    taken: set[str],
) -> tuple[dict, bool]:
    """
    Backfill missing fields on one stored mapping.

    Returns a new mapping and whether anything was backfilled. `taken` holds
    identifiers already claimed by earlier records and is updated in place.
    """
    healed = dict(raw)
    changed = False

    record_id = _as_identifier(healed.get("id"))
    if record_id is None or record_id in taken:
        record_id = generate_id(spec.prefix, index=index, taken=taken)
    if healed.get("id") != record_id:
        healed["id"] = record_id
        changed = True
    taken.add(record_id)

    if spec.nested_field:
        nested = healed.get(spec.nested_field)
        if nested is None:
            healed[spec.nested_field] = []
            changed = True
        elif isinstance(nested, list):
            nested_taken = {e.get("id") for e in nested if isinstance(e, dict)}
            patched = []
            for sub_index, entry in enumerate(nested):
                if isinstance(entry, dict) and not entry.get("id"):
                    entry = {
                        **entry,
                        "id": generate_id(spec.nested_prefix, index=sub_index, taken=nested_taken),
                    }
                    nested_taken.add(entry["id"])
                    changed = True
                patched.append(entry)
            healed[spec.nested_field] = patched

    if spec.stamps_created_at and not healed.get("createdAt"):
        healed["createdAt"] = now_iso()
        changed = True

    return healed, changed


def heal_collection(spec: CollectionSpec, raw_records: list) -> HealedCollection:
    """Heal every object of a parsed collection array, keeping all of them."""
    entries: list[dict] = []
    records: list[StoredRecord] = []
    healed_ids: list[str] = []
    rejected: list[Any] = []
    invalid_ids: list[str] = []
    taken: set[str] = set()

    for index, raw in enumerate(raw_records):
        if not isinstance(raw, dict):
            rejected.append(raw)
            continue

        healed, changed = heal_record(spec, raw, index, taken)
        try:
            record = spec.model.model_validate(healed)
        except ValidationError:
            record = build_record(spec.model, healed)
            invalid_ids.append(healed["id"])

        entries.append(healed)
        records.append(record)
        if changed:
            healed_ids.append(healed["id"])

    return HealedCollection(entries, records, healed_ids, rejected, invalid_ids)

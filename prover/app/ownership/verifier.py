"""
Dual-phase ownership verification.

Phase 1 fetches the authenticated transaction list; phase 2 (the detail
request) may only be issued once the target id has been found in it.
Detail disclosure is gated on list membership, never on mere knowledge of
an id.

Three outcomes are kept distinct:
- malformed list document -> MalformedTransactionListError
- id not present          -> False
- id present              -> True
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from prover.app.errors import MalformedTransactionListError
from prover.app.schemas.transcript import OwnershipResult, TransactionMetadata


def _id_matches(candidate: Any, target_id: str) -> bool:
    # bool is an int subclass but never an identifier.
    if isinstance(candidate, bool):
        return False
    if isinstance(candidate, str):
        return candidate == target_id
    if isinstance(candidate, int):
        return str(candidate) == target_id
    return False


def _record_ids(record: Mapping[str, Any]) -> Iterable[Any]:
    if "id" in record:
        yield record["id"]

    resource = record.get("resource")
    if isinstance(resource, Mapping) and "id" in resource:
        yield resource["id"]


def _records(document: Any) -> list:
    if not isinstance(document, Mapping):
        raise MalformedTransactionListError(
            "Transaction list is not a JSON object"
        )

    data = document.get("data")
    if not isinstance(data, list):
        raise MalformedTransactionListError(
            "Invalid transaction list format: missing 'data' array"
        )
    return data


def verify_ownership(document: Any, target_id: str) -> bool:
    """
    Return True if `target_id` appears in `document["data"]`, either as
    `element.id` or as `element.resource.id`.
    """
    return check_ownership(document, target_id).owned


def check_ownership(document: Any, target_id: str) -> OwnershipResult:
    records = _records(document)

    scanned = 0
    for record in records:
        scanned += 1
        if not isinstance(record, Mapping):
            continue

        if any(_id_matches(c, target_id) for c in _record_ids(record)):
            return OwnershipResult(
                target_id=target_id,
                owned=True,
                records_scanned=scanned,
            )

    return OwnershipResult(
        target_id=target_id,
        owned=False,
        records_scanned=scanned,
    )


# ---------------------------------------------------------------------------
# Display projection
# ---------------------------------------------------------------------------


_METADATA_KEYS = {
    "id": ("id",),
    "amount": ("targetAmount", "amount"),
    "currency": ("targetCurrency", "currency"),
    "status": ("state", "status"),
    "date": ("date", "created"),
}


def _first_present(document: Mapping[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = document.get(key)
        if value is None or isinstance(value, (dict, list)):
            continue
        return str(value)
    return None


def extract_transaction_metadata(document: Any) -> TransactionMetadata:
    """
    Project a transaction detail document for operator display.

    Missing or non-scalar values are reported as "unknown".
    """
    if not isinstance(document, Mapping):
        return TransactionMetadata()

    values = {}
    for field_name, keys in _METADATA_KEYS.items():
        value = _first_present(document, keys)
        if value is not None:
            values[field_name] = value

    return TransactionMetadata(**values)

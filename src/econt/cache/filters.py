"""Pure in-memory filtering of nomenclature records.

:func:`filter_records` is the single filtering path of the package: the
cache manager applies it to freshly fetched records and to records decoded
from the store alike, so a query returns the same subset whichever source
served it.

Criteria are a mapping of field names to expected values:

- ``{"country_code": "BGR"}`` -- equality.
- ``{"city_id": [41, 42]}`` -- containment; a list, tuple, set or
  frozenset matches when the field value is one of its members.
- ``{"name__contains": "vitosha"}`` -- case-insensitive substring match.
- ``None`` values are ignored, so optional keyword arguments can be passed
  straight through.

Field names are validated against the record model, so an unknown field is
reported even when the dataset is empty.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence, TypeVar

from econt.exceptions import InvalidFilterCriteriaError
from econt.models import NomenclatureRecord

R = TypeVar("R", bound=NomenclatureRecord)

Criteria = Mapping[str, Any]

_CONTAINS = "__contains"
_MEMBERSHIP_TYPES = (list, tuple, set, frozenset)


def _split(criterion: str) -> tuple[str, bool]:
    if criterion.endswith(_CONTAINS):
        return criterion[: -len(_CONTAINS)], True
    return criterion, False


def validate_criteria(
    record_type: type[NomenclatureRecord],
    criteria: Optional[Criteria],
) -> None:
    """Check that every criterion names a field of *record_type*.

    Raises:
        InvalidFilterCriteriaError: On the first unknown field.
    """
    if not criteria:
        return
    allowed = sorted(record_type.model_fields)
    for criterion in criteria:
        field, _ = _split(criterion)
        if field not in record_type.model_fields:
            raise InvalidFilterCriteriaError(criterion, record_type.__name__, allowed)


def _matches(record: NomenclatureRecord, field: str, contains: bool, expected: Any) -> bool:
    actual = getattr(record, field)
    if contains:
        if actual is None:
            return False
        return str(expected).casefold() in str(actual).casefold()
    if isinstance(expected, _MEMBERSHIP_TYPES):
        return actual in expected
    return actual == expected


def filter_records(
    records: Sequence[R],
    criteria: Optional[Criteria] = None,
    record_type: Optional[type[NomenclatureRecord]] = None,
) -> list[R]:
    """Return the records matching every criterion, in their original order.

    Args:
        records: Records of a single dataset.
        criteria: Field predicates; see the module docstring.
        record_type: Model the criteria are validated against.  Defaults
            to the type of the first record.

    Raises:
        InvalidFilterCriteriaError: If a criterion names an unknown field.
    """
    active = {k: v for k, v in (criteria or {}).items() if v is not None}
    if record_type is None and records:
        record_type = type(records[0])
    if record_type is not None:
        validate_criteria(record_type, active)
    if not active:
        return list(records)

    predicates = [(*_split(criterion), expected) for criterion, expected in active.items()]
    return [
        record
        for record in records
        if all(_matches(record, field, contains, expected) for field, contains, expected in predicates)
    ]

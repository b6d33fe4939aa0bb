"""Coercion of caller-supplied values into ledger types."""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, TypeVar, Union

from money_ledger.errors import InvalidInputError
from money_ledger.models.ledger import (
    NAME_MAX_LENGTH,
    NOTES_MAX_LENGTH,
    ContributorShare,
    MoneyInput,
    to_money,
)


E = TypeVar("E", bound=Enum)


def require_amount(value: MoneyInput, label: str = "amount") -> Decimal:
    try:
        return to_money(value)
    except ValueError as e:
        raise InvalidInputError(f"Invalid {label}: {e}") from e


def require_positive_amount(value: MoneyInput, label: str = "amount") -> Decimal:
    amount = require_amount(value, label)
    if amount <= 0:
        raise InvalidInputError(f"The {label} must be greater than zero, got {amount}")
    return amount


def require_name(value: Optional[str], label: str = "name") -> str:
    name = (value or "").strip()
    if not name:
        raise InvalidInputError(f"A {label} is required")
    if len(name) > NAME_MAX_LENGTH:
        raise InvalidInputError(f"The {label} must be at most {NAME_MAX_LENGTH} characters, got {len(name)}")
    return name


def require_notes(value: Optional[str], label: str = "notes") -> Optional[str]:
    # models strip whitespace before their length check
    length = len(value.strip()) if value else 0
    if length > NOTES_MAX_LENGTH:
        raise InvalidInputError(f"The {label} must be at most {NOTES_MAX_LENGTH} characters, got {length}")
    return value


def resolve_date(value: Optional[dt.date]) -> dt.date:
    return value or dt.date.today()


def require_share(
    value: Union[ContributorShare, Mapping[str, Any]],
    allow_zero: bool = False,
) -> ContributorShare:
    """Accept a ContributorShare or a {"person_id"/"personId", "amount"} mapping."""
    if isinstance(value, ContributorShare):
        person_id, raw_amount = value.person_id, value.amount
    else:
        person_id = value.get("person_id", value.get("personId"))
        raw_amount = value.get("amount", 0)

    if not person_id:
        raise InvalidInputError("Each allocation needs a person")

    amount = require_amount(raw_amount, "allocation amount")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidInputError(
            f"Allocation for person {person_id} must be greater than zero, got {amount}"
        )
    return ContributorShare(person_id=person_id, amount=amount)


def require_kind(kind_type: type[E], value: Union[E, str]) -> E:
    try:
        return kind_type(value)
    except ValueError as e:
        allowed = ", ".join(k.value for k in kind_type)
        raise InvalidInputError(f"Unknown transaction type {value!r}; expected one of {allowed}") from e

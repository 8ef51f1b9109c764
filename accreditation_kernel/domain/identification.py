"""
Module: accreditation_kernel.domain.identification
Responsibility: The identity document a holder presents alongside the badge,
    either a Qatar ID (QID) or a passport with its Hayya visa, and the
    validators that keep it well formed.
Architecture position: Kernel > Domain.  Pure, zero I/O.

Invariants enforced:
    - A QID holder has an 11-digit QID number and a QID expiry.
    - A passport holder has a passport number, issuing country, passport
      expiry, Hayya visa number and Hayya visa expiry.
    - A passport number is 6 to 12 letters or digits.
    - Document numbers are format-checked whenever present, whichever
      document type is selected.

Failure modes:
    - MissingFieldError naming the first required field that is absent.
    - InvalidIdentificationError naming the malformed field.
"""

import re
from dataclasses import dataclass, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any

from accreditation_kernel.domain.clock import ensure_utc
from accreditation_kernel.exceptions import InvalidIdentificationError, MissingFieldError

QID_PATTERN = re.compile(r"[0-9]{11}")
PASSPORT_PATTERN = re.compile(r"[A-Za-z0-9]{6,12}")


class IdentificationType(str, Enum):
    QID = "qid"
    PASSPORT = "passport"


@dataclass(frozen=True)
class Identification:
    """Document details as captured at registration."""

    identification_type: IdentificationType
    qid_number: str | None = None
    qid_expiry: datetime | None = None
    passport_number: str | None = None
    passport_country: str | None = None
    passport_expiry: datetime | None = None
    hayya_visa_number: str | None = None
    hayya_visa_expiry: datetime | None = None

    @classmethod
    def qid(cls, number: str, expiry: datetime) -> "Identification":
        return cls(IdentificationType.QID, qid_number=number, qid_expiry=expiry)

    @classmethod
    def passport(
        cls,
        number: str,
        country: str,
        expiry: datetime,
        *,
        hayya_visa_number: str,
        hayya_visa_expiry: datetime,
    ) -> "Identification":
        return cls(
            IdentificationType.PASSPORT,
            passport_number=number,
            passport_country=country,
            passport_expiry=expiry,
            hayya_visa_number=hayya_visa_number,
            hayya_visa_expiry=hayya_visa_expiry,
        )


IDENTIFICATION_FIELDS = frozenset(f.name for f in fields(Identification))

_TEXT_FIELDS = ("qid_number", "passport_number", "passport_country", "hayya_visa_number")
_EXPIRY_FIELDS = ("qid_expiry", "passport_expiry", "hayya_visa_expiry")

_REQUIRED: dict[IdentificationType, tuple[str, ...]] = {
    IdentificationType.QID: ("qid_number", "qid_expiry"),
    IdentificationType.PASSPORT: (
        "passport_number",
        "passport_country",
        "passport_expiry",
        "hayya_visa_number",
        "hayya_visa_expiry",
    ),
}


def parse_identification_type(value: Any) -> IdentificationType:
    if isinstance(value, IdentificationType):
        return value
    if isinstance(value, str):
        try:
            return IdentificationType(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(t.value for t in IdentificationType)
    raise InvalidIdentificationError("identification_type", f"must be one of {allowed}")


def normalize_identification(identification: Identification) -> Identification:
    """Strip text, turn blanks into None and express expiries in UTC."""
    changes: dict[str, Any] = {
        "identification_type": parse_identification_type(identification.identification_type),
    }
    for name in _TEXT_FIELDS:
        value = getattr(identification, name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise InvalidIdentificationError(name, "must be text")
        changes[name] = value.strip() or None
    for name in _EXPIRY_FIELDS:
        value = getattr(identification, name)
        if value is None:
            continue
        if not isinstance(value, datetime):
            raise InvalidIdentificationError(name, f"must be a datetime, not {type(value).__name__}")
        changes[name] = ensure_utc(value)
    return replace(identification, **changes)


def validate_identification(identification: Identification) -> None:
    """Check a normalized identification."""
    for name in _REQUIRED[identification.identification_type]:
        if getattr(identification, name) is None:
            raise MissingFieldError(name)
    if identification.qid_number is not None and not QID_PATTERN.fullmatch(identification.qid_number):
        raise InvalidIdentificationError("qid_number", "must be exactly 11 digits")
    if identification.passport_number is not None and not PASSPORT_PATTERN.fullmatch(
        identification.passport_number
    ):
        raise InvalidIdentificationError("passport_number", "must be 6 to 12 letters or digits")


def normalize_photo_url(value: Any) -> str | None:
    """The holder's photo reference, stripped; blank means no photo."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidIdentificationError("profile_photo_url", "must be text")
    return value.strip() or None

"""
Red cell compatibility, keyed by donor type.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List

from .config import BLOOD_TYPES

RECIPIENTS_BY_DONOR: Dict[str, FrozenSet[str]] = {
    "O-": frozenset({"A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"}),
    "O+": frozenset({"A+", "B+", "AB+", "O+"}),
    "A-": frozenset({"A+", "A-", "AB+", "AB-"}),
    "A+": frozenset({"A+", "AB+"}),
    "B-": frozenset({"B+", "B-", "AB+", "AB-"}),
    "B+": frozenset({"B+", "AB+"}),
    "AB-": frozenset({"AB+", "AB-"}),
    "AB+": frozenset({"AB+"}),
}


def normalize_blood_type(value: str) -> str:
    return value.strip().upper().replace(" ", "") if isinstance(value, str) else value


def is_valid_blood_type(value: str) -> bool:
    return normalize_blood_type(value) in RECIPIENTS_BY_DONOR


def is_compatible(recipient: str, donor: str) -> bool:
    return normalize_blood_type(recipient) in RECIPIENTS_BY_DONOR.get(normalize_blood_type(donor), ())


def compatible_donor_types(recipient: str) -> List[str]:
    recipient = normalize_blood_type(recipient)
    return [donor for donor in BLOOD_TYPES if recipient in RECIPIENTS_BY_DONOR[donor]]

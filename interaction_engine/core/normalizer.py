"""
Medication Interaction Engine - Medication Name Normalizer
Canonical lookup keys for free-text medication names
"""
import re
from typing import Any

# Strength patterns, e.g. "81mg", "0.25 mg", "125mg/5ml", "500 iu", "2%"
_UNIT = r'(?:mg|mcg|µg|ug|g|gm|kg|ml|l|iu|units?|meq|mmol|%)'
DOSAGE_PATTERN = re.compile(
    rf'(?<![\w.])\d+(?:\.\d+)?\s*{_UNIT}(?:\s*/\s*\d*(?:\.\d+)?\s*{_UNIT})?(?![a-z0-9])'
)

FORMULATION_WORDS = (
    "tablet", "tablets",
    "capsule", "capsules",
    "injection", "injections",
    "solution", "solutions",
    "suspension", "suspensions",
    "suppository", "suppositories",
    "patch", "patches",
    "cream", "creams",
    "ointment", "ointments",
    "gel", "gels",
)
FORMULATION_SUFFIX = re.compile(
    r'\s+(?:' + '|'.join(FORMULATION_WORDS) + r')$'
)

_MAX_PASSES = 10


def _normalize_once(name: str) -> str:
    name = name.lower().strip()
    name = DOSAGE_PATTERN.sub(' ', name)
    name = ' '.join(name.split())
    # Only strip a formulation word when a name remains in front of it
    while True:
        stripped = FORMULATION_SUFFIX.sub('', name)
        if stripped == name or not stripped.strip():
            break
        name = stripped
    return ' '.join(name.split())


def normalize(raw: Any) -> str:
    """
    Normalize a medication name into a comparable key.

    lowercase -> trim -> strip dosage -> strip formulation suffix -> trim.
    Repeated until stable so the result is idempotent. Anything that is not
    a non-blank string normalizes to "" which callers treat as "cannot match".

        >>> normalize("Aspirin 81mg Tablet")
        'aspirin'
    """
    if not isinstance(raw, str):
        return ""

    name = raw
    for _ in range(_MAX_PASSES):
        normalized = _normalize_once(name)
        if normalized == name:
            break
        name = normalized
    return name


class NameNormalizer:
    """Callable wrapper so the normalizer can be injected like other components"""

    def normalize(self, raw: Any) -> str:
        return normalize(raw)

    def __call__(self, raw: Any) -> str:
        return normalize(raw)

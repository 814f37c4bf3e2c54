"""
Medication Interaction Engine - Response Extractor
Turns free-form text-completion output into typed interaction records

Model output formatting is inconsistent, so extraction is an ordered list of
independent strategies. Each strategy returns None when it has nothing to
say, or a list of risks; the first non-None result wins.
"""
import re
import logging
from typing import List, Optional, Tuple, Callable, Sequence

from interaction_engine.core.models import (
    InteractionRisk, EvidenceLevel, ExtractionOutcome, classify_severity
)
from interaction_engine.core.normalizer import normalize

logger = logging.getLogger(__name__)

SOURCE_MODEL_TABLE = "model_table"
SOURCE_MODEL_LINE_SCAN = "model_line_scan"


# ==================== Patterns ====================

NEGATIVE_PHRASES = (
    "no significant interaction",
    "no interactions found",
)

# Header rows: "Severity (high, medium, or low)", "Risk Level", "Drug A | Drug B", "Medication 1"
HEADER_SEVERITY_CELL = re.compile(r'^(?:severity|risk|level)\b', re.IGNORECASE)
HEADER_DRUG_CELL = re.compile(r'^(?:drug|medication)(?:\s*[a-z0-9])?$', re.IGNORECASE)

SEPARATOR_ROW = re.compile(r'^[\s|:\-=+]+$')

SEVERITY_CUES = (
    "high", "severe", "serious", "major", "dangerous",
    "moderate", "medium", "significant", "potential",
    "low", "mild", "minor", "minimal",
)
_CUE = r'(?P<cue>' + '|'.join(SEVERITY_CUES) + r')'
_ANCHOR = r'(?:risks?|severity|interactions?)'

# "high risk", "severe interaction", "moderate-severity"
CUE_BEFORE_ANCHOR = re.compile(rf'\b{_CUE}[\s\-]+{_ANCHOR}\b', re.IGNORECASE)
# "Severity: high", "risk is low", "interaction (mild)", "risk level - moderate"
ANCHOR_BEFORE_CUE = re.compile(
    rf'\b{_ANCHOR}(?:\s+level)?\s*(?:[:=\-(]|\bis\b|\bof\b)?\s*\(?\s*{_CUE}\b',
    re.IGNORECASE
)

LIST_MARKER = re.compile(r'^\s*(?:[-*•>]+|\d+[.)])\s*')


# ==================== Strategies ====================

def extract_negative(raw_text: str, medications: Sequence[str]) -> Optional[List[InteractionRisk]]:
    """Explicit "no interaction" answer wins over anything else in the text"""
    lowered = raw_text.lower()
    if any(phrase in lowered for phrase in NEGATIVE_PHRASES):
        return []
    return None


def _split_table_row(line: str) -> Optional[List[str]]:
    row = line.strip()
    if '|' not in row or SEPARATOR_ROW.match(row):
        return None
    row = LIST_MARKER.sub('', row)
    if row.startswith('|'):
        row = row[1:]
    if row.endswith('|'):
        row = row[:-1]

    cells = [cell.strip().strip('*').strip() for cell in row.split('|')]
    if len(cells) != 4:
        return None
    if not cells[0] or not cells[1] or not cells[2]:
        return None
    if HEADER_SEVERITY_CELL.match(cells[2]):
        return None
    if HEADER_DRUG_CELL.match(cells[0]) and HEADER_DRUG_CELL.match(cells[1]):
        return None
    return cells


def extract_table(raw_text: str, medications: Sequence[str]) -> Optional[List[InteractionRisk]]:
    """Rows shaped ``drugA | drugB | severity | description``"""
    risks = []
    for line in raw_text.splitlines():
        cells = _split_table_row(line)
        if cells is None:
            continue

        drug_a, drug_b, severity_text, description = cells
        risks.append(InteractionRisk(
            severity=classify_severity(severity_text),
            description=description or f"Potential interaction between {drug_a} and {drug_b}",
            medications=(drug_a, drug_b),
            evidence_level=EvidenceLevel.MODERATE,
            source=SOURCE_MODEL_TABLE,
        ))

    return risks or None


def _severity_cue(line: str) -> Optional[str]:
    """All adjacent cue words in the line joined, or None if there are none"""
    cues = [
        match.group("cue")
        for pattern in (CUE_BEFORE_ANCHOR, ANCHOR_BEFORE_CUE)
        for match in pattern.finditer(line)
    ]
    return " ".join(cues) if cues else None


def _mentioned(line: str, medications: Sequence[str]) -> List[str]:
    """Medication names found in ``line``, distinct and in list order"""
    lowered = line.lower()
    found = []
    seen_keys = set()

    for name in medications:
        if not isinstance(name, str) or not name.strip():
            continue
        key = normalize(name)
        if key in seen_keys:
            continue
        forms = {name.strip().lower(), key} - {""}
        if any(form in lowered for form in forms):
            found.append(name)
            seen_keys.add(key)

    return found


def extract_line_scan(raw_text: str, medications: Sequence[str]) -> Optional[List[InteractionRisk]]:
    """Last resort: lines with a severity cue that mention two of the medications"""
    risks = []
    for line in raw_text.splitlines():
        if not line.strip():
            continue

        cue = _severity_cue(line)
        if cue is None:
            continue

        names = _mentioned(line, medications)
        if len(names) < 2:
            continue

        risks.append(InteractionRisk(
            severity=classify_severity(cue),
            description=LIST_MARKER.sub('', line).replace('**', '').strip(),
            medications=(names[0], names[1]),
            evidence_level=EvidenceLevel.WEAK,
            source=SOURCE_MODEL_LINE_SCAN,
        ))

    return risks or None


Strategy = Callable[[str, Sequence[str]], Optional[List[InteractionRisk]]]

DEFAULT_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("negative", extract_negative),
    ("table", extract_table),
    ("line_scan", extract_line_scan),
)


# ==================== Extractor ====================

class ResponseExtractor:
    """Ordered-fallback parser for text-completion interaction answers"""

    def __init__(self, strategies: Sequence[Tuple[str, Strategy]] = DEFAULT_STRATEGIES):
        self.strategies = tuple(strategies)

    def extract(
        self,
        raw_text: str,
        primary_med: str,
        candidate_meds: Sequence[str]
    ) -> List[InteractionRisk]:
        """Parse ``raw_text`` into interaction risks. Unparseable text yields []."""
        return self.extract_with_outcome(raw_text, primary_med, candidate_meds).risks

    def extract_with_outcome(
        self,
        raw_text: str,
        primary_med: str,
        candidate_meds: Sequence[str]
    ) -> ExtractionOutcome:
        if not isinstance(raw_text, str) or not raw_text.strip():
            return ExtractionOutcome()

        medications = [primary_med, *(candidate_meds or [])]

        for name, strategy in self.strategies:
            try:
                risks = strategy(raw_text, medications)
            except Exception as e:
                logger.error(f"Extraction strategy '{name}' failed: {e}")
                continue
            if risks is not None:
                logger.debug(f"Extraction strategy '{name}' produced {len(risks)} record(s)")
                return ExtractionOutcome(risks=risks, strategy=name)

        logger.warning("Model response did not match any extraction strategy")
        return ExtractionOutcome()


_default_extractor = ResponseExtractor()


def extract(raw_text: str, primary_med: str, candidate_meds: Sequence[str]) -> List[InteractionRisk]:
    """Module-level shortcut using the default strategy order"""
    return _default_extractor.extract(raw_text, primary_med, candidate_meds)

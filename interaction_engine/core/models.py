"""
Medication Interaction Engine - Data Models
Core data structures shared by the matcher, extractor and checker
"""
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Tuple, FrozenSet
from enum import Enum
from datetime import datetime
import re

from interaction_engine.core.normalizer import normalize


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EvidenceLevel(Enum):
    STRONG = "strong"      # curated knowledge base
    MODERATE = "moderate"  # table parsed from model output
    WEAK = "weak"          # heuristic line-scan of model output

    @property
    def rank(self) -> int:
        return _EVIDENCE_RANK[self]


_EVIDENCE_RANK = {
    EvidenceLevel.STRONG: 3,
    EvidenceLevel.MODERATE: 2,
    EvidenceLevel.WEAK: 1,
}

# Checked in order: high cues win over low cues
_HIGH_SEVERITY = re.compile(r'high|severe|major|critical|dangerous|serious')
_LOW_SEVERITY = re.compile(r'low|mild|minor|minimal')


def classify_severity(text: Optional[str]) -> Severity:
    """Map free severity text to a Severity. Always returns a value."""
    if not text:
        return Severity.MEDIUM
    lowered = str(text).lower()
    if _HIGH_SEVERITY.search(lowered):
        return Severity.HIGH
    if _LOW_SEVERITY.search(lowered):
        return Severity.LOW
    return Severity.MEDIUM


class FailureKind(Enum):
    PARSE = "parse_failure"
    COLLABORATOR = "collaborator_failure"
    LOOKUP = "lookup_failure"


class CheckStatus(Enum):
    COMPLETE = "complete"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class InteractionEdge:
    """Directed knowledge base entry, keyed by its source drug"""
    counterpart: str
    severity: Severity
    description: str


@dataclass
class InteractionRisk:
    """Interaction between two medications reported to the caller"""
    severity: Severity
    description: str
    medications: Tuple[str, str]
    evidence_level: EvidenceLevel
    source: str = ""

    @property
    def pair_key(self) -> FrozenSet[str]:
        return frozenset(
            normalize(name) or str(name).strip().lower() for name in self.medications
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "description": self.description,
            "medications": list(self.medications),
            "evidence_level": self.evidence_level.value,
            "source": self.source,
        }


@dataclass
class ExtractionOutcome:
    """Extractor result plus the strategy that produced it (None when unparsed)"""
    risks: List[InteractionRisk] = field(default_factory=list)
    strategy: Optional[str] = None

    @property
    def parsed(self) -> bool:
        return self.strategy is not None


@dataclass
class FallbackOutcome:
    """Result of one model-assisted supplement call"""
    risks: List[InteractionRisk] = field(default_factory=list)
    failure: Optional[FailureKind] = None
    strategy: Optional[str] = None


@dataclass
class InteractionCheckResult:
    """Result of a full interaction check"""
    interactions: List[InteractionRisk] = field(default_factory=list)
    status: CheckStatus = CheckStatus.COMPLETE
    failures: List[FailureKind] = field(default_factory=list)
    fallback_used: bool = False
    check_time_ms: float = 0
    checked_at: datetime = field(default_factory=datetime.now)

    @property
    def has_high_severity(self) -> bool:
        return any(i.severity == Severity.HIGH for i in self.interactions)

    @property
    def severity_count(self) -> Dict[str, int]:
        counts = {"high": 0, "medium": 0, "low": 0}
        for i in self.interactions:
            counts[i.severity.value] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "interactions": [i.to_dict() for i in self.interactions],
            "failures": [f.value for f in self.failures],
            "fallback_used": self.fallback_used,
            "check_time_ms": self.check_time_ms,
            "checked_at": self.checked_at.isoformat(),
        }

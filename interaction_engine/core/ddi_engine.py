"""
Medication Interaction Engine - Rule-Based DDI Matcher
Deterministic pair lookup over the curated interaction knowledge base
"""
import logging
from typing import Optional

from config import settings
from interaction_engine.core.errors import LookupFailure
from interaction_engine.core.knowledge_base import InteractionKnowledgeBase, get_knowledge_base
from interaction_engine.core.models import (
    InteractionEdge, InteractionRisk, EvidenceLevel, Severity
)
from interaction_engine.core.normalizer import normalize

logger = logging.getLogger(__name__)

SOURCE_KNOWLEDGE_BASE = "knowledge_base"
SOURCE_ALIAS_MATCH = "alias_match"


class RuleBasedMatcher:
    """Drug-Drug interaction lookup: forward, reverse, then alias substring"""

    def __init__(
        self,
        knowledge_base: Optional[InteractionKnowledgeBase] = None,
        alias_min_length: int = settings.ALIAS_MIN_LENGTH
    ):
        self.knowledge_base = knowledge_base or get_knowledge_base()
        self.alias_min_length = alias_min_length

    def check_pair(self, med1: str, med2: str) -> Optional[InteractionRisk]:
        """
        Check for an interaction between two medications.

        Returns None when there is no match. Never raises: knowledge base
        faults are logged and treated as "no match".
        """
        try:
            return self.lookup_pair(med1, med2)
        except LookupFailure as e:
            logger.error(f"Interaction lookup failed for {med1!r} + {med2!r}: {e}")
            return None

    def lookup_pair(self, med1: str, med2: str) -> Optional[InteractionRisk]:
        """Like check_pair, but raises LookupFailure on knowledge base faults"""
        key1 = normalize(med1)
        key2 = normalize(med2)
        if not key1 or not key2:
            return None

        try:
            edge = self._find_edge(key1, key2)
        except Exception as e:
            raise LookupFailure(str(e)) from e

        if edge is not None:
            return InteractionRisk(
                severity=edge.severity,
                description=edge.description,
                medications=(med1, med2),
                evidence_level=EvidenceLevel.STRONG,
                source=SOURCE_KNOWLEDGE_BASE,
            )

        if self._is_alias_match(key1, key2):
            # Substring heuristic; can false-positive on short or embedded names
            return InteractionRisk(
                severity=Severity.MEDIUM,
                description=(
                    f"Possible alias or formulation match: {med1} and {med2} may refer to "
                    f"the same or a related medication. Review for duplicate therapy."
                ),
                medications=(med1, med2),
                evidence_level=EvidenceLevel.STRONG,
                source=SOURCE_ALIAS_MATCH,
            )

        return None

    def _find_edge(self, key1: str, key2: str) -> Optional[InteractionEdge]:
        # Forward
        for edge in self.knowledge_base.lookup_direct(key1):
            if edge.counterpart == key2:
                return edge

        # Reverse: stored under key2 pointing at key1
        for source, edge in self.knowledge_base.lookup_reverse(key1):
            if source == key2:
                return edge
        for edge in self.knowledge_base.lookup_direct(key2):
            if edge.counterpart == key1:
                return edge

        return None

    def _is_alias_match(self, key1: str, key2: str) -> bool:
        if len(key1) < self.alias_min_length or len(key2) < self.alias_min_length:
            return False
        return key1 in key2 or key2 in key1

"""
Medication Interaction Engine - Interaction Checker
Combines rule-based matching with the model-assisted fallback
"""
import asyncio
import logging
import threading
import time
from typing import List, Optional, Sequence

from config import settings
from interaction_engine.core.ddi_engine import RuleBasedMatcher
from interaction_engine.core.errors import LookupFailure
from interaction_engine.core.knowledge_base import InteractionKnowledgeBase, get_knowledge_base
from interaction_engine.core.models import (
    InteractionRisk, InteractionCheckResult, CheckStatus, FailureKind
)
from interaction_engine.ml.model_fallback import ModelAssistedFallback
from interaction_engine.ml.text_completion import OpenAITextCompletionClient

logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


def deduplicate(risks: Sequence[InteractionRisk]) -> List[InteractionRisk]:
    """
    Collapse risks for the same unordered medication pair.

    The record with the higher evidence level wins; on a tie the earlier one
    is kept. Survivors stay at the position of the pair's first occurrence.
    """
    result: List[InteractionRisk] = []
    index_by_pair = {}

    for risk in risks:
        key = risk.pair_key
        if key not in index_by_pair:
            index_by_pair[key] = len(result)
            result.append(risk)
            continue

        position = index_by_pair[key]
        if risk.evidence_level.rank > result[position].evidence_level.rank:
            result[position] = risk

    return result


class InteractionChecker:
    """
    Main entry point for checking a candidate medication against a patient's
    current medications.

    - Rule-based knowledge base lookup for every pair (always)
    - Model-assisted fallback when rule coverage is thin
    - Deduplication by medication pair, strongest evidence first
    """

    def __init__(
        self,
        knowledge_base: Optional[InteractionKnowledgeBase] = None,
        matcher: Optional[RuleBasedMatcher] = None,
        fallback: Optional[ModelAssistedFallback] = None,
        min_rule_hits: int = settings.FALLBACK_MIN_RULE_HITS
    ):
        self.knowledge_base = knowledge_base or (matcher.knowledge_base if matcher else get_knowledge_base())
        self.matcher = matcher or RuleBasedMatcher(self.knowledge_base)
        self.fallback = fallback
        self.min_rule_hits = min_rule_hits
        logger.info(
            "Interaction checker initialized "
            f"(model fallback {'enabled' if fallback else 'disabled'})"
        )

    async def check_interactions(
        self,
        medication: str,
        current_medications: Sequence[str]
    ) -> List[InteractionRisk]:
        """
        Check a candidate medication against current medications.

        Args:
            medication: Candidate medication name
            current_medications: Names of medications the patient already takes

        Returns:
            Deduplicated interaction risks. Never raises; an empty list may
            mean "no interactions" or "check degraded" (use check() to tell).
        """
        result = await self.check(medication, current_medications)
        return result.interactions

    async def check(
        self,
        medication: str,
        current_medications: Sequence[str]
    ) -> InteractionCheckResult:
        """Full check, including whether any stage failed"""
        start_time = time.time()
        try:
            result = await self._check(medication, current_medications)
        except Exception as e:
            logger.error(f"Error checking drug interactions for {medication!r}: {e}")
            result = InteractionCheckResult(
                status=CheckStatus.DEGRADED,
                failures=[FailureKind.LOOKUP],
            )

        result.check_time_ms = (time.time() - start_time) * 1000
        return result

    def check_interactions_sync(
        self,
        medication: str,
        current_medications: Sequence[str]
    ) -> List[InteractionRisk]:
        """Blocking wrapper for callers without an event loop"""
        return asyncio.run(self.check_interactions(medication, current_medications))

    async def close(self) -> None:
        """Release the collaborator's HTTP connections"""
        if self.fallback is not None:
            await self.fallback.close()

    async def _check(
        self,
        medication: str,
        current_medications: Sequence[str]
    ) -> InteractionCheckResult:
        current = list(current_medications or [])
        logger.info(f"Checking interactions for {medication!r} with {len(current)} current medications")

        failures: List[FailureKind] = []
        risks: List[InteractionRisk] = []

        for current_med in current:
            try:
                risk = self.matcher.lookup_pair(medication, current_med)
            except LookupFailure as e:
                logger.error(f"Interaction lookup failed for {medication!r} + {current_med!r}: {e}")
                if FailureKind.LOOKUP not in failures:
                    failures.append(FailureKind.LOOKUP)
                continue
            if risk is not None:
                risks.append(risk)

        fallback_used = False
        if len(risks) < self.min_rule_hits and current and self.fallback is not None:
            fallback_used = True
            outcome = await self.fallback.run(medication, current)
            risks.extend(outcome.risks)
            if outcome.failure is not None and outcome.failure not in failures:
                failures.append(outcome.failure)

        interactions = deduplicate(risks)

        if failures:
            logger.warning(
                f"Interaction check for {medication!r} degraded: "
                f"{', '.join(f.value for f in failures)}"
            )

        return InteractionCheckResult(
            interactions=interactions,
            status=CheckStatus.DEGRADED if failures else CheckStatus.COMPLETE,
            failures=failures,
            fallback_used=fallback_used,
        )


# Shared instance, assigned once under the lock
_interaction_checker: Optional[InteractionChecker] = None
_interaction_checker_lock = threading.Lock()


def create_model_fallback() -> Optional[ModelAssistedFallback]:
    """Model fallback wired to the configured collaborator, or None if disabled"""
    if not settings.ENABLE_MODEL_FALLBACK:
        return None
    if not settings.LLM_API_KEY:
        logger.warning("No text-completion API key configured; model fallback disabled")
        return None
    return ModelAssistedFallback(OpenAITextCompletionClient())


def get_interaction_checker() -> InteractionChecker:
    """Get or create the process-wide interaction checker"""
    global _interaction_checker
    if _interaction_checker is None:
        with _interaction_checker_lock:
            if _interaction_checker is None:
                _interaction_checker = InteractionChecker(
                    knowledge_base=get_knowledge_base(),
                    fallback=create_model_fallback(),
                )
    return _interaction_checker

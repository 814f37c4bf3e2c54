"""
Medication Interaction Engine - Model-Assisted Fallback
Asks the text-completion collaborator about pairs the knowledge base does not cover
"""
import asyncio
import logging
from typing import List, Optional, Sequence

import httpx

from config import settings
from interaction_engine.core.errors import CollaboratorFailure
from interaction_engine.core.models import InteractionRisk, FallbackOutcome, FailureKind
from interaction_engine.ml.text_completion import TextCompletionClient
from interaction_engine.nlp.response_extractor import ResponseExtractor

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """Please analyze potential drug interactions between {medication} and the following medications:
{current_medications}

For each potential interaction, respond with exactly one line in this format:
Drug A | Drug B | Severity (high, medium, or low) | Brief description of the interaction

Do not add a header row. If there are no interactions, respond only with:
No significant interactions found."""


def build_prompt(medication: str, current_medications: Sequence[str]) -> str:
    return PROMPT_TEMPLATE.format(
        medication=medication,
        current_medications=", ".join(current_medications),
    )


class ModelAssistedFallback:
    """
    Supplements rule-based results with the text-completion collaborator.

    The collaborator call is the only suspension point in a check. It is
    bounded by ``timeout`` and every failure mode degrades to an empty list.
    """

    def __init__(
        self,
        client: TextCompletionClient,
        extractor: Optional[ResponseExtractor] = None,
        timeout: float = settings.LLM_TIMEOUT_SECONDS
    ):
        self.client = client
        self.extractor = extractor or ResponseExtractor()
        self.timeout = timeout

    async def supplement(
        self,
        medication: str,
        current_medications: Sequence[str]
    ) -> List[InteractionRisk]:
        """Model-derived interaction risks, or [] on any failure"""
        outcome = await self.run(medication, current_medications)
        return outcome.risks

    async def run(
        self,
        medication: str,
        current_medications: Sequence[str]
    ) -> FallbackOutcome:
        """Like supplement, but reports which failure (if any) occurred"""
        current = [m for m in current_medications or [] if isinstance(m, str) and m.strip()]
        if not current or not isinstance(medication, str) or not medication.strip():
            return FallbackOutcome()

        prompt = build_prompt(medication, current)

        try:
            text = await asyncio.wait_for(self.client.complete(prompt), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Text completion timed out after {self.timeout}s for {medication}")
            return FallbackOutcome(failure=FailureKind.COLLABORATOR)
        except (CollaboratorFailure, httpx.HTTPError) as e:
            logger.error(f"Text completion failed for {medication}: {e}")
            return FallbackOutcome(failure=FailureKind.COLLABORATOR)
        except Exception as e:
            logger.error(f"Unexpected text completion error for {medication}: {e}")
            return FallbackOutcome(failure=FailureKind.COLLABORATOR)

        if not isinstance(text, str) or not text.strip():
            logger.warning(f"Empty text completion response for {medication}")
            return FallbackOutcome(failure=FailureKind.COLLABORATOR)

        extraction = self.extractor.extract_with_outcome(text, medication, current)
        if not extraction.parsed:
            return FallbackOutcome(failure=FailureKind.PARSE)

        logger.info(
            f"Model-assisted check for {medication} produced {len(extraction.risks)} "
            f"interaction(s) via '{extraction.strategy}'"
        )
        return FallbackOutcome(risks=extraction.risks, strategy=extraction.strategy)

    async def close(self) -> None:
        await self.client.close()

"""
Medication Interaction Engine - Shared Test Fixtures
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import pytest

from interaction_engine.core.knowledge_base import InteractionKnowledgeBase
from interaction_engine.ml.text_completion import TextCompletionClient


class StaticCompletionClient(TextCompletionClient):
    """Collaborator stand-in returning a fixed answer, or raising it if it is an exception"""

    def __init__(self, response="", delay: float = 0):
        self.response = response
        self.delay = delay
        self.prompts = []
        self.closed = False

    async def close(self) -> None:
        self.closed = True

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.response, BaseException):
            raise self.response
        return self.response

    @property
    def calls(self) -> int:
        return len(self.prompts)


@pytest.fixture
def knowledge_base():
    """Fresh knowledge base built from the curated dataset"""
    return InteractionKnowledgeBase().build()


@pytest.fixture
def completion_client():
    """Factory for collaborator stand-ins"""
    def make(response="", delay: float = 0) -> StaticCompletionClient:
        return StaticCompletionClient(response, delay)
    return make

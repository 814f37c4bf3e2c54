"""
Medication Interaction Engine - Error Types

None of these escape the public checking API; they are raised internally
and converted to empty results (see FailureKind in models).
"""


class InteractionEngineError(Exception):
    """Base class for interaction engine errors"""


class LookupFailure(InteractionEngineError):
    """Knowledge base access failed"""


class CollaboratorFailure(InteractionEngineError):
    """Text-completion collaborator failed or returned an unusable response"""

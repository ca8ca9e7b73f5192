"""
Error taxonomy for the training service.

NotFound conditions are signalled to callers; provider and persistence
failures are absorbed by the generation chain / repository mirror.
"""
from __future__ import annotations


class TrainingError(Exception):
    """Base class for training-service errors."""


class NotFound(TrainingError):
    pass


class SessionNotFound(NotFound):
    def __init__(self, session_id: str):
        super().__init__(f"Training session {session_id} not found")
        self.session_id = session_id


class ScenarioNotFound(NotFound):
    def __init__(self, scenario_id: str):
        super().__init__(f"Scenario {scenario_id} not found")
        self.scenario_id = scenario_id


class MessageNotFound(NotFound):
    def __init__(self, message_id: str):
        super().__init__(f"Message {message_id} not found")
        self.message_id = message_id


class SessionNotActive(TrainingError):
    def __init__(self, session_id: str, status: str):
        super().__init__(f"Training session {session_id} is {status}, not active")
        self.session_id = session_id
        self.status = status


class ProviderFailure(TrainingError):
    """A generation provider could not produce a usable answer."""


class PersistenceFailure(TrainingError):
    """The durable store rejected or could not complete an operation."""


__all__ = [
    "TrainingError",
    "NotFound",
    "SessionNotFound",
    "ScenarioNotFound",
    "MessageNotFound",
    "SessionNotActive",
    "ProviderFailure",
    "PersistenceFailure",
]

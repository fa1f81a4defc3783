from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Agent(ABC):
    """Abstract base class for all agents.

    Agents are shared across requests, so per-request context such as the
    ``request_id`` used for log correlation is passed to ``run`` rather than
    stored on the instance.
    """

    @abstractmethod
    def run(self, *args: Any, request_id: str | None = None, **kwargs: Any) -> Any:
        """Execute the agent and return its structured output."""


__all__ = ["Agent"]

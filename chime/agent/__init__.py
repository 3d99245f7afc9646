"""
Chime Agent - Dispatch Layer

Sits between the chat backend and the engine.

Key Components:
- DispatchPolicy: Self-trigger suppression, mention routing, single decision
- ChimeAgent: Per-team windows and evaluators
- Responder: Generates chat replies and insights for the chosen action
- server: FastAPI transport (imported separately, pulls in FastAPI)
"""

from .policy import DispatchPolicy, Route
from .responder import Responder, ChimeResponse
from .service import ChimeAgent, DispatchOutcome

__all__ = [
    "DispatchPolicy",
    "Route",
    "Responder",
    "ChimeResponse",
    "ChimeAgent",
    "DispatchOutcome",
]

"""
Dispatch Policy

Gate applied to every incoming message before the chime engine sees it.

Three failure modes this guards against:
- Feedback loops: the agent reacting to its own output
- Double answers: a reactive reply to a mention plus an autonomous chime
- Chime storms: executing several decisions off one message
"""

import logging
import re
from enum import Enum
from typing import List, Optional, Pattern, Sequence

from ..common.schemas import ChatMessage, Decision

logger = logging.getLogger("chime.agent.policy")

DEFAULT_MENTION_PATTERNS = [r"@agent\b", r"\bhey\s+ai\b", r"\bai\s+help\b"]


class Route(str, Enum):
    """Where an incoming message goes"""
    IGNORE_SELF = "ignore_self"  # authored by the agent
    IGNORE_EMPTY = "ignore_empty"  # nothing to evaluate
    REACTIVE = "reactive"  # explicit mention, answer directly
    AUTONOMOUS = "autonomous"  # run chime evaluation


class DispatchPolicy:
    """
    Routes messages and picks the one decision to execute.

    A message mentioning the agent is answered directly and never also run
    through chime evaluation.
    """

    def __init__(self, agent_id: str = "agent", mention_patterns: Optional[Sequence[str]] = None):
        """
        Initialize policy.

        Args:
            agent_id: Author id the agent posts under
            mention_patterns: Regexes that address the agent; ``@<agent_id>``
                is always included
        """
        self.agent_id = agent_id
        patterns = list(DEFAULT_MENTION_PATTERNS if mention_patterns is None else mention_patterns)
        patterns.append(rf"@{re.escape(agent_id)}\b")
        self._mention_patterns = self._compile(patterns)

    @staticmethod
    def _compile(patterns: Sequence[str]) -> List[Pattern]:
        compiled = []
        for pattern in dict.fromkeys(patterns):
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                logger.error("Invalid mention pattern %r: %s", pattern, e)
        return compiled

    def is_self(self, message: ChatMessage) -> bool:
        return message.author_id == self.agent_id

    def mentions_agent(self, message: ChatMessage) -> bool:
        content = message.content or ""
        return any(p.search(content) for p in self._mention_patterns)

    def route(self, message: ChatMessage) -> Route:
        if self.is_self(message):
            return Route.IGNORE_SELF
        if not (message.content or "").strip():
            return Route.IGNORE_EMPTY
        if self.mentions_agent(message):
            return Route.REACTIVE
        return Route.AUTONOMOUS

    def evaluation_window(self, messages: Sequence[ChatMessage]) -> List[ChatMessage]:
        """Window handed to the engine: the agent's own messages never count as evidence"""
        return [m for m in messages if not self.is_self(m)]

    def select(self, decisions: Sequence[Decision]) -> Optional[Decision]:
        """
        The single decision to execute: the first of an already ranked list.

        The rest are dropped. Their cooldowns were started during evaluation,
        so they will not fire again on the next message either.
        """
        if not decisions:
            return None
        if len(decisions) > 1:
            logger.info(
                "Executing %s, discarding %d lower-ranked decision(s): %s",
                decisions[0].rule.name,
                len(decisions) - 1,
                ", ".join(d.rule.name for d in decisions[1:]),
            )
        return decisions[0]

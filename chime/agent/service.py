"""
Chime Agent

Per-team orchestration around the engine.

Pipeline, per incoming message:
1. Record it in the team's trailing window
2. Route it through the dispatch policy
3. Reactive: answer the mention, no chime evaluation
4. Autonomous: evaluate, execute only the top decision
5. Record whatever the agent posted back into the window
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, List, Optional

from ..common.schemas import ChatMessage, Decision, EvaluationContext, Insight, utc_now
from ..engine.evaluator import ChimeEvaluator
from ..engine.registry import RuleProvider
from .policy import DispatchPolicy, Route
from .responder import Responder

logger = logging.getLogger("chime.agent.service")


@dataclass
class DispatchOutcome:
    """What happened to one incoming message"""
    team_id: str
    message_id: str
    route: Route
    decision: Optional[Decision] = None
    discarded: List[Decision] = field(default_factory=list)
    reply: Optional[ChatMessage] = None
    insights: List[Insight] = field(default_factory=list)


class ChimeAgent:
    """
    Runs the dispatch policy and one ChimeEvaluator per team.

    Evaluators are built lazily from the team's effective rules and live as
    long as the agent, so cooldowns persist across messages. The agent's own
    posts are kept in the window as history but never evaluated.
    """

    def __init__(
        self,
        rule_provider: RuleProvider,
        policy: Optional[DispatchPolicy] = None,
        responder: Optional[Responder] = None,
        history_limit: int = 50,
        evaluator_factory=ChimeEvaluator,
    ):
        """
        Args:
            rule_provider: Source of each team's effective rules
            policy: Dispatch policy (default: agent id "agent")
            responder: Renders output; without one decisions are selected
                but nothing is generated
            history_limit: Trailing messages kept per team
            evaluator_factory: Callable building an evaluator from rules
        """
        self._rules = rule_provider
        self.policy = policy or DispatchPolicy()
        self._responder = responder
        self._history_limit = history_limit
        self._evaluator_factory = evaluator_factory

        self._histories: Dict[str, Deque[ChatMessage]] = {}
        self._evaluators: Dict[str, ChimeEvaluator] = {}
        self._lock = threading.Lock()

    def evaluator_for(self, team_id: str) -> ChimeEvaluator:
        with self._lock:
            evaluator = self._evaluators.get(team_id)
            if evaluator is None:
                rules = self._rules.rules_for_team(team_id)
                evaluator = self._evaluator_factory(rules)
                self._evaluators[team_id] = evaluator
                logger.info("Built evaluator for team %s with %d active rules", team_id, len(rules))
            return evaluator

    def reload_rules(self, team_id: str) -> None:
        """Drop the team's evaluator; the next message rebuilds it (cooldowns reset)"""
        with self._lock:
            self._evaluators.pop(team_id, None)

    def history(self, team_id: str) -> List[ChatMessage]:
        with self._lock:
            return list(self._histories.get(team_id, ()))

    def record(self, team_id: str, message: ChatMessage) -> None:
        with self._lock:
            window = self._histories.get(team_id)
            if window is None:
                window = deque(maxlen=self._history_limit)
                self._histories[team_id] = window
            window.append(message)

    def handle_message(
        self,
        team_id: str,
        message: ChatMessage,
        current_time: Optional[datetime] = None,
    ) -> DispatchOutcome:
        """
        Process one incoming message.

        Args:
            team_id: Conversation the message belongs to
            message: The new message
            current_time: Evaluation clock (default: now)

        Returns:
            DispatchOutcome with the route taken and anything the agent posted
        """
        route = self.policy.route(message)
        self.record(team_id, message)
        outcome = DispatchOutcome(team_id=team_id, message_id=message.id, route=route)

        if route in (Route.IGNORE_SELF, Route.IGNORE_EMPTY):
            logger.debug("Not evaluating message %s: %s", message.id, route.value)
            return outcome

        history = self.history(team_id)

        if route == Route.REACTIVE:
            logger.info("Message %s mentions the agent, replying directly", message.id)
            if self._responder is not None:
                outcome.reply = self._responder.reply_to_mention(team_id, message, history)
                self.record(team_id, outcome.reply)
            return outcome

        context = EvaluationContext(
            team_id=team_id,
            recent_messages=self.policy.evaluation_window(history),
            new_message_id=message.id,
            current_time=current_time or utc_now(),
        )
        decisions = self.evaluator_for(team_id).evaluate(context)
        outcome.decision = self.policy.select(decisions)
        outcome.discarded = list(decisions[1:])

        if outcome.decision is None or self._responder is None:
            return outcome

        response = self._responder.execute(outcome.decision, context)
        outcome.reply = response.reply
        outcome.insights = response.insights
        if response.reply is not None:
            self.record(team_id, response.reply)

        return outcome

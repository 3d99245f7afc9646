"""
Chime Evaluator

Decides, for one evaluation context, which active rules fire. Holds the only
mutable state in the engine: the per-rule last-fired timestamps that drive
cooldowns.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from ..common.schemas import Decision, EvaluationContext, Rule, RuleType
from .patterns import PatternCache
from .strategies import EvaluationStrategy, MatchResult, build_default_strategies, no_match

logger = logging.getLogger("chime.engine.evaluator")


class ChimeEvaluator:
    """
    Evaluates a message window against the active chime rules.

    Algorithm, per rule:
    1. Skip rules scoped to another team
    2. Skip rules still in cooldown
    3. Run the strategy for the rule's type
    4. On a match, emit a Decision and start the rule's cooldown

    Decisions come back sorted critical > high > medium > low, stable within
    a priority. Cooldowns start even if the caller never executes the
    decision, so runners-up do not fire again on the next message.

    One lock covers the whole pass; check-then-set on the cooldown map is a
    single critical section.
    """

    def __init__(
        self,
        rules: Iterable[Rule] = (),
        strategies: Optional[Dict[RuleType, EvaluationStrategy]] = None,
        pattern_cache: Optional[PatternCache] = None,
    ):
        """
        Initialize evaluator.

        Args:
            rules: Candidate rules; disabled ones are dropped
            strategies: Per-type overrides, e.g. a vector-search semantic strategy
            pattern_cache: Shared compiled-pattern cache
        """
        self._rules: List[Rule] = []
        self._last_fired: Dict[str, datetime] = {}
        self._lock = threading.Lock()

        self._strategies = build_default_strategies(pattern_cache)
        if strategies:
            self._strategies.update(strategies)

        for rule in rules:
            if not rule.enabled:
                continue
            if any(r.id == rule.id for r in self._rules):
                logger.warning("Duplicate rule id %s, keeping the first definition", rule.id)
                continue
            self._rules.append(rule)

    def evaluate(self, context: EvaluationContext) -> List[Decision]:
        """
        Evaluate the context against all active rules.

        Returns:
            Triggered rules as Decisions, highest priority first. Empty when
            nothing fires.
        """
        decisions: List[Decision] = []

        with self._lock:
            for rule in self._rules:
                if not rule.applies_to(context.team_id):
                    continue

                if self._in_cooldown(rule, context.current_time):
                    logger.debug("Rule %s is in cooldown, skipping", rule.name)
                    continue

                result = self._evaluate_rule(rule, context)
                if not result.triggered:
                    continue

                logger.info("Rule triggered: %s (confidence: %.2f)", rule.name, result.confidence)
                decisions.append(Decision(
                    rule=rule,
                    team_id=context.team_id,
                    triggering_message_ids=result.message_ids,
                    confidence=result.confidence,
                    timestamp=context.current_time,
                ))
                self._last_fired[rule.id] = context.current_time

        decisions.sort(key=lambda d: d.rule.priority.rank)
        return decisions

    def _evaluate_rule(self, rule: Rule, context: EvaluationContext) -> MatchResult:
        strategy = self._strategies.get(rule.type)
        if strategy is None:
            logger.warning("Unknown rule type %r on rule %s", rule.type, rule.id)
            return no_match()

        try:
            result = strategy.evaluate(rule, context)
        except Exception:
            logger.exception("Strategy for rule %s failed, treating as no match", rule.id)
            return no_match()

        # Pluggable strategies may report raw similarity scores
        if not 0.0 <= result.confidence <= 1.0:
            logger.warning(
                "Strategy for rule %s returned confidence %.3f, clamping to [0, 1]",
                rule.id,
                result.confidence,
            )
            result.confidence = min(max(result.confidence, 0.0), 1.0)
        return result

    def _in_cooldown(self, rule: Rule, now: datetime) -> bool:
        last_fired = self._last_fired.get(rule.id)
        if last_fired is None:
            return False

        elapsed = now - last_fired
        # Clock skew: a firing "in the future" still counts as recent
        if elapsed < timedelta(0):
            return True
        return elapsed < timedelta(minutes=rule.cooldown_minutes)

    def is_in_cooldown(self, rule_id: str, now: datetime) -> bool:
        """Whether an active rule would be skipped for cooldown at ``now``"""
        with self._lock:
            rule = next((r for r in self._rules if r.id == rule_id), None)
            return rule is not None and self._in_cooldown(rule, now)

    def add_rule(self, rule: Rule) -> None:
        """Add a rule; ignored when disabled or when the id is already active"""
        with self._lock:
            if not rule.enabled or any(r.id == rule.id for r in self._rules):
                return
            self._rules.append(rule)
        logger.info("Added rule: %s", rule.name)

    def remove_rule(self, rule_id: str) -> None:
        """Remove a rule and forget its cooldown"""
        with self._lock:
            self._rules = [r for r in self._rules if r.id != rule_id]
            self._last_fired.pop(rule_id, None)
        logger.info("Removed rule: %s", rule_id)

    def clear_cooldown(self, rule_id: str) -> None:
        """Make a rule immediately eligible again (tests, admin reset)"""
        with self._lock:
            self._last_fired.pop(rule_id, None)

    def get_rules(self) -> List[Rule]:
        """Snapshot of the active rules"""
        with self._lock:
            return list(self._rules)

    def last_fired(self, rule_id: str) -> Optional[datetime]:
        with self._lock:
            return self._last_fired.get(rule_id)

    def cooldowns(self) -> Dict[str, datetime]:
        """Snapshot of rule id -> last fired time"""
        with self._lock:
            return dict(self._last_fired)

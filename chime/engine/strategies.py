"""
Evaluation Strategies

One strategy per rule type. The evaluator only knows the ``evaluate(rule,
context) -> MatchResult`` interface, so a real vector-search or cron-backed
strategy can be swapped in without touching cooldown or ranking logic.

The semantic and schedule strategies shipped here are PLACEHOLDERS:
- KeywordSemanticStrategy matches ``conditions.keywords`` instead of doing
  vector similarity. Replace it with VectorSearchStrategy (or your own)
  wired to the RAG service.
- ActivityScheduleStrategy checks message volume instead of parsing the
  cron expression. Real schedules need a timer-driven invocation path
  outside the message-driven loop.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..common.schemas import EvaluationContext, Rule, RuleType
from .patterns import PatternCache

logger = logging.getLogger("chime.engine.strategies")

DEFAULT_PATTERN_MESSAGE_COUNT = 1
DEFAULT_THRESHOLD_MESSAGE_COUNT = 10
DEFAULT_SCHEDULE_MESSAGE_COUNT = 1
SCHEDULE_PLACEHOLDER_CONFIDENCE = 0.5


@dataclass
class MatchResult:
    """Outcome of evaluating one rule against one context"""
    triggered: bool
    confidence: float = 0.0
    message_ids: List[str] = field(default_factory=list)


def no_match() -> MatchResult:
    return MatchResult(triggered=False, confidence=0.0, message_ids=[])


class EvaluationStrategy(ABC):
    """Matching algorithm for one rule type"""

    @abstractmethod
    def evaluate(self, rule: Rule, context: EvaluationContext) -> MatchResult:
        pass


class PatternStrategy(EvaluationStrategy):
    """
    Regex and keyword matching over the recent message window.

    Triggers when enough messages match AND the just-arrived message is one
    of them (or no new message was named). Without the second clause old
    messages still in the window would re-fire the rule on every new message.
    """

    def __init__(self, pattern_cache: Optional[PatternCache] = None):
        self._patterns = pattern_cache or PatternCache()

    def evaluate(self, rule: Rule, context: EvaluationContext) -> MatchResult:
        conditions = rule.conditions
        message_count = conditions.message_count or DEFAULT_PATTERN_MESSAGE_COUNT

        matching: List[str] = []
        total_hits = 0
        new_message_matches = False

        for message in context.recent_messages:
            hits = self._patterns.count_hits(
                message.content or "",
                patterns=conditions.patterns,
                keywords=conditions.keywords,
            )
            if hits > 0:
                matching.append(message.id)
                total_hits += hits
                if context.new_message_id and message.id == context.new_message_id:
                    new_message_matches = True

        has_enough_matches = len(matching) >= message_count
        triggered = has_enough_matches and (new_message_matches or not context.new_message_id)
        confidence = min(total_hits / (message_count * 2), 1.0) if triggered else 0.0

        return MatchResult(triggered=triggered, confidence=confidence, message_ids=matching)


class ThresholdStrategy(EvaluationStrategy):
    """Message volume, optionally restricted to a recent time window"""

    def evaluate(self, rule: Rule, context: EvaluationContext) -> MatchResult:
        conditions = rule.conditions
        message_count = conditions.message_count or DEFAULT_THRESHOLD_MESSAGE_COUNT

        relevant = context.recent_messages
        if conditions.time_window_minutes:
            cutoff = context.current_time - timedelta(minutes=conditions.time_window_minutes)
            relevant = [m for m in relevant if m.created_at >= cutoff]

        triggered = len(relevant) >= message_count
        confidence = min(len(relevant) / (message_count * 1.5), 1.0) if triggered else 0.0

        return MatchResult(
            triggered=triggered,
            confidence=confidence,
            message_ids=[m.id for m in relevant],
        )


class KeywordSemanticStrategy(EvaluationStrategy):
    """
    PLACEHOLDER for semantic rules: falls back to pattern matching when the
    rule has keywords, otherwise never triggers.
    """

    def __init__(self, pattern_strategy: PatternStrategy):
        self._pattern = pattern_strategy
        self._warned = False

    def evaluate(self, rule: Rule, context: EvaluationContext) -> MatchResult:
        if not self._warned:
            logger.warning("Semantic rules use keyword fallback (no vector search wired in)")
            self._warned = True

        if rule.conditions.keywords:
            return self._pattern.evaluate(rule, context)
        return no_match()


# (message_id, similarity) pairs for a query over a team's recent messages
SearchFn = Callable[[str, EvaluationContext], Sequence[Tuple[str, float]]]


class VectorSearchStrategy(EvaluationStrategy):
    """
    Semantic rules backed by an external similarity search.

    ``search`` is the RAG collaborator: given ``conditions.semantic_query``
    it returns scored message ids. Only hits inside the context window count.
    The best similarity is the confidence.
    """

    def __init__(self, search: SearchFn, min_similarity: float = 0.75):
        self._search = search
        self._min_similarity = min_similarity

    def evaluate(self, rule: Rule, context: EvaluationContext) -> MatchResult:
        query = rule.conditions.semantic_query
        if not query:
            return no_match()

        window_ids = {m.id for m in context.recent_messages}
        hits = [
            (message_id, score)
            for message_id, score in self._search(query, context)
            if message_id in window_ids and score >= self._min_similarity
        ]
        if not hits:
            return no_match()

        message_ids = [message_id for message_id, _ in hits]
        message_count = rule.conditions.message_count or DEFAULT_PATTERN_MESSAGE_COUNT
        new_message_matches = context.new_message_id in message_ids
        triggered = len(hits) >= message_count and (new_message_matches or not context.new_message_id)
        confidence = min(max(score for _, score in hits), 1.0) if triggered else 0.0

        return MatchResult(triggered=triggered, confidence=confidence, message_ids=message_ids)


class ActivityScheduleStrategy(EvaluationStrategy):
    """
    PLACEHOLDER for schedule rules: ignores ``conditions.schedule`` and fires
    when the window holds at least ``message_count`` messages.
    """

    def __init__(self):
        self._warned = False

    def evaluate(self, rule: Rule, context: EvaluationContext) -> MatchResult:
        if not self._warned:
            logger.warning("Schedule rules use an activity check (no cron evaluation wired in)")
            self._warned = True

        message_count = rule.conditions.message_count or DEFAULT_SCHEDULE_MESSAGE_COUNT
        triggered = len(context.recent_messages) >= message_count

        return MatchResult(
            triggered=triggered,
            confidence=SCHEDULE_PLACEHOLDER_CONFIDENCE if triggered else 0.0,
            message_ids=[m.id for m in context.recent_messages],
        )


class HybridStrategy(EvaluationStrategy):
    """Pattern AND threshold. Confidence is the mean of the two."""

    def __init__(self, pattern_strategy: PatternStrategy, threshold_strategy: ThresholdStrategy):
        self._pattern = pattern_strategy
        self._threshold = threshold_strategy

    def evaluate(self, rule: Rule, context: EvaluationContext) -> MatchResult:
        pattern_result = self._pattern.evaluate(rule, context)
        if not pattern_result.triggered:
            return pattern_result

        threshold_result = self._threshold.evaluate(rule, context)
        if not threshold_result.triggered:
            return threshold_result

        # Ordered union, pattern matches first
        message_ids = list(dict.fromkeys(pattern_result.message_ids + threshold_result.message_ids))

        return MatchResult(
            triggered=True,
            confidence=(pattern_result.confidence + threshold_result.confidence) / 2,
            message_ids=message_ids,
        )


def build_default_strategies(pattern_cache: Optional[PatternCache] = None) -> Dict[RuleType, EvaluationStrategy]:
    """Strategy table used by ChimeEvaluator unless overridden"""
    pattern = PatternStrategy(pattern_cache)
    threshold = ThresholdStrategy()
    return {
        RuleType.PATTERN: pattern,
        RuleType.THRESHOLD: threshold,
        RuleType.SEMANTIC: KeywordSemanticStrategy(pattern),
        RuleType.SCHEDULE: ActivityScheduleStrategy(),
        RuleType.HYBRID: HybridStrategy(pattern, threshold),
    }

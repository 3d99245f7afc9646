"""
Tests for Evaluation Strategies

Strategies are exercised directly, without cooldowns or ranking.
"""

import logging
import pytest
from datetime import datetime, timedelta, timezone

from chime.common.schemas import (
    ActionType,
    ChatMessage,
    EvaluationContext,
    Rule,
    RuleAction,
    RuleConditions,
)


NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def _rule(rule_type="pattern", **conditions):
    return Rule(
        id="r1",
        name="Test Rule",
        type=rule_type,
        conditions=RuleConditions(**conditions),
        action=RuleAction(action_type=ActionType.CHAT_MESSAGE, template="Say something useful"),
    )


def _msg(message_id, content, minutes_ago=0):
    return ChatMessage(
        id=message_id,
        content=content,
        author_id="alice",
        created_at=NOW - timedelta(minutes=minutes_ago),
    )


def _context(messages, new_message_id=None):
    return EvaluationContext(
        team_id="team-1",
        recent_messages=messages,
        new_message_id=new_message_id,
        current_time=NOW,
    )


class TestPatternStrategy:
    def test_triggers_on_new_matching_message(self):
        from chime.engine.strategies import PatternStrategy

        rule = _rule(patterns=[r"deploy"])
        result = PatternStrategy().evaluate(rule, _context([_msg("1", "deploy is done")], "1"))

        assert result.triggered is True
        assert result.message_ids == ["1"]
        assert result.confidence == pytest.approx(0.5)

    def test_old_match_does_not_refire(self):
        from chime.engine.strategies import PatternStrategy

        rule = _rule(patterns=[r"deploy"])
        messages = [_msg("1", "deploy is done", 5), _msg("2", "nice")]
        result = PatternStrategy().evaluate(rule, _context(messages, "2"))

        assert result.triggered is False
        assert result.confidence == 0.0
        assert result.message_ids == ["1"]

    def test_no_new_message_uses_whole_window(self):
        from chime.engine.strategies import PatternStrategy

        rule = _rule(patterns=[r"deploy"])
        messages = [_msg("1", "deploy is done", 5), _msg("2", "nice")]
        result = PatternStrategy().evaluate(rule, _context(messages))

        assert result.triggered is True

    def test_message_count_required(self):
        from chime.engine.strategies import PatternStrategy

        rule = _rule(patterns=[r"blocked"], message_count=2)
        strategy = PatternStrategy()

        one = strategy.evaluate(rule, _context([_msg("1", "blocked again")], "1"))
        two = strategy.evaluate(
            rule, _context([_msg("1", "blocked again", 3), _msg("2", "still blocked")], "2")
        )

        assert one.triggered is False
        assert two.triggered is True
        assert two.confidence == pytest.approx(0.5)

    def test_confidence_counts_all_hits(self):
        from chime.engine.strategies import PatternStrategy

        rule = _rule(patterns=[r"urgent", r"ASAP"], keywords=["deadline"])
        result = PatternStrategy().evaluate(
            rule, _context([_msg("1", "urgent deadline, need it ASAP")], "1")
        )

        assert result.triggered is True
        assert result.confidence == 1.0

    def test_keywords_only(self):
        from chime.engine.strategies import PatternStrategy

        rule = _rule(keywords=["what is"])
        result = PatternStrategy().evaluate(rule, _context([_msg("1", "What is Redux?")], "1"))

        assert result.triggered is True

    def test_time_window_ignored(self):
        from chime.engine.strategies import PatternStrategy

        rule = _rule(patterns=[r"deploy"], time_window_minutes=5)
        result = PatternStrategy().evaluate(rule, _context([_msg("1", "deploy now", 120)], "1"))

        assert result.triggered is True


class TestThresholdStrategy:
    def test_counts_messages_in_window(self):
        from chime.engine.strategies import ThresholdStrategy

        messages = [
            _msg("1", "a", 40),
            _msg("2", "b", 30),
            _msg("3", "c", 8),
            _msg("4", "d", 4),
            _msg("5", "e", 0),
        ]
        rule = _rule("threshold", message_count=3, time_window_minutes=10)
        result = ThresholdStrategy().evaluate(rule, _context(messages, "5"))

        assert result.triggered is True
        assert result.message_ids == ["3", "4", "5"]
        assert result.confidence == pytest.approx(3 / 4.5)

    def test_below_threshold(self):
        from chime.engine.strategies import ThresholdStrategy

        messages = [_msg("1", "a", 30), _msg("2", "b", 0)]
        rule = _rule("threshold", message_count=2, time_window_minutes=10)
        result = ThresholdStrategy().evaluate(rule, _context(messages, "2"))

        assert result.triggered is False
        assert result.confidence == 0.0

    def test_window_boundary_inclusive(self):
        from chime.engine.strategies import ThresholdStrategy

        rule = _rule("threshold", message_count=1, time_window_minutes=10)
        result = ThresholdStrategy().evaluate(rule, _context([_msg("1", "a", 10)]))

        assert result.triggered is True

    def test_default_message_count(self):
        from chime.engine.strategies import ThresholdStrategy

        rule = _rule("threshold")
        nine = [_msg(str(i), "hi") for i in range(9)]

        assert ThresholdStrategy().evaluate(rule, _context(nine)).triggered is False
        assert ThresholdStrategy().evaluate(rule, _context(nine + [_msg("9", "hi")])).triggered is True


class TestHybridStrategy:
    def _strategy(self):
        from chime.engine.strategies import HybridStrategy, PatternStrategy, ThresholdStrategy

        return HybridStrategy(PatternStrategy(), ThresholdStrategy())

    def test_confidence_is_mean(self):
        messages = [_msg("1", "I'm confused", 2), _msg("2", "still confused here", 1)]
        rule = _rule("hybrid", patterns=[r"confused"], message_count=2, time_window_minutes=10)

        result = self._strategy().evaluate(rule, _context(messages, "2"))

        assert result.triggered is True
        assert result.confidence == pytest.approx((0.5 + 2 / 3) / 2)
        assert result.message_ids == ["1", "2"]

    def test_pattern_fails(self):
        messages = [_msg("1", "hello", 2), _msg("2", "hi", 1)]
        rule = _rule("hybrid", patterns=[r"confused"], message_count=2, time_window_minutes=10)

        result = self._strategy().evaluate(rule, _context(messages, "2"))

        assert result.triggered is False

    def test_threshold_fails(self):
        messages = [_msg("1", "I'm confused", 30), _msg("2", "still confused here", 25)]
        rule = _rule("hybrid", patterns=[r"confused"], message_count=2, time_window_minutes=10)

        result = self._strategy().evaluate(rule, _context(messages, "2"))

        assert result.triggered is False
        assert result.confidence == 0.0


class TestPlaceholderStrategies:
    def test_semantic_uses_keywords(self, caplog):
        from chime.engine.strategies import KeywordSemanticStrategy, PatternStrategy

        strategy = KeywordSemanticStrategy(PatternStrategy())
        rule = _rule("semantic", keywords=["kubernetes"], semantic_query="container orchestration")

        with caplog.at_level(logging.WARNING, logger="chime.engine.strategies"):
            first = strategy.evaluate(rule, _context([_msg("1", "Kubernetes keeps crashing")], "1"))
            strategy.evaluate(rule, _context([_msg("1", "Kubernetes keeps crashing")], "1"))

        assert first.triggered is True
        assert len([r for r in caplog.records if "keyword fallback" in r.getMessage()]) == 1

    def test_semantic_without_keywords_never_triggers(self):
        from chime.engine.strategies import KeywordSemanticStrategy, PatternStrategy

        strategy = KeywordSemanticStrategy(PatternStrategy())
        rule = _rule("semantic", semantic_query="container orchestration")

        assert strategy.evaluate(rule, _context([_msg("1", "anything")], "1")).triggered is False

    def test_schedule_activity_check(self):
        from chime.engine.strategies import ActivityScheduleStrategy

        rule = _rule("schedule", schedule="0 17 * * 1-5", message_count=2)
        strategy = ActivityScheduleStrategy()

        one = strategy.evaluate(rule, _context([_msg("1", "a")]))
        two = strategy.evaluate(rule, _context([_msg("1", "a"), _msg("2", "b")]))

        assert one.triggered is False
        assert two.triggered is True
        assert two.confidence == 0.5


class TestVectorSearchStrategy:
    def test_best_score_is_confidence(self):
        from chime.engine.strategies import VectorSearchStrategy

        calls = []

        def search(query, context):
            calls.append(query)
            return [("1", 0.8), ("2", 0.92), ("outside", 0.99)]

        strategy = VectorSearchStrategy(search)
        rule = _rule("semantic", semantic_query="deployment trouble")
        messages = [_msg("1", "the rollout failed"), _msg("2", "prod is down")]

        result = strategy.evaluate(rule, _context(messages, "2"))

        assert calls == ["deployment trouble"]
        assert result.triggered is True
        assert result.message_ids == ["1", "2"]
        assert result.confidence == pytest.approx(0.92)

    def test_low_scores_filtered(self):
        from chime.engine.strategies import VectorSearchStrategy

        strategy = VectorSearchStrategy(lambda q, c: [("1", 0.3)])
        rule = _rule("semantic", semantic_query="deployment trouble")

        result = strategy.evaluate(rule, _context([_msg("1", "lunch?")], "1"))

        assert result.triggered is False

    def test_new_message_gate(self):
        from chime.engine.strategies import VectorSearchStrategy

        strategy = VectorSearchStrategy(lambda q, c: [("1", 0.9)])
        rule = _rule("semantic", semantic_query="deployment trouble")
        messages = [_msg("1", "the rollout failed"), _msg("2", "ok")]

        result = strategy.evaluate(rule, _context(messages, "2"))

        assert result.triggered is False

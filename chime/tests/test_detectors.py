"""
Tests for Pattern Detectors

Each detector is checked against short realistic conversations.
"""

import pytest
from datetime import datetime, timedelta, timezone

from chime.common.schemas import ChatMessage


NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def _messages(*contents):
    return [
        ChatMessage(id=str(i), content=text, author_id=f"user{i % 3}", created_at=NOW)
        for i, text in enumerate(contents, start=1)
    ]


class TestDecisionDetector:
    def test_detects_decisions(self):
        from chime.engine.detectors import detect_decision

        result = detect_decision(_messages(
            "Let's go with option A for the database",
            "We decided to use PostgreSQL instead",
        ))

        assert result.detected is True
        assert result.matching_message_ids == ["1", "2"]
        assert result.confidence == 1.0

    def test_single_decision_is_mid_confidence(self):
        from chime.engine.detectors import detect_decision

        result = detect_decision(_messages("Let's go with option A for the database"))

        assert result.detected is True
        assert result.confidence == pytest.approx(0.5)

    def test_case_insensitive(self):
        from chime.engine.detectors import detect_decision

        result = detect_decision(_messages("LET'S GO WITH plan B"))

        assert result.detected is True

    def test_no_decision(self):
        from chime.engine.detectors import detect_decision

        result = detect_decision(_messages("Good morning everyone!", "Coffee anyone?"))

        assert result.detected is False
        assert result.matching_message_ids == []
        assert result.confidence == 0.0


class TestActionCommitmentDetector:
    def test_detects_commitments(self):
        from chime.engine.detectors import detect_action_commitment

        result = detect_action_commitment(_messages(
            "I'll finish the API integration by Friday",
            "I'll take care of the deployment by tomorrow",
        ))

        assert result.detected is True
        assert len(result.matching_message_ids) == 2
        assert result.confidence == 1.0

    def test_single_commitment(self):
        from chime.engine.detectors import detect_action_commitment

        result = detect_action_commitment(_messages("Dana is responsible for the rollout"))

        assert result.detected is True
        assert result.confidence == pytest.approx(1 / 1.5)


class TestConfusionDetector:
    def test_needs_two_signals(self):
        from chime.engine.detectors import detect_confusion

        result = detect_confusion(_messages("I'm confused about how this works"))

        assert result.detected is False
        assert result.matching_message_ids == ["1"]
        assert result.confidence == 0.0

    def test_detects_confusion(self):
        from chime.engine.detectors import detect_confusion

        result = detect_confusion(_messages(
            "I'm confused about how this works",
            "Can you explain what that means?",
            "I don't understand the difference",
        ))

        assert result.detected is True
        assert len(result.matching_message_ids) == 3
        assert result.confidence == 1.0


class TestProblemDetector:
    def test_detects_blockers(self):
        from chime.engine.detectors import detect_problem

        result = detect_problem(_messages(
            "I'm stuck on this bug",
            "Getting an error when running the build",
        ))

        assert result.detected is True
        assert result.confidence == pytest.approx(0.8)

    def test_single_problem_not_enough(self):
        from chime.engine.detectors import detect_problem

        result = detect_problem(_messages("The linter is not working", "lunch?"))

        assert result.detected is False


class TestUrgencyDetector:
    def test_detects_urgency(self):
        from chime.engine.detectors import detect_urgency

        result = detect_urgency(_messages("We need this ASAP", "Deadline is today by EOD"))

        assert result.detected is True
        assert result.confidence == 1.0

    def test_single_urgency(self):
        from chime.engine.detectors import detect_urgency

        result = detect_urgency(_messages("We're running out of time here"))

        assert result.detected is True
        assert result.confidence == pytest.approx(1 / 1.5)


class TestKnowledgeGapDetector:
    def test_detects_repeated_topic(self):
        from chime.engine.detectors import detect_knowledge_gap

        result = detect_knowledge_gap(_messages("What is Redux?", "Can someone explain Redux?"))

        assert result.detected is True
        assert result.topic == "redux"
        assert result.confidence == pytest.approx(2 / 3)

    def test_different_topics_not_detected(self):
        from chime.engine.detectors import detect_knowledge_gap

        result = detect_knowledge_gap(_messages("What is Redux?", "What is Kafka?"))

        assert result.detected is False
        assert len(result.matching_message_ids) == 2
        assert result.topic == "redux"  # first seen wins the tie

    def test_patterns_without_topic(self):
        from chime.engine.detectors import detect_knowledge_gap

        result = detect_knowledge_gap(_messages("Never heard of it", "I'm unfamiliar with that"))

        assert result.detected is False
        assert result.topic is None


class TestQuestionOverloadDetector:
    def test_detects_overload(self):
        from chime.engine.detectors import detect_question_overload

        result = detect_question_overload(_messages(
            "How does this work?",
            "What should we use for state management?",
            "When is the deadline?",
            "Where is the documentation?",
        ))

        assert result.detected is True
        assert result.question_count == 4
        assert result.confidence == 1.0

    def test_needs_three_questions(self):
        from chime.engine.detectors import detect_question_overload

        result = detect_question_overload(_messages("Ready?", "Now?"))

        assert result.detected is False
        assert result.question_count == 2

    def test_only_last_ten_messages_count(self):
        from chime.engine.detectors import detect_question_overload

        contents = ["Why?"] * 5 + ["ok"] * 10
        result = detect_question_overload(_messages(*contents))

        assert result.question_count == 0
        assert result.detected is False

    def test_empty_input(self):
        from chime.engine.detectors import detect_question_overload

        result = detect_question_overload([])

        assert result.detected is False


class TestSilenceDetector:
    def test_detects_silence(self):
        from chime.engine.detectors import detect_silence

        result = detect_silence(NOW - timedelta(minutes=45), NOW)

        assert result.detected is True
        assert result.silence_minutes == pytest.approx(45)

    def test_boundary_counts(self):
        from chime.engine.detectors import detect_silence

        assert detect_silence(NOW - timedelta(minutes=30), NOW).detected is True
        assert detect_silence(NOW - timedelta(minutes=10), NOW).detected is False


class TestTopicDriftDetector:
    def test_detects_drift(self):
        from chime.engine.detectors import detect_topic_drift

        messages = _messages(
            "anyone want lunch today",
            "the new cafe is good",
            "did you see the game",
            "weekend plans anyone",
            "I am going hiking",
        )
        result = detect_topic_drift(messages, "database migration plan")

        assert result.detected is True
        assert result.drift_score == 1.0

    def test_on_topic(self):
        from chime.engine.detectors import detect_topic_drift

        messages = _messages(*["the database migration is ready"] * 5)
        result = detect_topic_drift(messages, "database migration")

        assert result.detected is False
        assert result.drift_score == 0.0

    def test_needs_five_messages(self):
        from chime.engine.detectors import detect_topic_drift

        result = detect_topic_drift(_messages("lunch?"), "database migration")

        assert result.detected is False
        assert result.drift_score == 0.0


def test_detectors_do_not_mutate_input():
    from chime.engine.detectors import detect_decision, detect_question_overload

    messages = _messages("We decided to ship", "Why?")
    snapshot = [m.model_copy() for m in messages]

    detect_decision(messages)
    detect_question_overload(messages)

    assert messages == snapshot

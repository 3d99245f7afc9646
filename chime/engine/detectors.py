"""
Pattern Detectors

Pure functions that scan recent chat messages for evidence of a specific
conversational signal. None of them hold state or mutate their input.

Confidence is ``min(matches / normalizer, 1.0)``. The normalizers are tuning
knobs, picked so that one match lands mid-range and a few matches saturate:

    decision      2.0   (>=1 message)
    commitment    1.5   (>=1 message)
    confusion     3.0   (>=2 messages)
    problem       2.5   (>=2 messages)
    urgency       1.5   (>=1 message)
    knowledge gap 3.0   (same topic >=2 times)
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Pattern, Sequence, Tuple

from ..common.schemas import ChatMessage


def _compile(*patterns: str) -> List[Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


DECISION_PATTERNS = _compile(
    r"let'?s\s+go\s+with",
    r"we\s+(decided|agreed|chose)",
    r"final\s+decision",
    r"settled\s+on",
    r"moving\s+forward\s+with",
    r"decision\s+is\s+to",
    r"consensus\s+(is|was)",
)

COMMITMENT_PATTERNS = _compile(
    r"(I'?ll|I\s+will)\s+.+\s+by\s+(tomorrow|friday|monday|tuesday|wednesday|thursday|saturday|sunday|next\s+week|\d{1,2}/\d{1,2})",
    r"deadline\s+(is|set\s+for|on)",
    r"will\s+(finish|complete|deliver|submit)",
    r"due\s+(date|on)",
    r"commit\s+to\s+(finishing|completing)",
    r"responsible\s+for",
    r"I'?ll\s+take\s+(care\s+of|on)",
)

CONFUSION_PATTERNS = _compile(
    r"(I'?m|I\s+am)\s+(confused|lost|not\s+sure|unclear)",
    r"what\s+(do\s+you|does\s+that)\s+mean",
    r"(can\s+you|could\s+you)\s+(explain|clarify)",
    r"don'?t\s+understand",
    r"confused\s+about",
    r"what'?s\s+the\s+difference",
    r"how\s+(do|does)\s+(that|this)\s+work",
    r"can\s+someone\s+explain",
)

PROBLEM_PATTERNS = _compile(
    r"(stuck|blocked)\s+on",
    r"(issue|problem)\s+with",
    r"(error|bug|crash)",
    r"not\s+working",
    r"can'?t\s+get\s+.+\s+to\s+work",
    r"keep\s+getting\s+(error|issue)",
    r"doesn'?t\s+work",
    r"hitting\s+a\s+wall",
)

URGENCY_PATTERNS = _compile(
    r"urgent",
    r"ASAP",
    r"as\s+soon\s+as\s+possible",
    r"by\s+(EOD|end\s+of\s+(day|week))",
    r"deadline\s+(today|tomorrow)",
    r"need\s+(this|it)\s+(now|today|immediately)",
    r"time\s+(critical|sensitive)",
    r"running\s+out\s+of\s+time",
)

# Second capture group, when present, names the unfamiliar topic
KNOWLEDGE_GAP_PATTERNS = _compile(
    r"what\s+(is|are)\s+(\w+)",
    r"(define|explain)\s+(\w+)",
    r"never\s+heard\s+of",
    r"unfamiliar\s+with",
    r"don'?t\s+know\s+(what|how)",
    r"what'?s\s+(\w+)\s+mean",
)

QUESTION_WINDOW = 10
DRIFT_WINDOW = 5
DEFAULT_SILENCE_MINUTES = 30


@dataclass
class DetectorResult:
    """Result of a pattern detector"""
    detected: bool
    matching_message_ids: List[str] = field(default_factory=list)
    confidence: float = 0.0
    topic: Optional[str] = None  # knowledge gap only


@dataclass
class QuestionOverloadResult:
    detected: bool
    question_count: int
    confidence: float


@dataclass
class SilenceResult:
    detected: bool
    silence_minutes: float


@dataclass
class TopicDriftResult:
    detected: bool
    drift_score: float


def scan_messages(
    messages: Sequence[ChatMessage],
    patterns: Sequence[Pattern],
) -> Tuple[List[str], int]:
    """
    Return ids of messages hit by any pattern, and the total hit count.

    Each message counts once, on its first matching pattern.
    """
    matching: List[str] = []
    total = 0
    for message in messages:
        content = message.content or ""
        for pattern in patterns:
            if pattern.search(content):
                matching.append(message.id)
                total += 1
                break
    return matching, total


def _detect(
    messages: Sequence[ChatMessage],
    patterns: Sequence[Pattern],
    min_matches: int,
    normalizer: float,
) -> DetectorResult:
    matching, total = scan_messages(messages, patterns)
    detected = len(matching) >= min_matches
    confidence = min(total / normalizer, 1.0) if detected else 0.0
    return DetectorResult(detected=detected, matching_message_ids=matching, confidence=confidence)


def detect_decision(messages: Sequence[ChatMessage]) -> DetectorResult:
    """Team settled on something: "let's go with", "we decided", "final decision" """
    return _detect(messages, DECISION_PATTERNS, min_matches=1, normalizer=2.0)


def detect_action_commitment(messages: Sequence[ChatMessage]) -> DetectorResult:
    """Someone signed up for a task, usually with a deadline"""
    return _detect(messages, COMMITMENT_PATTERNS, min_matches=1, normalizer=1.5)


def detect_confusion(messages: Sequence[ChatMessage]) -> DetectorResult:
    """Members are confused. Needs two signals to avoid false positives."""
    return _detect(messages, CONFUSION_PATTERNS, min_matches=2, normalizer=3.0)


def detect_problem(messages: Sequence[ChatMessage]) -> DetectorResult:
    """Team is stuck or blocked. Needs two signals."""
    return _detect(messages, PROBLEM_PATTERNS, min_matches=2, normalizer=2.5)


def detect_urgency(messages: Sequence[ChatMessage]) -> DetectorResult:
    """Urgent deadlines or time pressure: "ASAP", "by EOD" """
    return _detect(messages, URGENCY_PATTERNS, min_matches=1, normalizer=1.5)


def detect_knowledge_gap(messages: Sequence[ChatMessage]) -> DetectorResult:
    """
    Repeated questions about the same unfamiliar concept.

    Detected only when at least two messages match and the most frequent
    extracted topic recurs at least twice. Ties go to the topic seen first.
    """
    matching: List[str] = []
    topic_counts = {}

    for message in messages:
        content = message.content or ""
        for pattern in KNOWLEDGE_GAP_PATTERNS:
            match = pattern.search(content)
            if match:
                matching.append(message.id)
                if pattern.groups >= 2 and match.group(2):
                    topic = match.group(2).lower()
                    topic_counts[topic] = topic_counts.get(topic, 0) + 1
                break

    max_count = max(topic_counts.values(), default=0)
    topic = next((t for t, c in topic_counts.items() if c == max_count), None)

    detected = len(matching) >= 2 and max_count >= 2
    confidence = min(max_count / 3, 1.0) if detected else 0.0

    return DetectorResult(
        detected=detected,
        matching_message_ids=matching,
        confidence=confidence,
        topic=topic,
    )


def detect_question_overload(messages: Sequence[ChatMessage]) -> QuestionOverloadResult:
    """More than half of the last 10 messages are questions, and at least 3"""
    window = list(messages)[-QUESTION_WINDOW:]
    if not window:
        return QuestionOverloadResult(detected=False, question_count=0, confidence=0.0)

    question_count = sum(1 for m in window if (m.content or "").strip().endswith("?"))
    rate = question_count / len(window)
    detected = rate > 0.5 and question_count >= 3
    confidence = min(rate * 1.5, 1.0) if detected else 0.0

    return QuestionOverloadResult(detected=detected, question_count=question_count, confidence=confidence)


def detect_silence(
    last_message_time: datetime,
    current_time: datetime,
    threshold_minutes: float = DEFAULT_SILENCE_MINUTES,
) -> SilenceResult:
    """Long inactivity since the last message"""
    silence_minutes = (current_time - last_message_time).total_seconds() / 60
    return SilenceResult(detected=silence_minutes >= threshold_minutes, silence_minutes=silence_minutes)


def detect_topic_drift(messages: Sequence[ChatMessage], original_topic: str) -> TopicDriftResult:
    """
    Conversation strayed from the reference topic.

    Topic keywords are the topic's words longer than three characters. Each
    keyword counts at most once per message. Drift score falls as the
    mention rate over the last five messages rises.
    """
    if len(messages) < DRIFT_WINDOW:
        return TopicDriftResult(detected=False, drift_score=0.0)

    keywords = [w for w in original_topic.lower().split() if len(w) > 3]
    mentions = 0
    total_words = 0

    for message in list(messages)[-DRIFT_WINDOW:]:
        words = (message.content or "").lower().split()
        total_words += len(words)
        mentions += sum(1 for keyword in keywords if keyword in words)

    mention_rate = mentions / total_words if total_words else 0.0
    drift_score = 1 - min(mention_rate * 10, 1.0)

    return TopicDriftResult(detected=drift_score > 0.7, drift_score=drift_score)

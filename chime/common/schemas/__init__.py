"""
Chime Schemas

Rule definitions and the message-stream types the engine consumes and produces.
"""

from .rule import (
    Rule,
    RuleConditions,
    RuleAction,
    RuleType,
    RulePriority,
    ActionType,
    InsightType,
    PRIORITY_ORDER,
)
from .events import (
    ChatMessage,
    Insight,
    EvaluationContext,
    Decision,
    utc_now,
)

__all__ = [
    "Rule",
    "RuleConditions",
    "RuleAction",
    "RuleType",
    "RulePriority",
    "ActionType",
    "InsightType",
    "PRIORITY_ORDER",
    "ChatMessage",
    "Insight",
    "EvaluationContext",
    "Decision",
    "utc_now",
]

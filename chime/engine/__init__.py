"""
Chime Engine - Autonomous Triggering Core

Decides, for every incoming message, which behavioral rules fire.

Key Components:
- Detectors: Pure regex detectors for conversational signals
- PatternCache: Lazily compiled rule patterns, invalid ones skipped
- Strategies: One matching algorithm per rule type, swappable
- ChimeEvaluator: Cooldowns, team scoping, priority ranking
- Registry: Default rule catalog and team override merging

Rules for the engine:
1. Disabled rules never fire
2. A pattern rule fires only if the new message is part of the evidence
3. Cooldown starts the moment a rule is returned, executed or not
4. Critical before high before medium before low
5. A bad rule is logged and skipped, never fatal
"""

from .detectors import (
    DetectorResult,
    detect_decision,
    detect_action_commitment,
    detect_confusion,
    detect_problem,
    detect_urgency,
    detect_knowledge_gap,
    detect_question_overload,
    detect_silence,
    detect_topic_drift,
)
from .patterns import PatternCache
from .strategies import (
    MatchResult,
    EvaluationStrategy,
    PatternStrategy,
    ThresholdStrategy,
    KeywordSemanticStrategy,
    VectorSearchStrategy,
    ActivityScheduleStrategy,
    HybridStrategy,
    build_default_strategies,
)
from .evaluator import ChimeEvaluator
from .registry import (
    DEFAULT_RULES,
    RuleProvider,
    get_default_enabled_rules,
    get_rule_by_id,
    get_rules_by_priority,
    load_rule_overrides,
    merge_rules,
    parse_rule,
    parse_rules,
)

__all__ = [
    "DetectorResult",
    "detect_decision",
    "detect_action_commitment",
    "detect_confusion",
    "detect_problem",
    "detect_urgency",
    "detect_knowledge_gap",
    "detect_question_overload",
    "detect_silence",
    "detect_topic_drift",
    "PatternCache",
    "MatchResult",
    "EvaluationStrategy",
    "PatternStrategy",
    "ThresholdStrategy",
    "KeywordSemanticStrategy",
    "VectorSearchStrategy",
    "ActivityScheduleStrategy",
    "HybridStrategy",
    "build_default_strategies",
    "ChimeEvaluator",
    "DEFAULT_RULES",
    "RuleProvider",
    "get_default_enabled_rules",
    "get_rule_by_id",
    "get_rules_by_priority",
    "load_rule_overrides",
    "merge_rules",
    "parse_rule",
    "parse_rules",
]

"""
Rule Registry

The built-in chime rule catalog, plus loading and merging of team-specific
overrides from external configuration.

Overrides live in a JSON file holding a list of rules (or ``{"rules": [...]}``).
An override whose id matches a built-in rule replaces it; new ids are
appended. Malformed entries are logged and skipped so one bad rule cannot
take the catalog down.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from ..common.errors import RuleValidationError
from ..common.schemas import (
    ActionType,
    InsightType,
    Rule,
    RuleAction,
    RuleConditions,
    RulePriority,
    RuleType,
)

logger = logging.getLogger("chime.engine.registry")


# ============================================================================
# Default catalog
# ============================================================================

DECISION_DETECTOR = Rule(
    id="decision-001",
    name="Decision Detected",
    type=RuleType.PATTERN,
    enabled=True,
    priority=RulePriority.MEDIUM,  # keep below critical/high alerts
    cooldown_minutes=60,
    conditions=RuleConditions(
        patterns=[
            r"let'?s\s+go\s+with",
            r"we\s+(decided|agreed|chose)",
            r"final\s+decision",
            r"settled\s+on",
            r"moving\s+forward\s+with",
            r"decision\s+is\s+to",
        ],
        message_count=1,
    ),
    action=RuleAction(
        action_type=ActionType.INSIGHT,
        insight_type=InsightType.ACTION,
        template="""A decision was just made in the conversation. Please extract and summarize:

1. **What was decided**: The specific decision or choice made
2. **Who decided**: Team members involved in the decision
3. **Rationale**: Why this decision was made (context, pros/cons discussed)
4. **Next steps**: Immediate action items resulting from this decision

Format as clear, actionable bullet points that the team can reference later.""",
    ),
)

ACTION_COMMITMENT_TRACKER = Rule(
    id="action-002",
    name="Action Commitment Detected",
    type=RuleType.PATTERN,
    enabled=True,
    priority=RulePriority.HIGH,
    cooldown_minutes=30,
    conditions=RuleConditions(
        patterns=[
            r"(I'll|I\s+will)\s+.+\s+by\s+(tomorrow|friday|monday|tuesday|wednesday|thursday|next\s+week|\d{4}-\d{2}-\d{2})",
            r"(my|the)\s+deadline\s+(is|will\s+be)\s+(tomorrow|friday|monday|\d)",
            r"will\s+(finish|complete|deliver)\s+.+\s+by\s+(tomorrow|friday|monday|\d)",
            r"I'll\s+take\s+(care\s+of|on)\s+.+\s+by\s+(tomorrow|friday|\d)",
        ],
        message_count=1,
    ),
    action=RuleAction(
        action_type=ActionType.INSIGHT,
        insight_type=InsightType.ACTION,
        template="""Someone just committed to an action item. Please extract and format:

1. **Owner**: Who is responsible for this task
2. **Task**: What needs to be done (be specific)
3. **Deadline**: When it needs to be completed
4. **Dependencies**: Any blockers or things needed to complete this
5. **Context**: Why this task is important

Create a trackable action item that can be followed up on later.""",
    ),
)

CONFUSION_INTERVENTION = Rule(
    id="confusion-003",
    name="Confusion Detected",
    type=RuleType.HYBRID,
    enabled=True,
    priority=RulePriority.MEDIUM,
    cooldown_minutes=20,
    conditions=RuleConditions(
        patterns=[
            r"(I'm|I\s+am)\s+(confused|lost|not\s+sure)",
            r"what\s+(do\s+you|does\s+that)\s+mean",
            r"(can\s+you|could\s+you)\s+(explain|clarify)",
            r"don't\s+understand",
            r"what's\s+the\s+difference",
        ],
        message_count=3,
        time_window_minutes=10,
    ),
    action=RuleAction(
        action_type=ActionType.CHAT_MESSAGE,
        template="""The team seems confused about a topic. Please:

1. Identify what specific topic is causing confusion
2. Provide a clear, concise explanation addressing the confusion
3. Use simple language and examples if helpful
4. Reference the specific messages that showed confusion

Keep your explanation brief but comprehensive. Help the team get unstuck.""",
    ),
)

KNOWLEDGE_GAP_DETECTOR = Rule(
    id="knowledge-004",
    name="Knowledge Gap Detected",
    type=RuleType.PATTERN,
    enabled=False,  # noisy on normal conversations
    priority=RulePriority.LOW,
    cooldown_minutes=120,
    conditions=RuleConditions(
        keywords=[
            "what is",
            "explain",
            "define",
            "how does",
            "unfamiliar with",
            "never heard of",
        ],
        message_count=3,
        time_window_minutes=20,
    ),
    action=RuleAction(
        action_type=ActionType.INSIGHT,
        insight_type=InsightType.SUGGESTION,
        template="""The team is asking about a concept they're unfamiliar with. Please provide:

1. **Clear Definition**: What is this concept in simple terms
2. **Context**: Why is it relevant to their discussion
3. **Examples**: 1-2 practical examples to illustrate
4. **Resources**: Links or suggestions for learning more (if applicable)

Format as an educational insight that helps fill the knowledge gap.""",
    ),
)

PROBLEM_DETECTOR = Rule(
    id="problem-005",
    name="Problem/Blocker Detected",
    type=RuleType.PATTERN,
    enabled=True,
    priority=RulePriority.HIGH,
    cooldown_minutes=45,
    conditions=RuleConditions(
        patterns=[
            r"(stuck|blocked)\s+on",
            r"(serious|critical)\s+(issue|problem|bug)",
            r"keep\s+getting\s+(error|bug)",
            r"can't\s+get\s+.+\s+to\s+work",
            r"nothing\s+(works|is\s+working)",
        ],
        message_count=2,
        time_window_minutes=15,
    ),
    action=RuleAction(
        action_type=ActionType.INSIGHT,
        insight_type=InsightType.SUGGESTION,
        template="""The team appears to be stuck on a problem. Please analyze and provide:

1. **Problem Summary**: What issue are they facing
2. **Troubleshooting Steps**: 3-4 concrete steps to try
3. **Root Causes**: Possible reasons for this issue
4. **Workarounds**: Alternative approaches if main solution doesn't work
5. **Resources**: Relevant documentation or similar issues

Help the team get unstuck with actionable suggestions.""",
    ),
)

DAILY_SUMMARY = Rule(
    id="schedule-006",
    name="Daily Standup Summary",
    type=RuleType.SCHEDULE,
    enabled=False,  # needs a real cron trigger
    priority=RulePriority.MEDIUM,
    cooldown_minutes=1440,
    conditions=RuleConditions(
        schedule="0 17 * * 1-5",  # 5pm on weekdays
        message_count=5,
    ),
    action=RuleAction(
        action_type=ActionType.INSIGHT,
        insight_type=InsightType.SUMMARY,
        template="""Generate an end-of-day standup summary covering:

1. **What Was Discussed**: Main topics and conversations today
2. **Decisions Made**: Key decisions and their rationale
3. **Action Items**: Tasks committed to with owners and deadlines
4. **Blockers/Issues**: Problems mentioned that need attention
5. **Tomorrow's Focus**: What the team should prioritize next

Keep it concise but comprehensive - this is for team alignment.""",
    ),
)

URGENCY_ALERT = Rule(
    id="urgency-007",
    name="Urgency Detected",
    type=RuleType.PATTERN,
    enabled=True,
    priority=RulePriority.CRITICAL,
    cooldown_minutes=120,
    conditions=RuleConditions(
        patterns=[
            r"urgent.+(deadline|task|issue)",
            r"ASAP",
            r"as\s+soon\s+as\s+possible",
            r"by\s+(EOD|end\s+of\s+day|end\s+of\s+week)",
            r"critical.+(deadline|task)",
            r"emergency",
        ],
        message_count=1,
    ),
    action=RuleAction(
        action_type=ActionType.INSIGHT,
        insight_type=InsightType.ACTION,
        template="""An urgent deadline or time-sensitive task was mentioned. Please extract:

1. **Urgent Item**: What needs immediate attention
2. **Deadline**: When this must be completed
3. **Owner**: Who is responsible (if mentioned)
4. **Impact**: Why this is urgent/what happens if missed
5. **Next Steps**: Immediate actions needed

Highlight this as a time-critical action item that needs tracking.""",
    ),
)

QUESTION_OVERLOAD = Rule(
    id="threshold-008",
    name="Question Overload",
    type=RuleType.THRESHOLD,
    enabled=False,  # fires on ordinary busy conversations
    priority=RulePriority.MEDIUM,
    cooldown_minutes=60,
    conditions=RuleConditions(
        message_count=8,
        time_window_minutes=15,
    ),
    action=RuleAction(
        action_type=ActionType.CHAT_MESSAGE,
        template="""I notice several questions have been asked. Let me help address them:

1. Identify all unanswered questions in recent messages
2. For each question, provide a clear, concise answer
3. If you can't answer definitively, suggest where to find the answer
4. Group related questions together

Keep answers practical and actionable.""",
    ),
)

DEFAULT_RULES: List[Rule] = [
    DECISION_DETECTOR,
    ACTION_COMMITMENT_TRACKER,
    CONFUSION_INTERVENTION,
    KNOWLEDGE_GAP_DETECTOR,
    PROBLEM_DETECTOR,
    DAILY_SUMMARY,
    URGENCY_ALERT,
    QUESTION_OVERLOAD,
]


def get_default_enabled_rules() -> List[Rule]:
    """Rules enabled out of the box for new teams"""
    return [rule.model_copy(deep=True) for rule in DEFAULT_RULES if rule.enabled]


def get_rule_by_id(rule_id: str) -> Optional[Rule]:
    for rule in DEFAULT_RULES:
        if rule.id == rule_id:
            return rule.model_copy(deep=True)
    return None


def get_rules_by_priority(priority: Union[RulePriority, str]) -> List[Rule]:
    priority = RulePriority(priority)
    return [rule.model_copy(deep=True) for rule in DEFAULT_RULES if rule.priority == priority]


# ============================================================================
# Overrides
# ============================================================================

def parse_rule(data: Dict[str, Any]) -> Rule:
    """
    Validate one rule definition from external configuration.

    Raises:
        RuleValidationError: missing fields, bad enum values, insight action
            without an insight type
    """
    rule_id = str(data.get("id", "<missing id>")) if isinstance(data, dict) else "<not an object>"
    try:
        return Rule.model_validate(data)
    except ValidationError as e:
        reasons = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'rule'}: {err['msg']}" for err in e.errors()
        )
        raise RuleValidationError(rule_id, reasons) from e


def parse_rules(entries: Iterable[Dict[str, Any]]) -> List[Rule]:
    """Validate a batch of rule definitions, skipping malformed ones"""
    rules = []
    for entry in entries:
        try:
            rules.append(parse_rule(entry))
        except RuleValidationError as e:
            logger.error("Skipping rule: %s", e)
    return rules


def load_rule_overrides(path: Union[str, Path]) -> List[Rule]:
    """
    Load team overrides and custom rules from a JSON file.

    A missing file means no overrides. An unreadable file is logged and
    treated the same way, so the defaults still apply.
    """
    path = Path(path)
    if not path.exists():
        return []

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.error("Failed to load rule overrides from %s: %s", path, e)
        return []

    if isinstance(data, dict):
        data = data.get("rules", [])
    if not isinstance(data, list):
        logger.error("Rule overrides in %s must be a list of rules", path)
        return []

    rules = parse_rules(data)
    logger.info("Loaded %d rule overrides from %s", len(rules), path)
    return rules


def merge_rules(defaults: Iterable[Rule], overrides: Iterable[Rule]) -> List[Rule]:
    """
    Merge overrides into the defaults by id.

    Defaults keep their catalog order, replaced in place; new ids follow in
    override order. Inputs are not mutated.
    """
    merged: Dict[str, Rule] = {}
    for rule in defaults:
        merged[rule.id] = rule.model_copy(deep=True)
    for rule in overrides:
        merged[rule.id] = rule
    return list(merged.values())


class RuleProvider:
    """
    Effective rules for a team: system defaults merged with the overrides
    that apply to that team (team-scoped or global), enabled ones only.
    """

    def __init__(
        self,
        overrides_path: Optional[Union[str, Path]] = None,
        defaults: Optional[Iterable[Rule]] = None,
        overrides: Optional[Iterable[Rule]] = None,
    ):
        """
        Args:
            overrides_path: JSON overrides file, re-read on every lookup
            defaults: Base catalog (default: DEFAULT_RULES)
            overrides: Extra in-memory overrides applied after the file
        """
        self._overrides_path = Path(overrides_path) if overrides_path else None
        self._defaults = list(DEFAULT_RULES if defaults is None else defaults)
        self._overrides = list(overrides or [])

    def rules_for_team(self, team_id: str) -> List[Rule]:
        overrides = []
        if self._overrides_path is not None:
            overrides.extend(load_rule_overrides(self._overrides_path))
        overrides.extend(self._overrides)

        applicable = [rule for rule in overrides if rule.applies_to(team_id)]
        merged = merge_rules(self._defaults, applicable)
        return [rule for rule in merged if rule.enabled and rule.applies_to(team_id)]

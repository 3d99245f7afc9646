"""
Chime Rule Schema

A rule is a named, typed behavioral trigger: conditions to match against the
message stream, plus the action the agent takes when it fires.

Rules arrive from two places: the built-in catalog and team overrides in
external configuration. Both use the same model; external JSON may use
camelCase keys (``cooldownMinutes``, ``messageCount``) or snake_case.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Enums
# ============================================================================

class RuleType(str, Enum):
    """Evaluation strategy selector"""
    PATTERN = "pattern"
    THRESHOLD = "threshold"
    SEMANTIC = "semantic"
    SCHEDULE = "schedule"
    HYBRID = "hybrid"


class RulePriority(str, Enum):
    """Tie-breaking order when several rules fire on the same message"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 for critical, growing as priority drops"""
        return PRIORITY_ORDER.index(self)


PRIORITY_ORDER = [
    RulePriority.CRITICAL,
    RulePriority.HIGH,
    RulePriority.MEDIUM,
    RulePriority.LOW,
]


class ActionType(str, Enum):
    """What the agent produces when a rule fires"""
    CHAT_MESSAGE = "chat_message"
    INSIGHT = "insight"
    BOTH = "both"

    @property
    def includes_chat(self) -> bool:
        return self in (ActionType.CHAT_MESSAGE, ActionType.BOTH)

    @property
    def includes_insight(self) -> bool:
        return self in (ActionType.INSIGHT, ActionType.BOTH)


class InsightType(str, Enum):
    """Kind of structured artifact surfaced outside the chat stream"""
    ACTION = "action"
    SUGGESTION = "suggestion"
    ANALYSIS = "analysis"
    SUMMARY = "summary"


# ============================================================================
# Sub-models
# ============================================================================

class RuleConditions(BaseModel):
    """Optional matching parameters; each strategy reads the ones it needs"""
    model_config = ConfigDict(populate_by_name=True)

    patterns: Optional[List[str]] = None
    keywords: Optional[List[str]] = None
    message_count: Optional[int] = Field(
        default=None,
        ge=1,
        alias="messageCount",
        validation_alias=AliasChoices("messageCount", "message_count"),
    )
    time_window_minutes: Optional[float] = Field(
        default=None,
        gt=0,
        alias="timeWindowMinutes",
        validation_alias=AliasChoices("timeWindowMinutes", "timeWindow", "time_window_minutes"),
    )
    # Reserved for vector similarity; currently matched via keywords
    semantic_query: Optional[str] = Field(
        default=None,
        alias="semanticQuery",
        validation_alias=AliasChoices("semanticQuery", "semantic_query"),
    )
    # Reserved cron expression; currently an activity-count check
    schedule: Optional[str] = None


class RuleAction(BaseModel):
    """What happens when the rule fires"""
    model_config = ConfigDict(populate_by_name=True)

    action_type: ActionType = Field(
        alias="type",
        validation_alias=AliasChoices("type", "actionType", "action_type"),
    )
    insight_type: Optional[InsightType] = Field(
        default=None,
        alias="insightType",
        validation_alias=AliasChoices("insightType", "insight_type"),
    )
    template: str = Field(..., description="Prompt sent to the generation collaborator")

    @model_validator(mode="after")
    def _require_insight_type(self) -> "RuleAction":
        if self.action_type.includes_insight and self.insight_type is None:
            raise ValueError(f"insightType is required for action type '{self.action_type.value}'")
        return self


# ============================================================================
# Main Schema
# ============================================================================

class Rule(BaseModel):
    """
    Chime rule.

    ``type`` keeps unrecognized strings from external configuration as-is so
    that one unknown rule type degrades to a logged non-match instead of
    rejecting the whole catalog.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    type: Union[RuleType, str] = Field(union_mode="left_to_right")
    enabled: bool = True
    priority: RulePriority = RulePriority.MEDIUM
    cooldown_minutes: int = Field(
        default=0,
        ge=0,
        alias="cooldownMinutes",
        validation_alias=AliasChoices("cooldownMinutes", "cooldown_minutes"),
    )
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    action: RuleAction
    team_id: Optional[str] = Field(
        default=None,
        alias="teamId",
        validation_alias=AliasChoices("teamId", "team_id"),
    )
    created_at: Optional[datetime] = Field(
        default=None,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "created_at"),
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        alias="updatedAt",
        validation_alias=AliasChoices("updatedAt", "updated_at"),
    )

    @property
    def is_global(self) -> bool:
        return self.team_id is None

    def applies_to(self, team_id: str) -> bool:
        """Global rules apply everywhere; team rules only to their team"""
        return self.is_global or self.team_id == team_id

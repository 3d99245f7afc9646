"""
Message Stream Schemas

Chat messages and insights flowing through a team conversation, the context
handed to one evaluation pass, and the Decision an evaluation produces.
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field

from .rule import InsightType, Rule


def utc_now() -> datetime:
    """Timezone-aware current time"""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class ChatMessage(BaseModel):
    """A single message in a team conversation"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    content: str = ""
    author_id: str = Field(
        alias="authorId",
        validation_alias=AliasChoices("authorId", "author_id"),
    )
    created_at: UtcDatetime = Field(
        default_factory=utc_now,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "created_at"),
    )
    team_id: Optional[str] = Field(
        default=None,
        alias="teamId",
        validation_alias=AliasChoices("teamId", "team_id"),
    )


class Insight(BaseModel):
    """Structured, non-chat artifact produced by the agent"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: f"ins_{uuid.uuid4().hex[:12]}")
    team_id: str = Field(alias="teamId", validation_alias=AliasChoices("teamId", "team_id"))
    type: InsightType
    title: str
    content: str
    rule_id: Optional[str] = Field(
        default=None,
        alias="ruleId",
        validation_alias=AliasChoices("ruleId", "rule_id"),
    )
    related_message_ids: List[str] = Field(
        default_factory=list,
        alias="relatedMessageIds",
        validation_alias=AliasChoices("relatedMessageIds", "related_message_ids"),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "created_at"),
    )


class EvaluationContext(BaseModel):
    """
    Input to one evaluation pass.

    ``new_message_id`` marks the message that just arrived, so that old
    messages still sitting in the window cannot re-fire a pattern rule on
    their own. ``current_time`` is the evaluation clock; inject it in tests.
    """
    model_config = ConfigDict(populate_by_name=True)

    team_id: str
    recent_messages: List[ChatMessage] = Field(default_factory=list)
    new_message_id: Optional[str] = None
    recent_insights: List[Insight] = Field(default_factory=list)  # reserved for de-duplication
    current_time: UtcDatetime = Field(default_factory=utc_now)


class Decision(BaseModel):
    """One rule firing during one evaluation pass. Never persisted here."""
    rule: Rule
    team_id: str
    triggering_message_ids: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime

"""
Responder

Turns what the dispatch policy chose into agent output: a direct reply to a
mention, or the chat message and/or insight a chime decision asks for.

Generation goes through LLMClient. A failed chat generation degrades to a
short apology so the team is never left hanging; a failed insight is logged
and dropped.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..common.errors import GenerationError
from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from ..common.schemas import ChatMessage, Decision, EvaluationContext, Insight, utc_now

logger = logging.getLogger("chime.agent.responder")

ASSISTANT_PROMPT = """You are {display_name}, an AI collaboration assistant embedded in a team chat.

Your role:
- Help teams brainstorm, plan, and execute projects
- Analyze conversations and extract action items
- Answer questions clearly and concisely

Keep responses short and conversational unless asked for detail."""

INSIGHT_FORMAT = """Respond with JSON only:
{"title": "short title (max 80 chars)", "content": "markdown body"}"""

APOLOGY_MESSAGE = "Sorry, I ran into a problem while generating a response. Please try again in a moment."


@dataclass
class ChimeResponse:
    """What the agent produced for one message"""
    reply: Optional[ChatMessage] = None
    insights: List[Insight] = field(default_factory=list)


class Responder:
    """Builds prompts from the conversation and renders agent output"""

    def __init__(
        self,
        llm: LLMClient,
        agent_id: str = "agent",
        display_name: str = "AI Assistant",
        transcript_limit: int = 20,
    ):
        self._llm = llm
        self._agent_id = agent_id
        self._system_prompt = ASSISTANT_PROMPT.format(display_name=display_name)
        self._transcript_limit = transcript_limit

    @property
    def is_available(self) -> bool:
        return self._llm.is_available

    def reply_to_mention(
        self,
        team_id: str,
        message: ChatMessage,
        history: Sequence[ChatMessage],
    ) -> ChatMessage:
        """Reactive mode: answer the message that addressed the agent"""
        # The mention itself is quoted below, keep it out of the transcript
        earlier = [m for m in history if m.id != message.id]
        prompt = (
            f"Recent conversation:\n{self._transcript(earlier)}\n\n"
            f"Reply to this message addressed to you:\n{message.author_id}: {message.content}"
        )
        return self._agent_message(team_id, self._generate_chat(prompt))

    def execute(self, decision: Decision, context: EvaluationContext) -> ChimeResponse:
        """Autonomous mode: carry out the selected decision's action"""
        action = decision.rule.action
        triggering_ids = set(decision.triggering_message_ids)
        triggering = [m for m in context.recent_messages if m.id in triggering_ids]
        base_prompt = (
            f"Recent conversation:\n{self._transcript(context.recent_messages)}\n\n"
            f"Messages that triggered this:\n{self._transcript(triggering)}\n\n"
            f"{action.template}"
        )

        response = ChimeResponse()

        if action.action_type.includes_chat:
            response.reply = self._agent_message(decision.team_id, self._generate_chat(base_prompt))

        if action.action_type.includes_insight:
            insight = self._generate_insight(decision, base_prompt)
            if insight is not None:
                response.insights.append(insight)

        return response

    def _transcript(self, messages: Sequence[ChatMessage]) -> str:
        lines = []
        for message in list(messages)[-self._transcript_limit:]:
            author = "assistant" if message.author_id == self._agent_id else message.author_id
            lines.append(f"{author}: {message.content}")
        return "\n".join(lines) or "(no messages)"

    def _generate_chat(self, prompt: str) -> str:
        try:
            return self._llm.generate(prompt, system=self._system_prompt)
        except GenerationError as e:
            logger.error("Chat generation failed: %s", e)
            return APOLOGY_MESSAGE

    def _generate_insight(self, decision: Decision, prompt: str) -> Optional[Insight]:
        rule = decision.rule
        try:
            raw = self._llm.generate(f"{prompt}\n\n{INSIGHT_FORMAT}", system=self._system_prompt)
        except GenerationError as e:
            logger.error("Insight generation failed for rule %s: %s", rule.id, e)
            return None

        data = parse_llm_json(raw)
        title = str(data.get("title") or rule.name)[:80]
        content = str(data.get("content") or raw).strip()
        if not content:
            logger.warning("Empty insight generated for rule %s, dropping", rule.id)
            return None

        return Insight(
            team_id=decision.team_id,
            type=rule.action.insight_type,
            title=title,
            content=content,
            rule_id=rule.id,
            related_message_ids=list(decision.triggering_message_ids),
        )

    def _agent_message(self, team_id: str, content: str) -> ChatMessage:
        return ChatMessage(
            id=f"msg_{uuid.uuid4().hex[:12]}",
            content=content,
            author_id=self._agent_id,
            team_id=team_id,
            created_at=utc_now(),
        )

"""
Chime Server

FastAPI transport for the chime agent. Stands in for the chat backend's
message hook; persistence and broadcasting stay with the caller.

Endpoints:
- GET /health: Health check
- POST /teams/{team_id}/messages: Submit a new message, get the agent's reaction
- GET /teams/{team_id}/messages: Trailing message window
- GET /teams/{team_id}/rules: Active rules and cooldowns
- DELETE /teams/{team_id}/rules/{rule_id}/cooldown: Admin cooldown reset
- POST /teams/{team_id}/rules/reload: Re-read rules for the team
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import AliasChoices, BaseModel, Field

from ..common.config import ChimeConfig, load_config
from ..common.llm_client import LLMClient
from ..common.schemas import ChatMessage, utc_now
from ..engine.registry import DEFAULT_RULES, RuleProvider
from .policy import DispatchPolicy
from .responder import Responder
from .service import ChimeAgent, DispatchOutcome

logger = logging.getLogger("chime.agent.server")


# Global state
config: Optional[ChimeConfig] = None
agent: Optional[ChimeAgent] = None


def build_agent(cfg: ChimeConfig) -> ChimeAgent:
    """Wire rules, policy and responder from configuration"""
    rule_provider = RuleProvider(
        overrides_path=cfg.engine.rules_path,
        defaults=DEFAULT_RULES if cfg.engine.use_default_rules else [],
    )
    policy = DispatchPolicy(agent_id=cfg.agent.agent_id, mention_patterns=cfg.agent.mention_patterns)

    llm = LLMClient.from_config(cfg.llm)
    if llm.is_available:
        logger.info("Generation ready (%s)", cfg.llm.provider)
    else:
        logger.warning("Generation unavailable, chat actions will fall back to an apology")

    return ChimeAgent(
        rule_provider=rule_provider,
        policy=policy,
        responder=Responder(
            llm,
            agent_id=cfg.agent.agent_id,
            display_name=cfg.agent.display_name,
        ),
        history_limit=cfg.engine.history_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, agent

    if agent is None:
        config = load_config()
        logging.basicConfig(
            level=config.server.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        agent = build_agent(config)
        logger.info("Chime agent ready (agent id: %s)", config.agent.agent_id)

    yield

    logger.info("Shutting down")


app = FastAPI(
    title="Chime Agent",
    description="Autonomous chime evaluation for team chat",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request/Response Models
# =============================================================================

class MessageSubmission(BaseModel):
    """Incoming chat message"""
    id: str = Field(default_factory=lambda: f"msg_{uuid.uuid4().hex[:12]}")
    content: str
    author_id: str = Field(validation_alias=AliasChoices("authorId", "author_id"))
    created_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("createdAt", "created_at"),
    )
    # Evaluation clock override, for replays
    current_time: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("currentTime", "current_time"),
    )


def _require_agent() -> ChimeAgent:
    if agent is None:
        raise HTTPException(status_code=503, detail="Agent not initialized")
    return agent


def _outcome_json(outcome: DispatchOutcome) -> dict:
    return {
        "team_id": outcome.team_id,
        "message_id": outcome.message_id,
        "route": outcome.route.value,
        "decision": {
            "rule_id": outcome.decision.rule.id,
            "rule_name": outcome.decision.rule.name,
            "priority": outcome.decision.rule.priority.value,
            "action": outcome.decision.rule.action.action_type.value,
            "confidence": outcome.decision.confidence,
            "triggering_message_ids": outcome.decision.triggering_message_ids,
        } if outcome.decision else None,
        "discarded": [d.rule.id for d in outcome.discarded],
        "reply": outcome.reply.model_dump(mode="json", by_alias=True) if outcome.reply else None,
        "insights": [i.model_dump(mode="json", by_alias=True) for i in outcome.insights],
    }


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "chime",
        "initialized": agent is not None,
        "agent_id": agent.policy.agent_id if agent else None,
    }


@app.post("/teams/{team_id}/messages")
async def submit_message(team_id: str, submission: MessageSubmission):
    """Run a new message through the dispatch policy and chime engine"""
    chime_agent = _require_agent()

    message = ChatMessage(
        id=submission.id,
        content=submission.content,
        author_id=submission.author_id,
        created_at=submission.created_at or utc_now(),
        team_id=team_id,
    )

    # Evaluation and generation block; keep them off the event loop
    outcome = await run_in_threadpool(
        chime_agent.handle_message, team_id, message, submission.current_time
    )
    return _outcome_json(outcome)


@app.get("/teams/{team_id}/messages")
async def get_messages(team_id: str):
    """Trailing message window for a team"""
    chime_agent = _require_agent()
    history = chime_agent.history(team_id)
    return {
        "team_id": team_id,
        "count": len(history),
        "messages": [m.model_dump(mode="json", by_alias=True) for m in history],
    }


@app.get("/teams/{team_id}/rules")
async def get_rules(team_id: str):
    """Active rules for a team with their last firing time"""
    evaluator = _require_agent().evaluator_for(team_id)
    cooldowns = evaluator.cooldowns()
    return {
        "team_id": team_id,
        "rules": [
            {
                **rule.model_dump(mode="json", by_alias=True),
                "lastFiredAt": cooldowns[rule.id].isoformat() if rule.id in cooldowns else None,
            }
            for rule in evaluator.get_rules()
        ],
    }


@app.delete("/teams/{team_id}/rules/{rule_id}/cooldown")
async def clear_cooldown(team_id: str, rule_id: str):
    """Make a rule eligible to fire again immediately"""
    evaluator = _require_agent().evaluator_for(team_id)
    if not any(rule.id == rule_id for rule in evaluator.get_rules()):
        raise HTTPException(status_code=404, detail="Rule not active for team")

    evaluator.clear_cooldown(rule_id)
    return {"status": "cleared", "team_id": team_id, "rule_id": rule_id}


@app.post("/teams/{team_id}/rules/reload")
async def reload_rules(team_id: str):
    """Rebuild the team's evaluator from current rule configuration"""
    chime_agent = _require_agent()
    chime_agent.reload_rules(team_id)
    rules = chime_agent.evaluator_for(team_id).get_rules()
    return {"status": "reloaded", "team_id": team_id, "active_rules": len(rules)}


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Chime server"""
    import uvicorn

    cfg = load_config()
    logger.info("Starting server on port %d", cfg.server.port)
    uvicorn.run(
        "chime.agent.server:app",
        host=cfg.server.host,
        port=cfg.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()

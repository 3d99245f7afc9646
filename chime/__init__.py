"""
Chime

Autonomous triggering engine for a team chat agent.

The agent watches the live message stream and decides, per message, whether
to chime in (a chat reply or a structured insight) based on configurable
rules.

Philosophy:
- Never react to our own output
- An explicit mention is answered directly, never also chimed on
- At most one chime per message, highest priority wins
- Cooldowns start the moment a rule fires

Usage:
    from chime.common import load_config, LLMClient
    from chime.common.schemas import Rule, ChatMessage, EvaluationContext
    from chime.engine import ChimeEvaluator, DEFAULT_RULES
    from chime.agent import ChimeAgent, DispatchPolicy, Responder
"""

__version__ = "0.1.0"

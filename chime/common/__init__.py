"""
Chime Common Module

Shared infrastructure for the engine and the agent layer.
"""

from .config import ChimeConfig, load_config
from .errors import ChimeError, RuleValidationError, GenerationError
from .llm_client import LLMClient
from .llm_utils import parse_llm_json

__all__ = [
    "ChimeConfig",
    "load_config",
    "ChimeError",
    "RuleValidationError",
    "GenerationError",
    "LLMClient",
    "parse_llm_json",
]

"""
Configuration Management for Chime

Loads configuration from ~/.chime/config.json, a local .env file and
environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger("chime.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".chime"
CONFIG_PATH = CONFIG_DIR / "config.json"
RULES_PATH = CONFIG_DIR / "rules.json"


@dataclass
class AgentConfig:
    """Identity and mention handling for the chat agent"""
    agent_id: str = "agent"
    display_name: str = "AI Assistant"
    mention_patterns: list = field(default_factory=lambda: [r"@agent\b", r"\bhey\s+ai\b", r"\bai\s+help\b"])


@dataclass
class EngineConfig:
    """Chime evaluation configuration"""
    rules_path: str = str(RULES_PATH)  # team overrides, JSON list of rules
    history_limit: int = 50  # trailing window handed to each evaluation
    use_default_rules: bool = True


@dataclass
class LLMConfig:
    """Generation collaborator configuration"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    max_tokens: int = 800


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 8090
    log_level: str = "INFO"


@dataclass
class ChimeConfig:
    """Main Chime configuration"""
    agent: AgentConfig = field(default_factory=AgentConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_agent_config(data: dict) -> AgentConfig:
    """Parse agent section from config dict"""
    agent_data = data.get("agent", {})
    defaults = AgentConfig()
    return AgentConfig(
        agent_id=agent_data.get("agent_id", defaults.agent_id),
        display_name=agent_data.get("display_name", defaults.display_name),
        mention_patterns=agent_data.get("mention_patterns", defaults.mention_patterns),
    )


def _parse_engine_config(data: dict) -> EngineConfig:
    """Parse engine section from config dict"""
    engine_data = data.get("engine", {})
    return EngineConfig(
        rules_path=engine_data.get("rules_path", str(RULES_PATH)),
        history_limit=engine_data.get("history_limit", 50),
        use_default_rules=engine_data.get("use_default_rules", True),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "anthropic"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        max_tokens=llm_data.get("max_tokens", 800),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=server_data.get("port", 8090),
        log_level=server_data.get("log_level", "INFO"),
    )


def load_config() -> ChimeConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (including a local .env file)
    2. Config file (~/.chime/config.json)
    3. Default values
    """
    load_dotenv()
    config = ChimeConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.agent = _parse_agent_config(data)
            config.engine = _parse_engine_config(data)
            config.llm = _parse_llm_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    if os.getenv("CHIME_AGENT_ID"):
        config.agent.agent_id = os.getenv("CHIME_AGENT_ID")
    if os.getenv("CHIME_RULES_PATH"):
        config.engine.rules_path = os.getenv("CHIME_RULES_PATH")
    if os.getenv("CHIME_HISTORY_LIMIT"):
        config.engine.history_limit = int(os.getenv("CHIME_HISTORY_LIMIT"))
    if os.getenv("CHIME_PORT"):
        config.server.port = int(os.getenv("CHIME_PORT"))
    if os.getenv("CHIME_LOG_LEVEL"):
        config.server.log_level = os.getenv("CHIME_LOG_LEVEL")

    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "CHIME_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    return config


def save_config(config: ChimeConfig) -> None:
    """Save configuration to file.

    API keys sourced from environment variables are written as empty
    strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "max_tokens": config.llm.max_tokens,
    }
    for key in ("anthropic_api_key", "openai_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "agent": {
            "agent_id": config.agent.agent_id,
            "display_name": config.agent.display_name,
            "mention_patterns": config.agent.mention_patterns,
        },
        "engine": {
            "rules_path": config.engine.rules_path,
            "history_limit": config.engine.history_limit,
            "use_default_rules": config.engine.use_default_rules,
        },
        "llm": llm_section,
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "log_level": config.server.log_level,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)

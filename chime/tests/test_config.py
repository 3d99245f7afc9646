"""Tests for configuration loading and saving."""

import json
import os
import pytest
from unittest.mock import patch


@pytest.fixture
def isolated_env():
    """No ambient environment or .env file leaking into config"""
    with patch.dict(os.environ, {}, clear=True), \
         patch("chime.common.config.load_dotenv"):
        yield


class TestDefaults:
    def test_defaults(self, tmp_path, isolated_env):
        from chime.common.config import load_config

        with patch("chime.common.config.CONFIG_PATH", tmp_path / "missing.json"):
            cfg = load_config()

        assert cfg.agent.agent_id == "agent"
        assert cfg.engine.history_limit == 50
        assert cfg.engine.use_default_rules is True
        assert cfg.llm.provider == "anthropic"
        assert cfg.server.port == 8090


class TestLoadConfig:
    def test_file_sections(self, tmp_path, isolated_env):
        from chime.common.config import load_config

        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "agent": {"agent_id": "chimebot", "mention_patterns": [r"@bot\b"]},
            "engine": {"rules_path": "/srv/rules.json", "history_limit": 20},
            "llm": {"provider": "openai", "openai_api_key": "sk-test"},
            "server": {"port": 9000},
        }))

        with patch("chime.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.agent.agent_id == "chimebot"
        assert cfg.agent.mention_patterns == [r"@bot\b"]
        assert cfg.engine.rules_path == "/srv/rules.json"
        assert cfg.engine.history_limit == 20
        assert cfg.llm.provider == "openai"
        assert cfg.llm.openai_api_key == "sk-test"
        assert cfg.server.port == 9000
        assert cfg.server.host == "0.0.0.0"

    def test_malformed_file_falls_back(self, tmp_path, isolated_env):
        from chime.common.config import load_config

        config_file = tmp_path / "config.json"
        config_file.write_text("{broken")

        with patch("chime.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.agent.agent_id == "agent"

    def test_env_overrides(self, tmp_path, isolated_env):
        from chime.common.config import load_config

        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"agent": {"agent_id": "from-file"}}))

        env = {
            "CHIME_AGENT_ID": "from-env",
            "CHIME_HISTORY_LIMIT": "10",
            "CHIME_PORT": "9999",
            "OPENAI_API_KEY": "sk-env",
            "CHIME_LLM_PROVIDER": "openai",
        }
        with patch("chime.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env):
            cfg = load_config()

        assert cfg.agent.agent_id == "from-env"
        assert cfg.engine.history_limit == 10
        assert cfg.server.port == 9999
        assert cfg.llm.openai_api_key == "sk-env"
        assert cfg.llm.provider == "openai"
        assert "openai_api_key" in cfg._env_sourced_keys


class TestSaveConfig:
    def test_save_omits_env_keys(self, tmp_path, isolated_env):
        from chime.common.config import load_config, save_config

        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"llm": {"anthropic_api_key": "sk-file"}}))

        with patch("chime.common.config.CONFIG_PATH", config_file), \
             patch("chime.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, {"OPENAI_API_KEY": "sk-env"}):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["openai_api_key"] == ""
        assert saved["llm"]["anthropic_api_key"] == "sk-file"
        assert oct(config_file.stat().st_mode & 0o777) == "0o600"

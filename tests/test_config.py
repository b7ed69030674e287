# tests/test_config.py

import pytest
import yaml

from config import SystemConfig
from core.errors import ConfigurationError


def test_defaults_without_file(tmp_path):
    config = SystemConfig.load(str(tmp_path / "missing.yaml"))

    assert config.hashing.similarity_threshold == 0.85
    assert config.candidates.cap == 100
    assert config.decision.ai_confidence_floor == 0.9
    assert config.batch.max_ai_calls == 45


def test_partial_sections_keep_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        'log_level': 'DEBUG',
        'hashing': {'similarity_threshold': 0.9},
        'ai_judge': {'enabled': False}
    }))

    config = SystemConfig.load(str(path))

    assert config.log_level == 'DEBUG'
    assert config.hashing.similarity_threshold == 0.9
    assert config.hashing.hash_size == 8
    assert config.ai_judge.enabled is False
    assert config.ai_judge.api_key_env == "GROQ_API_KEY"


def test_save_and_load(tmp_path):
    path = tmp_path / "config.yaml"
    config = SystemConfig()
    config.batch.max_images = 6
    config.save(str(path))

    assert SystemConfig.load(str(path)).batch.max_images == 6


def test_unknown_key_is_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({'hashing': {'threshold': 0.9}}))

    with pytest.raises(ConfigurationError):
        SystemConfig.load(str(path))


def test_api_key_resolution(monkeypatch):
    config = SystemConfig()

    monkeypatch.setenv("GROQ_API_KEY", "  secret  ")
    assert config.ai_judge.resolve_api_key() == "secret"

    monkeypatch.setenv("GROQ_API_KEY", "")
    with pytest.raises(ConfigurationError):
        config.ai_judge.resolve_api_key()

from pathlib import Path

import pytest

from forksmith.config import DEFAULT_COMPOSE_GLOBS, load_config
from forksmith.errors import ConfigError


def test_defaults_without_environment(tmp_path):
    config = load_config(env={}, root=tmp_path)
    assert config.root == tmp_path
    assert config.docker_tag == "latest"
    assert config.docker_registry is None
    assert config.compose_globs == DEFAULT_COMPOSE_GLOBS
    assert config.test_jobs == 1
    assert not config.debug


def test_environment_overrides():
    config = load_config(
        env={
            "LIBRE_CHAT_DOCKER_TAG": "v2",
            "DOCKER_REMOTE_REGISTRY": "ghcr.io/fork",
            "COMPOSE_GLOBS": "compose.yml, deploy/*.yml",
            "BUN_TEST_JOBS": "4",
            "BUN_TEST_WATCH": "yes",
            "DEBUG_LOGGING": "true",
        },
        root=Path("."),
    )
    assert config.docker_tag == "v2"
    assert config.docker_registry == "ghcr.io/fork"
    assert config.compose_globs == ("compose.yml", "deploy/*.yml")
    assert config.test_jobs == 4
    assert config.test_watch
    assert config.debug


@pytest.mark.parametrize("raw", ["many", "0"])
def test_invalid_job_count(raw):
    with pytest.raises(ConfigError):
        load_config(env={"BUN_TEST_JOBS": raw})


def test_reads_process_environment_by_default(monkeypatch):
    monkeypatch.setenv("IMAGE_TAG", "nightly")
    assert load_config().image_tag == "nightly"

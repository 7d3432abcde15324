import logging

import pytest

CONFIG_ENV_VARS = (
    "DEBUG_LOGGING",
    "DEBUG_CONSOLE",
    "LIBRE_CHAT_IMAGE",
    "LIBRE_CHAT_DOCKER_TAG",
    "DOCKER_REMOTE_REGISTRY",
    "IMAGE_SOURCE_URL",
    "IMAGE_REPO",
    "RAG_IMAGE_REPO",
    "IMAGE_TAG",
    "BUN_BASE_IMAGE",
    "DOCKERFILE_BASE_IMAGE",
    "COMPOSE_GLOBS",
    "BACKUP_SUFFIX",
    "HUSKY_HOOKS_DIR",
    "SERVICE_NAME",
    "BUN_TEST_JOBS",
    "BUN_TEST_WATCH",
    "UPSTREAM_URL",
    "UPSTREAM_BRANCH",
)


@pytest.fixture(autouse=True)
def _clean_config_env(monkeypatch):
    """Keep the developer's shell configuration out of every test."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_cli_logging():
    yield
    logger = logging.getLogger("forksmith")
    for handler in list(logger.handlers):
        if getattr(handler, "_forksmith", False):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)

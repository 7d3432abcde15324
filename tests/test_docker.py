from datetime import datetime, timezone

import pytest

from forksmith import docker
from forksmith.config import ForkConfig
from forksmith.errors import CommandError, ConfigError, ForksmithError, ToolNotFoundError
from forksmith.tools import CommandResult


class FakeRunner:
    def __init__(self, fail=()):
        self.calls = []
        self.fail = list(fail)

    def __call__(self, argv, cwd=None, env=None, capture=False, check=True):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        if any(argv[: len(prefix)] == prefix for prefix in self.fail):
            if check:
                raise CommandError("failed", argv=argv, returncode=1)
            return CommandResult(argv=argv, returncode=1)
        return CommandResult(argv=argv, returncode=0)


def _which(available):
    return lambda tool: f"/usr/bin/{tool}" if tool in available else None


def test_build_image_adds_oci_labels_and_build_args(tmp_path):
    (tmp_path / "Dockerfile").write_text("FROM oven/bun\n", encoding="utf-8")
    config = ForkConfig(root=tmp_path, docker_tag="1.2.3", image_source="https://example.com/fork")
    run = FakeRunner()
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    build = docker.build_image(config, build_args=["A=1", "B=2"], run=run, which=_which({"docker"}), now=now)

    assert build.image == "librechat:1.2.3"
    assert run.calls == [
        [
            "docker",
            "build",
            "-f",
            str(tmp_path / "Dockerfile"),
            "-t",
            "librechat:1.2.3",
            "--label",
            "org.opencontainers.image.created=2024-05-01T00:00:00+00:00",
            "--label",
            "org.opencontainers.image.version=1.2.3",
            "--label",
            "org.opencontainers.image.source=https://example.com/fork",
            "--build-arg",
            "A=1",
            "--build-arg",
            "B=2",
            str(tmp_path / "."),
        ]
    ]


def test_build_image_checks_dockerfile(tmp_path):
    with pytest.raises(ForksmithError, match="Dockerfile not found"):
        docker.build_image(ForkConfig(root=tmp_path), run=FakeRunner(), which=_which({"docker"}))


def test_build_image_requires_docker(tmp_path):
    (tmp_path / "Dockerfile").write_text("", encoding="utf-8")
    with pytest.raises(ToolNotFoundError):
        docker.build_image(ForkConfig(root=tmp_path), run=FakeRunner(), which=_which(set()))


def test_push_requires_a_registry(tmp_path):
    with pytest.raises(ConfigError):
        docker.push_image(ForkConfig(root=tmp_path), run=FakeRunner(), which=_which({"docker"}))


def test_push_tags_pushes_verifies_and_signs(tmp_path):
    run = FakeRunner()
    config = ForkConfig(root=tmp_path, docker_registry="registry.example.com/team/")
    push = docker.push_image(config, tag="v1", run=run, which=_which({"docker", "cosign"}))
    remote = "registry.example.com/team/librechat:v1"
    assert push.remote_image == remote
    assert push.signed
    assert run.calls == [
        ["docker", "tag", "librechat:v1", remote],
        ["docker", "push", remote],
        ["docker", "manifest", "inspect", remote],
        ["cosign", "sign", "--yes", remote],
    ]


def test_cosign_failure_only_warns(tmp_path, caplog):
    run = FakeRunner(fail=[["cosign"]])
    config = ForkConfig(root=tmp_path, docker_registry="registry.example.com")
    push = docker.push_image(config, run=run, which=_which({"docker", "cosign"}))
    assert not push.signed
    assert "cosign sign failed" in caplog.text


def test_push_skips_signing_without_cosign(tmp_path):
    run = FakeRunner()
    config = ForkConfig(root=tmp_path, docker_registry="registry.example.com")
    docker.push_image(config, run=run, which=_which({"docker"}))
    assert [call[0] for call in run.calls] == ["docker", "docker", "docker"]

"""Tests for the docker buildx wrapper."""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from warp_builders.core.buildx import BuildxClient, CommandResult, docker_endpoint
from warp_builders.core.certs import CertificateProvisioner
from warp_builders.core.exceptions import MissingToolError, RegistrationError


@pytest.fixture
def bundle(cert_root):
    provisioner = CertificateProvisioner(cert_root, "builder-test")
    return provisioner.provision("b-1", "ca", "cert", "key")


@pytest.fixture
def buildx():
    return BuildxClient()


class TestDockerEndpoint:
    def test_adds_scheme(self):
        assert docker_endpoint("10.0.0.5:2376") == "tcp://10.0.0.5:2376"

    def test_keeps_existing_scheme(self):
        assert docker_endpoint("tcp://10.0.0.5:2376") == "tcp://10.0.0.5:2376"


class TestCreateNode:
    @pytest.mark.asyncio
    async def test_create_first_node(self, buildx, bundle):
        with patch.object(
            buildx, "run", AsyncMock(return_value=CommandResult(0, "builder-test", ""))
        ) as mock_run:
            await buildx.create_node(
                "builder-test", "b-1", bundle, "linux/amd64", "tcp://10.0.0.5:2376"
            )

        args = list(mock_run.call_args[0])
        assert args[:4] == ["buildx", "create", "--name", "builder-test"]
        assert "--append" not in args
        assert args[args.index("--node") + 1] == "b-1"
        assert args[args.index("--driver") + 1] == "remote"
        assert f"cacert={bundle.ca_path}" in args
        assert f"cert={bundle.cert_path}" in args
        assert f"key={bundle.key_path}" in args
        assert args[args.index("--platform") + 1] == "linux/amd64"
        assert args[-2:] == ["--use", "tcp://10.0.0.5:2376"]

    @pytest.mark.asyncio
    async def test_append_node(self, buildx, bundle):
        with patch.object(
            buildx, "run", AsyncMock(return_value=CommandResult(0, "", ""))
        ) as mock_run:
            await buildx.create_node(
                "builder-test", "b-2", bundle, "linux/arm64", "10.0.0.6", append=True
            )

        args = list(mock_run.call_args[0])
        assert "--append" in args
        assert args[-1] == "tcp://10.0.0.6"

    def test_platform_omitted_when_empty(self, buildx, bundle):
        args = buildx.create_args("builder-test", "b-1", bundle, "", "10.0.0.5")

        assert "--platform" not in args

    @pytest.mark.asyncio
    async def test_command_failure(self, buildx, bundle):
        with patch.object(
            buildx, "run", AsyncMock(return_value=CommandResult(1, "", "no such driver"))
        ):
            with pytest.raises(RegistrationError, match="no such driver"):
                await buildx.create_node(
                    "builder-test", "b-1", bundle, "linux/amd64", "10.0.0.5"
                )

    @pytest.mark.asyncio
    async def test_docker_missing(self, buildx, bundle):
        with patch.object(buildx, "run", AsyncMock(side_effect=FileNotFoundError("docker"))):
            with pytest.raises(RegistrationError):
                await buildx.create_node(
                    "builder-test", "b-1", bundle, "linux/amd64", "10.0.0.5"
                )

    @pytest.mark.asyncio
    async def test_stderr_on_success_is_warned(self, buildx, bundle, caplog):
        with patch.object(
            buildx, "run", AsyncMock(return_value=CommandResult(0, "", "deprecated flag"))
        ):
            with caplog.at_level(logging.WARNING, logger="warp_builders.core.buildx"):
                await buildx.create_node(
                    "builder-test", "b-1", bundle, "linux/amd64", "10.0.0.5"
                )

        assert "deprecated flag" in caplog.text


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_success(self, buildx):
        with patch.object(
            buildx, "run", AsyncMock(return_value=CommandResult(0, "", ""))
        ) as mock_run:
            assert await buildx.remove("builder-test") is True

        mock_run.assert_awaited_once_with("buildx", "rm", "builder-test")

    @pytest.mark.asyncio
    async def test_remove_failure_does_not_raise(self, buildx):
        with patch.object(
            buildx, "run", AsyncMock(return_value=CommandResult(1, "", "not found"))
        ):
            assert await buildx.remove("builder-test") is False

    @pytest.mark.asyncio
    async def test_remove_without_docker(self, buildx):
        with patch.object(buildx, "run", AsyncMock(side_effect=FileNotFoundError("docker"))):
            assert await buildx.remove("builder-test") is False


class TestTools:
    @pytest.mark.asyncio
    async def test_all_tools_present(self, buildx):
        with patch.object(
            buildx, "run", AsyncMock(return_value=CommandResult(0, "ok", ""))
        ) as mock_run:
            await buildx.check_required_tools()

        assert mock_run.await_count == 2

    @pytest.mark.asyncio
    async def test_docker_missing(self, buildx):
        with patch.object(buildx, "run", AsyncMock(side_effect=FileNotFoundError("docker"))):
            with pytest.raises(MissingToolError):
                await buildx.check_required_tools()

    @pytest.mark.asyncio
    async def test_buildx_missing_only_warns(self, buildx, caplog):
        results = [CommandResult(0, "Docker version 27", ""), CommandResult(1, "", "unknown")]
        with patch.object(buildx, "run", AsyncMock(side_effect=results)):
            with caplog.at_level(logging.WARNING, logger="warp_builders.core.buildx"):
                await buildx.check_required_tools()

        assert "Buildx not available" in caplog.text

    @pytest.mark.asyncio
    async def test_docker_info(self, buildx):
        results = [
            CommandResult(0, "Docker version 27", ""),
            CommandResult(1, "", "cannot connect"),
            CommandResult(0, "github.com/docker/buildx v0.17", ""),
        ]
        with patch.object(buildx, "run", AsyncMock(side_effect=results)):
            info = await buildx.docker_info()

        assert info == {
            "docker --version": "Docker version 27",
            "docker info": "",
            "docker buildx version": "github.com/docker/buildx v0.17",
        }

    @pytest.mark.asyncio
    async def test_run_missing_binary(self):
        buildx = BuildxClient(docker="definitely-not-docker-binary")

        with pytest.raises(FileNotFoundError):
            await buildx.run("--version")

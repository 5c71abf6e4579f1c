"""Tests for the Docker Engine API client against a local test server."""

import io

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from docker_layer_save import check_daemon_connectivity, save_images
from docker_layer_save.core.daemon_client import DockerDaemonClient
from docker_layer_save.core.session import create_connector
from docker_layer_save.core.types import DaemonConfig, RetentionPolicy, SaveOptions
from docker_layer_save.exceptions import (
    DaemonConnectionError,
    DaemonError,
    ImageNotFoundError,
)
from tests.helpers import build_export_tar, make_image, tar_member_names


def make_app(images):
    by_tag = {image.tag: image for image in images}

    async def ping(request):
        return web.Response(text="OK", headers={"Api-Version": "1.45"})

    async def inspect(request):
        image = by_tag.get(request.match_info["name"])
        if image is None:
            return web.json_response(
                {"message": f"No such image: {request.match_info['name']}"}, status=404
            )
        return web.json_response(image.inspect)

    async def export(request):
        names = request.query.getall("names", [])
        missing = [name for name in names if name not in by_tag]
        if missing:
            return web.json_response(
                {"message": f"reference does not exist: {missing[0]}"}, status=404
            )
        body = build_export_tar([by_tag[name] for name in names])
        return web.Response(body=body, content_type="application/x-tar")

    async def broken(request):
        return web.json_response({"message": "boom"}, status=500)

    app = web.Application()
    app.router.add_get("/_ping", ping)
    app.router.add_get("/images/get", export)
    app.router.add_get("/images/broken/json", broken)
    app.router.add_get("/images/{name:.+}/json", inspect)
    return app


@pytest.fixture
def app_images():
    return [make_image("myapp:v1", "base"), make_image("myapp:v2", "base", "src")]


@pytest_asyncio.fixture
async def daemon_config(app_images):
    server = TestServer(make_app(app_images))
    await server.start_server()
    yield DaemonConfig(host=str(server.make_url("")).rstrip("/"))
    await server.close()


class TestDaemonConfig:
    """Test daemon address handling."""

    def test_default_unix_socket(self, monkeypatch):
        """Without DOCKER_HOST the local unix socket is used."""
        monkeypatch.delenv("DOCKER_HOST", raising=False)
        config = DaemonConfig.from_env()
        assert config.socket_path == "/var/run/docker.sock"
        assert config.base_url == "http://localhost"

    def test_docker_host_env(self, monkeypatch):
        """DOCKER_HOST selects a TCP daemon."""
        monkeypatch.setenv("DOCKER_HOST", "tcp://10.0.0.5:2375")
        config = DaemonConfig.from_env(timeout=5)
        assert config.socket_path is None
        assert config.base_url == "http://10.0.0.5:2375"
        assert config.timeout == 5

    def test_unsupported_scheme(self):
        """Unknown schemes are rejected."""
        with pytest.raises(DaemonConnectionError):
            DaemonConfig(host="ssh://user@host").base_url

    @pytest.mark.asyncio
    async def test_connector_matches_transport(self):
        """Unix hosts get a unix connector."""
        connector = create_connector(DaemonConfig(host="unix:///tmp/docker.sock"))
        try:
            assert connector.path == "/tmp/docker.sock"
        finally:
            await connector.close()


class TestDockerDaemonClient:
    """Test Engine API calls."""

    @pytest.mark.asyncio
    async def test_ping(self, daemon_config):
        """The daemon answers the ping."""
        async with DockerDaemonClient(daemon_config) as client:
            assert await client.ping() is True

    @pytest.mark.asyncio
    async def test_check_daemon_connectivity(self, daemon_config):
        """The connectivity helper opens and closes its own session."""
        assert await check_daemon_connectivity(daemon_config.host) is True

    @pytest.mark.asyncio
    async def test_check_connectivity_unreachable(self):
        """An unreachable daemon raises DaemonConnectionError."""
        with pytest.raises(DaemonConnectionError):
            await check_daemon_connectivity("http://127.0.0.1:1")

    @pytest.mark.asyncio
    async def test_inspect_image(self, daemon_config, app_images):
        """Inspect returns the Engine API document."""
        async with DockerDaemonClient(daemon_config) as client:
            data = await client.inspect_image("myapp:v2")
        assert data["RootFS"]["Layers"] == app_images[1].diff_ids

    @pytest.mark.asyncio
    async def test_inspect_missing_image(self, daemon_config):
        """A 404 becomes ImageNotFoundError."""
        async with DockerDaemonClient(daemon_config) as client:
            with pytest.raises(ImageNotFoundError, match="ghost:1"):
                await client.inspect_image("ghost:1")

    @pytest.mark.asyncio
    async def test_inspect_server_error(self, daemon_config):
        """Other failures carry the daemon message."""
        async with DockerDaemonClient(daemon_config) as client:
            with pytest.raises(DaemonError, match="boom"):
                await client.inspect_image("broken")

    @pytest.mark.asyncio
    async def test_export_images(self, daemon_config, app_images):
        """The export stream is the daemon's tar archive."""
        async with DockerDaemonClient(daemon_config, chunk_size=64) as client:
            chunks = [chunk async for chunk in client.export_images(["myapp:v1", "myapp:v2"])]
        assert b"".join(chunks) == build_export_tar(app_images)

    @pytest.mark.asyncio
    async def test_export_missing_image(self, daemon_config):
        """A 404 during export becomes ImageNotFoundError."""
        async with DockerDaemonClient(daemon_config) as client:
            with pytest.raises(ImageNotFoundError):
                async for _ in client.export_images(["ghost:1"]):
                    pass

    @pytest.mark.asyncio
    async def test_used_outside_context(self):
        """Calls before entering the context manager fail clearly."""
        client = DockerDaemonClient(DaemonConfig(host="tcp://127.0.0.1:2375"))
        with pytest.raises(DaemonError, match="async with"):
            await client.inspect_image("x")

    @pytest.mark.asyncio
    async def test_save_through_daemon(self, daemon_config, app_images, tmp_path):
        """The save pipeline works end to end over HTTP."""
        out = io.BytesIO()
        options = SaveOptions(
            images=("myapp:v2",),
            workdir=str(tmp_path),
            retention=RetentionPolicy.latest(),
        )
        async with DockerDaemonClient(daemon_config) as client:
            excluded = await save_images(client, options, out=out)

        image = app_images[1]
        assert excluded == image.layers[:1]
        assert image.layers[1] in tar_member_names(out.getvalue())

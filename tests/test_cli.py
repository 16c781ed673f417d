"""End-to-end tests for the apiflight CLI using Typer's CliRunner.

Network access is replaced by patching the data service factory used by
the request commands with one built on :class:`httpx.MockTransport`.
"""

from __future__ import annotations

import json
import logging

import httpx
import pytest

from apiflight import __version__
from apiflight.app import app
from apiflight.cache import DiskCacheStorage
from apiflight.client.transport import Transport
from apiflight.config import resolve_cache_dir, save_settings
from apiflight.data import DataService
from apiflight.files import TempFileService
from apiflight.models import AuthConfig, Settings


API = "https://api.example.com"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Server:
    def __init__(self, status_code: int = 200, payload=None) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.payload = payload if payload is not None else {"items": ["a"], "next_cursor": None}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


def _patch_service(monkeypatch: pytest.MonkeyPatch, server: _Server) -> None:
    def factory(settings: Settings) -> DataService:
        cache_dir = resolve_cache_dir(settings)
        transport = Transport(
            config=settings.request,
            upload_config=settings.upload,
            file_service=TempFileService(cache_dir / "tmp"),
            client=httpx.AsyncClient(transport=httpx.MockTransport(server)),
        )
        storage = DiskCacheStorage(cache_dir) if settings.cache.enabled else None
        return DataService(transport, storage)

    monkeypatch.setattr("apiflight.commands.request.create_data_service", factory)


def _invoke(cli_runner, *args: str):
    return cli_runner.invoke(app, ["--json", "--quiet", "--no-color", *args])


@pytest.fixture(autouse=True)
def _restore_logging():
    """The root callback reconfigures logging onto the runner's stderr."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


class TestGlobalOptions:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"apiflight {__version__}" in result.output

    def test_no_args_shows_help(self, cli_runner) -> None:
        result = cli_runner.invoke(app, [])
        assert "request" in result.output
        assert "upload" in result.output


# ---------------------------------------------------------------------------
# request
# ---------------------------------------------------------------------------


class TestRequestCommand:
    def test_prints_json(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server()
        _patch_service(monkeypatch, server)

        result = _invoke(cli_runner, "request", f"{API}/albums")

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"items": ["a"], "next_cursor": None}

    def test_relative_url_headers_and_query(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server()
        _patch_service(monkeypatch, server)
        monkeypatch.setenv("APIFLIGHT_BASE_URL", API + "/v1/")

        result = _invoke(
            cli_runner, "request", "/albums", "-H", "X-Trace: abc", "-q", "limit=5", "-q", "sort=new"
        )

        assert result.exit_code == 0, result.output
        request = server.requests[0]
        assert request.url.path == "/v1/albums"
        assert list(request.url.params.multi_items()) == [("limit", "5"), ("sort", "new")]
        assert request.headers["X-Trace"] == "abc"

    def test_post_with_data(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server()
        _patch_service(monkeypatch, server)

        result = _invoke(
            cli_runner, "request", f"{API}/albums", "-X", "post", "--data", '{"title": "Blue"}'
        )

        assert result.exit_code == 0, result.output
        assert server.requests[0].method == "POST"
        assert json.loads(server.requests[0].content) == {"title": "Blue"}

    def test_bearer_auth_from_settings(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server()
        _patch_service(monkeypatch, server)
        save_settings(Settings(auth=AuthConfig(type="bearer", source="env:APIFLIGHT_TEST_TOKEN")))
        monkeypatch.setenv("APIFLIGHT_TEST_TOKEN", "tok")

        result = _invoke(cli_runner, "request", f"{API}/me")

        assert result.exit_code == 0, result.output
        assert server.requests[0].headers["Authorization"] == "Bearer tok"

    def test_cache_id_and_refresh(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server()
        _patch_service(monkeypatch, server)

        first = _invoke(cli_runner, "request", f"{API}/albums", "--cache-id", "albums")
        second = _invoke(cli_runner, "request", f"{API}/albums", "--cache-id", "albums")
        assert first.exit_code == second.exit_code == 0
        assert json.loads(second.stdout) == server.payload
        assert len(server.requests) == 1

        third = _invoke(cli_runner, "request", f"{API}/albums", "--cache-id", "albums", "--refresh")
        assert third.exit_code == 0
        assert len(server.requests) == 2

    def test_raw_text(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server()
        _patch_service(monkeypatch, server)

        result = cli_runner.invoke(
            app, ["--plain", "--quiet", "--no-color", "request", f"{API}/readme", "--raw"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == server.payload

    def test_not_found_exit_code(self, cli_runner, isolated_config, monkeypatch) -> None:
        _patch_service(monkeypatch, _Server(status_code=404, payload={"message": "no such album"}))

        result = _invoke(cli_runner, "request", f"{API}/albums/x")

        assert result.exit_code == 4
        assert "HTTP 404: no such album" in result.output

    def test_unauthorized_exit_code(self, cli_runner, isolated_config, monkeypatch) -> None:
        _patch_service(monkeypatch, _Server(status_code=401))
        result = _invoke(cli_runner, "request", f"{API}/me")
        assert result.exit_code == 3

    def test_invalid_header(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server()
        _patch_service(monkeypatch, server)

        result = _invoke(cli_runner, "request", f"{API}/albums", "-H", "no-colon")

        assert result.exit_code == 2
        assert server.requests == []

    def test_invalid_json_body(self, cli_runner, isolated_config, monkeypatch) -> None:
        _patch_service(monkeypatch, _Server())
        result = _invoke(cli_runner, "request", f"{API}/albums", "--data", "{oops")
        assert result.exit_code == 2
        assert "Invalid JSON" in result.output

    def test_invalid_method(self, cli_runner, isolated_config, monkeypatch) -> None:
        _patch_service(monkeypatch, _Server())
        result = _invoke(cli_runner, "request", f"{API}/albums", "-X", "FETCH")
        assert result.exit_code == 2
        assert "FETCH" in result.output


# ---------------------------------------------------------------------------
# upload
# ---------------------------------------------------------------------------


class TestUploadCommand:
    def test_uploads_file_and_json_parts(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server(status_code=201, payload={"id": "p1"})
        _patch_service(monkeypatch, server)
        photo = isolated_config / "cover.jpg"
        photo.write_bytes(b"\xff\xd8JPEG")

        result = _invoke(
            cli_runner,
            "upload",
            f"{API}/photos",
            "--file",
            f"photo={photo}:image/webp",
            "--json-part",
            'meta={"title": "Cover"}',
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"id": "p1"}
        request = server.requests[0]
        body = request.content
        assert request.headers["Content-Type"].startswith("multipart/form-data; boundary=")
        assert b'filename="cover.jpg"' in body
        assert b"Content-Type: image/webp" in body
        assert body.index(b'name="photo"') < body.index(b'name="meta"')
        assert list((resolve_cache_dir(Settings()) / "tmp").iterdir()) == []

    def test_requires_a_part(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server()
        _patch_service(monkeypatch, server)

        result = _invoke(cli_runner, "upload", f"{API}/photos")

        assert result.exit_code == 2
        assert server.requests == []

    def test_missing_file(self, cli_runner, isolated_config, monkeypatch) -> None:
        server = _Server()
        _patch_service(monkeypatch, server)

        result = _invoke(cli_runner, "upload", f"{API}/photos", "--file", "photo=missing.jpg")

        assert result.exit_code == 8
        assert server.requests == []


# ---------------------------------------------------------------------------
# cache
# ---------------------------------------------------------------------------


class TestCacheCommands:
    def test_show_and_clear(self, cli_runner, isolated_config, monkeypatch) -> None:
        _patch_service(monkeypatch, _Server())
        assert _invoke(cli_runner, "request", f"{API}/albums", "--cache-id", "albums").exit_code == 0

        shown = _invoke(cli_runner, "cache", "show", "albums")
        assert shown.exit_code == 0, shown.output
        assert json.loads(shown.stdout) == {"items": ["a"], "next_cursor": None}

        cleared = _invoke(cli_runner, "cache", "clear", "albums")
        assert cleared.exit_code == 0

        missing = _invoke(cli_runner, "cache", "show", "albums")
        assert missing.exit_code == 4
        assert "No cache entry" in missing.output

    def test_stats(self, cli_runner, isolated_config) -> None:
        result = _invoke(cli_runner, "cache", "stats")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["size"] == 0

    def test_disabled_cache(self, cli_runner, isolated_config) -> None:
        save_settings(Settings.model_validate({"cache": {"enabled": False}}))
        result = _invoke(cli_runner, "cache", "show", "albums")
        assert result.exit_code == 8
        assert "disabled" in result.output

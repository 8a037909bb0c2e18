"""Tests for the backend HTTP client, driven through httpx.MockTransport."""

import asyncio
import json

import httpx
import pytest

from curator.common.backend_client import (
    AuthError,
    BackendClient,
    BackendError,
    ReadOnlyError,
    create_backend_client,
    extract_error_message,
)
from curator.common.config import CuratorConfig
from curator.common.normalizer import SchemaViolation


class Recorder:
    """Routes requests to canned responses and records every call."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        handler = self.routes.get(key)
        if handler is None:
            if key == ("GET", "/api/user"):
                return httpx.Response(200, json={"id": "u1"})
            return httpx.Response(404, json={"error": "not found"})
        if callable(handler):
            return handler(request)
        status, body = handler
        return httpx.Response(status, json=body)

    def paths(self):
        return [r.url.path for r in self.requests]


def make_client(recorder, read_only=True, token="tok"):
    return BackendClient(
        api_url="https://library.test/",
        access_token=token,
        read_only=read_only,
        transport=httpx.MockTransport(recorder),
    )


class TestInitialization:
    @pytest.mark.asyncio
    async def test_concurrent_first_use_initializes_once(self):
        recorder = Recorder({("GET", "/api/mcp/v2/content"): (200, {"contents": []})})
        client = make_client(recorder)

        await asyncio.gather(*(client.list_content(limit=1) for _ in range(5)))

        assert recorder.paths().count("/api/user") == 1
        assert client.is_initialized
        await client.close()

    @pytest.mark.asyncio
    async def test_bearer_token_sent(self):
        recorder = Recorder({("GET", "/api/mcp/v2/content"): (200, [])})
        client = make_client(recorder)

        await client.list_content()

        for request in recorder.requests:
            assert request.headers["Authorization"] == "Bearer tok"
            assert request.headers["Content-Type"] == "application/json"
        await client.close()

    @pytest.mark.asyncio
    async def test_missing_token_is_auth_error(self):
        recorder = Recorder()
        client = make_client(recorder, token="")

        with pytest.raises(AuthError):
            await client.list_content()
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_rejected_token_is_auth_error(self):
        recorder = Recorder({("GET", "/api/user"): (401, {"error": "Unauthorized"})})
        client = make_client(recorder)

        with pytest.raises(AuthError) as exc:
            await client.list_content()
        assert exc.value.status_code == 401
        assert not client.is_initialized

    @pytest.mark.asyncio
    async def test_unreachable_library_is_backend_error(self):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(boom)
        with pytest.raises(BackendError) as exc:
            await client.list_content()
        assert not isinstance(exc.value, AuthError)


class TestRequests:
    @pytest.mark.asyncio
    async def test_list_content_params_and_normalization(self):
        recorder = Recorder({
            ("GET", "/api/mcp/v2/content"): (200, {"contents": [
                {"id": "c1", "content_type": "youtube", "title": "Video"},
            ]}),
        })
        client = make_client(recorder)

        items = await client.list_content(status="completed", content_type="youtube", limit=5)

        request = recorder.requests[-1]
        assert request.url.params["status"] == "completed"
        assert request.url.params["type"] == "youtube"
        assert request.url.params["limit"] == "5"
        assert items[0].id == "c1"
        assert items[0].content_type.value == "youtube"
        await client.close()

    @pytest.mark.asyncio
    async def test_get_content_unwraps_nested(self):
        recorder = Recorder({
            ("GET", "/api/mcp/v2/content"): (200, {"content": {"id": "c7", "rawText": "hello world"}}),
        })
        client = make_client(recorder)

        content = await client.get_content("c7")

        assert recorder.requests[-1].url.params["id"] == "c7"
        assert content.raw_text == "hello world"
        await client.close()

    @pytest.mark.asyncio
    async def test_batch_body(self):
        captured = {}

        def handler(request):
            captured.update(json.loads(request.content))
            return httpx.Response(200, json={"results": [{"id": "a"}], "metadata": {"found": 1}})

        recorder = Recorder({("POST", "/api/mcp/v2/content"): handler})
        client = make_client(recorder)

        fetched = await client.batch_get_content(["a", "b"], include_content=True)

        assert captured == {"operation": "get", "contentIds": ["a", "b"], "enrich": {"includeContent": True}}
        assert [i.id for i in fetched.items] == ["a"]
        assert fetched.found == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_batch_failed_entries_kept_apart(self):
        recorder = Recorder({("POST", "/api/mcp/v2/content"): (200, {
            "results": [
                {"id": "c1", "userId": "u1", "url": "https://example.com/a", "status": "completed"},
                {"id": "c2", "error": "Content not found"},
            ],
            "metadata": {"found": 1},
        })})
        client = make_client(recorder)

        fetched = await client.batch_get_content(["c1", "c2"])

        assert [i.id for i in fetched.items] == ["c1"]
        assert fetched.errors == [{"id": "c2", "error": "Content not found"}]
        assert fetched.found == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_batch_bounds(self):
        client = make_client(Recorder())
        with pytest.raises(ValueError):
            await client.batch_get_content([])
        with pytest.raises(ValueError):
            await client.batch_get_content([str(i) for i in range(51)])

    @pytest.mark.asyncio
    async def test_error_message_from_body(self):
        recorder = Recorder({("POST", "/api/mcp/v2/search"): (503, {"message": "Maintenance", "code": "DOWN"})})
        client = make_client(recorder)

        with pytest.raises(BackendError) as exc:
            await client.search_v2({"query": "x"})
        assert exc.value.status_code == 503
        assert str(exc.value) == "[DOWN] Maintenance"
        await client.close()

    @pytest.mark.asyncio
    async def test_401_on_request_is_auth_error(self):
        recorder = Recorder({("GET", "/api/mcp/tags"): (401, {"error": "expired"})})
        client = make_client(recorder)

        with pytest.raises(AuthError):
            await client.list_tags()
        await client.close()

    @pytest.mark.asyncio
    async def test_timeout_is_backend_error(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        recorder = Recorder({("POST", "/api/mcp/v2/synthesis"): slow})
        client = make_client(recorder)

        with pytest.raises(BackendError):
            await client.synthesize_v2({})
        await client.close()

    @pytest.mark.asyncio
    async def test_list_endpoint_with_wrong_shape_is_violation(self):
        recorder = Recorder({("GET", "/api/mcp/v2/content"): (200, {"unexpected": True})})
        client = make_client(recorder)

        with pytest.raises(SchemaViolation):
            await client.list_content()
        await client.close()

    @pytest.mark.asyncio
    async def test_list_tags_grouped(self):
        recorder = Recorder({("GET", "/api/mcp/tags"): (200, {
            "tags": [{"name": "growth"}],
            "grouped": {"system": [], "custom": [{"name": "growth"}]},
            "total": 1,
        })})
        client = make_client(recorder)

        listing = await client.list_tags()

        assert listing["total"] == 1
        assert listing["grouped"]["custom"][0]["name"] == "growth"
        await client.close()


class TestReadOnly:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("call", [
        lambda c: c.save_content("https://example.com"),
        lambda c: c.create_tag("new"),
        lambda c: c.add_tags("c1", ["a"]),
        lambda c: c.remove_tags("c1", ["a"]),
        lambda c: c.mark_swipe_file("c1"),
        lambda c: c.unmark_swipe_file("c1"),
    ])
    async def test_mutations_rejected_without_network(self, call):
        recorder = Recorder()
        client = make_client(recorder, read_only=True)

        with pytest.raises(ReadOnlyError):
            await call(client)
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_mutation_allowed_when_writable(self):
        recorder = Recorder({("POST", "/api/mcp/content"): (200, {"content": {"id": "new", "url": "https://example.com"}})})
        client = make_client(recorder, read_only=False)

        content = await client.save_content("https://example.com")

        assert content.id == "new"
        assert json.loads(recorder.requests[-1].content) == {"url": "https://example.com"}
        await client.close()


class TestHelpers:
    def test_extract_error_message_fallbacks(self):
        assert extract_error_message(httpx.Response(500, text="oops"), "Failed") == "Failed (HTTP 500)"
        assert extract_error_message(httpx.Response(400, json={"error": "Bad"}), "Failed") == "Bad"
        assert extract_error_message(httpx.Response(400, json=[1]), "Failed") == "Failed (HTTP 400)"

    def test_factory_uses_config(self):
        config = CuratorConfig()
        config.backend.api_url = "https://library.test/"
        config.backend.access_token = "tok"
        config.server.read_only = False

        client = create_backend_client(config)

        assert client.api_url == "https://library.test"
        assert client.access_token == "tok"
        assert client.read_only is False

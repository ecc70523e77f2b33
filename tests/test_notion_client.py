import json
import uuid

import httpx
import pytest

from app.core.config import Settings
from app.core.errors import AccessDenied, InvalidUrl, RemoteError
from app.services.notion_client import NotionClient


def make_client(handler=None, prefix="https://docs.example/"):
    settings = Settings(NOTION_API_KEY="secret_test", NOTION_URL_PREFIX=prefix)
    transport = httpx.MockTransport(handler) if handler else None
    return NotionClient(settings=settings, transport=transport)


@pytest.mark.parametrize(
    "url, page_id, anchor_id",
    [
        (
            "https://docs.example/Title-4879c771fc7e4e29a8d96c7ebb98fccd?pvs=4#824880bc0b9b4d769387fb99a4fb334d",
            "4879c771fc7e4e29a8d96c7ebb98fccd",
            "824880bc0b9b4d769387fb99a4fb334d",
        ),
        (
            "https://docs.example/Title-1234567890abcdef12345678",
            "1234567890abcdef12345678",
            None,
        ),
        (
            "https://docs.example/workspace/Meeting-Notes-Weekly-abc123def456#f00d",
            "abc123def456",
            "f00d",
        ),
        ("https://docs.example/4879c771fc7e4e29a8d96c7ebb98fccd", "4879c771fc7e4e29a8d96c7ebb98fccd", None),
    ],
)
def test_resolve_target_extracts_ids(url, page_id, anchor_id):
    target = make_client().resolve_target(url)
    assert target.page_id == page_id
    assert target.anchor_id == anchor_id


@pytest.mark.parametrize(
    "url",
    [
        "https://other.example/Title-1234567890abcdef12345678",
        "http://docs.example/Title-1234567890abcdef12345678",
        "https://docs.example/",
        "https://docs.example/Title-",
        "",
    ],
)
def test_resolve_target_rejects_foreign_urls(url):
    with pytest.raises(InvalidUrl):
        make_client().resolve_target(url)


def test_default_prefix_is_notion():
    client = NotionClient(settings=Settings())
    target = client.resolve_target("https://www.notion.so/SomePageTitle-1234567890abcdef12345678")
    assert target.page_id == "1234567890abcdef12345678"


@pytest.mark.asyncio
async def test_append_text_is_not_idempotent():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append((request.method, request.url.path, body))
        return httpx.Response(200, json={"object": "list", "results": [{"id": uuid.uuid4().hex}]})

    client = make_client(handler)
    first = await client.append_text("page1", "hello", after="anchor1")
    second = await client.append_text("page1", "hello", after="anchor1")

    assert first != second
    assert len(calls) == 2
    method, path, body = calls[0]
    assert method == "PATCH"
    assert path == "/v1/blocks/page1/children"
    assert body["after"] == "anchor1"
    assert body["children"][0]["paragraph"]["rich_text"][0]["text"]["content"] == "hello"
    await client.aclose()


@pytest.mark.asyncio
async def test_append_text_without_anchor_omits_after():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"results": [{"id": "b1"}]})

    client = make_client(handler)
    assert await client.append_text("page1", "hello") == "b1"
    assert "after" not in seen


@pytest.mark.asyncio
async def test_append_text_failure_raises_remote_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    client = make_client(handler)
    with pytest.raises(RemoteError):
        await client.append_text("page1", "hello", after="a")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403, 404, 500])
async def test_verify_access_folds_http_errors(status):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"object": "error"})

    client = make_client(handler)
    with pytest.raises(AccessDenied):
        await client.verify_access("block1")


@pytest.mark.asyncio
async def test_verify_access_folds_network_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    client = make_client(handler)
    with pytest.raises(AccessDenied):
        await client.verify_access("block1")


@pytest.mark.asyncio
async def test_check_access_reads_page_when_no_anchor():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        assert request.headers["Authorization"] == "Bearer secret_test"
        assert "Notion-Version" in request.headers
        return httpx.Response(200, json={"object": "block", "id": "1234567890abcdef12345678"})

    client = make_client(handler)
    target = await client.check_access("https://docs.example/Title-1234567890abcdef12345678")
    assert target.anchor_id is None
    assert paths == ["/v1/blocks/1234567890abcdef12345678"]

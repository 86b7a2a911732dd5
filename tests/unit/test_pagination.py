import httpx
import pytest

from app.services.crm.client import CrmTransportError
from app.services.crm.pagination import (
    CursorPaginator,
    CursorTokenPaginator,
    PagePostPaginator,
    SingleRequestPaginator,
)


def _items(*ids):
    return [{"id": item_id} for item_id in ids]


@pytest.mark.asyncio
async def test_page_post_stops_after_one_request_when_total_is_zero(fake_api, make_client):
    fake_api.responses = [{"contacts": [], "meta": {"total": 0}}]
    paginator = PagePostPaginator(make_client(fake_api))

    result = await paginator.drain("/contacts/search", "contacts", {"locationId": "loc-123"})

    assert result == []
    assert len(fake_api.requests) == 1
    assert fake_api.body(0) == {"page": 1, "limit": 100, "locationId": "loc-123"}


@pytest.mark.asyncio
async def test_page_post_walks_pages_until_total_reached(fake_api, make_client):
    fake_api.responses = [
        {"contacts": _items("a", "b"), "meta": {"total": 5}},
        {"contacts": _items("c", "d"), "meta": {"total": 5}},
        {"contacts": _items("e"), "meta": {"total": 5}},
    ]
    paginator = PagePostPaginator(make_client(fake_api), page_size=2)

    result = await paginator.drain("/contacts/search", "contacts")

    assert [item["id"] for item in result] == ["a", "b", "c", "d", "e"]
    assert [fake_api.body(i)["page"] for i in range(3)] == [1, 2, 3]


@pytest.mark.asyncio
async def test_page_post_stops_on_empty_page_despite_larger_total(fake_api, make_client):
    fake_api.responses = [
        {"opportunities": _items("a"), "total": 50},
        {"opportunities": [], "total": 50},
    ]
    paginator = PagePostPaginator(make_client(fake_api))

    result = await paginator.drain("/opportunities/search", "opportunities")

    assert len(result) == 1
    assert len(fake_api.requests) == 2


@pytest.mark.asyncio
async def test_page_post_missing_total_stops_after_first_page(fake_api, make_client):
    fake_api.responses = [{"contacts": _items("a", "b")}]
    paginator = PagePostPaginator(make_client(fake_api))

    result = await paginator.drain("/contacts/search", "contacts")

    assert len(result) == 2
    assert len(fake_api.requests) == 1


@pytest.mark.asyncio
async def test_cursor_stops_without_next_page_signal(fake_api, make_client):
    fake_api.responses = [{"contacts": _items(*[f"c{i}" for i in range(100)]), "meta": {}}]
    paginator = CursorPaginator(make_client(fake_api))

    result = await paginator.drain("/contacts/", "contacts", {"locationId": "loc-123"})

    assert len(result) == 100
    assert len(fake_api.requests) == 1
    assert "startAfterId" not in fake_api.params(0)


@pytest.mark.asyncio
async def test_cursor_uses_last_item_id_as_cursor(fake_api, make_client):
    fake_api.responses = [
        {"contacts": _items("a", "b"), "meta": {"nextPageUrl": "https://next"}},
        {"contacts": _items("c"), "meta": {"nextPageUrl": None}},
    ]
    paginator = CursorPaginator(make_client(fake_api), page_size=2)

    result = await paginator.drain("/contacts/", "contacts", {"locationId": "loc-123"})

    assert [item["id"] for item in result] == ["a", "b", "c"]
    assert fake_api.params(1) == {"limit": "2", "locationId": "loc-123", "startAfterId": "b"}


@pytest.mark.asyncio
async def test_cursor_stops_on_empty_page_even_if_next_signalled(fake_api, make_client):
    fake_api.responses = [{"conversations": [], "meta": {"nextPageUrl": "https://next"}}]
    paginator = CursorPaginator(make_client(fake_api))

    result = await paginator.drain("/conversations/search", "conversations")

    assert result == []
    assert len(fake_api.requests) == 1


@pytest.mark.asyncio
async def test_v1_cursor_ignores_next_page_token(fake_api, make_client):
    fake_api.responses = [{"conversations": _items("a"), "meta": {"nextPage": 2}}]
    paginator = CursorPaginator(make_client(fake_api))

    await paginator.drain("/conversations/search", "conversations")

    assert len(fake_api.requests) == 1


@pytest.mark.asyncio
async def test_token_cursor_accepts_next_page_token(fake_api, make_client):
    fake_api.responses = [
        {"conversations": _items("a", "b"), "meta": {"nextPage": 2}},
        {"conversations": _items("c"), "meta": {"nextPageUrl": "https://next"}},
        {"conversations": _items("d"), "meta": {}},
    ]
    paginator = CursorTokenPaginator(make_client(fake_api))

    result = await paginator.drain("/conversations/search", "conversations")

    assert [item["id"] for item in result] == ["a", "b", "c", "d"]
    assert fake_api.params(1)["startAfterId"] == "b"
    assert fake_api.params(2)["startAfterId"] == "c"


@pytest.mark.asyncio
async def test_drain_drops_repeated_ids_keeping_first(fake_api, make_client):
    fake_api.responses = [
        {"contacts": [{"id": "a", "v": 1}, {"id": "b"}], "meta": {"total": 4}},
        {"contacts": [{"id": "b"}, {"id": "a", "v": 2}], "meta": {"total": 4}},
    ]
    paginator = PagePostPaginator(make_client(fake_api), page_size=2)

    result = await paginator.drain("/contacts/search", "contacts")

    assert result == [{"id": "a", "v": 1}, {"id": "b"}]


@pytest.mark.asyncio
async def test_single_request_reads_items_key(fake_api, make_client):
    fake_api.responses = [{"pipelines": [{"id": "p1", "stages": []}]}]
    paginator = SingleRequestPaginator(make_client(fake_api))

    result = await paginator.drain("/opportunities/pipelines", "pipelines", {"locationId": "loc"})

    assert result == [{"id": "p1", "stages": []}]
    assert fake_api.params(0) == {"locationId": "loc"}


@pytest.mark.asyncio
async def test_failed_page_aborts_drain(fake_api, make_client):
    fake_api.responses = [
        {"contacts": _items("a"), "meta": {"total": 3}},
        httpx.Response(500, json={"message": "Internal error"}),
    ]
    paginator = PagePostPaginator(make_client(fake_api), page_size=1)

    with pytest.raises(CrmTransportError) as exc_info:
        await paginator.drain("/contacts/search", "contacts")

    assert exc_info.value.status_code == 500
    assert len(fake_api.requests) == 2

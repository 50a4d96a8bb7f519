"""
Unit tests for the PostgREST data store.
Requests are served by an httpx mock transport.
"""

import json

import httpx
import pytest

from store import PostgrestStore, StoreError
from store.postgrest import SINGLE_OBJECT_MEDIA_TYPE

BASE_URL = "https://project.supabase.co/rest/v1"


class FakePostgrest:
    """Records requests and replies with a canned response."""

    def __init__(self, response=None):
        self.requests = []
        self.response = response or httpx.Response(200, json=[])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def make_store(fake) -> PostgrestStore:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(fake))
    return PostgrestStore(url="https://project.supabase.co", api_key="anon-key", client=client)


class TestPostgrestStore:
    """Test cases for PostgrestStore."""

    def test_default_client_sends_api_key(self):
        store = PostgrestStore(url="https://project.supabase.co/", api_key="anon-key")

        assert store.base_url == BASE_URL
        assert store.client.headers["apikey"] == "anon-key"
        assert store.client.headers["Authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_select_encodes_filters_and_order(self):
        fake = FakePostgrest(httpx.Response(200, json=[{"id": "b1"}]))
        store = make_store(fake)

        rows = await (
            store.table("books").select("*").eq("user_id", "u1").order("created_at", descending=True).execute()
        )

        assert rows == [{"id": "b1"}]
        request = fake.last
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/books"
        assert request.url.params["select"] == "*"
        assert request.url.params["user_id"] == "eq.u1"
        assert request.url.params["order"] == "created_at.desc"

    @pytest.mark.asyncio
    async def test_eq_filter_sends_value_verbatim(self):
        fake = FakePostgrest()
        store = make_store(fake)

        await store.table("books").select("*").eq("title", 'Say "hi", (ok)').eq("id", "7c9e6679-7425-40de").execute()

        assert fake.last.url.params["title"] == 'eq.Say "hi", (ok)'
        assert fake.last.url.params["id"] == "eq.7c9e6679-7425-40de"

    @pytest.mark.asyncio
    async def test_in_filter_quotes_each_value(self):
        fake = FakePostgrest()
        store = make_store(fake)

        await store.table("tags").select("*").in_("id", ["t1", 'we"ird,id']).execute()

        assert fake.last.url.params["id"] == 'in.("t1","we\\"ird,id")'

    @pytest.mark.asyncio
    async def test_contains_any_builds_or_filter(self):
        fake = FakePostgrest()
        store = make_store(fake)

        await store.table("books").select("*").contains_any(["title", "author"], "100%_dune").execute()

        assert fake.last.url.params["or"] == (
            '(title.ilike."*100\\\\%\\\\_dune*",author.ilike."*100\\\\%\\\\_dune*")'
        )

    @pytest.mark.asyncio
    async def test_contains_any_keeps_asterisk_from_widening_match(self):
        fake = FakePostgrest()
        store = make_store(fake)

        await store.table("books").select("*").contains_any(["title"], "a*b").execute()

        assert fake.last.url.params["or"] == '(title.ilike."*a_b*")'

    @pytest.mark.asyncio
    async def test_single_requests_object_and_returns_dict(self):
        fake = FakePostgrest(httpx.Response(200, json={"id": "b1"}))
        store = make_store(fake)

        row = await store.table("books").select("*").eq("id", "b1").single().execute()

        assert row == {"id": "b1"}
        assert fake.last.headers["Accept"] == SINGLE_OBJECT_MEDIA_TYPE

    @pytest.mark.asyncio
    async def test_no_rows_error_carries_code(self):
        fake = FakePostgrest(httpx.Response(406, json={
            "code": "PGRST116",
            "details": "The result contains 0 rows",
            "hint": None,
            "message": "JSON object requested, multiple (or no) rows returned",
        }))
        store = make_store(fake)

        with pytest.raises(StoreError) as exc_info:
            await store.table("books").select("*").eq("id", "nope").single().execute()

        error = exc_info.value
        assert error.is_no_rows
        assert error.status_code == 406
        assert error.message == "JSON object requested, multiple (or no) rows returned"

    @pytest.mark.asyncio
    async def test_insert_posts_rows_and_asks_for_representation(self):
        fake = FakePostgrest(httpx.Response(201, json=[{"id": "bt1", "book_id": "b1", "tag_id": "t1"}]))
        store = make_store(fake)

        rows = await store.table("book_tags").insert([{"book_id": "b1", "tag_id": "t1"}]).execute()

        request = fake.last
        assert request.method == "POST"
        assert request.headers["Prefer"] == "return=representation"
        assert json.loads(request.content) == [{"book_id": "b1", "tag_id": "t1"}]
        assert "select" not in request.url.params
        assert rows[0]["id"] == "bt1"

    @pytest.mark.asyncio
    async def test_update_patches_matching_rows(self):
        fake = FakePostgrest(httpx.Response(200, json=[{"id": "b1", "title": "New"}]))
        store = make_store(fake)

        await store.table("books").update({"title": "New"}).eq("id", "b1").eq("user_id", "u1").execute()

        request = fake.last
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.b1"
        assert request.url.params["user_id"] == "eq.u1"
        assert json.loads(request.content) == {"title": "New"}

    @pytest.mark.asyncio
    async def test_delete_with_empty_body_returns_no_rows(self):
        fake = FakePostgrest(httpx.Response(204))
        store = make_store(fake)

        rows = await store.table("book_tags").delete().eq("book_id", "b1").execute()

        assert fake.last.method == "DELETE"
        assert rows == []

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        fake = FakePostgrest(httpx.Response(502, text="Bad Gateway"))
        store = make_store(fake)

        with pytest.raises(StoreError) as exc_info:
            await store.table("books").select("*").execute()

        assert exc_info.value.message == "Bad Gateway"
        assert exc_info.value.code is None

    @pytest.mark.asyncio
    async def test_transport_error_becomes_store_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = make_store(refuse)

        with pytest.raises(StoreError) as exc_info:
            await store.table("books").select("*").execute()

        assert "connection refused" in exc_info.value.message
        assert not exc_info.value.is_no_rows

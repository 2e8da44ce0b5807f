"""Tests for the Solr engine client, run against a mocked Solr server."""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from shared.clients.engine.solr.EngineClientSolr import FRAG_SIZE, UPSERT_BATCH_SIZE, EngineClientSolr
from shared.clients.engine.solr.SolrDocument import SolrDocument
from shared.clients.engine.solr.SolrSchema import SolrSchema
from shared.models.errors import DocumentWithoutLinkError, EngineUnavailableError, SchemaSetupError, SchemaViolationError
from shared.models.search import AccessContextSet, ActorContext, SearchFilters
from shared.search.sources.forum.SearchSourceForum import SearchSourceForum

COLLECTION_PATH = "/solr/moodle"


class FakeSolr:
    """Request recorder answering like a Solr collection."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.select_response: dict = {"response": {"numFound": 0, "docs": []}}
        self.status_by_path: dict[str, int] = {}
        self.schema_fields: set[str] = set()
        self.fail_with: Exception | None = None

    def updates(self) -> list:
        return [json.loads(r.content) for r in self.requests if r.url.path == f"{COLLECTION_PATH}/update"]

    def selects(self) -> list[dict[str, list[str]]]:
        return [parse_qs(r.content.decode()) for r in self.requests if r.url.path == f"{COLLECTION_PATH}/select" and r.method == "POST"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        path = request.url.path
        if path in self.status_by_path:
            return httpx.Response(self.status_by_path[path], json={"error": {"code": self.status_by_path[path], "msg": "failed"}})
        if path == f"{COLLECTION_PATH}/select":
            return httpx.Response(200, json=self.select_response)
        if path.startswith(f"{COLLECTION_PATH}/schema/fields/"):
            name = path.rsplit("/", 1)[1]
            if name in self.schema_fields:
                return httpx.Response(200, json={"field": {"name": name}})
            return httpx.Response(404, json={"error": {"code": 404, "msg": f"Field '{name}' not found."}})
        return httpx.Response(200, json={"responseHeader": {"status": 0}})


def solr_doc(itemid: int, contextid: int = 501, **fields) -> dict:
    doc = {
        "id": f"mod_forum-{itemid}",
        "itemid": itemid,
        "title": "Greetings",
        "content": "Hello world",
        "contextid": contextid,
        "component": "mod_forum",
        "type": 1,
        "courseid": 5,
        "userid": 2,
        "userfullname": "Ada Lovelace",
        "modified": "2016-01-01T10:00:00Z",
    }
    doc.update(fields)
    return doc


@pytest.fixture
def solr() -> FakeSolr:
    return FakeSolr()


@pytest.fixture
async def solr_engine(helper_config, registry, solr, monkeypatch) -> EngineClientSolr:
    """Solr client booted on the fake server, resolving sources through the test registry."""
    monkeypatch.setenv("ENGINE_SOLR_BASE_URL", "http://solr.test:8983")
    monkeypatch.setenv("ENGINE_SOLR_COLLECTION", "moodle")
    monkeypatch.setenv("ENGINE_SOLR_USERNAME", "admin")
    monkeypatch.setenv("ENGINE_SOLR_PASSWORD", "secret")
    client = EngineClientSolr(helper_config=helper_config)
    client.attach_source_registry(registry)
    await client.boot(transport=httpx.MockTransport(solr.handler))
    yield client
    await client.close()


FORUM_ACCESS = AccessContextSet(contexts={"mod_forum": {501}})
ACTOR = ActorContext(userid=2)


class TestConfiguration:
    def test_not_installed_without_collection(self, helper_config, monkeypatch) -> None:
        monkeypatch.setenv("ENGINE_SOLR_BASE_URL", "http://solr.test:8983")
        monkeypatch.delenv("ENGINE_SOLR_COLLECTION", raising=False)

        assert EngineClientSolr(helper_config=helper_config).is_installed() is False

    @pytest.mark.asyncio
    async def test_basic_auth_and_ping(self, solr_engine, solr) -> None:
        assert await solr_engine.is_server_ready() is True

        request = solr.requests[-1]
        assert request.url.path == f"{COLLECTION_PATH}/admin/ping"
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_ping_failure_is_not_ready(self, solr_engine, solr) -> None:
        solr.status_by_path[f"{COLLECTION_PATH}/admin/ping"] = 404
        assert await solr_engine.is_server_ready() is False

        solr.fail_with = httpx.ConnectError("connection refused")
        assert await solr_engine.is_server_ready() is False

    def test_plugin_name(self, solr_engine) -> None:
        assert solr_engine.get_plugin_name() == "search_solr"
        assert solr_engine.get_document_class() is SolrDocument


class TestIndexing:
    """Staging, batching and deletion requests."""

    @pytest.mark.asyncio
    async def test_documents_are_sent_in_batches(self, solr_engine, solr) -> None:
        """A full batch is flushed right away, the rest on commit, followed by the commit itself."""
        for itemid in range(UPSERT_BATCH_SIZE + 1):
            await solr_engine.add_document(solr_doc(itemid))

        assert len(solr.updates()) == 1
        assert len(solr.updates()[0]) == UPSERT_BATCH_SIZE
        assert solr.requests[0].url.params["commitWithin"] == "15000"

        await solr_engine.commit()

        updates = solr.updates()
        assert len(updates) == 3
        assert [doc["id"] for doc in updates[1]] == [f"mod_forum-{UPSERT_BATCH_SIZE}"]
        assert updates[2] == {"commit": {}}

    @pytest.mark.asyncio
    async def test_delete_requests(self, solr_engine, solr) -> None:
        await solr_engine.delete("mod_forum")
        await solr_engine.delete()
        await solr_engine.delete_by_id("mod_forum-3")
        await solr_engine.optimize()

        assert solr.updates() == [
            {"delete": {"query": "component:mod_forum"}},
            {"delete": {"query": "*:*"}},
            {"delete": {"id": "mod_forum-3"}},
            {"optimize": {}},
        ]

    @pytest.mark.asyncio
    async def test_discarded_documents_are_never_sent(self, solr_engine, solr) -> None:
        await solr_engine.add_document(solr_doc(1))
        await solr_engine.add_document(solr_doc(2))

        assert await solr_engine.discard_staged() == 2
        await solr_engine.commit()

        assert solr.updates() == [{"commit": {}}]

    @pytest.mark.asyncio
    async def test_delete_drops_staged_documents_of_the_component(self, solr_engine, solr) -> None:
        """Documents staged before a component delete are not flushed after it, others are."""
        await solr_engine.add_document(solr_doc(1))
        await solr_engine.add_document(solr_doc(2, id="mod_url-2", component="mod_url"))

        await solr_engine.delete("mod_forum")
        await solr_engine.commit()

        updates = solr.updates()
        assert updates[0] == {"delete": {"query": "component:mod_forum"}}
        assert [doc["id"] for doc in updates[1]] == ["mod_url-2"]
        assert updates[2] == {"commit": {}}

    @pytest.mark.asyncio
    async def test_update_failure_raises(self, solr_engine, solr) -> None:
        solr.status_by_path[f"{COLLECTION_PATH}/update"] = 500

        with pytest.raises(EngineUnavailableError):
            await solr_engine.commit()

    @pytest.mark.asyncio
    async def test_unreachable_server_raises(self, solr_engine, solr) -> None:
        solr.fail_with = httpx.ConnectError("connection refused")

        with pytest.raises(EngineUnavailableError):
            await solr_engine.delete()


class TestQueryParams:
    """Filter queries built from the request filters and the access contexts."""

    def test_context_filter(self, solr_engine) -> None:
        params = solr_engine.get_query_params(SearchFilters(q="hello"), AccessContextSet(contexts={"mod_forum": {502, 501}, "mod_url": {601}}))

        assert params["q"] == "hello"
        assert params["rows"] == 100
        assert params["hl.fragsize"] == FRAG_SIZE
        assert params["fq"] == ["contextid:(501 OR 502 OR 601)"]

    def test_component_and_time_filters(self, solr_engine) -> None:
        filters = SearchFilters(q="hello", title="News", author="Ada", component="mod_forum", timestart=1451642400)

        params = solr_engine.get_query_params(filters, FORUM_ACCESS)

        assert params["fq"] == [
            "title:News",
            "userfullname:Ada",
            "component:mod_forum",
            "modified:[2016-01-01T10:00:00Z TO *]",
            "contextid:(501)",
        ]

    def test_unrestricted_access_has_no_context_filter(self, solr_engine) -> None:
        params = solr_engine.get_query_params(SearchFilters(q="hello"), AccessContextSet.everything())

        assert params["fq"] == []

    def test_component_without_contexts_needs_no_request(self, solr_engine) -> None:
        assert solr_engine.get_query_params(SearchFilters(q="hello", component="mod_url"), FORUM_ACCESS) is None


class TestHighlighting:
    def test_highlighted_fragments_replace_values(self, solr_engine) -> None:
        docdata = solr_doc(1, content="x" * 2000)
        solr_engine.merge_highlight_field_values(docdata, {"title": ['<span class="highlight">Greetings</span>', "again"]})

        assert docdata["title"] == '<span class="highlight">Greetings</span> again'
        assert docdata["content"] == "x" * FRAG_SIZE

    def test_author_is_only_replaced_when_highlighted(self, solr_engine) -> None:
        docdata = solr_doc(1, userfullname="A" * 600)
        solr_engine.merge_highlight_field_values(docdata, {})

        assert docdata["userfullname"] == "A" * 600

    def test_multivalued_field_is_rejected(self, solr_engine) -> None:
        with pytest.raises(SchemaViolationError):
            solr_engine.merge_highlight_field_values(solr_doc(1, content=["a", "b"]), {})


class TestExecuteQuery:
    """Result hydration and the per item access checks."""

    @pytest.mark.asyncio
    async def test_granted_results_are_hydrated(self, solr_engine, solr, host) -> None:
        host.add_post(1, modified=1451642400)
        solr.select_response = {
            "response": {"numFound": 1, "docs": [solr_doc(1)]},
            "highlighting": {"mod_forum-1": {"content": ['<span class="highlight">Hello</span> world']}},
        }

        results = await solr_engine.execute_query(SearchFilters(q="hello"), FORUM_ACCESS, ACTOR)

        assert len(results) == 1
        doc = results[0]
        assert doc.get("content") == '<span class="highlight">Hello</span> world'
        assert doc.get("modified") == 1451642400
        assert doc.get_doc_url() == "https://lms.example.org/mod/forum/discuss.php?d=100"
        assert doc.get_context_url() == "https://lms.example.org/mod/forum/view.php?id=30"
        assert doc.get("coursefullname") == "Physics 101"
        assert doc.get("componentvisiblename") == "Forum"
        assert doc.get_filearea() == "post"

        sent = solr.selects()[0]
        assert sent["fq"] == ["contextid:(501)"]
        assert sent["hl.fl"] == ["title,content,userfullname,name,intro"]

    @pytest.mark.asyncio
    async def test_deleted_item_is_removed_from_index(self, solr_engine, solr, host) -> None:
        """A result whose post is gone is dropped and deleted exactly once."""
        host.add_post(1, modified=100)
        solr.select_response = {"response": {"numFound": 2, "docs": [solr_doc(1), solr_doc(2)]}}

        results = await solr_engine.execute_query(SearchFilters(q="hello"), FORUM_ACCESS, ACTOR)

        assert [doc.get("itemid") for doc in results] == [1]
        assert solr.updates() == [{"delete": {"id": "mod_forum-2"}}]

    @pytest.mark.asyncio
    async def test_denied_and_foreign_context_results_are_dropped(self, solr_engine, solr, host) -> None:
        host.add_post(1, modified=100)
        host.add_post(2, modified=100)
        host.hidden_posts.add((2, ACTOR.userid))
        solr.select_response = {"response": {"numFound": 3, "docs": [solr_doc(1), solr_doc(2), solr_doc(1, contextid=999)]}}

        results = await solr_engine.execute_query(SearchFilters(q="hello"), FORUM_ACCESS, ACTOR)

        assert [doc.get("id") for doc in results] == ["mod_forum-1"]
        assert solr.updates() == []

    @pytest.mark.asyncio
    async def test_disabled_source_results_are_dropped(self, solr_engine, solr, host, config_store, registry) -> None:
        host.add_post(1, modified=100)
        config_store.set_config("mod_forum", "enablesearch", False)
        registry.invalidate()
        solr.select_response = {"response": {"numFound": 1, "docs": [solr_doc(1)]}}

        assert await solr_engine.execute_query(SearchFilters(q="hello"), AccessContextSet.everything(), ACTOR) == []

    @pytest.mark.asyncio
    async def test_result_without_link_is_dropped(self, solr_engine, solr, host, monkeypatch) -> None:
        """A post vanishing between the access check and the link building only drops that result."""
        host.add_post(1, modified=100)
        host.add_post(2, modified=100)
        link = SearchSourceForum.get_doc_url

        async def get_doc_url(source, doc):
            if doc.get("itemid") == 2:
                raise DocumentWithoutLinkError("mod_forum post 2 does not exist anymore.")
            return await link(source, doc)

        monkeypatch.setattr(SearchSourceForum, "get_doc_url", get_doc_url)
        solr.select_response = {"response": {"numFound": 2, "docs": [solr_doc(1), solr_doc(2)]}}

        results = await solr_engine.execute_query(SearchFilters(q="hello"), FORUM_ACCESS, ACTOR)

        assert [doc.get("itemid") for doc in results] == [1]

    @pytest.mark.asyncio
    async def test_multivalued_context_is_rejected(self, solr_engine, solr, host) -> None:
        host.add_post(1, modified=100)
        solr.select_response = {"response": {"numFound": 1, "docs": [solr_doc(1, contextid=[501, 502])]}}

        with pytest.raises(SchemaViolationError):
            await solr_engine.execute_query(SearchFilters(q="hello"), FORUM_ACCESS, ACTOR)

    @pytest.mark.asyncio
    async def test_backend_errors_return_no_results(self, solr_engine, solr) -> None:
        solr.status_by_path[f"{COLLECTION_PATH}/select"] = 400
        assert await solr_engine.execute_query(SearchFilters(q="hello"), FORUM_ACCESS, ACTOR) == []

        solr.fail_with = httpx.ConnectError("connection refused")
        assert await solr_engine.execute_query(SearchFilters(q="hello"), FORUM_ACCESS, ACTOR) == []

    @pytest.mark.asyncio
    async def test_no_request_without_contexts(self, solr_engine, solr) -> None:
        results = await solr_engine.execute_query(SearchFilters(q="hello", component="mod_url"), FORUM_ACCESS, ACTOR)

        assert results == []
        assert solr.requests == []


class TestSolrDocument:
    def test_time_conversion(self) -> None:
        assert SolrDocument.format_time_for_engine(1451642400) == "2016-01-01T10:00:00Z"
        assert SolrDocument.import_time_from_engine("2016-01-01T10:00:00.123Z") == 1451642400
        assert SolrDocument.import_time_from_engine(1451642400) == 1451642400

    def test_export_formats_dates(self) -> None:
        doc = SolrDocument(1, "mod_forum")
        for field, value in {"title": "t", "content": "c", "contentformat": 1, "contextid": 501, "type": 1, "courseid": 5}.items():
            doc.set(field, value)
        doc.set("created", 0)
        doc.set("modified", 1451642400)

        data = doc.export_for_engine()

        assert data["modified"] == "2016-01-01T10:00:00Z"
        assert data["created"] == "1970-01-01T00:00:00Z"


class TestSchema:
    """Field creation through the Schema API."""

    @pytest.mark.asyncio
    async def test_setup_adds_every_field_but_id(self, solr_engine, solr) -> None:
        await SolrSchema(solr_engine).setup()

        added = [json.loads(r.content)["add-field"] for r in solr.requests if r.method == "POST" and r.url.path == f"{COLLECTION_PATH}/schema"]
        names = [field["name"] for field in added]
        assert "id" not in names
        assert set(names) == set(SolrDocument.get_default_fields_definition()) - {"id"}
        assert all(field["multiValued"] is False for field in added)

    @pytest.mark.asyncio
    async def test_existing_field_fails(self, solr_engine, solr) -> None:
        solr.schema_fields.add("title")

        with pytest.raises(SchemaSetupError):
            await SolrSchema(solr_engine).setup()

    @pytest.mark.asyncio
    async def test_missing_collection_fails(self, solr_engine, solr) -> None:
        solr.status_by_path[f"{COLLECTION_PATH}/select"] = 404

        with pytest.raises(SchemaSetupError):
            await SolrSchema(solr_engine).setup()

    def test_not_installed_engine(self, helper_config, monkeypatch) -> None:
        monkeypatch.delenv("ENGINE_SOLR_BASE_URL", raising=False)

        with pytest.raises(SchemaSetupError):
            SolrSchema(EngineClientSolr(helper_config=helper_config))

    def test_check_results_collects_error_messages(self, solr_engine) -> None:
        response = httpx.Response(200, json={"errors": [{"errorMessages": ["Field 'title' already exists."]}]})

        schema = SolrSchema(solr_engine)

        with pytest.raises(SchemaSetupError, match="already exists"):
            schema.check_results(response)

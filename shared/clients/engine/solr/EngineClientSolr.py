import base64

import httpx

from shared.clients.ClientInterface import ClientRequestError
from shared.clients.engine.EngineClientInterface import EngineClientInterface
from shared.clients.engine.solr.SolrDocument import SolrDocument
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import DocumentWithoutLinkError, EngineUnavailableError, SchemaViolationError
from shared.models.search import MAX_RESULTS, AccessContextSet, AccessResult, ActorContext, SearchFilters
from shared.search.document.Document import Document

# Staged documents are sent to /update in batches of this size
UPSERT_BATCH_SIZE = 100

# Highlighting fragment size, also the length raw field values are cut to
FRAG_SIZE = 500

# Solr commits staged documents by itself after this many milliseconds
AUTOCOMMIT_WITHIN = 15000

HIGHLIGHT_FIELDS = ["title", "content", "userfullname", "name", "intro"]
HIGHLIGHT_PRE = '<span class="highlight">'
HIGHLIGHT_POST = "</span>"

RETURNED_FIELDS = [
    "id", "itemid", "title", "content", "userfullname", "contextid", "component",
    "type", "courseid", "userid", "created", "modified", "name", "intro",
]


class EngineClientSolr(EngineClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="", val_type="string")
        self._collection = self.get_config_val("COLLECTION", default="", val_type="string")
        self._username = self.get_config_val("USERNAME", default="", val_type="string")
        self._password = self.get_config_val("PASSWORD", default="", val_type="string")

        # documents staged by add_document() and not sent yet
        self._pending: list[dict] = []

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Solr"

    def get_document_class(self) -> type[Document]:
        return SolrDocument

    def is_installed(self) -> bool:
        return bool(self._base_url) and bool(self._collection)

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default=""),
            EnvConfig(env_key="USERNAME", val_type="string", default=""),
            EnvConfig(env_key="PASSWORD", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._username and self._password:
            token = base64.b64encode(f"{self._username}:{self._password}".encode("utf-8")).decode("ascii")
            return {"Authorization": f"Basic {token}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_collection(self) -> str:
        return f"/solr/{self._collection}"

    def _get_endpoint_healthcheck(self) -> str:
        return f"{self._get_endpoint_collection()}/admin/ping"

    def _get_endpoint_update(self) -> str:
        return f"{self._get_endpoint_collection()}/update"

    def get_endpoint_select(self) -> str:
        return f"{self._get_endpoint_collection()}/select"

    def get_endpoint_schema(self) -> str:
        return f"{self._get_endpoint_collection()}/schema"

    ##########################################
    ############ QUERY BUILDING ##############
    ##########################################

    def get_query_params(self, filters: SearchFilters, access: AccessContextSet) -> dict | None:
        """Builds the /select parameters of a query.

        Args:
            filters (SearchFilters): The query text and filters.
            access (AccessContextSet): The contexts the actor can access.

        Returns:
            dict | None: The form parameters, None if the actor can not access any
            context of the requested component and no request is needed.
        """
        filter_queries: list[str] = []
        if filters.title:
            filter_queries.append(f"title:{filters.title}")
        if filters.author:
            filter_queries.append(f"userfullname:{filters.author}")
        if filters.component:
            filter_queries.append(f"component:{filters.component}")

        if filters.timestart or filters.timeend:
            timestart = SolrDocument.format_time_for_engine(filters.timestart) if filters.timestart else "*"
            timeend = SolrDocument.format_time_for_engine(filters.timeend) if filters.timeend else "*"
            filter_queries.append(f"modified:[{timestart} TO {timeend}]")

        # restrict to the contexts the actor can access
        if not access.unrestricted:
            if filters.component:
                contexts = access.get_component_contexts(filters.component)
            else:
                contexts = access.get_all_contexts()
            if not contexts:
                return None
            filter_queries.append(f"contextid:({' OR '.join(str(c) for c in sorted(contexts))})")

        return {
            "q": filters.q,
            "wt": "json",
            "rows": MAX_RESULTS,
            "fl": ",".join(RETURNED_FIELDS),
            "hl": "true",
            "hl.fl": ",".join(HIGHLIGHT_FIELDS),
            "hl.fragsize": FRAG_SIZE,
            "hl.simple.pre": HIGHLIGHT_PRE,
            "hl.simple.post": HIGHLIGHT_POST,
            "fq": filter_queries,
        }

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def merge_highlight_field_values(self, docdata: dict, highlighted: dict) -> None:
        """Replaces the returned field values by their highlighted fragments.

        Fields without a highlight are cut to FRAG_SIZE, except userfullname
        which is only replaced when highlighted.

        Raises:
            SchemaViolationError: If a returned field is multi-valued.
        """
        for field in HIGHLIGHT_FIELDS:
            if not docdata.get(field):
                continue
            fragments = highlighted.get(field)
            if fragments:
                docdata[field] = " ".join(fragments) if isinstance(fragments, list) else str(fragments)
            elif field != "userfullname":
                if isinstance(docdata[field], list):
                    raise SchemaViolationError(field)
                docdata[field] = str(docdata[field])[:FRAG_SIZE]

    async def _query_response(self, response: dict, access: AccessContextSet, actor: ActorContext) -> list[Document]:
        body = response.get("response", {})
        if not body.get("numFound"):
            return []

        highlighting = response.get("highlighting", {})
        results: list[Document] = []
        for docdata in body.get("docs", []):
            self.merge_highlight_field_values(docdata, highlighting.get(docdata.get("id"), {}))

            source = self.get_search_source(docdata.get("component", ""))
            if source is None:
                continue

            contextid = docdata.get("contextid", 0)
            if isinstance(contextid, list):
                raise SchemaViolationError("contextid")

            # the contextid filter query already did this, do not trust the backend with it
            if not access.allows(int(contextid), component=docdata["component"]):
                self.logging.warning("Dropping result %s, context %s is not accessible.", docdata.get("id"), docdata.get("contextid"))
                continue

            access_result = await source.check_access(int(docdata["itemid"]), actor)
            if access_result == AccessResult.DELETED:
                try:
                    await self.delete_by_id(docdata["id"])
                except EngineUnavailableError as e:
                    self.logging.warning("Could not delete stale document %s: %s", docdata["id"], e)
                continue
            if access_result == AccessResult.DENIED:
                continue

            try:
                results.append(await self.to_document(source, docdata))
            except DocumentWithoutLinkError as e:
                self.logging.warning("Dropping result %s, it can not be linked: %s", docdata["id"], e)
                continue
            if len(results) >= MAX_RESULTS:
                break

        return results

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_update(self, payload, params: dict | None = None) -> None:
        try:
            await self.do_request(method="POST", endpoint=self._get_endpoint_update(), json=payload, params={"wt": "json", **(params or {})}, raise_on_error=True)
        except (ClientRequestError, httpx.HTTPError) as e:
            raise EngineUnavailableError(f"Solr update request failed: {e}") from e

    async def _flush(self) -> None:
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        await self._do_update(batch, params={"commitWithin": AUTOCOMMIT_WITHIN})
        self.logging.debug("Sent %d documents to Solr collection '%s'.", len(batch), self._collection)

    async def is_server_ready(self) -> bool:
        if not self.is_installed():
            self.logging.error("No Solr configuration found, ENGINE_SOLR_BASE_URL and ENGINE_SOLR_COLLECTION must be set.")
            return False
        try:
            resp = await self.do_healthcheck()
        except httpx.HTTPError as e:
            self.logging.error("Error connecting to Solr server: %s", e)
            return False
        if resp.status_code >= 300:
            self.logging.error("Solr server is not ready, ping returned status %d. Ensure that the collection '%s' exists.", resp.status_code, self._collection)
            return False
        return True

    async def add_document(self, doc: dict) -> None:
        self._pending.append(doc)
        if len(self._pending) >= UPSERT_BATCH_SIZE:
            await self._flush()

    async def commit(self) -> None:
        await self._flush()
        await self._do_update({"commit": {}})

    async def discard_staged(self) -> int:
        """
        Drops the documents not sent yet. Full batches already went to /update and are
        committed by Solr within AUTOCOMMIT_WITHIN.
        """
        dropped, self._pending = len(self._pending), []
        return dropped

    async def optimize(self) -> None:
        await self._do_update({"optimize": {}})

    async def delete(self, component: str | None = None) -> None:
        query = f"component:{component}" if component else "*:*"
        # staged documents must not outlive the delete
        if component:
            self._pending = [doc for doc in self._pending if doc.get("component") != component]
        else:
            self._pending = []
        await self._do_update({"delete": {"query": query}})

    async def delete_by_id(self, doc_id: str) -> None:
        await self._do_update({"delete": {"id": doc_id}}, params={"commitWithin": AUTOCOMMIT_WITHIN})

    async def execute_query(self, filters: SearchFilters, access: AccessContextSet, actor: ActorContext) -> list[Document]:
        params = self.get_query_params(filters, access)
        if params is None:
            return []

        try:
            resp = await self.do_request(method="POST", endpoint=self.get_endpoint_select(), data=params)
        except httpx.HTTPError as e:
            self.logging.error("Error executing the provided query: %s", e)
            return []
        if resp.status_code >= 300:
            self.logging.error("Error executing the provided query, Solr returned status %d: %s", resp.status_code, resp.text)
            return []

        return await self._query_response(resp.json(), access, actor)

"""Search manager.

Coordinates the search sources and the engine: incremental indexing runs with
per source watermarks, the access contexts of an actor, cached query execution
and index deletion.
"""

import asyncio
import hashlib
import time
from typing import Awaitable, Callable

from shared.clients.engine.EngineClientInterface import EngineClientInterface
from shared.clients.engine.EngineClientManager import EngineClientManager
from shared.clients.host.HostClientInterface import HostClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import (
    ConfigurationError,
    EngineNotInstalledError,
    EngineServerStatusError,
    EngineUnavailableError,
    IndexingInProgressError,
    SourceNotAvailableError,
    UnsupportedDocumentTypeError,
)
from shared.models.search import (
    STATE_VARS,
    TYPE_TEXT,
    AccessContextSet,
    ActorContext,
    ContextLevel,
    SearchFilters,
    SearchIndexedEvent,
    SourceIndexState,
)
from shared.search.document.Document import Document
from shared.search.sources.SearchSourceInterface import SearchSourceInterface
from shared.search.sources.SearchSourceManager import SearchSourceManager
from shared.stores.ConfigStoreInterface import ConfigStoreInterface
from shared.stores.ResultCache import ResultCache

IndexListener = Callable[[SearchIndexedEvent], Awaitable[None] | None]


class SearchManager:
    """Entry point of the search layer for indexing runs and queries."""

    def __init__(
        self,
        helper_config: HelperConfig,
        engine: EngineClientInterface,
        registry: SearchSourceManager,
        config_store: ConfigStoreInterface,
        cache: ResultCache | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._engine = engine
        self._registry = registry
        self._config_store = config_store
        self._cache = cache if cache is not None else ResultCache(ttl=int(helper_config.get_number_val("SEARCH_CACHE_TTL", default=300)))
        self._index_listeners: list[IndexListener] = []
        self._index_lock = asyncio.Lock()

        self._engine.attach_source_registry(registry)

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_engine(self) -> EngineClientInterface:
        return self._engine

    def get_registry(self) -> SearchSourceManager:
        return self._registry

    def get_cache(self) -> ResultCache:
        return self._cache

    def is_indexing(self) -> bool:
        return self._index_lock.locked()

    def add_index_listener(self, listener: IndexListener) -> None:
        """
        Registers a callback (sync or async) notified after a run that staged documents.
        """
        self._index_listeners.append(listener)

    ##########################################
    ################ INDEXING ################
    ##########################################

    async def index(self) -> bool:
        """Indexes the changes of every enabled search source since its last run.

        Returns:
            bool: Whether any document was sent to the engine.

        Raises:
            IndexingInProgressError: If another run is active in this process.
            EngineUnavailableError: If the engine is not ready or a request to it fails.
            UnsupportedDocumentTypeError: If a source produced a document type other than text.
        """
        if self._index_lock.locked():
            raise IndexingInProgressError("An indexing run is already in progress.")

        async with self._index_lock:
            if not await self._engine.is_server_ready():
                raise EngineUnavailableError(f"Search engine '{self._engine.get_engine_name()}' is not ready, indexing aborted.")

            updated_components: list[str] = []
            for component, source in self._registry.get_search_sources(enabled=True).items():
                if await self._index_source(source):
                    updated_components.append(component)

            if updated_components:
                await self._notify_indexed(SearchIndexedEvent(timecreated=int(time.time()), components=updated_components))

            return bool(updated_components)

    async def _index_source(self, source: SearchSourceInterface) -> bool:
        """Indexes one source and persists its counters once the engine committed.

        Args:
            source (SearchSourceInterface): An enabled search source.

        Returns:
            bool: Whether any document of the source was sent to the engine.
        """
        component = source.get_component_name()
        self.logging.info("Processing %s component", source.get_component_visible_name())
        source.reset_caches()

        indexingstart = int(time.time())
        plugin, varname = source.get_config_var_name()
        lastindexrun = int(self._config_store.get_config(plugin, f"{varname}_lastindexrun", 0) or 0)
        committed_ids = self._get_watermark_ids(plugin, varname) if lastindexrun > 0 else set()

        numrecords = 0
        numdocs = 0
        numdocsignored = 0

        # ids of the records modified at the watermark, persisted so the next run skips them
        watermark = lastindexrun
        watermark_ids = set(committed_ids)
        current_modified, current_ids = lastindexrun, watermark_ids

        try:
            async for record in source.get_changed_records(lastindexrun):
                recordid, modified = source.get_record_key(record)
                if modified == lastindexrun and recordid in committed_ids:
                    continue

                numrecords += 1
                if modified != current_modified:
                    current_modified, current_ids = modified, set()
                current_ids.add(recordid)

                document = await source.get_document(record)
                if not isinstance(document, Document):
                    numdocsignored += 1
                    continue

                docdata = document.export_for_engine()
                if docdata["type"] != TYPE_TEXT:
                    raise UnsupportedDocumentTypeError(f"Document {docdata['id']} has type {docdata['type']}, only text documents are supported.")
                await self._engine.add_document(docdata)
                numdocs += 1

                if modified >= watermark:
                    watermark, watermark_ids = modified, current_ids
        except Exception:
            dropped = await self._engine.discard_staged()
            self.logging.error("Indexing %s component aborted, dropped %d staged documents.", component, dropped)
            raise

        if numdocs > 0:
            await self._engine.commit()
            self.logging.info(
                "Processed %d records containing %d documents for %s component. Commits completed.",
                numrecords, numdocs, component, color="green",
            )
        else:
            self.logging.info("No new documents to index for %s component.", component)

        state = {
            f"{varname}_indexingstart": indexingstart,
            f"{varname}_indexingend": int(time.time()),
            f"{varname}_docsignored": numdocsignored,
            f"{varname}_docsprocessed": numdocs,
            f"{varname}_recordsprocessed": numrecords,
        }
        if watermark > 0:
            state[f"{varname}_lastindexrun"] = watermark
            state[f"{varname}_lastindexids"] = ",".join(str(recordid) for recordid in sorted(watermark_ids))
        self._config_store.set_many(plugin, state)

        return numdocs > 0

    def _get_watermark_ids(self, plugin: str, varname: str) -> set[int]:
        raw = self._config_store.get_config(plugin, f"{varname}_lastindexids", "")
        return {int(recordid) for recordid in str(raw or "").split(",") if recordid.strip()}

    async def _notify_indexed(self, event: SearchIndexedEvent) -> None:
        self.logging.info("Search index updated for %s.", ", ".join(event.components), color="green")
        for listener in self._index_listeners:
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                self.logging.error("Search indexed listener %r failed: %s", listener, e)

    async def optimize_index(self) -> None:
        await self._engine.optimize()

    ##########################################
    ################ QUERIES #################
    ##########################################

    def generate_query_key(self, filters: SearchFilters) -> str:
        """Fingerprint of a query and the enabled sources, used as the result cache key.

        The actor is not part of the key, the cache keeps one namespace per actor.
        """
        def value(field) -> str:
            return str(field) if field else ""

        enabled = "-".join(sorted(self._registry.get_search_sources(enabled=True)))
        raw = (
            filters.q
            + "title=" + value(filters.title)
            + "author=" + value(filters.author)
            + "component=" + value(filters.component)
            + "timestart=" + value(filters.timestart)
            + "timeend=" + value(filters.timeend)
            + "page=" + value(filters.page)
            + enabled
        )
        return hashlib.md5(raw.encode("utf-8")).hexdigest()

    async def get_sources_user_accesses(self, actor: ActorContext) -> AccessContextSet:
        """Returns the contexts the actor can access, per enabled search source.

        Admins can access everything. Sources working at system level get the system
        context and are fully responsible for the access control of their items.

        Args:
            actor (ActorContext): The actor.

        Returns:
            AccessContextSet: The contexts per source, or the unrestricted set.
        """
        if actor.is_admin:
            return AccessContextSet.everything()

        # split sources by context level so courses and modules are walked once
        sources_by_level: dict[ContextLevel, list[str]] = {}
        for component, source in self._registry.get_search_sources(enabled=True).items():
            for level in source.get_levels():
                sources_by_level.setdefault(level, []).append(component)

        access = AccessContextSet()
        host_client = self._registry.get_host_client()

        for component in sources_by_level.get(ContextLevel.SYSTEM, []):
            access.add(component, host_client.get_system_context_id())

        if not sources_by_level.get(ContextLevel.COURSE) and not sources_by_level.get(ContextLevel.MODULE):
            return access

        courses = await host_client.do_fetch_user_course_access(actor.userid)
        for course in courses:
            if course.is_site and not (actor.is_logged_in or actor.is_guest):
                continue

            for component in sources_by_level.get(ContextLevel.COURSE, []):
                if course.visible or course.can_view_hidden:
                    access.add(component, course.contextid)

            for component in sources_by_level.get(ContextLevel.MODULE, []):
                # the module name is the component without the plugin type, e.g. mod_forum -> forum
                modname = component.split("_", 1)[1]
                for cm in course.modules:
                    if cm.modname == modname and cm.uservisible:
                        access.add(component, cm.contextid)

        return access

    async def search(self, filters: SearchFilters, actor: ActorContext) -> list[Document]:
        """Runs a query for an actor, serving repeated queries from the result cache.

        Args:
            filters (SearchFilters): The query text and filters.
            actor (ActorContext): The actor.

        Returns:
            list[Document]: The granted documents, empty if the actor can not access any context.
        """
        querykey = self.generate_query_key(filters)
        cached = self._cache.get(actor.userid, querykey)
        if cached is not None:
            self.logging.debug("Serving query %s for user %s from cache.", querykey, actor.userid)
            return cached

        access = await self.get_sources_user_accesses(actor)
        if access.is_empty():
            docs: list[Document] = []
        else:
            self._engine.reset_caches()
            for source in self._registry.get_search_sources(enabled=True).values():
                source.reset_caches()
            docs = await self._engine.execute_query(filters, access, actor)

        self._cache.set(actor.userid, querykey, docs)
        return docs

    ##########################################
    ############### DELETION #################
    ##########################################

    def _get_config_sources(self, component: str | None) -> list[SearchSourceInterface]:
        if component:
            source = self._registry.get_search_source(component)
            if source is None:
                raise SourceNotAvailableError(component)
            return [source]
        return list(self._registry.get_search_sources(enabled=True).values())

    def reset_config(self, component: str | None = None) -> None:
        """Resets the counters and the watermark of a source, or of every enabled source.

        Raises:
            SourceNotAvailableError: If the component has no search source.
        """
        self._reset_sources_config(self._get_config_sources(component))

    def _reset_sources_config(self, sources: list[SearchSourceInterface]) -> None:
        for source in sources:
            plugin, varname = source.get_config_var_name()
            self._config_store.set_many(plugin, {f"{varname}_{var}": 0 for var in STATE_VARS})
            self._config_store.set_config(plugin, f"{varname}_lastindexids", "")

    async def delete_index(self, component: str | None = None) -> None:
        """Deletes the documents of a source, or the whole index, and resets the counters.

        Raises:
            SourceNotAvailableError: If the component has no search source.
        """
        sources = self._get_config_sources(component)
        await self._engine.delete(component)
        self._reset_sources_config(sources)
        await self._engine.commit()
        self._cache.purge()
        self.logging.info("Deleted search index%s.", f" of {component}" if component else "", color="yellow")

    async def delete_index_by_id(self, doc_id: str) -> None:
        await self._engine.delete_by_id(doc_id)
        await self._engine.commit()

    ##########################################
    ################ CONFIG ##################
    ##########################################

    def get_sources_config(self, sources: list[SearchSourceInterface] | None = None) -> dict[str, SourceIndexState]:
        """Returns the indexing counters of the given sources, all supported ones by default.

        Disabled sources report zeros, their documents are deleted when they get disabled.
        """
        if sources is None:
            sources = list(self._registry.get_search_sources().values())

        configs: dict[str, SourceIndexState] = {}
        for source in sources:
            if not source.is_enabled():
                configs[source.get_component_name()] = SourceIndexState()
                continue
            plugin, varname = source.get_config_var_name()
            values = {var: int(self._config_store.get_config(plugin, f"{varname}_{var}", 0) or 0) for var in STATE_VARS}
            configs[source.get_component_name()] = SourceIndexState(**values)
        return configs

    async def set_source_enabled(self, component: str, enabled: bool) -> None:
        """Enables or disables a search source. Disabling it deletes its documents.

        Raises:
            SourceNotAvailableError: If the component has no search source.
        """
        source = self._registry.get_search_source(component)
        if source is None:
            raise SourceNotAvailableError(component)

        plugin, varname = source.get_config_var_name()
        self._config_store.set_config(plugin, f"enable{varname}", enabled)
        self._registry.invalidate()
        self._engine.reset_caches()
        if not enabled:
            await self.delete_index(component)

    async def close(self) -> None:
        await self._engine.close()


async def create_search_manager(
    helper_config: HelperConfig,
    host_client: HostClientInterface,
    config_store: ConfigStoreInterface,
    engine_manager: EngineClientManager | None = None,
    cache: ResultCache | None = None,
) -> SearchManager:
    """Builds a search manager around the configured engine.

    The engine is booted here. Nothing is retried, callers schedule retries.

    Args:
        helper_config (HelperConfig): The configuration helper.
        host_client (HostClientInterface): A booted host client.
        config_store (ConfigStoreInterface): The persisted settings.
        engine_manager (EngineClientManager | None): Resolves the engine, built from SEARCH_ENGINE when omitted.
        cache (ResultCache | None): The result cache, built from SEARCH_CACHE_TTL when omitted.

    Returns:
        SearchManager: A manager whose engine answered the readiness check.

    Raises:
        ConfigurationError: If global search is disabled or the engine configuration is invalid.
        EngineNotFoundError: If SEARCH_ENGINE names no registered engine.
        EngineNotInstalledError: If the engine is not installed.
        EngineServerStatusError: If the engine server is not ready.
    """
    if not helper_config.is_global_search_enabled():
        raise ConfigurationError("Global search is disabled (SEARCH_ENABLED).")

    if engine_manager is None:
        engine_manager = EngineClientManager(helper_config=helper_config)
    engine = engine_manager.get_client()

    if not engine.is_installed():
        raise EngineNotInstalledError(f"Search engine '{engine.get_engine_name()}' is not installed.")

    if not engine.is_booted():
        await engine.boot()
    if not await engine.is_server_ready():
        await engine.close()
        raise EngineServerStatusError(f"Search engine '{engine.get_engine_name()}' server is not ready.")

    registry = SearchSourceManager(
        helper_config=helper_config,
        host_client=host_client,
        config_store=config_store,
        document_class=engine.get_document_class(),
    )
    return SearchManager(helper_config=helper_config, engine=engine, registry=registry, config_store=config_store, cache=cache)

from abc import abstractmethod
from typing import Any, TYPE_CHECKING

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import AccessContextSet, ActorContext, SearchFilters
from shared.search.document.Document import Document

if TYPE_CHECKING:
    from shared.search.sources.SearchSourceInterface import SearchSourceInterface
    from shared.search.sources.SearchSourceManager import SearchSourceManager


class EngineClientInterface(ClientInterface):
    """
    Boundary to the full text backend.

    The manager stages exported documents with add_document() and makes them
    searchable with commit(). execute_query() returns hydrated Documents the actor
    is granted to see, re-checking access with the owning search source.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._source_registry: "SearchSourceManager | None" = None

        # name -> source, False if the source is disabled or unknown
        self._cached_sources: dict[str, Any] = {}
        # courseid -> course full name, for the result extras
        self._cached_courses: dict[int, str] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "engine"
        """
        return "engine"

    def get_plugin_name(self) -> str:
        """
        Returns the plugin name of the engine. E.g. "search_solr"
        """
        return f"search_{self.get_engine_name()}"

    def get_document_class(self) -> type[Document]:
        """
        Returns the Document class documents of this engine are built with.
        Engines formatting times or strings differently return their own subclass.
        """
        return Document

    def is_installed(self) -> bool:
        """
        Whether the engine can be used at all, e.g. its connection settings are present.
        """
        return True

    ################ SOURCES ##################
    def attach_source_registry(self, registry: "SearchSourceManager") -> None:
        """
        Sets the registry used to resolve the search source of a result document.
        """
        self._source_registry = registry
        self.reset_caches()

    def reset_caches(self) -> None:
        self._cached_sources = {}
        self._cached_courses = {}

    def get_search_source(self, component: str) -> "SearchSourceInterface | None":
        """Returns the enabled search source of a component, checking the internal cache.

        Args:
            component (str): The component name, e.g. "mod_forum".

        Returns:
            SearchSourceInterface | None: The source, None if it is unknown or disabled.
        """
        if component not in self._cached_sources:
            source = self._source_registry.get_search_source(component) if self._source_registry else None
            if source is None or not source.is_enabled():
                self._cached_sources[component] = False
            else:
                self._cached_sources[component] = source
        return self._cached_sources[component] or None

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def to_document(self, source: "SearchSourceInterface", docdata: dict) -> Document:
        """Builds a Document from a result returned by the backend.

        Args:
            source (SearchSourceInterface): The search source owning the document.
            docdata (dict): Flat field map as returned by the backend.

        Returns:
            Document: The document with its urls, file area and render extras attached.
        """
        document_class = self.get_document_class()
        doc = document_class(docdata["itemid"], docdata["component"])
        doc.set_data_from_engine(docdata)
        doc.set_doc_url(await source.get_doc_url(doc))
        doc.set_context_url(await source.get_context_url(doc))
        doc.set_filearea(source.get_filearea())

        courseid = doc.get("courseid")
        if courseid not in self._cached_courses:
            self._cached_courses[courseid] = await source.get_course_fullname(courseid) or ""
        doc.set_extra("coursefullname", self._cached_courses[courseid])
        doc.set_extra("componentvisiblename", source.get_component_visible_name())
        return doc

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def optimize(self) -> None:
        """
        Optimizes the index. Nothing by default.
        """
        return None

    @abstractmethod
    async def is_server_ready(self) -> bool:
        """
        Whether the backend is reachable and configured. Logs the reason when it is not.
        """
        pass

    @abstractmethod
    async def add_document(self, doc: dict) -> None:
        """
        Stages a document exported with Document.export_for_engine(). Staged documents
        become searchable after commit().
        """
        pass

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def discard_staged(self) -> int:
        """
        Drops the documents staged since the last commit() without sending them.

        Returns:
            int: The number of dropped documents.
        """
        pass

    @abstractmethod
    async def delete(self, component: str | None = None) -> None:
        """
        Deletes every document of a component, or the whole index if component is None.
        """
        pass

    @abstractmethod
    async def delete_by_id(self, doc_id: str) -> None:
        pass

    @abstractmethod
    async def execute_query(self, filters: SearchFilters, access: AccessContextSet, actor: ActorContext) -> list[Document]:
        """Runs a query restricted to the contexts the actor can access.

        Args:
            filters (SearchFilters): The query text and filters.
            access (AccessContextSet): The actor's contexts per search source, or unrestricted.
            actor (ActorContext): The actor the per item access checks are run for.

        Returns:
            list[Document]: At most MAX_RESULTS granted documents, in backend order.

        Raises:
            SchemaViolationError: If the backend returns a multi-valued field.
        """
        pass

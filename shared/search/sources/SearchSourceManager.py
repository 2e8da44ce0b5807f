from shared.clients.host.HostClientInterface import HostClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.search.document.Document import Document
from shared.search.sources.SearchSourceInterface import SearchSourceInterface
from shared.search.sources.forum.SearchSourceForum import SearchSourceForum
from shared.search.sources.url.SearchSourceUrl import SearchSourceUrl
from shared.stores.ConfigStoreInterface import ConfigStoreInterface

# component name -> search source class
SEARCH_SOURCES: dict[str, type[SearchSourceInterface]] = {
    SearchSourceForum.COMPONENT_NAME: SearchSourceForum,
    SearchSourceUrl.COMPONENT_NAME: SearchSourceUrl,
}


class SearchSourceManager:
    """
    Registry of the search sources.

    Sources are instantiated lazily and shared between the "all" and the
    "enabled" lists. Both lists are cached until invalidate() is called, e.g.
    after an administrator toggled a source.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        host_client: HostClientInterface,
        config_store: ConfigStoreInterface,
        document_class: type[Document] = Document,
        sources: dict[str, type[SearchSourceInterface]] | None = None,
    ):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._host_client = host_client
        self._config_store = config_store
        self._document_class = document_class
        self._source_classes = dict(sources if sources is not None else SEARCH_SOURCES)

        self._all_sources: dict[str, SearchSourceInterface] | None = None
        self._enabled_sources: dict[str, SearchSourceInterface] | None = None

    ##########################################
    ############## REGISTRATION ##############
    ##########################################

    def register(self, source_class: type[SearchSourceInterface]) -> None:
        """
        Adds a search source class to the registry, replacing one with the same component name.
        """
        self._source_classes[source_class.COMPONENT_NAME] = source_class
        self.invalidate()

    def set_document_class(self, document_class: type[Document]) -> None:
        self._document_class = document_class
        self.invalidate()

    def invalidate(self) -> None:
        """
        Drops the cached source lists, they are rebuilt on next access.
        """
        self._all_sources = None
        self._enabled_sources = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_search_sources(self, enabled: bool = False) -> dict[str, SearchSourceInterface]:
        """Returns the supported search sources.

        Args:
            enabled (bool): Only the sources enabled by the administrator.

        Returns:
            dict[str, SearchSourceInterface]: Component name to source, in registration order.
        """
        if self._all_sources is None:
            self._all_sources = {}
            for name, source_class in self._source_classes.items():
                if not source_class.is_supported():
                    self.logging.debug("Search source '%s' is not supported, skipping.", name)
                    continue
                self._all_sources[name] = source_class(
                    helper_config=self.helper_config,
                    host_client=self._host_client,
                    config_store=self._config_store,
                    document_class=self._document_class,
                )

        if not enabled:
            return dict(self._all_sources)

        if self._enabled_sources is None:
            self._enabled_sources = {name: source for name, source in self._all_sources.items() if source.is_enabled()}
        return dict(self._enabled_sources)

    def get_search_source(self, component: str) -> SearchSourceInterface | None:
        """
        Returns the search source of a component, None if it is unknown or not supported.
        """
        return self.get_search_sources().get(component)

    def get_host_client(self) -> HostClientInterface:
        return self._host_client

from services.search_index.SearchManager import SearchManager
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import IndexingInProgressError, SearchError


class IndexService:
    """Runs indexing in the background of the API process."""

    def __init__(self, helper_config: HelperConfig, search_manager: SearchManager) -> None:
        self.logging = helper_config.get_logger()
        self._search_manager = search_manager

    async def run_index(self) -> None:
        """Index all enabled sources. Errors are logged, there is no caller to raise to."""
        self.logging.info("Starting background indexing run...")
        try:
            updated = await self._search_manager.index()
        except IndexingInProgressError:
            self.logging.warning("Indexing run skipped, another run is in progress.")
            return
        except SearchError as e:
            self.logging.error("Indexing run failed: %s", e)
            return
        self.logging.info("Background indexing run finished, index %s.", "updated" if updated else "unchanged")

from services.search_index.SearchManager import SearchManager
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import DISPLAY_RESULTS_PER_PAGE
from shared.search.document.Document import Document
from server.models.requests import QueryRequest
from server.models.responses import QueryResponse, QueryResultItem


class QueryService:
    """Handles search queries: search manager -> page -> map results."""

    def __init__(self, helper_config: HelperConfig, search_manager: SearchManager) -> None:
        self.logging = helper_config.get_logger()
        self._search_manager = search_manager

    ##########################################
    ############### CORE #####################
    ##########################################

    async def search(self, request: QueryRequest) -> QueryResponse:
        """Run a query for the requesting user and return one page of results.

        Args:
            request (QueryRequest): The query, filters and the acting user.

        Returns:
            QueryResponse: The requested page, total counts every granted result.
        """
        self.logging.info("QueryService.search: q='%s', userid=%d, page=%d", request.q, request.userid, request.page)

        docs = await self._search_manager.search(request.to_filters(), request.to_actor())

        start = request.page * DISPLAY_RESULTS_PER_PAGE
        items = [self._to_item(doc) for doc in docs[start:start + DISPLAY_RESULTS_PER_PAGE]]

        self.logging.info("QueryService.search: returning %d of %d result(s).", len(items), len(docs))
        return QueryResponse(
            query=request.q,
            results=items,
            total=len(docs),
            page=request.page,
            perpage=DISPLAY_RESULTS_PER_PAGE,
        )

    def _to_item(self, doc: Document) -> QueryResultItem:
        return QueryResultItem(
            id=doc.get("id"),
            itemid=doc.get("itemid"),
            component=doc.get("component"),
            componentvisiblename=doc.get("componentvisiblename"),
            title=doc.get("title") or "",
            content=doc.get("content") or "",
            userfullname=doc.get("userfullname"),
            courseid=doc.get("courseid"),
            coursefullname=doc.get("coursefullname"),
            contextid=doc.get("contextid"),
            created=doc.get("created"),
            modified=doc.get("modified"),
            docurl=doc.get_doc_url(),
            contexturl=doc.get_context_url(),
            filearea=doc.get_filearea(),
        )

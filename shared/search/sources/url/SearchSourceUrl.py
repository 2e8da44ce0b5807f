from typing import AsyncIterator

import httpx

from shared.clients.ClientInterface import ClientRequestError
from shared.clients.host.models.Url import UrlRecord
from shared.models.search import TYPE_TEXT, AccessResult, ActorContext, ContextLevel
from shared.search.document.Document import Document
from shared.search.sources.SearchSourceInterface import SearchSourceInterface


class SearchSourceUrl(SearchSourceInterface):
    """Url resources, indexed by name and description."""

    COMPONENT_NAME = "mod_url"
    VISIBLE_NAME = "URL"
    LEVELS = [ContextLevel.MODULE]

    def get_changed_records(self, since: int = 0) -> AsyncIterator[UrlRecord]:
        return self._host_client.do_stream_urls(modified_from=since)

    def get_record_key(self, url: UrlRecord) -> tuple[int, int]:
        return url.id, url.timemodified

    async def get_document(self, url: UrlRecord) -> Document | None:
        try:
            cm = await self.get_cm("url", url.id)
        except (ClientRequestError, httpx.HTTPError) as e:
            self.logging.debug("Error retrieving mod_url %s document: %s", url.id, e)
            return None
        if cm is None:
            self.logging.debug("Error retrieving mod_url %s document, the course module does not exist.", url.id)
            return None

        doc = self.new_document(url.id)
        doc.set("title", url.name)
        doc.set("content", url.intro)
        doc.set("contentformat", url.introformat)
        doc.set("contextid", cm.contextid)
        doc.set("type", TYPE_TEXT)
        doc.set("courseid", url.course)
        doc.set("modified", url.timemodified)
        return doc

    async def check_access(self, itemid: int, actor: ActorContext) -> AccessResult:
        try:
            url = await self._host_client.do_fetch_url(itemid)
            if url is None:
                return AccessResult.DELETED
            cm = await self.get_user_cm("url", url.id, actor)
            if cm is None:
                return AccessResult.DELETED
        except (ClientRequestError, httpx.HTTPError) as e:
            self.logging.warning("Could not check access to mod_url %s: %s", itemid, e)
            return AccessResult.DENIED

        if not cm.uservisible:
            return AccessResult.DENIED
        return AccessResult.GRANTED

    async def get_doc_url(self, doc: Document) -> str:
        return await self.get_context_url(doc)

    async def get_context_url(self, doc: Document) -> str:
        return self.build_url("/mod/url/view.php", u=doc.get("itemid"))

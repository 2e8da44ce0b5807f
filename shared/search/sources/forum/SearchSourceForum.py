from typing import AsyncIterator

import httpx

from shared.clients.ClientInterface import ClientRequestError
from shared.clients.host.models.ForumPost import ForumDetails, ForumDiscussionDetails, ForumPostRecord
from shared.models.errors import DocumentWithoutLinkError
from shared.models.search import TYPE_TEXT, AccessResult, ActorContext, ContextLevel
from shared.search.document.Document import Document
from shared.search.sources.SearchSourceInterface import SearchSourceInterface


class SearchSourceForum(SearchSourceInterface):
    """Forum posts. One document per post, located in the forum's module context."""

    COMPONENT_NAME = "mod_forum"
    VISIBLE_NAME = "Forum"
    LEVELS = [ContextLevel.MODULE]
    FILEAREA = "post"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._posts_data: dict[int, ForumPostRecord] = {}
        self._forums_data: dict[int, ForumDetails] = {}
        self._discussions_data: dict[int, ForumDiscussionDetails] = {}

    def reset_caches(self) -> None:
        super().reset_caches()
        self._posts_data = {}
        self._forums_data = {}
        self._discussions_data = {}

    ##########################################
    ############### INDEXING #################
    ##########################################

    def get_changed_records(self, since: int = 0) -> AsyncIterator[ForumPostRecord]:
        return self._host_client.do_stream_forum_posts(modified_from=since)

    def get_record_key(self, post: ForumPostRecord) -> tuple[int, int]:
        return post.id, post.modified

    async def get_document(self, post: ForumPostRecord) -> Document | None:
        """Returns the document of a forum post.

        Args:
            post (ForumPostRecord): The post joined with its forum.

        Returns:
            Document | None: The document, None if the course module or the author can not be resolved.
        """
        try:
            cm = await self.get_cm("forum", post.forumid)
            userfullname = await self.get_user_fullname(post.userid)
        except (ClientRequestError, httpx.HTTPError) as e:
            self.logging.debug("Error retrieving mod_forum %s document: %s", post.id, e)
            return None

        if cm is None or userfullname is None:
            self.logging.debug("Error retrieving mod_forum %s document, not all required data is available.", post.id)
            return None

        doc = self.new_document(post.id)
        doc.set("title", post.subject)
        doc.set("content", post.message)
        doc.set("contentformat", post.messageformat)
        doc.set("userfullname", userfullname)
        doc.set("contextid", cm.contextid)
        doc.set("type", TYPE_TEXT)
        doc.set("courseid", post.courseid)
        doc.set("userid", post.userid)
        doc.set("created", post.created)
        doc.set("modified", post.modified)
        doc.set("name", post.forumname)
        doc.set("intro", post.forumintro)
        doc.set("introformat", post.forumintroformat)
        return doc

    ##########################################
    ################ ACCESS ##################
    ##########################################

    async def check_access(self, itemid: int, actor: ActorContext) -> AccessResult:
        # always asked live, the cached records only serve the links built afterwards
        try:
            post = await self._get_post(itemid, refresh=True)
            if post is None:
                return AccessResult.DELETED
            forum = await self._get_forum(post.forumid, refresh=True)
            discussion = await self._get_discussion(post.discussion, refresh=True)
            if forum is None or discussion is None:
                return AccessResult.DELETED
            cm = await self.get_user_cm("forum", forum.id, actor)
            if cm is None:
                return AccessResult.DELETED

            if not cm.uservisible:
                return AccessResult.DENIED

            if not await self._host_client.do_check_forum_post_visible(post.id, actor.userid):
                return AccessResult.DENIED
        except (ClientRequestError, httpx.HTTPError) as e:
            self.logging.warning("Could not check access to mod_forum post %s: %s", itemid, e)
            return AccessResult.DENIED

        return AccessResult.GRANTED

    ##########################################
    ################# LINKS ##################
    ##########################################

    async def get_doc_url(self, doc: Document) -> str:
        """Link to the post's discussion. The post is usually cached by check_access()."""
        post = await self._get_post(doc.get("itemid"))
        if post is None:
            raise DocumentWithoutLinkError(f"mod_forum post {doc.get('itemid')} does not exist anymore.")
        return self.build_url("/mod/forum/discuss.php", d=post.discussion)

    async def get_context_url(self, doc: Document) -> str:
        """Link to the forum."""
        cm = self.get_cached_cm_by_context(doc.get("contextid"))
        if cm is None:
            post = await self._get_post(doc.get("itemid"))
            cm = await self.get_cm("forum", post.forumid) if post is not None else None
        if cm is None:
            raise DocumentWithoutLinkError(f"mod_forum context {doc.get('contextid')} does not exist anymore.")
        return self.build_url("/mod/forum/view.php", id=cm.id)

    ##########################################
    ################ CACHES ##################
    ##########################################

    async def _get_cached(self, cache: dict, key: int, fetch, refresh: bool = False):
        """Returns a cached host record, fetching it on a miss.

        With refresh the host is always asked and the cache follows its answer,
        a record the host no longer knows is dropped from the cache.
        """
        if refresh or key not in cache:
            record = await fetch(key)
            if record is None:
                cache.pop(key, None)
                return None
            cache[key] = record
        return cache[key]

    async def _get_post(self, postid: int, refresh: bool = False) -> ForumPostRecord | None:
        return await self._get_cached(self._posts_data, postid, self._host_client.do_fetch_forum_post, refresh)

    async def _get_forum(self, forumid: int, refresh: bool = False) -> ForumDetails | None:
        return await self._get_cached(self._forums_data, forumid, self._host_client.do_fetch_forum, refresh)

    async def _get_discussion(self, discussionid: int, refresh: bool = False) -> ForumDiscussionDetails | None:
        return await self._get_cached(self._discussions_data, discussionid, self._host_client.do_fetch_discussion, refresh)

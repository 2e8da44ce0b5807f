from abc import abstractmethod
from typing import AsyncIterator, Callable, TypeVar

from pydantic import BaseModel

from shared.clients.ClientInterface import ClientInterface, ClientRequestError
from shared.clients.host.models.Course import CourseAccess, CourseDetails
from shared.clients.host.models.CourseModule import CourseModuleDetails
from shared.clients.host.models.ForumPost import (
    ForumDetails,
    ForumDiscussionDetails,
    ForumPostRecord,
    ForumPostsListResponse,
)
from shared.clients.host.models.Url import UrlRecord, UrlsListResponse
from shared.clients.host.models.User import UserDetails
from shared.helper.HelperConfig import HelperConfig

T = TypeVar("T", bound=BaseModel)


class HostClientInterface(ClientInterface):
    """Client for the host learning platform the search sources read their content from.

    Single record lookups return None when the host answers 404, which the search
    sources translate into "record missing". Any other non-2xx status raises
    ClientRequestError.
    """

    PAGE_SIZE = 500

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "host"
        """
        return "host"

    @abstractmethod
    def get_www_root(self) -> str:
        """
        Returns the public root url of the host, used to build document links (e.g. "https://lms.example.org").
        """
        pass

    @abstractmethod
    def get_system_context_id(self) -> int:
        """
        Returns the id of the host's system context.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_forum_posts(self, modified_from: int, page: int = 1, page_size: int = 500) -> str:
        """
        Returns the endpoint path listing forum posts modified at or after modified_from,
        ordered by modification time ascending.
        """
        pass

    @abstractmethod
    def _get_endpoint_forum_post(self, post_id: int) -> str:
        pass

    @abstractmethod
    def _get_endpoint_forum(self, forum_id: int) -> str:
        pass

    @abstractmethod
    def _get_endpoint_discussion(self, discussion_id: int) -> str:
        pass

    @abstractmethod
    def _get_endpoint_forum_post_visibility(self, post_id: int, user_id: int) -> str:
        """
        Returns the endpoint path answering whether a user can see a forum post.
        """
        pass

    @abstractmethod
    def _get_endpoint_urls(self, modified_from: int, page: int = 1, page_size: int = 500) -> str:
        """
        Returns the endpoint path listing url resources modified at or after modified_from,
        ordered by modification time ascending.
        """
        pass

    @abstractmethod
    def _get_endpoint_url(self, url_id: int) -> str:
        pass

    @abstractmethod
    def _get_endpoint_course_module(self, modname: str, instance: int, user_id: int | None = None) -> str:
        """
        Returns the endpoint path of the course module of an activity instance, resolving
        its visibility for user_id when given.
        """
        pass

    @abstractmethod
    def _get_endpoint_course(self, course_id: int) -> str:
        pass

    @abstractmethod
    def _get_endpoint_user(self, user_id: int) -> str:
        pass

    @abstractmethod
    def _get_endpoint_user_course_access(self, user_id: int) -> str:
        """
        Returns the endpoint path listing the courses (site course included) a user can access.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def _parse_endpoint_forum_posts(self, response: dict, page: int) -> ForumPostsListResponse:
        pass

    @abstractmethod
    def _parse_endpoint_urls(self, response: dict, page: int) -> UrlsListResponse:
        pass

    @abstractmethod
    def _parse_endpoint_forum_post_visibility(self, response: dict) -> bool:
        pass

    @abstractmethod
    def _parse_endpoint_user_course_access(self, response: dict | list) -> list[CourseAccess]:
        pass

    def _parse_endpoint_record(self, response: dict, model: type[T]) -> T:
        """
        Parses a single record. Override if the host wraps records in an envelope.
        """
        return model.model_validate(response)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_fetch_record(self, endpoint: str, model: type[T]) -> T | None:
        """Fetches a single record, None if the host does not know it.

        Raises:
            ClientRequestError: On any non-2xx status other than 404.
            httpx.HTTPError: If the host can not be reached.
        """
        resp = await self.do_request(method="GET", endpoint=endpoint)
        if resp.status_code == 404:
            return None
        if resp.status_code >= 300:
            raise ClientRequestError(f"Host request {endpoint} failed with status {resp.status_code}", status_code=resp.status_code)
        return self._parse_endpoint_record(resp.json(), model)

    async def _do_stream_pages(self, endpoint_builder: Callable[[int], str], parser: Callable[[dict, int], BaseModel], items_attr: str) -> AsyncIterator:
        page = 1
        while True:
            resp = await self.do_request(method="GET", endpoint=endpoint_builder(page), raise_on_error=True)
            list_response = parser(resp.json(), page)
            for item in getattr(list_response, items_attr):
                yield item
            self.logging.debug("Streamed %s page %d from host '%s' (%s overall).", items_attr, page, self.get_engine_name(), list_response.overallCount)
            if not list_response.nextPage:
                break
            page = list_response.nextPage

    ############# STREAMS ##############
    def do_stream_forum_posts(self, modified_from: int = 0) -> AsyncIterator[ForumPostRecord]:
        """Streams forum posts modified at or after modified_from, oldest first.

        Args:
            modified_from (int): Unix timestamp, inclusive.

        Returns:
            AsyncIterator[ForumPostRecord]: The changed posts joined with their forum.
        """
        return self._do_stream_pages(
            lambda page: self._get_endpoint_forum_posts(modified_from, page=page, page_size=self.PAGE_SIZE),
            self._parse_endpoint_forum_posts,
            "posts",
        )

    def do_stream_urls(self, modified_from: int = 0) -> AsyncIterator[UrlRecord]:
        """Streams url resources modified at or after modified_from, oldest first."""
        return self._do_stream_pages(
            lambda page: self._get_endpoint_urls(modified_from, page=page, page_size=self.PAGE_SIZE),
            self._parse_endpoint_urls,
            "urls",
        )

    ############# GET REQUESTS ##############
    async def do_fetch_forum_post(self, post_id: int) -> ForumPostRecord | None:
        return await self._do_fetch_record(self._get_endpoint_forum_post(post_id), ForumPostRecord)

    async def do_fetch_forum(self, forum_id: int) -> ForumDetails | None:
        return await self._do_fetch_record(self._get_endpoint_forum(forum_id), ForumDetails)

    async def do_fetch_discussion(self, discussion_id: int) -> ForumDiscussionDetails | None:
        return await self._do_fetch_record(self._get_endpoint_discussion(discussion_id), ForumDiscussionDetails)

    async def do_fetch_url(self, url_id: int) -> UrlRecord | None:
        return await self._do_fetch_record(self._get_endpoint_url(url_id), UrlRecord)

    async def do_fetch_course_module(self, modname: str, instance: int, user_id: int | None = None) -> CourseModuleDetails | None:
        """Fetches the course module of an activity instance.

        Args:
            modname (str): The module name, e.g. "forum".
            instance (int): The activity instance id.
            user_id (int | None): Resolve uservisible for this user.

        Returns:
            CourseModuleDetails | None: The course module, None if missing.
        """
        return await self._do_fetch_record(self._get_endpoint_course_module(modname, instance, user_id), CourseModuleDetails)

    async def do_fetch_course(self, course_id: int) -> CourseDetails | None:
        return await self._do_fetch_record(self._get_endpoint_course(course_id), CourseDetails)

    async def do_fetch_user(self, user_id: int) -> UserDetails | None:
        return await self._do_fetch_record(self._get_endpoint_user(user_id), UserDetails)

    async def do_check_forum_post_visible(self, post_id: int, user_id: int) -> bool:
        """Asks the host whether a user can see a forum post (group mode, time restrictions, ...)."""
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_forum_post_visibility(post_id, user_id), raise_on_error=True)
        return self._parse_endpoint_forum_post_visibility(resp.json())

    async def do_fetch_user_course_access(self, user_id: int) -> list[CourseAccess]:
        """Fetches the courses a user can access, each with its course modules.

        Args:
            user_id (int): The actor.

        Returns:
            list[CourseAccess]: Enrolled courses plus the site course.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_user_course_access(user_id), raise_on_error=True)
        return self._parse_endpoint_user_course_access(resp.json())

from urllib.parse import parse_qs, urlencode, urlparse

from shared.clients.host.HostClientInterface import HostClientInterface
from shared.clients.host.models.Course import CourseAccess
from shared.clients.host.models.ForumPost import ForumPostRecord, ForumPostsListResponse
from shared.clients.host.models.Url import UrlRecord, UrlsListResponse
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class HostClientWebservice(HostClientInterface):
    """Host client talking to the search webservice plugin of the learning platform.

    Listings are paged like {"results": [...], "count": 1234, "next": "<url with page=N>"}.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._wwwroot = self.get_config_val("WWWROOT", default=self._base_url, val_type="string")
        self._system_context_id = int(self.get_config_val("SYSTEM_CONTEXT_ID", default=1, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Webservice"

    def get_www_root(self) -> str:
        return self._wwwroot.rstrip("/")

    def get_system_context_id(self) -> int:
        return self._system_context_id

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/search/ping"

    def _get_listing_endpoint(self, path: str, modified_from: int, page: int, page_size: int) -> str:
        params = {"modifiedfrom": modified_from, "sort": "modified"}
        if page:
            params["page"] = page
        if page_size:
            params["page_size"] = page_size
        return f"{path}?{urlencode(params)}"

    def _get_endpoint_forum_posts(self, modified_from: int, page: int = 1, page_size: int = 500) -> str:
        return self._get_listing_endpoint("/api/search/forum/posts/", modified_from, page, page_size)

    def _get_endpoint_forum_post(self, post_id: int) -> str:
        return f"/api/search/forum/posts/{post_id}/"

    def _get_endpoint_forum(self, forum_id: int) -> str:
        return f"/api/search/forum/forums/{forum_id}/"

    def _get_endpoint_discussion(self, discussion_id: int) -> str:
        return f"/api/search/forum/discussions/{discussion_id}/"

    def _get_endpoint_forum_post_visibility(self, post_id: int, user_id: int) -> str:
        return f"/api/search/forum/posts/{post_id}/visible/?userid={user_id}"

    def _get_endpoint_urls(self, modified_from: int, page: int = 1, page_size: int = 500) -> str:
        return self._get_listing_endpoint("/api/search/url/urls/", modified_from, page, page_size)

    def _get_endpoint_url(self, url_id: int) -> str:
        return f"/api/search/url/urls/{url_id}/"

    def _get_endpoint_course_module(self, modname: str, instance: int, user_id: int | None = None) -> str:
        plain_url = f"/api/search/coursemodules/{modname}/{instance}/"
        if user_id is not None:
            plain_url += f"?userid={user_id}"
        return plain_url

    def _get_endpoint_course(self, course_id: int) -> str:
        return f"/api/search/courses/{course_id}/"

    def _get_endpoint_user(self, user_id: int) -> str:
        return f"/api/search/users/{user_id}/"

    def _get_endpoint_user_course_access(self, user_id: int) -> str:
        return f"/api/search/users/{user_id}/courses/"

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    ############### LIST RESPONSES ###############
    def _parse_endpoint_forum_posts(self, response: dict, page: int) -> ForumPostsListResponse:
        meta = self._parse_listing_meta(response, page)
        posts = [ForumPostRecord.model_validate(item) for item in response.get("results", [])]
        return ForumPostsListResponse(
            posts=posts,
            currentPage=meta["current_page"],
            nextPage=meta["next_page"],
            overallCount=meta["overall_results_count"],
        )

    def _parse_endpoint_urls(self, response: dict, page: int) -> UrlsListResponse:
        meta = self._parse_listing_meta(response, page)
        urls = [UrlRecord.model_validate(item) for item in response.get("results", [])]
        return UrlsListResponse(
            urls=urls,
            currentPage=meta["current_page"],
            nextPage=meta["next_page"],
            overallCount=meta["overall_results_count"],
        )

    def _parse_endpoint_user_course_access(self, response: dict | list) -> list[CourseAccess]:
        # the endpoint is not paged, but older plugin versions wrap the list like the listings
        items = response.get("results", []) if isinstance(response, dict) else response
        return [CourseAccess.model_validate(item) for item in items]

    def _parse_endpoint_forum_post_visibility(self, response: dict) -> bool:
        return bool(response.get("visible", False))

    def _parse_listing_meta(self, listing_response: dict, page: int) -> dict:
        """
        Parse the pagination metadata of a listing response.

        Args:
            listing_response (dict): The raw response from a listing endpoint.
            page (int): The page that was requested.

        Returns:
            dict: current_page, next_page and overall_results_count.
        """
        next_url = listing_response.get("next")
        next_page: int | None = None
        if next_url:
            params = parse_qs(urlparse(next_url).query)
            page_values = params.get("page", [])
            if page_values and page_values[0].isdigit():
                next_page = int(page_values[0])
        # a next link pointing back at the requested page would loop forever
        if next_page is not None and next_page <= page:
            self.logging.warning("Host listing returned a non advancing next page (%s after %s), stopping.", next_page, page)
            next_page = None

        return {
            "current_page": page,
            "next_page": next_page,
            "overall_results_count": listing_response.get("count"),
        }

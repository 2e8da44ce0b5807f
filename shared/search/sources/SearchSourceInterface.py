from abc import ABC, abstractmethod
from typing import Any, AsyncIterator
from urllib.parse import urlencode

from shared.clients.host.HostClientInterface import HostClientInterface
from shared.clients.host.models.CourseModule import CourseModuleDetails
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import AccessResult, ActorContext, ContextLevel
from shared.search.document.Document import Document
from shared.stores.ConfigStoreInterface import ConfigStoreInterface


class SearchSourceInterface(ABC):
    """
    Base class of the components filling the search engine with their content.

    An implementation streams its changed records ordered by modification time,
    turns each record into a Document and answers the query time access check
    for one of its items. The component name is the frankenstyle name of the
    owning plugin, e.g. "mod_forum"; everything before the first underscore is
    the component type.
    """

    COMPONENT_NAME: str = ""
    VISIBLE_NAME: str = ""

    # context levels the source is working on
    LEVELS: list[ContextLevel] = [ContextLevel.SYSTEM]

    # files area of the items, None if the items have no files
    FILEAREA: str | None = None

    def __init__(
        self,
        helper_config: HelperConfig,
        host_client: HostClientInterface,
        config_store: ConfigStoreInterface,
        document_class: type[Document] = Document,
    ):
        if "_" not in self.COMPONENT_NAME:
            raise ValueError(f"{self.__class__.__name__} must define its frankenstyle COMPONENT_NAME, got '{self.COMPONENT_NAME}'.")

        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._host_client = host_client
        self._config_store = config_store
        self._document_class = document_class

        self._component_name = self.COMPONENT_NAME
        self._component_type = self.COMPONENT_NAME.split("_", 1)[0]

        # run scoped caches, keyed by the host ids
        self._users_data: dict[int, str] = {}
        self._courses_data: dict[int, str] = {}
        self._cms_data: dict[tuple[str, int], CourseModuleDetails] = {}
        self._context_cms: dict[int, CourseModuleDetails] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    @classmethod
    def is_supported(cls) -> bool:
        """Whether the component supports global search, sources with extra requirements override it."""
        return True

    @classmethod
    def get_levels(cls) -> list[ContextLevel]:
        return list(cls.LEVELS)

    @classmethod
    def get_filearea(cls) -> str | None:
        return cls.FILEAREA

    def get_component_name(self) -> str:
        return self._component_name

    def get_component_type(self) -> str:
        """
        Returns the plugin type of the component, or "core" for core subsystems.
        """
        return self._component_type

    def get_component_visible_name(self) -> str:
        if self.VISIBLE_NAME:
            return self.VISIBLE_NAME
        return self._component_name.split("_", 1)[1].capitalize()

    ################ CONFIG ##################
    def get_config_var_name(self) -> tuple[str, str]:
        """
        Returns where the source settings live as (plugin, varname).

        Plugins keep their settings in their own scope, core subsystems under "search".
        """
        if self._component_type == "core":
            return ("search", self._component_name)
        return (self._component_name, "search")

    def is_enabled(self) -> bool:
        """
        Whether the administrator enabled the source. An unset switch counts as enabled.
        """
        plugin, varname = self.get_config_var_name()
        value = self._config_store.get_config(plugin, f"enable{varname}")
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes")
        return bool(value)

    def get_host_client(self) -> HostClientInterface:
        return self._host_client

    ##########################################
    ################ CACHES ##################
    ##########################################

    async def get_user_fullname(self, userid: int) -> str | None:
        """
        Returns the full name of a user, None if the user does not exist.
        """
        if userid not in self._users_data:
            user = await self._host_client.do_fetch_user(userid)
            if user is None:
                return None
            self._users_data[userid] = user.get_fullname()
        return self._users_data[userid]

    async def get_course_fullname(self, courseid: int) -> str | None:
        if courseid not in self._courses_data:
            course = await self._host_client.do_fetch_course(courseid)
            if course is None:
                return None
            self._courses_data[courseid] = course.fullname
        return self._courses_data[courseid]

    async def get_cm(self, modname: str, instance: int) -> CourseModuleDetails | None:
        """
        Returns the course module of an activity instance, None if it does not exist.

        Cached without the actor's visibility, use get_user_cm() for access checks.
        """
        key = (modname, instance)
        if key not in self._cms_data:
            cm = await self._host_client.do_fetch_course_module(modname, instance)
            if cm is None:
                return None
            self._cms_data[key] = cm
            self._context_cms[cm.contextid] = cm
        return self._cms_data[key]

    async def get_user_cm(self, modname: str, instance: int, actor: ActorContext) -> CourseModuleDetails | None:
        """
        Returns the course module with uservisible resolved for the actor. Never cached.
        """
        cm = await self._host_client.do_fetch_course_module(modname, instance, user_id=actor.userid)
        if cm is not None:
            self._context_cms[cm.contextid] = cm
        return cm

    def get_cached_cm_by_context(self, contextid: int) -> CourseModuleDetails | None:
        return self._context_cms.get(contextid)

    def reset_caches(self) -> None:
        """
        Drops the run and request scoped caches. The manager calls it before every indexing run.
        """
        self._users_data = {}
        self._courses_data = {}
        self._cms_data = {}
        self._context_cms = {}

    ##########################################
    ################ HELPERS #################
    ##########################################

    def new_document(self, itemid: int) -> Document:
        """
        Returns an empty document of this component, using the engine's document class.
        """
        return self._document_class(itemid, self._component_name)

    def build_url(self, path: str, **params: Any) -> str:
        url = f"{self._host_client.get_www_root()}{path}"
        if params:
            url += f"?{urlencode(params)}"
        return url

    ##########################################
    ############### CONTRACT #################
    ##########################################

    @abstractmethod
    def get_changed_records(self, since: int = 0) -> AsyncIterator[Any]:
        """
        Streams the records modified at or after since, ordered by modification time ascending.

        The stream is restartable: asking again with the same since yields the same
        records again (plus newer ones).
        """
        pass

    @abstractmethod
    def get_record_key(self, record: Any) -> tuple[int, int]:
        """
        Returns the id and the modification time of a record of get_changed_records().
        """
        pass

    @abstractmethod
    async def get_document(self, record: Any) -> Document | None:
        """
        Returns the document of a record, None if its container or author can not be resolved.
        """
        pass

    @abstractmethod
    async def check_access(self, itemid: int, actor: ActorContext) -> AccessResult:
        """
        Whether the actor can access the item right now.

        Returns:
            AccessResult: DELETED if the item or its container is gone, DENIED if it exists
            but is hidden from the actor or the host could not tell, GRANTED otherwise.
        """
        pass

    @abstractmethod
    async def get_doc_url(self, doc: Document) -> str:
        """
        Returns a url to the document, it might match get_context_url().
        """
        pass

    @abstractmethod
    async def get_context_url(self, doc: Document) -> str:
        pass

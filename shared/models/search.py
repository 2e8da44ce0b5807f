"""Pydantic models and constants shared by the search manager, sources and engines."""

from enum import IntEnum

from pydantic import BaseModel

TYPE_TEXT = 1                   # the only document type the backend schema represents
MAX_RESULTS = 100               # max number of results retrieved from the search engine
DISPLAY_RESULTS_PER_PAGE = 10


class AccessResult(IntEnum):
    """Query-time access decision returned by a search source for one item."""

    DENIED = 0
    GRANTED = 1
    DELETED = 2


class ContextLevel(IntEnum):
    """Access-context granularity a search source operates at."""

    SYSTEM = 10
    COURSE = 50
    MODULE = 70


class SearchFilters(BaseModel):
    """Query text plus the optional filters of a search request.

    Attributes:
        q:          Free text query (required).
        title:      Title filter.
        author:     Author full name filter.
        component:  Restrict results to one search source (e.g. "mod_forum").
        timestart:  Unix timestamp lower bound on modified, 0 means unbounded.
        timeend:    Unix timestamp upper bound on modified, 0 means unbounded.
        page:       Zero-based result page.
    """

    q: str
    title: str | None = None
    author: str | None = None
    component: str | None = None
    timestart: int = 0
    timeend: int = 0
    page: int = 0


class ActorContext(BaseModel):
    """The user a query or access check is executed for."""

    userid: int
    is_admin: bool = False
    is_guest: bool = False
    is_logged_in: bool = True


class AccessContextSet(BaseModel):
    """Contexts an actor may see, per search source.

    ``unrestricted`` is the administrative bypass: the actor may see everything
    and ``contexts`` is ignored.
    """

    unrestricted: bool = False
    contexts: dict[str, set[int]] = {}

    @classmethod
    def everything(cls) -> "AccessContextSet":
        return cls(unrestricted=True)

    def add(self, component: str, contextid: int) -> None:
        self.contexts.setdefault(component, set()).add(contextid)

    def is_empty(self) -> bool:
        """True if the actor can not access a single context."""
        return not self.unrestricted and not any(self.contexts.values())

    def get_component_contexts(self, component: str) -> set[int]:
        return set(self.contexts.get(component, set()))

    def get_all_contexts(self) -> set[int]:
        """Union of the contexts of every search source."""
        all_contexts: set[int] = set()
        for component_contexts in self.contexts.values():
            all_contexts.update(component_contexts)
        return all_contexts

    def allows(self, contextid: int, component: str | None = None) -> bool:
        """Whether a document in the given context may be returned.

        Args:
            contextid (int): The document context id.
            component (str | None): Restrict the check to one source's contexts.

        Returns:
            bool: True if the context is visible to the actor.
        """
        if self.unrestricted:
            return True
        if component:
            return contextid in self.contexts.get(component, set())
        return contextid in self.get_all_contexts()


class SourceIndexState(BaseModel):
    """Persisted indexing counters and watermark of one search source."""

    indexingstart: int = 0
    indexingend: int = 0
    lastindexrun: int = 0
    docsignored: int = 0
    docsprocessed: int = 0
    recordsprocessed: int = 0


STATE_VARS = tuple(SourceIndexState.model_fields.keys())


class SearchIndexedEvent(BaseModel):
    """Emitted once after an indexing run that staged at least one document.

    Attributes:
        timecreated:  Unix timestamp the run finished at.
        components:   The search sources that staged documents during the run.
    """

    timecreated: int
    components: list[str] = []

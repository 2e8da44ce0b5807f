from pydantic import BaseModel

from shared.models.search import ActorContext, SearchFilters


class QueryRequest(BaseModel):
    """A search request issued on behalf of a host user."""
    q: str
    title: str | None = None
    author: str | None = None
    component: str | None = None
    timestart: int = 0
    timeend: int = 0
    page: int = 0

    userid: int
    is_admin: bool = False
    is_guest: bool = False
    is_logged_in: bool = True

    def to_filters(self) -> SearchFilters:
        return SearchFilters(
            q=self.q,
            title=self.title,
            author=self.author,
            component=self.component,
            timestart=self.timestart,
            timeend=self.timeend,
            page=self.page,
        )

    def to_actor(self) -> ActorContext:
        return ActorContext(
            userid=self.userid,
            is_admin=self.is_admin,
            is_guest=self.is_guest,
            is_logged_in=self.is_logged_in,
        )

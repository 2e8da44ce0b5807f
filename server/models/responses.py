from pydantic import BaseModel

from shared.models.search import SourceIndexState


class QueryResultItem(BaseModel):
    id: str
    itemid: int
    component: str
    componentvisiblename: str | None
    title: str
    content: str
    userfullname: str | None
    courseid: int
    coursefullname: str | None
    contextid: int
    created: int | None
    modified: int
    docurl: str
    contexturl: str
    filearea: str | None


class QueryResponse(BaseModel):
    query: str
    results: list[QueryResultItem]
    total: int
    page: int
    perpage: int


class IndexStatusResponse(BaseModel):
    indexing: bool
    components: dict[str, SourceIndexState]

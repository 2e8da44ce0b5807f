"""Host url resource models."""

from pydantic import BaseModel


class UrlRecord(BaseModel):
    """
    A url resource, as streamed for indexing.
    """
    id: int
    course: int
    name: str = ""
    intro: str | None = None
    introformat: int = 1
    externalurl: str = ""
    timemodified: int


class UrlsListResponse(BaseModel):
    """
    Represents one page of changed url resources.
    """
    urls: list[UrlRecord] = []
    currentPage: int
    nextPage: int | None = None
    overallCount: int | None = None

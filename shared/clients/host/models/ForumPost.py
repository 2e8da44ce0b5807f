"""Host forum models."""

from pydantic import BaseModel


class ForumPostRecord(BaseModel):
    """
    A forum post joined with the forum it belongs to, as streamed for indexing.
    """
    id: int
    discussion: int
    parent: int = 0
    userid: int
    subject: str = ""
    message: str = ""
    messageformat: int = 1
    created: int
    modified: int
    forumid: int
    courseid: int
    forumname: str = ""
    forumintro: str | None = None
    forumintroformat: int = 1


class ForumDetails(BaseModel):
    id: int
    course: int
    name: str = ""
    intro: str | None = None
    introformat: int = 1


class ForumDiscussionDetails(BaseModel):
    id: int
    forum: int
    course: int
    name: str = ""
    userid: int | None = None


class ForumPostsListResponse(BaseModel):
    """
    Represents one page of changed forum posts.
    """
    posts: list[ForumPostRecord] = []
    currentPage: int
    nextPage: int | None = None
    overallCount: int | None = None

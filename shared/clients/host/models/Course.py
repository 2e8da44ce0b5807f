"""Host course models: what the search layer needs to know about a course."""

from pydantic import BaseModel

from shared.clients.host.models.CourseModule import CourseModuleDetails


class CourseDetails(BaseModel):
    """
    Represents a single course as returned by a host client.
    """
    id: int
    fullname: str = ""
    shortname: str | None = None
    visible: bool = True
    contextid: int


class CourseAccess(CourseDetails):
    """
    A course the actor is enrolled in (or the site course), seen from that actor.

    is_site marks the site front page course, which every logged in user and guest can access.
    can_view_hidden tells whether the actor may see the course while it is hidden.
    modules lists the course modules with the actor's visibility already resolved by the host.
    """
    is_site: bool = False
    can_view_hidden: bool = False
    modules: list[CourseModuleDetails] = []

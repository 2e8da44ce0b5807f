"""Host course module model."""

from pydantic import BaseModel


class CourseModuleDetails(BaseModel):
    """
    Represents a course module (an activity instance placed in a course).

    uservisible is resolved by the host for the user the module was requested for,
    it is True when no user was given.
    """
    id: int
    course: int
    modname: str
    instance: int
    contextid: int
    visible: bool = True
    uservisible: bool = True

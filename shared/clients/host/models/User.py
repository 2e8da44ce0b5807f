"""Host user model."""

from pydantic import BaseModel


class UserDetails(BaseModel):
    id: int
    firstname: str = ""
    lastname: str = ""
    alternatename: str | None = None

    def get_fullname(self) -> str:
        return f"{self.firstname} {self.lastname}".strip()

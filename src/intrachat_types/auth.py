from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field


def compose_display_name(first_name: Optional[str], last_name: Optional[str], fallback: str) -> str:
    name = " ".join(part for part in (first_name, last_name) if part)
    return name or fallback


class UserSummary(BaseModel):
    """Public view of a user, safe to fan out to other connections."""
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    avatar: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Identity(BaseModel):
    """Authenticated user resolved from a bearer credential."""
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    roles: list[str] = Field(default_factory=list, description="Role names granted to the user")

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def display_name(self) -> str:
        return compose_display_name(self.first_name, self.last_name, self.email or self.id)

    def summary(self) -> UserSummary:
        return UserSummary(
            id=self.id,
            first_name=self.first_name,
            last_name=self.last_name,
            display_name=self.display_name,
            avatar=self.avatar,
        )

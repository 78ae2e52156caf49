from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from schemas.bookmark import BookmarkWithTags, TagRow


class FilterCommand(BaseModel):
    type: Literal["filter"]
    query: str = ""
    tag_ids: list[str] = Field(default_factory=list)


class RefreshCommand(BaseModel):
    type: Literal["refresh"]


LiveCommand = Annotated[FilterCommand | RefreshCommand, Field(discriminator="type")]
live_command_adapter: TypeAdapter[FilterCommand | RefreshCommand] = TypeAdapter(LiveCommand)


class LiveSnapshot(BaseModel):
    """what a live view sends after every local state change."""

    type: Literal["snapshot"] = "snapshot"
    state: str
    error: str | None
    bookmarks: list[BookmarkWithTags]
    tags: list[TagRow]
    total: int

from typing import Literal

from pydantic import BaseModel, ConfigDict, StrictStr


class JoinRoomMessage(BaseModel):
    """Client request to join (or switch to) a room."""

    model_config = ConfigDict(extra="allow")

    type: Literal["join_room"]
    room: StrictStr


class JoinedMessage(BaseModel):
    type: Literal["joined"] = "joined"
    room: str

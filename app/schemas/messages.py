from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field


# Client → Server messages

class ClientAudioFrame(BaseModel):
    type: Literal["audioFrame"] = "audioFrame"
    data: str  # base64 audio chunk


class ClientSetTarget(BaseModel):
    type: Literal["setTarget"] = "setTarget"
    url: str = Field(..., min_length=1, validation_alias=AliasChoices("url", "notionUrl"))


class ClientCheckAccess(BaseModel):
    type: Literal["checkAccess"] = "checkAccess"
    url: str = Field(..., min_length=1)


# HTTP bodies

class CheckAccessRequest(BaseModel):
    notion_url: str


class CheckAccessResponse(BaseModel):
    block_id: Optional[str] = None
    page_id: Optional[str] = None

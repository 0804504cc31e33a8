# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Request / Response schemas — planning-poker endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SessionCreateRequest(BaseModel):
    owner_name: str = Field(..., min_length=1, max_length=255)
    session_id: Optional[str] = Field(
        default=None,
        pattern="^[0-9a-f]{8}$",
        description="Client-chosen id; generated when omitted",
    )


class JoinRequest(BaseModel):
    name: str = Field(..., max_length=255)
    participant_id: Optional[str] = Field(
        default=None, description="Previously issued id, to reconnect"
    )


class VoteRequest(BaseModel):
    participant_id: str = Field(..., min_length=1)
    vote: str = Field(..., description="One of 0.5, 1, 2, 3, 5")


class OwnerActionRequest(BaseModel):
    actor: str = Field(..., min_length=1, description="Name of the caller")


class ResetRequest(OwnerActionRequest):
    archive: bool = True


class StoryRequest(OwnerActionRequest):
    story: str = Field(default="", max_length=1000)


class TimerRequest(OwnerActionRequest):
    seconds: int = Field(..., description="0 clears the timer")

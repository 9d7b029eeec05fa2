"""Branch and worldline models."""

from typing import Literal

from pydantic import BaseModel, Field

DegradedReason = Literal["branch_point_not_found", "source_lookup_failed"]


class BranchResult(BaseModel):
    """Outcome of ``Session.branch``, handed to the caller for persistence."""

    newSessionId: str | None
    parentSessionId: str
    branchPointMessageUuid: str
    branchPointParentUuid: str | None = Field(
        default=None,
        description="Message immediately before the branch point (the resume anchor)",
    )
    degradedReason: DegradedReason | None = Field(
        default=None,
        description="Set when the branch fell back to a full-history fork",
    )


class BranchRecord(BaseModel):
    """Durable description of one branch in a worldline."""

    sessionId: str
    parentSessionId: str
    branchPointMessageUuid: str
    branchPointParentUuid: str | None = None
    worldlineId: str = Field(description="Session ID of the worldline root")
    createdAt: float


class WorldlineSibling(BaseModel):
    sessionId: str
    parentSessionId: str | None = None
    branchPointMessageUuid: str | None = None
    branchPointParentUuid: str | None = None
    createdAt: float = 0
    lastModifiedAt: float | None = None


class NavigationGroup(BaseModel):
    """Sessions that share a history point, parent worldline first."""

    anchorUuid: str
    sessions: list[WorldlineSibling]

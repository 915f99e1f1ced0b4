from pydantic import BaseModel, Field


class CampaignCreateIn(BaseModel):
    group_id: int
    name: str = Field(..., min_length=1)
    starts_at: str
    ends_at: str
    priority: int = 1
    enabled: bool = True


class CampaignUpdateIn(BaseModel):
    name: str | None = None
    starts_at: str | None = None
    ends_at: str | None = None
    priority: int | None = None
    enabled: bool | None = None


class CampaignOut(BaseModel):
    id: int
    groupId: int
    name: str
    startsAt: str
    endsAt: str
    enabled: bool
    priority: int
    createdBy: str | None = None
    status: str

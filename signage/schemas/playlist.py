from pydantic import BaseModel

from signage.schemas.slide import SlideOut


class PlaylistCampaignOut(BaseModel):
    id: int
    name: str


class PlaylistOut(BaseModel):
    groupId: int
    campaign: PlaylistCampaignOut | None = None
    coverSlides: list[SlideOut]
    slides: list[SlideOut]

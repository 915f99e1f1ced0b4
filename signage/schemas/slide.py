from pydantic import BaseModel


class SlideOut(BaseModel):
    id: int
    type: str
    name: str
    src: str
    duration: int
    isLocked: bool


class SlideReorderIn(BaseModel):
    group_id: int
    campaign_id: int | None = None
    index: int
    direction: int

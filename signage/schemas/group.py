from pydantic import BaseModel, Field


class GroupOut(BaseModel):
    id: int
    name: str
    displayOrder: int


class GroupReorderIn(BaseModel):
    order: list[int] = Field(default_factory=list)

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from signage.db import Base

SLIDE_TYPES = ("image", "video", "pdf")


class Slide(Base):
    __tablename__ = "slide"
    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey("group.id"), nullable=False, index=True)
    campaign_id = Column(Integer, ForeignKey("campaign.id"), nullable=True, index=True)
    type = Column(String(16), nullable=False)
    name = Column(String, nullable=False)
    src = Column(String, nullable=False, index=True)
    duration = Column(Integer, nullable=False, default=5000)  # milliseconds
    position = Column(Integer, nullable=False)
    is_locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

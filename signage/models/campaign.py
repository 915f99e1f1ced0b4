from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from signage.db import Base


class Campaign(Base):
    __tablename__ = "campaign"
    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey("group.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    # Normalized UTC ISO-8601 text; lexical order matches chronological order.
    starts_at = Column(String(40), nullable=False)
    ends_at = Column(String(40), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=False, default=1)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

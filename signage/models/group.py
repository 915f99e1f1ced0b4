from sqlalchemy import Column, Integer, String
from signage.db import Base


class Group(Base):
    __tablename__ = "group"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    display_order = Column(Integer, nullable=False, default=0)
    background = Column(String, nullable=False, default="#ffffff")
    default_image = Column(String, nullable=True)


def display_order():
    """Ordering shared by group listings, the playlist fallback and the monitor."""
    return (Group.display_order.asc(), Group.id.asc())

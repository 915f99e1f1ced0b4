from sqlalchemy.orm import Session
from signage.db import SessionLocal, Base, engine, ensure_sqlite_schema
from signage.models.group import Group
from signage.models.campaign import Campaign  # noqa: F401
from signage.models.slide import Slide  # noqa: F401

DEFAULT_GROUPS = ["Operations", "Marketing", "Sales"]


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    ensure_sqlite_schema()
    db: Session = SessionLocal()
    try:
        existing = {name for (name,) in db.query(Group.name).all()}
        for index, name in enumerate(DEFAULT_GROUPS, start=1):
            if name in existing:
                continue
            db.add(Group(name=name, display_order=index))
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    seed()

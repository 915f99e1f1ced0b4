from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy import text
import os

DATABASE_URL = (os.getenv("SIGNAGE_DATABASE_URL", "") or "").strip() or "sqlite:///./signage.db"

engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


if DATABASE_URL.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def ensure_sqlite_schema():
    """
    Lightweight runtime schema patching for SQLite.

    `Base.metadata.create_all()` won't add new columns to existing tables.
    This keeps local/dev installs working without requiring Alembic.
    """
    if not DATABASE_URL.startswith("sqlite"):
        return

    with engine.begin() as conn:
        group_cols = conn.execute(text('PRAGMA table_info("group")')).fetchall()
        group_col_names = {row[1] for row in group_cols}  # (cid, name, type, notnull, dflt_value, pk)
        if group_cols and "display_order" not in group_col_names:
            conn.execute(text('ALTER TABLE "group" ADD COLUMN display_order INTEGER NOT NULL DEFAULT 0'))
        if group_cols and "default_image" not in group_col_names:
            conn.execute(text('ALTER TABLE "group" ADD COLUMN default_image VARCHAR'))

        if group_cols:
            unordered = conn.execute(
                text('SELECT COUNT(*) FROM "group" WHERE display_order IS NULL OR display_order = 0')
            ).scalar()
            if unordered:
                rows = conn.execute(text('SELECT id FROM "group" ORDER BY display_order, id')).fetchall()
                for index, (group_id,) in enumerate(rows, start=1):
                    conn.execute(
                        text('UPDATE "group" SET display_order=:order WHERE id=:id'),
                        {"order": index, "id": group_id},
                    )

        slide_cols = conn.execute(text("PRAGMA table_info(slide)")).fetchall()
        slide_col_names = {row[1] for row in slide_cols}
        if slide_cols and "campaign_id" not in slide_col_names:
            conn.execute(text("ALTER TABLE slide ADD COLUMN campaign_id INTEGER REFERENCES campaign(id)"))
        if slide_cols and "is_locked" not in slide_col_names:
            conn.execute(text("ALTER TABLE slide ADD COLUMN is_locked INTEGER NOT NULL DEFAULT 0"))
        if slide_cols:
            conn.execute(text("UPDATE slide SET is_locked=0 WHERE is_locked IS NULL"))
            conn.execute(text("UPDATE slide SET duration=1000 WHERE duration IS NULL OR duration < 1000"))

        campaign_cols = conn.execute(text("PRAGMA table_info(campaign)")).fetchall()
        campaign_col_names = {row[1] for row in campaign_cols}
        if campaign_cols and "priority" not in campaign_col_names:
            conn.execute(text("ALTER TABLE campaign ADD COLUMN priority INTEGER NOT NULL DEFAULT 1"))
        if campaign_cols and "created_by" not in campaign_col_names:
            conn.execute(text("ALTER TABLE campaign ADD COLUMN created_by VARCHAR"))
        if campaign_cols:
            conn.execute(text("UPDATE campaign SET priority=1 WHERE priority IS NULL OR priority < 1"))

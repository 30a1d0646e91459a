import os
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from pulse.db.models import Base

# Override with DB_PATH when needed.
DB_PATH = os.getenv("DB_PATH", "/var/data/pulse.db")

connect_args = {"check_same_thread": False}


def _build_engine(db_path: str):
    db_parent = Path(db_path).expanduser().resolve().parent
    db_parent.mkdir(parents=True, exist_ok=True)
    database_url = f"sqlite:///{db_path}"
    return create_engine(database_url, connect_args=connect_args)


engine = _build_engine(DB_PATH)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def configure_database(db_path: str) -> None:
    global DB_PATH, engine
    DB_PATH = db_path
    engine = _build_engine(DB_PATH)
    SessionLocal.configure(bind=engine)


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)
    # Lightweight forward-compatible column upgrades for SQLite without full migrations.
    with engine.begin() as conn:
        settings_columns = {
            row[1] for row in conn.execute(text("PRAGMA table_info(client_reminder_settings)")).fetchall()
        }
        if "daily_checkin_reminders_enabled" not in settings_columns:
            conn.execute(
                text(
                    "ALTER TABLE client_reminder_settings "
                    "ADD COLUMN daily_checkin_reminders_enabled BOOLEAN NOT NULL DEFAULT 1"
                )
            )

        trigger_columns = {row[1] for row in conn.execute(text("PRAGMA table_info(engagement_triggers)")).fetchall()}
        if "resolved_at" not in trigger_columns:
            conn.execute(text("ALTER TABLE engagement_triggers ADD COLUMN resolved_at DATETIME"))


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()

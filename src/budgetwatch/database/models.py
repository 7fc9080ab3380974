"""SQLAlchemy models for budgetwatch database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Index,
    JSON,
    create_engine,
    text,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()

OPEN_DEDUPE_INDEX = "uq_notifications_open_dedupe"


class Notification(Base):
    """Notification model."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False)
    event_type = Column(String, nullable=False)
    entity_type = Column(String, nullable=False, default="generic")
    entity_id = Column(String, nullable=True)
    reference_id = Column(String, nullable=True)
    dedupe_key = Column(String, nullable=False)
    severity = Column(String, nullable=False)
    message_key = Column(String, nullable=False)
    params = Column(JSON, nullable=False, default=dict)
    cta_label_key = Column(String, nullable=True)
    cta_target = Column(String, nullable=True)
    status = Column(String, nullable=False, default="unread")
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(DateTime, nullable=True)
    read_at = Column(DateTime, nullable=True)
    dismissed_at = Column(DateTime, nullable=True)

    # At most one open row per (tenant_id, dedupe_key)
    __table_args__ = (
        Index(
            OPEN_DEDUPE_INDEX,
            "tenant_id",
            "dedupe_key",
            unique=True,
            sqlite_where=text("dismissed_at IS NULL"),
            postgresql_where=text("dismissed_at IS NULL"),
        ),
        Index("ix_notifications_tenant_dedupe", "tenant_id", "dedupe_key"),
        Index("ix_notifications_tenant_reference", "tenant_id", "event_type", "reference_id"),
    )


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)

from sqlalchemy import create_engine, Column, Integer, String, Float, DateTime, Boolean, Text, Index
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime, timezone


def utc_now():
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)

Base = declarative_base()


class ScrapeTemplate(Base):
    __tablename__ = 'scrape_templates'

    id = Column(String, primary_key=True)
    label = Column(String)
    url = Column(Text, nullable=False)

    # Slot field as stored upstream: JSON-encoded int, string or list
    slots = Column(Text)
    slot_id = Column(Text)  # Legacy single-slot field

    # Template-level overrides
    offset_hours = Column(Float)
    duration_hours = Column(Float)

    active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime, default=utc_now)


class SlotDefinitionRow(Base):
    __tablename__ = 'slot_definitions'

    id = Column(String, primary_key=True)
    label = Column(String)
    offset_hours = Column(Float)
    duration_hours = Column(Float)
    created_at = Column(DateTime, default=utc_now)


class ScrapeExecution(Base):
    __tablename__ = 'scrape_executions'

    id = Column(Integer, primary_key=True)
    scraped_at = Column(DateTime, nullable=False, default=utc_now)

    # Window metadata
    template_id = Column(String, nullable=False, index=True)
    template_label = Column(String)
    slot_id = Column(String)
    slot_legacy = Column(Integer)
    offset_used_hours = Column(Float)
    duration_used_hours = Column(Float)
    start_used_iso = Column(String)
    end_used_iso = Column(String)

    records = Column(Text, nullable=False)  # JSON array of result records

    __table_args__ = (
        Index('ix_executions_template_scraped', 'template_id', 'scraped_at'),
    )


# Database setup - import settings for database URL
from service.config import settings

engine = create_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,    # Verify connections before use (handles stale connections)
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db():
    Base.metadata.create_all(bind=engine)

from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class Survey(Base):
    """Teacher-authored survey definition."""

    __tablename__ = "surveys"
    id = Column(String, primary_key=True)
    title = Column(String)
    description = Column(Text)
    survey_type = Column(String)  # daily, weekly, monthly, custom, template, ai-generated
    teacher_id = Column(String)
    class_code = Column(String)
    question_ids = Column(JSON)  # ordered list of question id strings
    created_at = Column(DateTime, default=datetime.utcnow)


class SurveyResponse(Base):
    """One submitted answer batch."""

    __tablename__ = "survey_responses"
    id = Column(String, primary_key=True)
    student_id = Column(String, index=True)
    survey_id = Column(String, nullable=True)  # missing on legacy batches
    survey_type = Column(String)
    grade = Column(Integer)
    class_code = Column(String)
    responses = Column(JSON)  # [{"questionId", "answer", "domain"}, ...]
    submitted_at = Column(DateTime, default=datetime.utcnow)


class SurveyIdentityLinkRecord(Base):
    __tablename__ = "survey_identity_links"
    id = Column(Integer, primary_key=True)
    answer_batch_id = Column(String, unique=True, nullable=False)
    survey_id = Column(String, nullable=False)
    method = Column(String, nullable=False)  # template-pattern, overlap-match, fallback-default
    overlap_ratio = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


def get_engine(db_path=None, url=None):
    """Returns a SQLAlchemy engine.

    ``url`` (e.g. from DATABASE_URL) wins over the SQLite file path.
    """
    if url:
        return create_engine(url)
    return create_engine(f"sqlite:///{db_path}")


def init_db(engine):
    """Creates all tables in the database."""
    Base.metadata.create_all(engine)


def get_session(engine):
    """Returns a new session."""
    Session = sessionmaker(bind=engine)
    return Session()

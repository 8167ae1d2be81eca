from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.sql import func

from studia.db.database import Base


class StudyResult(Base):
    __tablename__ = "study_results"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)  # Verified auth subject

    # Source document
    file_name = Column(String(255), nullable=False)
    storage_path = Column(String(1024), nullable=False)

    # Generated content
    summary = Column(Text, nullable=False)
    key_concepts = Column(JSON, nullable=False, default=list)
    flashcards = Column(JSON, nullable=False, default=list)
    quiz = Column(JSON, nullable=False, default=list)
    hard_quiz = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

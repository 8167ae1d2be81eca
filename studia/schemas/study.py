from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class KeyConcept(BaseModel):
    """A term and its definition."""
    term: str
    definition: str


class Flashcard(BaseModel):
    """A single flashcard."""
    question: str
    answer: str


class QuizItem(BaseModel):
    """A four-option multiple choice question."""
    question: str
    options: list[str] = Field(min_length=4, max_length=4)
    correct_index: int = Field(alias="correctIndex", ge=0, le=3)
    explanation: str = ""

    class Config:
        populate_by_name = True


class AnalysisResult(BaseModel):
    """Everything generated from one document. Serialised with camelCase aliases."""
    summary: str = Field(min_length=1)
    key_concepts: list[KeyConcept] = Field(default_factory=list, alias="keyConceptsList")
    flashcards: list[Flashcard] = Field(default_factory=list)
    quiz: list[QuizItem] = Field(default_factory=list)
    hard_quiz: list[QuizItem] = Field(default_factory=list, alias="hardQuiz")

    class Config:
        populate_by_name = True
        frozen = True


class MaterialRequest(BaseModel):
    """Body of both pipeline endpoints. ``userId`` is accepted but never trusted."""
    storage_path: str | None = Field(default=None, alias="storagePath")
    file_name: str | None = Field(default=None, alias="fileName")
    user_id: str | None = Field(default=None, alias="userId")

    class Config:
        populate_by_name = True


class StudyResultResponse(BaseModel):
    """A persisted study result row."""
    id: int
    user_id: str
    file_name: str
    storage_path: str
    summary: str
    key_concepts: list[Any]
    flashcards: list[Any]
    quiz: list[Any]
    hard_quiz: list[Any]
    created_at: datetime | None = None

    class Config:
        from_attributes = True

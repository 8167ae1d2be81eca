from studia.schemas.study import (
    AnalysisResult,
    Flashcard,
    KeyConcept,
    MaterialRequest,
    QuizItem,
    StudyResultResponse,
)

__all__ = [
    "AnalysisResult", "Flashcard", "KeyConcept", "QuizItem",
    "MaterialRequest", "StudyResultResponse",
]

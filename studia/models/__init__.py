from studia.models.study_result import StudyResult

__all__ = [
    "StudyResult",
]

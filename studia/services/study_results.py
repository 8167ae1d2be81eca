from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studia.core.logging_config import get_logger
from studia.models.study_result import StudyResult
from studia.schemas.study import AnalysisResult

logger = get_logger(__name__)


def save_study_result(
    db: Session,
    *,
    user_id: str,
    file_name: str,
    storage_path: str,
    result: AnalysisResult,
) -> StudyResult:
    """Insert one analysis result owned by ``user_id``."""
    data = result.model_dump(by_alias=True)
    row = StudyResult(
        user_id=user_id,
        file_name=file_name,
        storage_path=storage_path,
        summary=result.summary,
        key_concepts=data["keyConceptsList"],
        flashcards=data["flashcards"],
        quiz=data["quiz"],
        hard_quiz=data["hardQuiz"],
    )
    db.add(row)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(row)
    logger.info(f"Saved study result {row.id} for user {user_id}")
    return row


def list_study_results(db: Session, user_id: str) -> list[StudyResult]:
    return (
        db.query(StudyResult)
        .filter(StudyResult.user_id == user_id)
        .order_by(StudyResult.created_at.desc(), StudyResult.id.desc())
        .all()
    )


def get_study_result(db: Session, user_id: str, result_id: int) -> StudyResult | None:
    return (
        db.query(StudyResult)
        .filter(StudyResult.id == result_id, StudyResult.user_id == user_id)
        .first()
    )


def delete_study_result(db: Session, user_id: str, result_id: int) -> bool:
    row = get_study_result(db, user_id, result_id)
    if row is None:
        return False
    db.delete(row)
    db.commit()
    logger.info(f"Deleted study result {result_id} for user {user_id}")
    return True

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from studia.api.deps import get_current_identity
from studia.core.security import VerifiedIdentity
from studia.db.database import get_db
from studia.schemas.study import StudyResultResponse
from studia.services.study_results import (
    delete_study_result,
    get_study_result,
    list_study_results,
)

router = APIRouter(prefix="/results", tags=["Study History"])


@router.get("", response_model=list[StudyResultResponse])
def list_results(
    db: Session = Depends(get_db),
    identity: VerifiedIdentity = Depends(get_current_identity),
):
    """List the caller's study results, newest first."""
    return list_study_results(db, identity.user_id)


@router.get("/{result_id}", response_model=StudyResultResponse)
def get_result(
    result_id: int,
    db: Session = Depends(get_db),
    identity: VerifiedIdentity = Depends(get_current_identity),
):
    row = get_study_result(db, identity.user_id, result_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Study result not found")
    return row


@router.delete("/{result_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_result(
    result_id: int,
    db: Session = Depends(get_db),
    identity: VerifiedIdentity = Depends(get_current_identity),
):
    if not delete_study_result(db, identity.user_id, result_id):
        raise HTTPException(status_code=404, detail="Study result not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

"""
Pipeline endpoints called by the mobile client after it uploads a document.

Both endpoints answer HTTP 200 with either a success body or the failure
envelope ``{"success": false, "error", "errorType"}`` so the client can always
parse the body the same way.
"""
from pathlib import PurePosixPath
from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, Header, Request

from studia.api.deps import get_identity_verifier, get_pipeline
from studia.core.config import settings
from studia.core.errors import (
    ErrorType,
    MissingParameterError,
    StudiaError,
    failure_envelope,
)
from studia.core.logging_config import get_logger
from studia.core.rate_limit import limiter
from studia.core.security import IdentityVerifier, VerifiedIdentity
from studia.schemas.study import MaterialRequest
from studia.services.analysis_pipeline import AnalysisPipeline

router = APIRouter(tags=["Study Materials"])

logger = get_logger(__name__)

PipelineAction = Callable[[VerifiedIdentity, str, str], Awaitable[dict]]


async def run_request(
    request: Request,
    body: MaterialRequest,
    authorization: str | None,
    verifier: IdentityVerifier,
    action: PipelineAction,
) -> dict:
    """Validate, verify the caller, run ``action`` and map failures to the envelope."""
    try:
        if not body.storage_path:
            raise MissingParameterError("Missing storagePath")

        identity = await verifier.verify(authorization)
        request.state.user_id = identity.user_id
        if body.user_id and body.user_id != identity.user_id:
            logger.warning(
                f"Ignoring client-supplied userId={body.user_id}; token belongs to {identity.user_id}"
            )

        file_name = body.file_name or PurePosixPath(body.storage_path).name
        logger.info(f"Request received | path={body.storage_path} | file={file_name} | user={identity.user_id}")
        return await action(identity, body.storage_path, file_name)

    except StudiaError as e:
        logger.error(f"{request.url.path} failed | type={e.error_type.value} | error={e.message}")
        return failure_envelope(e.error_type, e.message)
    except Exception:
        logger.exception(f"Unhandled error on {request.url.path}")
        return failure_envelope(ErrorType.INTERNAL, "Internal server error")


@router.post("/analyze-material")
@limiter.limit(settings.analyze_rate_limit)
async def analyze_material(
    request: Request,
    body: MaterialRequest,
    authorization: str | None = Header(default=None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """Summarise a document and generate concepts, flashcards and quizzes."""
    async def action(identity: VerifiedIdentity, storage_path: str, file_name: str) -> dict:
        outcome = await pipeline.analyze(identity, storage_path, file_name)
        return {"success": True, **outcome.result.model_dump(by_alias=True)}

    return await run_request(request, body, authorization, verifier, action)


@router.post("/generate-exam")
@limiter.limit(settings.exam_rate_limit)
async def generate_exam(
    request: Request,
    body: MaterialRequest,
    authorization: str | None = Header(default=None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    """Generate a university-level practice exam from a document."""
    async def action(identity: VerifiedIdentity, storage_path: str, file_name: str) -> dict:
        items = await pipeline.generate_exam(identity, storage_path, file_name)
        return {"success": True, "exam": [item.model_dump(by_alias=True) for item in items]}

    return await run_request(request, body, authorization, verifier, action)

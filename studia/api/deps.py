from typing import AsyncIterator

import httpx
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from studia.core.config import settings
from studia.core.errors import UnauthorizedError
from studia.core.security import IdentityVerifier, VerifiedIdentity
from studia.db.database import get_db
from studia.schemas.study import AnalysisResult
from studia.services.ai_service import ClaudeTextGenerator, GeminiClient
from studia.services.analysis_pipeline import AnalysisPipeline, PipelineConfig
from studia.services.document_parser import LlamaParseExtractor, LocalTextExtractor
from studia.services.storage_client import StorageClient
from studia.services.study_results import save_study_result


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        yield client


def get_identity_verifier(
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> IdentityVerifier:
    return IdentityVerifier(
        http_client,
        supabase_url=settings.supabase_url,
        anon_key=settings.supabase_anon_key,
        jwt_secret=settings.supabase_jwt_secret,
    )


async def get_current_identity(
    request: Request,
    authorization: str | None = Header(default=None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> VerifiedIdentity:
    """Conventional 401 flavour of identity verification, for the history routes."""
    try:
        identity = await verifier.verify(authorization)
    except UnauthorizedError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    request.state.user_id = identity.user_id
    return identity


def get_pipeline_config() -> PipelineConfig:
    return PipelineConfig.from_settings(settings)


def get_pipeline(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    db: Session = Depends(get_db),
    config: PipelineConfig = Depends(get_pipeline_config),
) -> AnalysisPipeline:
    storage = StorageClient(
        http_client,
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        bucket=settings.storage_bucket,
    )
    gemini = GeminiClient(http_client, settings.gemini_api_key) if settings.gemini_api_key else None

    if settings.llama_cloud_api_key:
        extractor = LlamaParseExtractor(
            http_client,
            api_key=settings.llama_cloud_api_key,
            api_url=settings.parse_api_url,
            poll_interval=settings.parse_poll_interval_seconds,
            max_attempts=settings.parse_max_poll_attempts,
        )
    else:
        extractor = LocalTextExtractor()

    secondary = (
        ClaudeTextGenerator(settings.anthropic_api_key, settings.claude_model)
        if settings.anthropic_api_key
        else None
    )

    def sink(user_id: str, file_name: str, storage_path: str, result: AnalysisResult) -> int:
        row = save_study_result(
            db, user_id=user_id, file_name=file_name, storage_path=storage_path, result=result
        )
        return row.id

    return AnalysisPipeline(
        config,
        storage=storage,
        gemini=gemini,
        extractor=extractor,
        secondary=secondary,
        sink=sink,
    )

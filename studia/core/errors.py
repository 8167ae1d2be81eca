"""Failure taxonomy shared by the analysis and exam pipelines."""

import enum


class ErrorType(str, enum.Enum):
    MISSING_PARAMETER = "missing_parameter"
    UNAUTHORIZED = "unauthorized"
    DOWNLOAD_FAILED = "download_failed"
    ALL_PROVIDERS_FAILED = "all_providers_failed"
    EXTRACTION_FAILED = "extraction_failed"
    PARSE_FAILED = "parse_failed"
    INTERNAL = "internal"


class StudiaError(Exception):
    """Base class for request-fatal pipeline errors."""

    error_type = ErrorType.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingParameterError(StudiaError):
    error_type = ErrorType.MISSING_PARAMETER


class UnauthorizedError(StudiaError):
    error_type = ErrorType.UNAUTHORIZED


class DownloadError(StudiaError):
    error_type = ErrorType.DOWNLOAD_FAILED


class AllProvidersFailedError(StudiaError):
    error_type = ErrorType.ALL_PROVIDERS_FAILED


class ExtractionError(StudiaError):
    error_type = ErrorType.EXTRACTION_FAILED


class ParseError(StudiaError):
    error_type = ErrorType.PARSE_FAILED


class ProviderError(Exception):
    """A single provider attempt failed; the caller may move on to the next one."""
    pass


def failure_envelope(error_type: ErrorType, message: str) -> dict:
    """Uniform failure body returned with HTTP 200 by the pipeline endpoints."""
    return {"success": False, "error": message, "errorType": error_type.value}

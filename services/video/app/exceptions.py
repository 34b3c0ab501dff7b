"""
Video service — domain-specific HTTP exceptions.

All exceptions use preset status codes and detail messages so that callers
never need to specify these at the call site.  Internal failures carry a
generic message; tool output and file paths are logged, never returned.
"""
from fastapi import HTTPException, status


# ── Taxonomy bases ───────────────────────────────────────────────────────────

class VideoValidationError(HTTPException):
    """Bad id, bad content type or oversize body. Never retried."""


class VideoAuthError(HTTPException):
    """Authenticated caller is not allowed to touch the record."""


class IngestFailure(HTTPException):
    """Internal failure while staging, processing or storing an upload."""


# ── Validation ───────────────────────────────────────────────────────────────

class InvalidVideoId(VideoValidationError):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid video ID.",
        )


class InvalidContentType(VideoValidationError):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Content-Type header.",
        )


class MissingUploadField(VideoValidationError):
    def __init__(self, field: str) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Couldn't get '{field}' file from form.",
        )


class UnsupportedVideoType(VideoValidationError):
    def __init__(self, content_type: str) -> None:
        super().__init__(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Invalid file type {content_type!r}. Only MP4 videos are allowed.",
        )


class UnsupportedImageType(VideoValidationError):
    def __init__(self, content_type: str) -> None:
        super().__init__(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Invalid file type {content_type!r}. Only JPEG and PNG images are allowed.",
        )


class UploadFileTooLarge(VideoValidationError):
    def __init__(self, max_mb: int) -> None:
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the maximum allowed size of {max_mb} MB.",
        )


# ── Records / ownership ──────────────────────────────────────────────────────

class VideoNotFound(HTTPException):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found.",
        )


class NotVideoOwner(VideoAuthError):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to update this video.",
        )


# ── Ingestion ────────────────────────────────────────────────────────────────

class StagingFailed(IngestFailure):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Couldn't store the uploaded file. Please try again.",
        )


class ProbeFailed(IngestFailure):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Couldn't determine video aspect ratio.",
        )


class RemuxFailed(IngestFailure):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Couldn't process video for streaming.",
        )


# ── S3 ───────────────────────────────────────────────────────────────────────

class StorageUploadFailed(IngestFailure):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Couldn't upload video to storage. Please try again.",
        )


class S3PresignError(IngestFailure):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not generate video URL. Please try again.",
        )


class InvalidStorageLocator(IngestFailure):
    def __init__(self) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stored video location is malformed.",
        )

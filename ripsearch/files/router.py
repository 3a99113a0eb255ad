"""FastAPI router for the /v1/files endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from ripsearch.dependencies import logger
from ripsearch.files.models import FilePreflight, FilePreview
from ripsearch.files.tools import check_file_preflight, read_preview
from ripsearch.surface.models import ErrorDetail, ErrorResponse

router = APIRouter(prefix="/v1/files", tags=["files"])


def _not_found(path: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=ErrorResponse(
            error=ErrorDetail(
                message=f"File not found: {path}",
                type="invalid_request_error",
                code="file_not_found",
            )
        ).model_dump(),
    )


@router.get("/preflight", response_model=FilePreflight)
async def preflight(path: str = Query(..., min_length=1)) -> FilePreflight:
    """Check a matched file before opening it."""
    try:
        return check_file_preflight(path)
    except FileNotFoundError:
        raise _not_found(path)


@router.get("/preview", response_model=FilePreview)
async def preview(
    path: str = Query(..., min_length=1),
    line: int = Query(default=0, ge=0),
) -> FilePreview:
    """Return file text for a viewer positioned at `line`."""
    try:
        result = read_preview(path, line)
    except FileNotFoundError:
        raise _not_found(path)
    except OSError as e:
        logger.error("file_preview_failed", extra={"path": path, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=ErrorResponse(
                error=ErrorDetail(message=f"Error reading file: {e}", code="read_error")
            ).model_dump(),
        )
    logger.info(
        "file_preview_served",
        extra={"path": path, "line": line, "truncated": result.truncated},
    )
    return result

from __future__ import annotations

from collections.abc import Mapping

from fastapi import HTTPException

# Error codes raised by the services, shared by every router.
NOT_FOUND_STATUSES: dict[str, int] = {
    "ad_not_found": 404,
    "comment_not_found": 404,
    "user_not_found": 404,
    "avatar_not_found": 404,
}

NOT_FOUND_DETAILS: dict[str, str] = {
    "ad_not_found": "Ad not found",
    "comment_not_found": "Comment not found",
    "user_not_found": "User not found",
    "avatar_not_found": "Avatar not found",
}

MEDIA_STATUSES: dict[str, int] = {
    "unsupported_media": 415,
    "path_traversal": 400,
    "missing_filename": 400,
    "file_too_large": 400,
}

MEDIA_DETAILS: dict[str, str] = {
    "unsupported_media": "Unsupported image format",
    "path_traversal": "Invalid file name",
    "missing_filename": "Uploaded file has no name",
    "file_too_large": "File is too big",
}


def permission_error(exc: PermissionError) -> HTTPException:
    return HTTPException(status_code=403, detail=str(exc))


def value_error(
    exc: ValueError,
    *,
    code_statuses: Mapping[str, int] | None = None,
    detail_overrides: Mapping[str, str] | None = None,
    default_status: int = 400,
    default_detail: str | None = None,
) -> HTTPException:
    raw_detail = str(exc)

    if code_statuses and raw_detail in code_statuses:
        detail = (
            detail_overrides[raw_detail]
            if detail_overrides and raw_detail in detail_overrides
            else raw_detail
        )
        return HTTPException(status_code=code_statuses[raw_detail], detail=detail)

    return HTTPException(
        status_code=default_status,
        detail=default_detail if default_detail is not None else raw_detail,
    )


def service_error(exc: ValueError, *, default_detail: str | None = None) -> HTTPException:
    """Map the shared not-found and media error codes."""
    return value_error(
        exc,
        code_statuses={**NOT_FOUND_STATUSES, **MEDIA_STATUSES},
        detail_overrides={**NOT_FOUND_DETAILS, **MEDIA_DETAILS},
        default_detail=default_detail,
    )

"""Helper utilities shared across API route handlers."""

from fastapi import HTTPException, status

from carenotify.domain.errors import ValidationError


def validation_exception(exc: ValidationError) -> HTTPException:
    """Translate a use-case ``ValidationError`` into a 422 naming the field."""

    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"field": exc.field, "detail": exc.message},
    )

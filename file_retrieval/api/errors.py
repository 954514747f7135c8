import logging

from fastapi import HTTPException, status

from file_retrieval.core.exceptions import (
    ConcurrencyConflictError,
    ConfigurationNotFoundError,
    ConfigurationValidationError,
    ExecutionNotFoundError,
)


def to_http_exception(error: Exception) -> HTTPException:
    """Oversæt domæne-fejl til HTTP status koder."""
    if isinstance(error, ConfigurationValidationError):
        detail = {"message": str(error), "field": error.field}
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    if isinstance(error, (ConfigurationNotFoundError, ExecutionNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, ConcurrencyConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))

    logging.error(f"API: Unexpected error: {error}", exc_info=error)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))

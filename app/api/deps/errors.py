from fastapi import HTTPException, status

from app.core.exceptions import (
    AppointmentValidationError,
    DateParseError,
    IllegalTransitionError,
    NotFoundError,
    SchedulingError,
    SlotConflictError,
)


def to_http_exception(exc: Exception) -> HTTPException:
    """Map a domain error onto the HTTP response the API returns for it."""
    if isinstance(exc, AppointmentValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Invalid appointment", "errors": exc.errors},
        )
    if isinstance(exc, SlotConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "date": exc.date.isoformat(),
                "time": exc.time.strftime("%H:%M"),
            },
        )
    if isinstance(exc, IllegalTransitionError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "current_status": exc.current,
                "target_status": exc.target,
            },
        )
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, DateParseError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        )
    if isinstance(exc, (SchedulingError, ValueError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )

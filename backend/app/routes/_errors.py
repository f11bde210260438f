from fastapi import HTTPException, status

from ..services import errors

# purpose: map service failures onto HTTP status codes in one place
# status: active
# depends_on: backend.app.services.errors

_STATUS_BY_ERROR: list[tuple[type[errors.MentorshipError], int]] = [
    (errors.ValidationError, status.HTTP_400_BAD_REQUEST),
    (errors.NotFound, status.HTTP_404_NOT_FOUND),
    (errors.PreconditionFailed, status.HTTP_412_PRECONDITION_FAILED),
    (errors.SlotAlreadyBooked, status.HTTP_409_CONFLICT),
    (errors.InvalidState, status.HTTP_409_CONFLICT),
]


def http_error(exc: errors.MentorshipError) -> HTTPException:
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

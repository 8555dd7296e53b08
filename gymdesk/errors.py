from fastapi import HTTPException, status


class GymError(HTTPException):
    """Base domain error; carries a stable machine-readable code."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class NotFound(GymError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class MembershipInactive(GymError):
    """Admission denied. The DENIED check-in is already persisted and broadcast."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "MEMBERSHIP_INACTIVE"

    def __init__(self, detail: str, checkin=None):
        super().__init__(detail)
        self.checkin = checkin


class ValidationError(GymError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class DependencyUnavailable(GymError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "DEPENDENCY_UNAVAILABLE"

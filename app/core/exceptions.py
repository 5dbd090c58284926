from typing import Optional
from fastapi import HTTPException, status

class BaseAppException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

class ValidationError(BaseAppException):
    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class NotFoundError(BaseAppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class ForbiddenError(BaseAppException):
    def __init__(self, detail: str = "Not authorized to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class ConflictError(BaseAppException):
    def __init__(self, detail: str = "Conflict with current state of the resource"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class InvalidTransitionError(ConflictError):
    """Raised when an attendance command is not legal from the record's current state."""

    def __init__(self, detail: str, current_state: Optional[str] = None, command: Optional[str] = None):
        super().__init__(detail=detail)
        self.current_state = current_state
        self.command = command

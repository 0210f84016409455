# error taxonomy shared by the service, api and cli
from typing import Optional


class StudyGuideError(Exception):
    """Base error; carries the HTTP status the api answers with"""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# bad file type/size, missing fields, unreadable content
class ValidationError(StudyGuideError):
    status_code = 400


class InvalidCredentialError(StudyGuideError):
    status_code = 401


# key is valid but cannot use the requested models
class ModelAccessError(StudyGuideError):
    status_code = 403


class PayloadTooLargeError(ValidationError):
    status_code = 413


class RateLimitError(StudyGuideError):
    status_code = 429


class ExportError(StudyGuideError):
    status_code = 500


class UpstreamError(StudyGuideError):
    """Raw failure reported by the chat completions endpoint"""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.code = code

    def __str__(self):
        if self.status:
            return f"{self.status} {self.message}"
        return self.message

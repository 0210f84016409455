# explicit state container for one user's generate flow
import logging
from enum import Enum
from typing import Optional, Tuple, Union

from .document_parser import validate_upload
from .errors import StudyGuideError, ValidationError
from .models import OutputKind, GeneratedContent, StructuredContent
from .structurer import structure_content

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    GENERATING = "generating"
    RESULT_READY = "result_ready"
    ERROR = "error"


# turn a server error message into a (title, description) pair for the user
def describe_error(message: str) -> Tuple[str, str]:
    message = message or ""
    if "API key does not have access" in message:
        return (
            "API Key Access Issue",
            "Your OpenAI API key doesn't have access to the required models. "
            "Please check your OpenAI plan and API key permissions.",
        )
    if "Invalid OpenAI API key" in message:
        return "Invalid API Key", "Please check your OpenAI API key and try again."
    if "rate limit" in message:
        return "Rate Limit Exceeded", "OpenAI API rate limit exceeded. Please try again in a few minutes."
    return "Generation failed", message or "There was an error generating your study guide. Please try again."


class StudyGuideSession:
    """
    idle -> file_selected -> generating -> result_ready | error

    Selecting a new file from result_ready or error drops the old result.
    A rejected file leaves the state and the current selection untouched.
    """

    def __init__(self):
        self.state = SessionState.IDLE
        self.filename: Optional[str] = None
        self.content_type: Optional[str] = None
        self.data: Optional[bytes] = None
        self.kind: Optional[OutputKind] = None
        self.result: Optional[GeneratedContent] = None
        self.error: Optional[Tuple[str, str]] = None

    def select_file(self, filename: str, content_type: Optional[str], data: bytes) -> None:
        if self.state == SessionState.GENERATING:
            raise ValidationError("A study guide is already being generated")

        # raises before any state changes
        validate_upload(filename, content_type, len(data))

        self.filename = filename
        self.content_type = content_type
        self.data = data
        self.result = None
        self.error = None
        self.state = SessionState.FILE_SELECTED
        logger.info(f"{filename} is ready for processing")

    def select_kind(self, kind: Union[OutputKind, str]) -> None:
        try:
            self.kind = OutputKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown study guide type: {kind}")

    def generate(self, service, api_key: Optional[str] = None) -> Optional[GeneratedContent]:
        """Run one generation; returns the result, or None with self.error set"""
        if self.state == SessionState.GENERATING:
            raise ValidationError("A study guide is already being generated")
        if self.data is None or self.kind is None:
            raise ValidationError("Please select a file and study guide type.")

        self.state = SessionState.GENERATING
        self.error = None

        try:
            response = service.generate(self.data, self.filename, self.content_type, self.kind, api_key)
            if not response.content:
                raise StudyGuideError("No content received from server")
        except Exception as e:
            message = e.message if isinstance(e, StudyGuideError) else str(e)
            logger.error(f"Error generating study guide: {message}")
            self.error = describe_error(message)
            self.state = SessionState.ERROR
            return None

        self.result = GeneratedContent(type=self.kind, content=response.content, filename=self.filename)
        self.state = SessionState.RESULT_READY
        return self.result

    def structured(self) -> Optional[StructuredContent]:
        if self.result is None:
            return None
        return structure_content(self.result)

    def reset(self) -> None:
        self.__init__()

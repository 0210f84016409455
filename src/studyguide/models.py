# pydantic models for generated content and the records derived from it
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from enum import Enum

# enum for the study material formats we can generate
class OutputKind(str, Enum):
    SUMMARY = "summary"
    POINTS = "points"
    FLASHCARDS = "flashcards"
    QUIZ = "quiz"
    OUTLINE = "outline"

# model for one generation result, replaced wholesale on every run
class GeneratedContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: OutputKind
    content: str
    filename: str

# model for a question/answer card
class Flashcard(BaseModel):
    question: str
    answer: str

# model for a lettered subtopic and its numbered points
class OutlinePoint(BaseModel):
    title: str
    points: List[str] = []

# model for a roman-numeral or heading section
class OutlineSection(BaseModel):
    title: str
    subtopics: List[OutlinePoint] = []

# model for a bullet list with optional lead-in text
class KeyPoints(BaseModel):
    intro: str = ""
    bullets: List[str] = []

# model for everything the pipeline derives from one generation
class StructuredContent(BaseModel):
    type: OutputKind
    cleaned: str
    flashcards: Optional[List[Flashcard]] = None
    outline: Optional[List[OutlineSection]] = None
    key_points: Optional[KeyPoints] = None

# token accounting reported by the upstream api
class UsageInfo(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

# response model for a successful generation
class StudyGuideResponse(BaseModel):
    success: bool = True
    content: str
    type: OutputKind
    filename: str
    model: Optional[str] = None
    usage: Optional[UsageInfo] = None
    processing_time: float = 0.0

    def to_generated(self) -> GeneratedContent:
        return GeneratedContent(type=self.type, content=self.content, filename=self.filename)

# response model for any failure
class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None

# turns cleaned model output into flashcards, outline sections and key points
import re
import logging
from typing import List, Optional

from .models import (
    OutputKind, GeneratedContent, StructuredContent,
    Flashcard, OutlinePoint, OutlineSection, KeyPoints
)
from .text_cleaner import normalize

logger = logging.getLogger(__name__)

# card boundary: blank line, next label, or end of text
_CARD_END = r"(?=\n\s*\n|\n\s*Question:|\n\s*Q:|\Z)"

# pattern families tried in order, each scanned over the whole text
FLASHCARD_PATTERNS = [
    # Question: ... Answer: ...
    re.compile(
        r"Question:(?P<question>.*?)\s+?Answer:(?P<answer>.*?)" + _CARD_END,
        re.IGNORECASE | re.DOTALL,
    ),
    # Q: ... A: ...
    re.compile(
        r"Q:(?P<question>.*?)\s+?A:(?P<answer>.*?)" + _CARD_END,
        re.IGNORECASE | re.DOTALL,
    ),
    # 1. question ... Answer: ...
    re.compile(
        r"(?:^|\n)\s*\d+[).]?\s+(?P<question>.*?)\s+(?:Answer:|A:)\s*(?P<answer>.*?)"
        r"(?=\n\s*\n|\n\s*\d+[).]?|\Z)",
        re.IGNORECASE | re.DOTALL,
    ),
]

# used when none of the families matched: one inline card per paragraph
INLINE_CARD = re.compile(
    r"(?:^|\n)\s*(?:\d+[).]?\s*)?(?:Question:|Q:)\s*(.*?)\s*(?:Answer:|A:)\s*(.*)",
    re.IGNORECASE | re.DOTALL,
)

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
TRAILING_ANSWER = re.compile(r"\b(Answer:|A:)\b.*\Z", re.IGNORECASE | re.DOTALL)

ROMAN_SECTION = re.compile(
    r"^(?:(?=[MDCLXVI])M{0,4}(CM|CD|D?C{0,3})(XC|XL|L?X{0,3})(IX|IV|V?I{0,3}))\.",
    re.IGNORECASE,
)
HEADING = re.compile(r"^#\s+")
LETTER_SUBTOPIC = re.compile(r"^([A-Z])\.\s+(.*)")
NUMBERED_POINT = re.compile(r"^(\d+)\.?\s+(.*)")
BULLET_POINT = re.compile(r"^[-*]\s+(.*)")

LIST_MARKER = re.compile(r"^(\s*[-*]|\s*\d+\.)\s+")


def _clean_question(raw: str) -> str:
    question = re.sub(r"^[\s\-*]+", "", raw)
    question = TRAILING_ANSWER.sub("", question)
    question = re.sub(r"^\d+[).]?\s*", "", question)
    return question.strip()


def _clean_answer(raw: str) -> str:
    return re.sub(r"^\s*-\s*", "", raw).strip()


# extract question/answer pairs from cleaned flashcard text
def extract_flashcards(cleaned: str) -> List[Flashcard]:
    """
    Run every pattern family over the text and keep each pair whose question
    is longer than 2 characters and answer longer than 1. Families are not
    de-duplicated against each other, so overlapping matches can repeat a
    card. When nothing matches, paragraphs are checked one by one for an
    inline Question/Answer.
    """
    flashcards: List[Flashcard] = []

    for pattern in FLASHCARD_PATTERNS:
        for match in pattern.finditer(cleaned):
            question = _clean_question(match.group("question") or "")
            answer = _clean_answer(match.group("answer") or "")

            if question and answer and len(question) > 2 and len(answer) > 1:
                flashcards.append(Flashcard(question=question, answer=answer))

    if not flashcards:
        for section in PARAGRAPH_BREAK.split(cleaned):
            match = INLINE_CARD.search(section)
            if not match:
                continue
            question = TRAILING_ANSWER.sub("", match.group(1)).strip()
            answer = match.group(2).strip()
            if question and answer:
                flashcards.append(Flashcard(question=question, answer=answer))

    logger.debug(f"Extracted {len(flashcards)} flashcards")
    return flashcards


# walk the lines of an outline, building sections -> subtopics -> points
def parse_outline(cleaned: str) -> List[OutlineSection]:
    """Parse I./A./1. style (or # heading) outlines into nested sections"""
    lines = [line.strip() for line in re.split(r"\r?\n", cleaned)]
    lines = [line for line in lines if line]

    sections: List[OutlineSection] = []
    current: Optional[OutlineSection] = None
    current_sub: Optional[OutlinePoint] = None

    for line in lines:
        # roman numeral or heading opens a new section
        if ROMAN_SECTION.match(line) or HEADING.match(line):
            if current:
                sections.append(current)
            title = HEADING.sub("", ROMAN_SECTION.sub("", line, count=1), count=1).strip()
            current = OutlineSection(title=title, subtopics=[])
            current_sub = None
            continue

        # capital letter opens a subtopic
        letter = LETTER_SUBTOPIC.match(line)
        if letter:
            if current is None:
                current = OutlineSection(title="Outline", subtopics=[])
            current_sub = OutlinePoint(title=letter.group(2).strip(), points=[])
            current.subtopics.append(current_sub)
            continue

        # numbers and bullets are points under the current subtopic
        numbered = NUMBERED_POINT.match(line)
        bullet = BULLET_POINT.match(line)
        if numbered or bullet:
            if current is None:
                current = OutlineSection(title="Outline", subtopics=[])
            if current_sub is None:
                current_sub = OutlinePoint(title="Details", points=[])
                current.subtopics.append(current_sub)
            text = numbered.group(2) if numbered else bullet.group(1)
            current_sub.points.append(text.strip())

    if current:
        sections.append(current)

    return sections


# split key point text into an optional intro and bullet items
def extract_key_points(cleaned: str) -> KeyPoints:
    lines = re.split(r"\r?\n", cleaned)
    first_bullet = next((i for i, line in enumerate(lines) if LIST_MARKER.match(line)), -1)

    intro = "\n".join(lines[:first_bullet]).strip() if first_bullet > 0 else ""
    bullet_lines = lines[first_bullet:] if first_bullet >= 0 else lines

    bullets: List[str] = []
    buf: List[str] = []
    for line in bullet_lines:
        if LIST_MARKER.match(line):
            if buf:
                bullets.append(" ".join(buf).strip())
            buf = [LIST_MARKER.sub("", line, count=1).strip()]
        elif line.strip():
            # continuation of the previous bullet
            buf.append(line.strip())

    if buf:
        bullets.append(" ".join(buf).strip())

    return KeyPoints(intro=intro, bullets=bullets)


# full pipeline: normalize the raw content and structure it for its kind
def structure_content(generated: GeneratedContent) -> StructuredContent:
    cleaned = normalize(generated.content, generated.type)
    result = StructuredContent(type=generated.type, cleaned=cleaned)

    if generated.type == OutputKind.FLASHCARDS:
        result.flashcards = extract_flashcards(cleaned)
    elif generated.type == OutputKind.OUTLINE:
        result.outline = parse_outline(cleaned)
    elif generated.type == OutputKind.POINTS:
        result.key_points = extract_key_points(cleaned)

    return result

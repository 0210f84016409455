# strips conversational wrapping from raw model output
import re
import logging
from typing import Union

from .models import OutputKind

logger = logging.getLogger(__name__)

# leading chatter the model tends to open with, tried in this order
PREAMBLE_PATTERNS = [
    re.compile(r"^\s*Here (?:is|are)\b[^\n]*\n?", re.IGNORECASE),
    re.compile(r"^\s*I'll\b[^\n]*\n?", re.IGNORECASE),
    re.compile(r"^\s*I can\b[^\n]*\n?", re.IGNORECASE),
    re.compile(r"^\s*Let me\b[^\n]*\n?", re.IGNORECASE),
    re.compile(r"^\s*Based on\b[^\n]*\n?", re.IGNORECASE),
    re.compile(r"^\s*Given\b[^\n]*\n?", re.IGNORECASE),
    re.compile(r"^\s*It appears\b[^\n]*\n?", re.IGNORECASE),
    re.compile(r"^\s*Note:\s*This\b[^\n]*\n?", re.IGNORECASE),
]

# first card label or list item anywhere in the text
FLASHCARD_MARKER = re.compile(
    r"\b(?:Question:|Q:|\d+\.)|^[ \t]*[-*]\s",
    re.IGNORECASE | re.MULTILINE,
)

# first line that opens with a heading, bullet, number or roman numeral
STRUCTURE_MARKER = re.compile(r"^(#|\*\s|-\s|\d+\.|I\.|II\.)", re.MULTILINE)

# closing remark and everything after it
CLOSING_REMARK = re.compile(
    r"(?:\n|\s)*(?:I hope this helps|Let me know if you need|Would you like me|Feel free to ask).*\Z",
    re.IGNORECASE | re.DOTALL,
)

EXCESS_NEWLINES = re.compile(r"\n{3,}")


def _strip_preamble(text: str) -> str:
    # one pass removes at most one match per pattern; repeat until nothing changes
    while True:
        stripped = text
        for pattern in PREAMBLE_PATTERNS:
            stripped = pattern.sub("", stripped, count=1)
        if stripped == text:
            return stripped
        text = stripped


def _first_marker(text: str, kind: OutputKind) -> int:
    pattern = FLASHCARD_MARKER if kind == OutputKind.FLASHCARDS else STRUCTURE_MARKER
    match = pattern.search(text)
    return match.start() if match else -1


def _clean_once(text: str, kind: OutputKind) -> str:
    cleaned = _strip_preamble(text)

    idx = _first_marker(cleaned, kind)
    if idx > 0:
        cleaned = cleaned[idx:]

    cleaned = CLOSING_REMARK.sub("", cleaned, count=1).strip()
    return EXCESS_NEWLINES.sub("\n\n", cleaned).strip()


def normalize(raw: str, kind: Union[OutputKind, str]) -> str:
    """
    Remove preamble, anything before the first structural marker and any
    trailing sign-off from model output. Never raises; text with nothing to
    strip comes back trimmed.
    """
    if not raw:
        return ""

    kind = OutputKind(kind)

    # removing a sign-off can expose a new preamble; clean until stable
    cleaned = _clean_once(raw, kind)
    while True:
        again = _clean_once(cleaned, kind)
        if again == cleaned:
            break
        cleaned = again

    if len(cleaned) != len(raw):
        logger.debug(f"Normalized {kind.value} content: {len(raw)} -> {len(cleaned)} chars")

    return cleaned

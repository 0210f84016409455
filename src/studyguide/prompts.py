# prompt templates for each study guide format
from typing import Dict, List, Union

from .config import MAX_CONTENT_CHARS, TRUNCATION_MARKER, SYSTEM_PROMPT
from .models import OutputKind

BASE_TEMPLATE = """Based on the following content, generate a well-structured {kind}:

Content:
{content}

"""

KIND_INSTRUCTIONS: Dict[OutputKind, str] = {
    OutputKind.SUMMARY: (
        "Please provide a comprehensive but concise summary that captures the main ideas, "
        "key concepts, and important details. The summary should be well-organized and easy to understand."
    ),
    OutputKind.POINTS: (
        "Please create a bullet-point list of the most important key ideas and concepts. "
        "Each point should be clear, concise, and capture essential information. "
        "Format each point on a new line starting with a bullet or dash."
    ),
    OutputKind.FLASHCARDS: """Please create flashcards in a question and answer format. Each flashcard should test understanding of key concepts. Format each flashcard as:

Question: [Question here]
Answer: [Answer here]

Separate each flashcard with a blank line. Create 10-15 flashcards covering the most important topics.""",
    OutputKind.QUIZ: """Please create a comprehensive quiz with multiple-choice and short-answer questions. Include:

1. Multiple choice questions (with 4 options each, indicate correct answer)
2. Short answer questions
3. True/False questions

Make sure to cover all major topics and concepts. Format questions clearly and provide variety in question types.""",
    OutputKind.OUTLINE: """Please create a detailed hierarchical outline that organizes the content into logical sections and subsections. Use proper formatting with:

I. Major topics
   A. Subtopics
      1. Key points
         a. Supporting details

The outline should capture the structure and flow of the material comprehensively.""",
}

GENERIC_INSTRUCTION = "Please organize and present this information in a clear, educational format."


def truncate_content(text: str, limit: int = MAX_CONTENT_CHARS) -> str:
    """Cut text to the prompt budget, marking the cut"""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def build_prompt(kind: Union[OutputKind, str], content: str) -> str:
    kind_value = kind.value if isinstance(kind, OutputKind) else str(kind)
    try:
        instruction = KIND_INSTRUCTIONS[OutputKind(kind_value)]
    except ValueError:
        instruction = GENERIC_INSTRUCTION
    return BASE_TEMPLATE.format(kind=kind_value, content=content) + instruction


def build_messages(kind: Union[OutputKind, str], content: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_prompt(kind, content)},
    ]

"""
studyguide - turn uploaded documents into study materials
(summaries, key points, flashcards, quizzes and outlines)
"""

__version__ = "1.0.0"

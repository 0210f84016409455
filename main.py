#!/usr/bin/env python3
"""
studyguide

A FastAPI application that turns uploaded PDFs, PNG scans and Markdown notes
into study material (summaries, key points, flashcards, quizzes and outlines)
using an OpenAI-compatible chat completions API.

To start the server:
    python main.py
"""

import sys
from pathlib import Path

# add src to python path so the studyguide package imports without installing
sys.path.insert(0, str(Path(__file__).parent / "src"))

# start the fastapi server when this file is run
if __name__ == "__main__":
    import uvicorn
    # run the api app on port 8000 with auto-reload for development
    uvicorn.run("studyguide.api:app", host="0.0.0.0", port=8000, reload=True)

# fastapi web api for study guide generation
from fastapi import FastAPI, Request, UploadFile, File, Form
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
import logging
import traceback
from typing import Optional

from . import __version__
from .config import settings, MAX_FILE_SIZE_BYTES, MAX_FILE_SIZE_MB
from .errors import StudyGuideError, PayloadTooLargeError
from .exporters import export
from .models import GeneratedContent, StructuredContent, StudyGuideResponse
from .processing_service import StudyGuideService

# configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# initialize fastapi application
app = FastAPI(
    title="Study Guide API",
    description="Turn PDFs, images and notes into summaries, key points, flashcards, quizzes and outlines",
    version=__version__
)

# add cors middleware to allow cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# initialize processing service
study_guide_service = StudyGuideService()


# every known failure is answered as {"error": ...} with its own status
@app.exception_handler(StudyGuideError)
async def study_guide_error_handler(request: Request, exc: StudyGuideError):
    logger.error(f"{exc.__class__.__name__} ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", []) if part != "body")
    message = f"Invalid request: {field} {first.get('msg', '')}".strip()
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Study guide generation error: {str(exc)}", exc_info=True)
    content = {"error": str(exc) or "An error occurred while generating the study guide. Please try again."}
    if settings.debug:
        content["details"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=content)


# endpoint to upload a document and generate study material from it
@app.post("/api/generate-study-guide", response_model=StudyGuideResponse)
async def generate_study_guide(
    file: Optional[UploadFile] = File(None),
    type: Optional[str] = Form(None),
    apiKey: Optional[str] = Form(None)
):
    """Generate a study guide from an uploaded file"""
    logger.info("Study guide generation request received")

    # refuse oversized uploads before pulling them into memory
    if file is not None and file.size is not None and file.size > MAX_FILE_SIZE_BYTES:
        raise PayloadTooLargeError(f"File too large. Please upload a file smaller than {MAX_FILE_SIZE_MB}MB.")

    data = await file.read() if file is not None else None
    filename = file.filename if file is not None else None
    content_type = file.content_type if file is not None else None

    # parsing and the upstream call block, keep them off the event loop
    return await run_in_threadpool(
        study_guide_service.generate, data, filename, content_type, type, apiKey
    )


# endpoint to clean and structure generated content for display
@app.post("/api/structure", response_model=StructuredContent, response_model_exclude_none=True)
async def structure(generated: GeneratedContent):
    """Clean generated content and split it into flashcards, outline or key points"""
    return study_guide_service.structure(generated)


# endpoint to download generated content in another format
@app.post("/api/export/{fmt}")
async def export_study_guide(fmt: str, generated: GeneratedContent):
    """Export generated content as md, txt, docx, html or json"""
    structured = study_guide_service.structure(generated) if fmt == "json" else None
    body, filename, media_type = await run_in_threadpool(export, generated, fmt, structured)
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@app.get("/api")
async def api_info():
    """API information endpoint"""
    return {
        "message": "Study Guide API",
        "version": __version__,
        "endpoints": {
            "generate": "/api/generate-study-guide",
            "structure": "/api/structure",
            "export": "/api/export/{fmt}",
            "health": "/health"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "study-guide"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

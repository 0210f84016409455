# text extraction for uploaded documents (pdf, png, markdown, plain text)
import fitz  # PyMuPDF
import os
import uuid
import logging
from pathlib import Path
from typing import Optional

import pytesseract
from PIL import Image

from .config import settings, ALLOWED_EXTENSIONS, ALLOWED_MIME_TYPES, MAX_FILE_SIZE_BYTES, MAX_FILE_SIZE_MB
from .errors import ValidationError, PayloadTooLargeError

logger = logging.getLogger(__name__)


def file_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower()


# check an upload against the type allow-list and the size ceiling
def validate_upload(filename: str, content_type: Optional[str], size: int) -> None:
    """Raise if the file is not an allowed type or is over the size limit"""
    ext = file_extension(filename)
    if content_type not in ALLOWED_MIME_TYPES and ext not in ALLOWED_EXTENSIONS:
        raise ValidationError("Invalid file type. Only PDF, PNG, and Markdown files are allowed.")

    if size > MAX_FILE_SIZE_BYTES:
        raise PayloadTooLargeError(f"File too large. Please upload a file smaller than {MAX_FILE_SIZE_MB}MB.")


# class for pulling plain text out of supported files
class DocumentParser:
    def __init__(self, upload_dir: Optional[str] = None):
        self.upload_dir = Path(upload_dir or settings.upload_dir)
        if settings.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = settings.tesseract_cmd

    # write the upload to a temp file, parse it, and always remove the temp file
    def parse_upload(self, data: bytes, original_name: str) -> str:
        """Extract text from uploaded bytes"""
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        temp_path = self.upload_dir / f"{uuid.uuid4().hex}{file_extension(original_name)}"

        try:
            with open(temp_path, "wb") as buffer:
                buffer.write(data)
            return self.parse(str(temp_path), original_name)
        finally:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                    logger.debug(f"Cleaned up temporary file: {temp_path}")
                except OSError as e:
                    logger.error(f"Error deleting file {temp_path}: {e}")

    def parse(self, path: str, original_name: Optional[str] = None) -> str:
        """Extract text from a file on disk, choosing the reader by extension"""
        name = original_name or Path(path).name
        ext = file_extension(name)

        if ext == ".pdf":
            return self._parse_pdf(path, name)
        if ext == ".png":
            return self._parse_image(path)
        if ext in (".md", ".txt"):
            return Path(path).read_text(encoding="utf-8")

        raise ValidationError("Unsupported file type")

    # pdf failures become a descriptive placeholder instead of an error
    def _parse_pdf(self, path: str, name: str) -> str:
        try:
            doc = fitz.open(path)
        except Exception as e:
            logger.error(f"PDF parsing error for {name}: {str(e)}")
            size_kb = round(os.path.getsize(path) / 1024)
            return (
                f"PDF file: {name} ({size_kb}KB) - Text extraction failed. Please ensure the PDF "
                "contains readable text or try converting to text format first."
            )

        try:
            pages = [page.get_text() for page in doc]
        except Exception as e:
            logger.error(f"Error processing PDF data for {name}: {str(e)}")
            return f"PDF file: {name} - Error processing content."
        finally:
            doc.close()

        text = "\n".join(pages).strip()
        if not text:
            return (
                f"PDF file: {name} - No readable text content found. "
                "The PDF might be image-based or protected."
            )

        logger.info(f"Extracted {len(text)} characters from {len(pages)} PDF pages")
        return text

    def _parse_image(self, path: str) -> str:
        with Image.open(path) as image:
            text = pytesseract.image_to_string(image, lang="eng")
        logger.info(f"OCR extracted {len(text)} characters")
        return text

import time
import logging
from contextlib import closing
from typing import Callable, Optional, Union

from .config import settings
from .document_parser import DocumentParser, validate_upload
from .errors import StudyGuideError, ValidationError
from .llm_service import LLMService, get_llm_service
from .models import OutputKind, StudyGuideResponse, GeneratedContent, StructuredContent
from .prompts import truncate_content
from .structurer import structure_content

logger = logging.getLogger(__name__)


# study guide service orchestrates validation, text extraction and generation
class StudyGuideService:
    def __init__(self, parser: Optional[DocumentParser] = None,
                 llm_factory: Callable[[str], LLMService] = get_llm_service):
        self.parser = parser or DocumentParser()
        self.llm_factory = llm_factory

    def generate(
        self,
        data: Optional[bytes],
        filename: Optional[str],
        content_type: Optional[str],
        kind: Optional[Union[OutputKind, str]],
        api_key: Optional[str] = None,
    ) -> StudyGuideResponse:
        """Main generation pipeline"""
        start_time = time.time()
        api_key = api_key or settings.openai_api_key

        logger.info(f"Request details: type={kind}, has_file={data is not None}, "
                    f"has_api_key={bool(api_key)}, filename={filename}")

        # check the request before touching the file
        if data is None or not filename:
            raise ValidationError("No file uploaded")
        if not kind:
            raise ValidationError("Study guide type not specified")
        try:
            kind = OutputKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown study guide type: {kind}")
        if not api_key:
            raise ValidationError("OpenAI API key not provided")

        validate_upload(filename, content_type, len(data))

        # Step 1: extract text
        logger.info("Step 1: Parsing file...")
        try:
            content = self.parser.parse_upload(data, filename)
        except StudyGuideError:
            raise
        except Exception as e:
            logger.error(f"File parsing error: {str(e)}", exc_info=True)
            raise ValidationError("Failed to parse file content. Please ensure the file is valid and readable.")

        if not content or not content.strip():
            raise ValidationError("No readable content found in the file. Please check if the file contains text.")
        logger.info(f"  ✓ File parsed successfully, content length: {len(content)}")

        # Step 2: keep the prompt inside the context budget
        content = truncate_content(content)

        # Step 3: generate
        logger.info(f"Step 2: Generating {kind.value}...")
        with closing(self.llm_factory(api_key)) as llm:
            result = llm.generate(kind, content)

        processing_time = time.time() - start_time
        logger.info(f"✓ SUCCESS! Completed in {processing_time:.2f} seconds with {result.model}")

        return StudyGuideResponse(
            content=result.content,
            type=kind,
            filename=filename,
            model=result.model,
            usage=result.usage,
            processing_time=processing_time,
        )

    def structure(self, generated: GeneratedContent) -> StructuredContent:
        """Clean and structure a generation result for display"""
        return structure_content(generated)

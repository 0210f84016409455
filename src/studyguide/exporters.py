# export formats for generated study guides
import io
import json
import re
import logging
from pathlib import Path
from typing import Tuple

from docx import Document

from .errors import ExportError
from .models import GeneratedContent, StructuredContent

logger = logging.getLogger(__name__)

# export format -> (file suffix, media type)
EXPORT_FORMATS = {
    "md": (".md", "text/markdown; charset=utf-8"),
    "txt": (".txt", "text/plain; charset=utf-8"),
    "docx": (".docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
    "html": (".html", "text/html; charset=utf-8"),
    "json": (".json", "application/json"),
}

PRINT_STYLES = """
      body { font-family: Inter, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial, sans-serif; margin: 24px; color: #111827; }
      h1 { font-size: 20px; margin: 0 0 16px; }
      .meta { color: #6b7280; margin-bottom: 16px; }
      pre { white-space: pre-wrap; word-wrap: break-word; font: inherit; line-height: 1.5; }
      @media print { body { margin: 0.5in; } }
"""


def export_basename(generated: GeneratedContent) -> str:
    """<source stem>-<kind>, used for every exported file name"""
    return f"{Path(generated.filename).stem}-{generated.type.value}"


def export_filename(generated: GeneratedContent, fmt: str) -> str:
    suffix, _ = EXPORT_FORMATS[fmt]
    return export_basename(generated) + suffix


def to_markdown(generated: GeneratedContent) -> bytes:
    return generated.content.encode("utf-8")


def to_text(generated: GeneratedContent) -> bytes:
    return generated.content.encode("utf-8")


# map markdown heading levels onto word heading styles, one paragraph per line
def to_docx(generated: GeneratedContent) -> bytes:
    try:
        document = Document()

        for line in re.split(r"\r?\n", generated.content):
            if re.match(r"^#\s+", line):
                document.add_heading(re.sub(r"^#\s+", "", line), level=0)
            elif re.match(r"^##\s+", line):
                document.add_heading(re.sub(r"^##\s+", "", line), level=1)
            elif re.match(r"^###\s+", line):
                document.add_heading(re.sub(r"^###\s+", "", line), level=2)
            else:
                text = re.sub(r"^\d+\.\s+", "", re.sub(r"^[-*]\s+", "", line))
                document.add_paragraph(text)

        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    except Exception as e:
        logger.error(f"Error exporting DOCX: {str(e)}")
        raise ExportError(f"DOCX export failed: {str(e)}")


def escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


# printable page that opens the print dialog once loaded
def to_print_html(generated: GeneratedContent) -> str:
    base = Path(generated.filename).stem
    kind = generated.type.value
    return f"""<!doctype html><html><head><meta charset="utf-8"><title>{escape_html(base)}-{kind}</title><style>{PRINT_STYLES}</style></head><body>
      <h1>Study Guide ({kind})</h1>
      <div class="meta">Source: {escape_html(base)}</div>
      <pre>{escape_html(generated.content)}</pre>
      <script>window.onload = function(){{ window.print(); }}</script>
    </body></html>"""


def to_json(structured: StructuredContent) -> str:
    return json.dumps(structured.model_dump(mode="json", exclude_none=True), indent=2, ensure_ascii=False)


def export(generated: GeneratedContent, fmt: str, structured: StructuredContent = None) -> Tuple[bytes, str, str]:
    """Render one export format; returns (body, file name, media type)"""
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"Unsupported export format: {fmt}", status_code=400)

    if fmt == "md":
        body = to_markdown(generated)
    elif fmt == "txt":
        body = to_text(generated)
    elif fmt == "docx":
        body = to_docx(generated)
    elif fmt == "html":
        body = to_print_html(generated).encode("utf-8")
    else:
        if structured is None:
            raise ExportError("JSON export needs structured content")
        body = to_json(structured).encode("utf-8")

    logger.info(f"Exported {export_filename(generated, fmt)} ({len(body)} bytes)")
    return body, export_filename(generated, fmt), EXPORT_FORMATS[fmt][1]

import typer
import os
import mimetypes
from pathlib import Path
from typing import Optional
import logging
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.panel import Panel
from rich.tree import Tree
from rich.markup import escape

from .errors import StudyGuideError
from .exporters import EXPORT_FORMATS, export
from .models import OutputKind, GeneratedContent, StructuredContent
from .processing_service import StudyGuideService
from .session import StudyGuideSession
from .structurer import structure_content

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Typer app
app = typer.Typer(
    name="studyguide",
    help="Turn documents into summaries, key points, flashcards, quizzes and outlines",
    add_completion=False
)

# Initialize console for rich output
console = Console()


@app.command()
def generate(
    file_path: str = typer.Argument(..., help="PDF, PNG, Markdown or text file to study from"),
    kind: OutputKind = typer.Option(..., "--type", "-t", help="Study guide format to generate"),
    api_key: Optional[str] = typer.Option(None, "--api-key", envvar="OPENAI_API_KEY", help="OpenAI API key"),
    export_format: Optional[str] = typer.Option(None, "--export", "-e", help="Also save as md, txt, docx, html or json"),
    output_dir: str = typer.Option(".", "--output", "-o", help="Directory for exported files"),
    raw: bool = typer.Option(False, "--raw", help="Print the model output without structuring it"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")
):
    """Generate a study guide from a document"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate inputs
    if not os.path.exists(file_path):
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(1)

    if export_format and export_format not in EXPORT_FORMATS:
        console.print(f"[red]Error: Unknown export format: {export_format}[/red]")
        raise typer.Exit(1)

    session = StudyGuideSession()
    path = Path(file_path)
    content_type, _ = mimetypes.guess_type(path.name)

    try:
        session.select_file(path.name, content_type, path.read_bytes())
        session.select_kind(kind)
    except StudyGuideError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        progress.add_task(f"Generating {kind.value} from {path.name}...", total=None)
        result = session.generate(StudyGuideService(), api_key)

    if result is None:
        title, description = session.error
        console.print(Panel(description, title=f"[red]{title}[/red]", border_style="red"))
        raise typer.Exit(1)

    console.print(f"[green]✓ Study guide generated![/green]")

    if raw:
        console.print(escape(result.content))
    else:
        display_structured(session.structured())

    if export_format:
        save_export(result, export_format, output_dir)


@app.command()
def structure(
    file_path: str = typer.Argument(..., help="Saved model output to structure"),
    kind: OutputKind = typer.Option(..., "--type", "-t", help="Format the output was generated as"),
    export_format: Optional[str] = typer.Option(None, "--export", "-e", help="Also save as md, txt, docx, html or json"),
    output_dir: str = typer.Option(".", "--output", "-o", help="Directory for exported files")
):
    """Clean and structure previously generated content"""

    if not os.path.exists(file_path):
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(1)

    path = Path(file_path)
    generated = GeneratedContent(type=kind, content=path.read_text(encoding="utf-8"), filename=path.name)
    display_structured(structure_content(generated))

    if export_format:
        save_export(generated, export_format, output_dir)


def save_export(generated: GeneratedContent, fmt: str, output_dir: str):
    """Write one export format into output_dir"""
    try:
        structured = structure_content(generated) if fmt == "json" else None
        body, filename, _ = export(generated, fmt, structured)
    except StudyGuideError as e:
        console.print(f"[yellow]Export failed: {e.message}[/yellow]")
        return

    os.makedirs(output_dir, exist_ok=True)
    target = Path(output_dir) / filename
    target.write_bytes(body)
    console.print(f"[green]✓ Saved to: {target}[/green]")


def display_structured(structured: StructuredContent):
    """Print the structured records for the content's format"""
    if structured.flashcards is not None:
        display_flashcards(structured)
    elif structured.outline is not None:
        display_outline(structured)
    elif structured.key_points is not None:
        display_key_points(structured)
    else:
        console.print(Panel(escape(structured.cleaned), title=structured.type.value.title()))


def display_flashcards(structured: StructuredContent):
    if not structured.flashcards:
        console.print("[yellow]No flashcards found, showing cleaned text[/yellow]")
        console.print(escape(structured.cleaned))
        return

    table = Table(title=f"Flashcards ({len(structured.flashcards)})", show_lines=True)
    table.add_column("#", style="dim")
    table.add_column("Question", style="cyan")
    table.add_column("Answer", style="magenta")

    for i, card in enumerate(structured.flashcards, 1):
        table.add_row(str(i), escape(card.question), escape(card.answer))

    console.print(table)


def display_outline(structured: StructuredContent):
    tree = Tree("[bold blue]Outline[/bold blue]")
    for section in structured.outline:
        branch = tree.add(f"[bold]{escape(section.title)}[/bold]")
        for sub in section.subtopics:
            leaf = branch.add(escape(sub.title))
            for point in sub.points:
                leaf.add(f"[dim]{escape(point)}[/dim]")
    console.print(tree)


def display_key_points(structured: StructuredContent):
    key_points = structured.key_points
    if key_points.intro:
        console.print(f"[italic]{escape(key_points.intro)}[/italic]\n")
    for bullet in key_points.bullets:
        console.print(f"• {escape(bullet)}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Host to bind the server to"),
    port: int = typer.Option(8000, "--port", help="Port to bind the server to")
):
    """Start the FastAPI server"""

    console.print(f"[green]Starting server on {host}:{port}[/green]")

    import uvicorn
    uvicorn.run("studyguide.api:app", host=host, port=port, reload=True)


if __name__ == "__main__":
    app()

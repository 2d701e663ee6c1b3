"""
Exam Grader CLI Application.

Provides a command-line interface for grading a student's answers to a
stored exam, inspecting saved AI responses, and checking configuration.
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from examgrader.config import configure_logging, get_settings
from examgrader.grading import GradingEngine
from examgrader.models import GradingMethod, GradingResult, StudentAnswer
from examgrader.parsing import (
    EXAM_RESPONSE_SCHEMA,
    GRADING_RESPONSE_SCHEMA,
    OCR_RESPONSE_SCHEMA,
    ResponseExtractor,
)
from examgrader.storage import ExamRecordError, normalize_exam_record

SCHEMAS = {
    "grading": GRADING_RESPONSE_SCHEMA,
    "exam": EXAM_RESPONSE_SCHEMA,
    "ocr": OCR_RESPONSE_SCHEMA,
}

app = typer.Typer(
    name="examgrader",
    help="AI-first exam grading with rule-based fallback",
    add_completion=False,
)

console = Console()


def _load_json(path: Path) -> Any:
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] {path} is not valid JSON: {e}")
        raise typer.Exit(1)


def load_answers(data: Any) -> list[StudentAnswer]:
    """
    Read student answers from either a list of answer objects or a
    mapping of question id to answer text.
    """
    if isinstance(data, dict):
        return [StudentAnswer(question_id=k, answer_text=v) for k, v in data.items()]
    if isinstance(data, list):
        return [StudentAnswer.model_validate(item) for item in data]
    raise ValueError("Answers must be a list of answer objects or an object of id/answer pairs")


@app.command()
def grade(
    exam_file: Annotated[Path, typer.Argument(help="Path to the exam record (JSON)")],
    answers_file: Annotated[Path, typer.Argument(help="Path to the student answers (JSON)")],
    attempt: Annotated[
        int,
        typer.Option("--attempt", "-a", min=1, help="Attempt number of this submission"),
    ] = 1,
    no_ai: Annotated[
        bool,
        typer.Option("--no-ai", help="Grade with rules only"),
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the grading result JSON to this path"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show per-question details"),
    ] = False,
) -> None:
    """
    Grade a student's answers to an exam.

    The exam record may be in either the legacy or the current schema.
    Each question is graded by AI when configured, falling back to rules.
    """
    settings = get_settings()
    if no_ai:
        settings = settings.model_copy(update={"use_ai_grading": False})
    configure_logging("DEBUG" if verbose else settings.log_level)

    try:
        exam = normalize_exam_record(_load_json(exam_file))
        answers = load_answers(_load_json(answers_file))
    except ExamRecordError as e:
        console.print(f"[red]Exam Record Error:[/red] {e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Answers Error:[/red] {e}")
        raise typer.Exit(1)

    if verbose:
        console.print(
            Panel(
                f"[green]Exam loaded:[/green] {exam.exam_id}\n"
                f"Subject: {exam.subject or '-'}\n"
                f"Questions: {len(exam.questions)}\n"
                f"Total Points: {exam.max_total_points}",
                title="Exam Info",
            )
        )

    engine = GradingEngine(settings)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task(f"Grading {len(exam.questions)} questions...", total=None)
        result = asyncio.run(engine.grade_exam(exam, answers, attempt))

    if result is None:
        console.print(
            f"[red]Error:[/red] Exam {exam.exam_id} cannot be graded "
            f"(status={exam.status.value}, questions={len(exam.questions)})"
        )
        raise typer.Exit(1)

    _display_results(result, verbose)

    if output:
        output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"\n[green]Result saved to:[/green] {output}")


@app.command()
def parse(
    response_file: Annotated[Path, typer.Argument(help="Path to a saved AI response")],
    schema: Annotated[
        Optional[str],
        typer.Option("--schema", "-s", help="Validate against: grading, exam or ocr"),
    ] = None,
) -> None:
    """
    Run the response extractor on a saved AI response.

    Shows which strategy recovered the JSON and any validation errors.
    """
    if not response_file.exists():
        console.print(f"[red]Error:[/red] File not found: {response_file}")
        raise typer.Exit(1)
    if schema is not None and schema not in SCHEMAS:
        console.print(f"[red]Error:[/red] Unknown schema '{schema}'. Use one of: {', '.join(SCHEMAS)}")
        raise typer.Exit(1)

    raw_text = response_file.read_text(encoding="utf-8")
    result = ResponseExtractor().parse(raw_text, SCHEMAS.get(schema) if schema else None)

    if not result.success:
        console.print(f"[red]✗ Extraction failed:[/red] {result.error}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Parsed[/green] using strategy [cyan]{result.method.value}[/cyan]")
    console.print_json(data=result.data)

    if result.validation_errors:
        console.print("\n[yellow]⚠ Validation issues found:[/yellow]")
        for error in result.validation_errors:
            console.print(f"  • {error}")
        raise typer.Exit(2)


@app.command()
def health() -> None:
    """
    Check if the grading system is operational.

    Shows configuration and verifies AI connectivity.
    """
    settings = get_settings()
    console.print("[bold]Exam Grader Health Check[/bold]\n")

    console.print("[dim]Checking configuration...[/dim]")
    console.print(f"  API Base URL: {settings.llm_base_url}")
    console.print(f"  Model: {settings.llm_model}")
    console.print(f"  AI Grading: {'enabled' if settings.use_ai_grading else 'disabled'}")
    console.print(f"  API Key: {'set' if settings.llm_api_key else 'not set'}")
    console.print(f"  Grade Scale: {settings.grade_scale.name}")

    if not settings.ai_grading_available:
        console.print("\n[yellow]⚠ AI grading unavailable, rule-based grading only[/yellow]")
        return

    console.print("\n[dim]Checking API connectivity...[/dim]")
    if asyncio.run(GradingEngine(settings).health_check()):
        console.print("[green]✓ API is reachable[/green]")
    else:
        console.print("[red]✗ API is not reachable[/red]")
        raise typer.Exit(1)

    console.print("\n[green]All systems operational[/green]")


def _display_results(result: GradingResult, verbose: bool = False) -> None:
    """Display grading results in a formatted table."""
    color = "green" if result.percentage >= 70 else "yellow" if result.percentage >= 50 else "red"
    console.print(
        Panel(
            f"[{color}][bold]Grade {result.final_grade}[/bold] "
            f"{result.total_points:g} / {result.max_total_points} "
            f"({result.percentage}%)[/{color}]\n"
            f"Attempt {result.attempt_number}, "
            f"{result.questions_correct} correct, {result.questions_partial} partial, "
            f"{result.questions_incorrect} incorrect",
            title="Final Grade",
        )
    )

    metadata = result.grading_metadata
    if metadata.primary_method == GradingMethod.RULE_BASED and metadata.ai_available:
        console.print("[yellow]⚠ Most questions fell back to rule-based grading[/yellow]")

    if verbose:
        table = Table(title="Questions")
        table.add_column("ID", style="cyan")
        table.add_column("Answer")
        table.add_column("Expected")
        table.add_column("Points", justify="right")
        table.add_column("Method")
        table.add_column("Feedback")

        for q in result.questions:
            status = "✅" if q.is_fully_correct else "⚠️"
            table.add_row(
                f"{status} {q.question_id}",
                q.student_answer[:40],
                q.expected_answer[:40],
                f"{q.points_awarded:g}/{q.max_points}",
                q.grading_method.value,
                q.feedback[:60],
            )

        console.print(table)

        if metadata.ai_graded:
            usage = metadata.total_usage
            console.print(
                f"[dim]AI usage: {usage.total_token_count} tokens, "
                f"${usage.estimated_cost:.6f}[/dim]"
            )

    if result.wrong_question_ids:
        ids = ", ".join(str(i) for i in result.wrong_question_ids)
        console.print(f"\nQuestions to retry: {ids}")


if __name__ == "__main__":
    app()

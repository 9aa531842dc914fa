"""Typer CLI application for authoring and playing quizzes."""

import logging
import time
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from quizstreak import __version__
from quizstreak.app import build_store
from quizstreak.config.settings import get_app_settings
from quizstreak.export.docx_generator import export_quiz_with_separate_answers, export_to_docx
from quizstreak.export.json_io import dump_quiz_json, import_quiz, parse_quiz_json
from quizstreak.models.quiz import FREEZER_COST, MAX_FREEZERS, DayStatus, Quiz
from quizstreak.models.results import OperationResult
from quizstreak.services.ledger import quiz_stats, retry_question_ids
from quizstreak.services.paused import paused_progress
from quizstreak.services.streak import day_key
from quizstreak.session.engine import (
    LIVE_STATES,
    QuizSession,
    SessionResult,
    resume_session,
    start_session,
)
from quizstreak.store.store import QuizStore

app = typer.Typer(
    name="quizstreak",
    help="Build quizzes, practice them and keep your daily streak alive",
    add_completion=False,
)

console = Console()


@contextmanager
def opened_store() -> Iterator[QuizStore]:
    """Build the store from the environment configuration and flush it on exit."""
    store = build_store(get_app_settings())
    try:
        yield store
    finally:
        store.close()


def fail(message: str) -> None:
    """Print an error and exit with a non-zero status."""
    console.print(f"[red]Error:[/red] {message}", style="bold")
    raise typer.Exit(code=1)


def check(result: OperationResult) -> OperationResult:
    if not result.ok:
        fail(result.message)
    return result


def resolve_quiz(store: QuizStore, ref: str) -> Quiz:
    """Find a quiz by id, unique id prefix or exact title."""
    quizzes = store.list_quizzes()
    exact = [q for q in quizzes if q.id == ref]
    if exact:
        return exact[0]
    matches = [q for q in quizzes if q.id.startswith(ref) or q.title == ref]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        fail(f"No quiz matches '{ref}'")
    fail(f"'{ref}' matches {len(matches)} quizzes, use a longer id")


@app.command("list")
def list_quizzes() -> None:
    """List all quizzes, most recently edited first."""
    with opened_store() as store:
        quizzes = store.list_quizzes()
        if not quizzes:
            console.print("[yellow]No quizzes yet.[/yellow] Import one with `quizstreak import`.")
            return

        table = Table(title="Quizzes", border_style="cyan")
        table.add_column("ID", style="cyan")
        table.add_column("Title", style="white")
        table.add_column("Questions", justify="right")
        table.add_column("Attempts", justify="right")
        table.add_column("Best", justify="right")

        for quiz in quizzes:
            stats = quiz_stats(store.read(), quiz.id)
            best = f"{stats.best_score:.0f}%" if stats.best_score is not None else "-"
            table.add_row(quiz.id[:8], quiz.title, str(len(quiz.questions)), str(stats.attempts), best)

    console.print(table)


@app.command()
def show(quiz_ref: str = typer.Argument(..., help="Quiz id, id prefix or title")) -> None:
    """Show a quiz with its questions and correct answers."""
    with opened_store() as store:
        quiz = resolve_quiz(store, quiz_ref)

    console.print(Panel(quiz.description or "No description", title=quiz.title, border_style="cyan"))
    for number, question in enumerate(quiz.sorted_questions, 1):
        marker = "" if question.is_playable else " [red](no correct answer, skipped in play)[/red]"
        console.print(f"\n[bold]Q{number}.[/bold] {question.text}{marker}  [dim]{question.id[:8]}[/dim]")
        for answer in question.answers:
            tick = "[green]✓[/green]" if answer.is_correct else " "
            console.print(f"   {tick} {answer.text}")


@app.command("import")
def import_command(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file to import"),
) -> None:
    """Import a quiz from a JSON file shaped like {title, questions}."""
    payload = check(parse_quiz_json(path.read_text(encoding="utf-8"))).value
    with opened_store() as store:
        quiz = check(import_quiz(store, payload)).value

    console.print(
        f"[green]✓[/green] Imported '{quiz.title}' with {len(quiz.questions)} questions "
        f"([cyan]{quiz.id[:8]}[/cyan])"
    )


@app.command()
def export(
    quiz_ref: str = typer.Argument(..., help="Quiz id, id prefix or title"),
    output: str = typer.Option("quiz", "--output", "-o", help="Output file path (without extension)"),
    fmt: str = typer.Option("json", "--format", "-f", help="json or docx"),
    separate_answers: bool = typer.Option(
        True,
        "--separate-answers/--include-answers",
        help="DOCX only: separate answer key file vs answers marked in the quiz",
    ),
) -> None:
    """Export a quiz as JSON or as a Word document."""
    with opened_store() as store:
        quiz = resolve_quiz(store, quiz_ref)
    output_dir = get_app_settings().export_dir

    if fmt == "json":
        target = Path(f"{output}.json")
        target.write_text(dump_quiz_json(quiz), encoding="utf-8")
        console.print(f"[green]✓[/green] Quiz exported to: {target}")
    elif fmt == "docx":
        if separate_answers:
            questions_file, answers_file = export_quiz_with_separate_answers(
                quiz, output, output_dir=output_dir
            )
            console.print("[green]✓[/green] Quiz exported successfully!")
            console.print(f"  Questions: {questions_file}")
            console.print(f"  Answers:   {answers_file}")
        else:
            output_file = export_to_docx(quiz, f"{output}.docx", True, output_dir=output_dir)
            console.print(f"[green]✓[/green] Quiz exported to: {output_file}")
    else:
        fail(f"Unknown format '{fmt}', use json or docx")


@app.command("new")
def new_quiz(
    title: str = typer.Argument(..., help="Quiz title"),
    description: str = typer.Option("", "--description", "-d", help="Quiz description"),
) -> None:
    """Create an empty quiz."""
    with opened_store() as store:
        quiz = check(store.add_quiz(title, description)).value
    console.print(f"[green]✓[/green] Created '{quiz.title}' ([cyan]{quiz.id[:8]}[/cyan])")


@app.command("add-question")
def add_question(
    quiz_ref: str = typer.Argument(..., help="Quiz id, id prefix or title"),
    text: str = typer.Option(..., "--text", "-t", help="Question text"),
    answers: List[str] = typer.Option(..., "--answer", "-a", help="Answer text (repeat 2-6 times)"),
    correct: List[int] = typer.Option(..., "--correct", "-c", help="1-based number of a correct answer"),
) -> None:
    """Append a question to a quiz."""
    correct_set = set(correct)
    payload = [
        {"text": answer, "is_correct": number in correct_set}
        for number, answer in enumerate(answers, 1)
    ]
    with opened_store() as store:
        quiz = resolve_quiz(store, quiz_ref)
        question = check(store.add_question(quiz.id, text, payload)).value
    console.print(f"[green]✓[/green] Added question {question.order_index + 1} to '{quiz.title}'")


@app.command()
def delete(
    quiz_ref: str = typer.Argument(..., help="Quiz id, id prefix or title"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a quiz together with its history and paused runs."""
    with opened_store() as store:
        quiz = resolve_quiz(store, quiz_ref)
        if not yes and not Confirm.ask(f"Delete '{quiz.title}' and all its history?"):
            raise typer.Exit()
        check(store.delete_quiz(quiz.id))
    console.print(f"[green]✓[/green] Deleted '{quiz.title}'")


@app.command()
def play(
    quiz_ref: str = typer.Argument(..., help="Quiz id, id prefix or title"),
    shuffle: Optional[bool] = typer.Option(None, "--shuffle/--no-shuffle", help="Shuffle questions"),
    shuffle_answers: Optional[bool] = typer.Option(
        None, "--shuffle-answers/--no-shuffle-answers", help="Shuffle answers"
    ),
    retry_run: Optional[str] = typer.Option(
        None, "--retry-run", help="Practice only the mistakes of this run (not saved)"
    ),
    discard_paused: bool = typer.Option(
        False, "--discard-paused", help="Throw away a paused run of this quiz"
    ),
) -> None:
    """Play a quiz interactively."""
    with opened_store() as store:
        quiz = resolve_quiz(store, quiz_ref)

        question_ids = None
        if retry_run:
            run = store.get_run(retry_run)
            if run is None:
                fail(f"Run '{retry_run}' not found")
            question_ids = retry_question_ids(run, quiz)
            if not question_ids:
                fail("That run has no mistakes left to retry")

        result = check(
            start_session(
                store,
                quiz.id,
                shuffle_questions=shuffle,
                shuffle_answers=shuffle_answers,
                question_ids=question_ids,
                discard_paused=discard_paused,
                auto_advance=False,
            )
        )
        run_session(store, result.value)


@app.command()
def resume(paused_id: str = typer.Argument(..., help="Paused run id")) -> None:
    """Resume a paused run."""
    with opened_store() as store:
        result = check(resume_session(store, paused_id, auto_advance=False))
        run_session(store, result.value)


def run_session(store: QuizStore, session: QuizSession) -> None:
    """Drive a session from the terminal until it finishes, pauses or exits."""
    settings = store.read().settings
    if session.is_mini_run:
        console.print("[dim]Practice mode - results won't be saved[/dim]")

    try:
        while session.state in LIVE_STATES:
            question = session.current_question
            console.print(
                f"\n[bold cyan]Question {session.current_index + 1}/{session.total_questions}[/bold cyan]"
            )
            console.print(Panel(question.text, border_style="cyan"))
            for number, answer in enumerate(question.answers, 1):
                mark = "[cyan]*[/cyan]" if answer.id in session.selected_answer_ids else " "
                console.print(f" {mark} {number}. {answer.text}")

            raw = Prompt.ask("Answer number(s), [bold]p[/bold]ause or [bold]e[/bold]nd early")
            command = raw.strip().lower()
            if command == "p":
                paused = check(session.pause())
                if paused.value:
                    console.print(f"[yellow]Paused.[/yellow] Resume with: quizstreak resume {paused.value}")
                return
            if command == "e":
                show_result(session.end_early())
                return

            for token in command.replace(",", " ").split():
                if not token.isdigit() or not 1 <= int(token) <= len(question.answers):
                    console.print(f"[red]Ignoring '{token}'[/red]")
                    continue
                session.toggle(question.answers[int(token) - 1].id)

            submitted = session.submit()
            if not submitted.ok:
                console.print(f"[red]{submitted.message}[/red]")
                continue

            if submitted.value.is_correct:
                console.print("[green bold]Correct![/green bold]")
            else:
                correct = ", ".join(a.text for a in question.answers if a.is_correct)
                console.print(f"[red bold]Wrong.[/red bold] Correct: {correct}")

            if settings.manual_confirmation:
                Prompt.ask("Press Enter for the next question", default="", show_default=False)
            else:
                time.sleep(settings.auto_advance_delay)
            finished = session.next()
            if finished:
                show_result(finished)
    except KeyboardInterrupt:
        saved = session.on_backgrounded()
        session.close()
        if saved:
            console.print(f"\n[yellow]Progress saved.[/yellow] Resume with: quizstreak resume {saved}")
        elif session.result:
            show_result(session.result)


def show_result(result: SessionResult) -> None:
    """Display the summary of a finished session."""
    table = Table(title="Results", border_style="green", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    score = result.score_percentage
    score_str = f"{score:.0f}%"
    if score >= 80:
        score_str = f"[green]{score_str}[/green]"
    elif score >= 50:
        score_str = f"[yellow]{score_str}[/yellow]"
    else:
        score_str = f"[red]{score_str}[/red]"

    table.add_row("Quiz", result.quiz_title)
    table.add_row("Score", score_str)
    table.add_row("Correct", str(result.correct_count))
    table.add_row("Wrong", str(result.wrong_count))
    table.add_row("Answered", str(result.total_questions))
    if result.is_incomplete:
        table.add_row("Status", "[yellow]Ended early[/yellow]")
    if result.is_mini_run:
        table.add_row("Mode", "Practice (not saved)")
    else:
        table.add_row("Diamonds", f"+{result.diamonds_earned:.1f}")
    if result.run_id:
        table.add_row("Run", result.run_id)

    console.print()
    console.print(table)


@app.command()
def history(
    quiz_ref: Optional[str] = typer.Option(None, "--quiz", "-q", help="Only this quiz"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of runs to show", min=1),
) -> None:
    """Show paused runs and past results."""
    with opened_store() as store:
        state = store.read()
        quiz = resolve_quiz(store, quiz_ref) if quiz_ref else None
        runs = store.runs_for_quiz(quiz.id) if quiz else state.runs
        paused_runs = store.paused_runs_for_quiz(quiz.id) if quiz else state.paused_runs
        paused_quizzes = {p.id: store.get_quiz(p.quiz_id) for p in paused_runs}

    if paused_runs:
        paused_table = Table(title="Paused", border_style="yellow")
        paused_table.add_column("ID", style="cyan")
        paused_table.add_column("Quiz", style="white")
        paused_table.add_column("Paused at")
        paused_table.add_column("Progress", justify="right")
        for record in paused_runs:
            paused_quiz = paused_quizzes[record.id]
            paused_table.add_row(
                record.id,
                paused_quiz.title if paused_quiz else "?",
                record.timestamp.strftime("%Y-%m-%d %H:%M"),
                f"{paused_progress(record, paused_quiz)}%",
            )
        console.print(paused_table)

    if not runs:
        console.print("[yellow]No completed runs yet.[/yellow]")
        return

    table = Table(title="History", border_style="cyan")
    table.add_column("Run", style="cyan")
    table.add_column("Quiz", style="white")
    table.add_column("Date")
    table.add_column("Score", justify="right")
    table.add_column("Correct", justify="right")
    table.add_column("Diamonds", justify="right")
    for run in runs[:limit]:
        flag = " [yellow](early)[/yellow]" if run.is_incomplete else ""
        table.add_row(
            run.id,
            run.quiz_title + flag,
            run.timestamp.strftime("%Y-%m-%d %H:%M"),
            f"{run.score_percentage:.0f}%",
            f"{run.correct_count}/{run.total_questions}",
            f"{run.diamonds_earned or 0:.1f}",
        )
    console.print(table)


@app.command()
def streak(days: int = typer.Option(14, "--days", help="Days of history to show", min=1)) -> None:
    """Show the streak, freezers, diamonds and recent days."""
    with opened_store() as store:
        state = store.read()
        today = store.today()
    data = state.streak

    table = Table(title="Streak", show_header=False, border_style="cyan")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Current streak", f"{data.current_streak} day(s)")
    table.add_row("Last completed", data.last_completed_date or "never")
    table.add_row("Freezers", f"{data.freezers} / {MAX_FREEZERS}")
    table.add_row("Diamonds", f"{state.diamonds:.1f}")
    console.print(table)

    symbols = {DayStatus.COMPLETED: "[green]●[/green]", DayStatus.FREEZED: "[blue]❄[/blue]"}
    cells = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        cells.append(symbols.get(data.history.get(day_key(day)), "[dim]·[/dim]"))
    console.print("Last days: " + " ".join(cells))


@app.command("buy-freezer")
def buy_freezer() -> None:
    """Spend diamonds on a streak freezer."""
    with opened_store() as store:
        freezers = check(store.buy_freezer()).value
    console.print(
        f"[green]✓[/green] Bought a freezer for {FREEZER_COST:g} diamonds "
        f"({freezers}/{MAX_FREEZERS})"
    )


@app.command()
def settings(
    shuffle: Optional[bool] = typer.Option(None, "--shuffle/--no-shuffle", help="Shuffle questions by default"),
    shuffle_answers: Optional[bool] = typer.Option(
        None, "--shuffle-answers/--no-shuffle-answers", help="Shuffle answers by default"
    ),
    manual: Optional[bool] = typer.Option(
        None, "--manual/--auto", help="Confirm each question manually vs auto-advance"
    ),
    delay: Optional[float] = typer.Option(None, "--delay", help="Auto-advance delay in seconds", min=0.0),
    name: Optional[str] = typer.Option(None, "--name", help="Display name"),
) -> None:
    """Show or change preferences."""
    updates = {
        "default_shuffle": shuffle,
        "default_shuffle_answers": shuffle_answers,
        "manual_confirmation": manual,
        "auto_advance_delay": delay,
        "display_name": name,
    }
    updates = {key: value for key, value in updates.items() if value is not None}
    with opened_store() as store:
        current = check(store.update_settings(**updates)).value if updates else store.read().settings

    table = Table(title="Settings", show_header=False, border_style="cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    for key, value in current.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def info() -> None:
    """Display information about quizstreak."""
    info_text = f"""
[bold cyan]quizstreak[/bold cyan]
Version: {__version__}

[bold]Features:[/bold]
  • Multi-answer questions graded by exact match
  • Question and answer shuffling
  • Pause, resume and end-early sessions
  • Practice runs for your mistakes
  • Daily streaks with freezers bought with diamonds
  • JSON import/export and DOCX export

[bold]Data:[/bold] {get_app_settings().data_dir}
    """
    console.print(Panel(info_text, title="quizstreak Info", border_style="cyan"))


@app.callback()
def callback() -> None:
    """
    quizstreak - Build quizzes, practice them and keep your daily streak alive.
    """
    logging.basicConfig(
        level=getattr(logging, get_app_settings().log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


if __name__ == "__main__":
    app()

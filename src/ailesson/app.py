"""Interactive CLI application."""
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from ailesson.achievements import get_user_achievements
from ailesson.config import get_settings
from ailesson.dashboard import get_progress_color, get_student_progress
from ailesson.db import init_db
from ailesson.errors import LessonEngineError
from ailesson.leaderboard import get_leaderboard, reset_daily_leaderboard
from ailesson.ledger import get_transactions
from ailesson.lessons import create_lesson, list_lessons
from ailesson.models import MULTIPLE, ROLES, SINGLE, STUDENT, Question
from ailesson.quiz import complete_attempt, get_quiz_questions, start_attempt, submit_answer
from ailesson.seed import is_seeded, seed_all
from ailesson.users import create_user, find_user_by_email, get_user, list_users

console = Console()


def configure_logging(level: int | str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def show_welcome():
    console.print(Panel(
        "[bold]AILesson[/bold]\n[dim]Quizzes, wisdom coins and achievements[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("user", "Log in or register"),
        ("lesson", "Create a lesson from a text file"),
        ("lessons", "List lessons"),
        ("quiz", "Take a lesson quiz"),
        ("leaderboard", "Today's ranking"),
        ("achievements", "Your achievements"),
        ("coins", "Wisdom coin history"),
        ("progress", "Student progress report"),
        ("reset", "Run the daily leaderboard reset"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def ask_answer(question: Question):
    """Prompt for an answer in the shape the question type expects."""
    if question.type == SINGLE:
        for i, option in enumerate(question.options, 1):
            console.print(f"  [cyan]{i})[/cyan] {option}")
        choice = IntPrompt.ask(
            "\nYour answer", choices=[str(i) for i in range(1, len(question.options) + 1)],
        )
        return question.options[choice - 1]
    if question.type == MULTIPLE:
        for i, option in enumerate(question.options, 1):
            console.print(f"  [cyan]{i})[/cyan] {option}")
        raw = Prompt.ask("\nYour answers (comma separated numbers)")
        picked = []
        for part in raw.split(","):
            part = part.strip()
            if part.isdigit() and 1 <= int(part) <= len(question.options):
                picked.append(question.options[int(part) - 1])
        return picked
    return Prompt.ask("\nYour answer")


def run_quiz_session(db_path: str, user_id: int, quiz_id: int) -> None:
    questions = get_quiz_questions(db_path, quiz_id)
    if not questions:
        console.print("[yellow]This quiz has no questions![/yellow]")
        return
    attempt_id = start_attempt(db_path, quiz_id, user_id)
    console.print(f"\n[bold]Quiz[/bold]: {len(questions)} questions\n")
    for i, q in enumerate(questions, 1):
        console.print(f"[bold]Q{i}.[/bold] {q.text}\n")
        answer = ask_answer(q)
        result = submit_answer(db_path, attempt_id, q.id, answer, user_id=user_id)
        if result.is_correct:
            console.print(f"[green]Correct![/green] +{result.points_delta} points, +{result.coins_delta} coins")
        else:
            console.print(f"[red]Incorrect.[/red] {result.points_delta} point")
        console.print()

    outcome = complete_attempt(db_path, attempt_id, user_id=user_id)
    console.print(
        f"[bold]Score: {outcome.score}[/bold] "
        f"({outcome.correct_count}/{outcome.total_count} correct)"
    )
    if outcome.is_perfect:
        console.print(f"[green]Perfect quiz! +{outcome.bonus_awarded} bonus points[/green]")
    for a in outcome.new_achievements:
        console.print(f"[magenta]Achievement unlocked:[/magenta] {a.icon} {a.name}: {a.description}")


def cmd_user(db_path: str) -> int | None:
    email = Prompt.ask("Email")
    user = find_user_by_email(db_path, email)
    if user:
        console.print(f"[green]Welcome back, {user['name']}![/green]")
        return user["id"]
    console.print("[dim]New account[/dim]")
    name = Prompt.ask("Name")
    role = Prompt.ask("Role", choices=[r.lower() for r in ROLES], default="student")
    user_id = create_user(db_path, name, email, role.upper())
    user = get_user(db_path, user_id)
    console.print(f"[green]Registered! Starting balance: {user['wisdom_coins']} coins[/green]")
    return user_id


def cmd_lesson(db_path: str, user_id: int):
    file_path = Prompt.ask("Lesson file (.txt or .md)")
    path = Path(file_path)
    if not path.is_file():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    title = Prompt.ask("Title", default=path.stem.replace("_", " ").title())
    subject = Prompt.ask("Subject", default="General")
    with console.status("Generating quiz..."):
        result = create_lesson(db_path, user_id, title, path.read_text(encoding="utf-8"), subject)
    console.print(
        f"[green]Created lesson {result['lesson_id']} with a {result['question_count']}-question quiz[/green]"
    )


def cmd_lessons(db_path: str):
    lessons = list_lessons(db_path)
    if not lessons:
        console.print("[yellow]No lessons yet.[/yellow]")
        return
    table = Table(title="Lessons")
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Subject")
    table.add_column("Questions", justify="right")
    for lesson in lessons:
        table.add_row(
            str(lesson["id"]), lesson["title"], lesson["subject"] or "", str(lesson["question_count"] or 0),
        )
    console.print(table)


def cmd_quiz(db_path: str, user_id: int):
    lessons = [lesson for lesson in list_lessons(db_path) if lesson["quiz_id"]]
    if not lessons:
        console.print("[yellow]No quizzes available![/yellow]")
        return
    for lesson in lessons:
        console.print(f"  [cyan]{lesson['id']}[/cyan]) {lesson['title']}")
    lesson_id = IntPrompt.ask("Select lesson", choices=[str(lesson["id"]) for lesson in lessons])
    quiz_id = next(lesson["quiz_id"] for lesson in lessons if lesson["id"] == lesson_id)
    run_quiz_session(db_path, user_id, quiz_id)


def cmd_leaderboard(db_path: str, user_id: int | None = None):
    entries = get_leaderboard(db_path, limit=20)
    if not entries:
        console.print("[yellow]Leaderboard is empty.[/yellow]")
        return
    table = Table(title="Daily Leaderboard")
    table.add_column("#", justify="right")
    table.add_column("Student", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Quizzes", justify="right")
    table.add_column("Accuracy", justify="right")
    for e in entries:
        name = f"[bold]{e['name']}[/bold]" if e["user_id"] == user_id else e["name"]
        table.add_row(str(e["rank"]), name, str(e["score"]), str(e["quiz_count"]), f"{e['accuracy']}%")
    console.print(table)


def cmd_achievements(db_path: str, user_id: int):
    table = Table(title="Achievements")
    table.add_column("")
    table.add_column("Achievement", style="cyan")
    table.add_column("Description")
    table.add_column("Status")
    for a in get_user_achievements(db_path, user_id):
        status = "[green]Earned[/green]" if a["is_earned"] else f"[dim]{a['progress']}/{a['total']}[/dim]"
        table.add_row(a["icon"] or "", a["name"], a["description"] or "", status)
    console.print(table)


def cmd_coins(db_path: str, user_id: int):
    user = get_user(db_path, user_id)
    console.print(f"\n  Balance: [bold]{user['wisdom_coins']}[/bold] wisdom coins\n")
    table = Table(title="Recent Transactions")
    table.add_column("When")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Description")
    for tx in get_transactions(db_path, user_id, limit=15):
        color = "green" if tx["amount"] > 0 else "red"
        table.add_row(
            (tx["created_at"] or "")[:16], tx["type"], f"[{color}]{tx['amount']:+d}[/{color}]", tx["description"] or "",
        )
    console.print(table)


def cmd_progress(db_path: str, user_id: int):
    user = get_user(db_path, user_id)
    if user["role"] == STUDENT:
        student_id = user_id
    else:
        students = list_users(db_path, role=STUDENT)
        if not students:
            console.print("[yellow]No students yet.[/yellow]")
            return
        for s in students:
            console.print(f"  [cyan]{s['id']}[/cyan]) {s['name']}")
        student_id = IntPrompt.ask("Select student", choices=[str(s["id"]) for s in students])
    report = get_student_progress(db_path, student_id, viewer_id=user_id)
    stats = report["stats"]
    color = get_progress_color(stats["accuracy"])
    console.print(Panel(
        f"[bold]{report['student']['name']}[/bold]  |  Coins: {report['student']['wisdom_coins']}\n"
        f"Quizzes: [bold]{stats['quizzes_completed']}[/bold]  |  "
        f"Perfect: [bold]{stats['perfect_quizzes']}[/bold]  |  "
        f"Accuracy: [{color}]{stats['accuracy']}% {report['label']}[/{color}]",
        title="Student Progress", border_style="blue",
    ))
    if report["attempts"]:
        table = Table(title="Completed Quizzes")
        table.add_column("Lesson", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Accuracy", justify="right")
        table.add_column("Completed")
        for a in report["attempts"]:
            table.add_row(a["lesson_title"], str(a["score"]), f"{a['accuracy']}%", (a["completed_at"] or "")[:16])
        console.print(table)


def cmd_reset(db_path: str):
    result = reset_daily_leaderboard(db_path)
    if not result.success:
        console.print(f"[red]Reset failed: {result.error}[/red]")
        return
    if result.leader:
        console.print(
            f"[green]{result.leader.name} won with {result.leader.score} points "
            f"(+{result.leader.coins_awarded} coins)[/green]"
        )
    else:
        console.print("[dim]No students on the leaderboard.[/dim]")
    console.print(f"Reset {result.students_reset} student entries.")


def main():
    settings = get_settings()
    configure_logging(settings.log_level)
    db_path = settings.db_path
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    show_welcome()
    user_id = None

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="quiz" if user_id else "user").strip().lower()
        try:
            if choice in ("quit", "exit", "q"):
                console.print("[dim]See you next lesson![/dim]")
                break
            elif choice == "user":
                user_id = cmd_user(db_path)
            elif choice == "lessons":
                cmd_lessons(db_path)
            elif choice == "leaderboard":
                cmd_leaderboard(db_path, user_id)
            elif choice == "reset":
                cmd_reset(db_path)
            elif choice in ("lesson", "quiz", "achievements", "coins", "progress") and user_id is None:
                console.print("[yellow]Log in first with 'user'.[/yellow]")
            elif choice == "lesson":
                cmd_lesson(db_path, user_id)
            elif choice == "quiz":
                cmd_quiz(db_path, user_id)
            elif choice == "achievements":
                cmd_achievements(db_path, user_id)
            elif choice == "coins":
                cmd_coins(db_path, user_id)
            elif choice == "progress":
                cmd_progress(db_path, user_id)
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except LessonEngineError as e:
            console.print(f"[red]{e}[/red]")
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()

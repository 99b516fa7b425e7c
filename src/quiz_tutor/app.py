"""Interactive CLI application."""
import json
import logging
import time
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from quiz_tutor.config import get_all_settings, get_setting, load_session_config, set_setting
from quiz_tutor.content import (
    QuestionBank, due_questions, filter_questions, load_bundled_sets, load_question_sets,
)
from quiz_tutor.db import DEFAULT_DB_PATH, init_db
from quiz_tutor.errors import ContentError, QuizError
from quiz_tutor.history import get_accuracy_by_mode, get_best_score, get_outcomes
from quiz_tutor.logging_config import setup_logging
from quiz_tutor.modes import (
    MockTestSession, StandardSession, SurvivalSession, SyntaxSprintSession, TimeAttackSession,
)
from quiz_tutor.persist import PersistenceSink, commit_session
from quiz_tutor.results import (
    NEXT_SET, REVIEW_MISTAKES, TRY_AGAIN, evaluation_tier, suggest_actions, summarize,
    tier_color, tier_label,
)
from quiz_tutor.review import count_due_today, delete_review_item, get_weak_categories
from quiz_tutor.session import Phase

logger = logging.getLogger(__name__)

console = Console()

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """Raised when the user leaves a session from any prompt."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer is not None and answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list) -> int:
    return int(session_prompt(prompt, choices=list(choices) + list(EXIT_WORDS)))


class Ticker:
    """Feeds wall-clock seconds to a controller as discrete ticks."""

    def __init__(self, controller):
        self.controller = controller
        self._last = time.monotonic()

    def sync(self) -> None:
        whole = int(time.monotonic() - self._last)
        if whole:
            self._last += whole
            self.controller.advance_clock(whole)


def show_welcome():
    console.print(Panel(
        "[bold]Quiz Tutor[/bold]\n[dim]Practice sessions with spaced review[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu(db_path: str):
    due = count_due_today(db_path)
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("quiz", "Standard quiz on one set"),
        ("mock", "Mock test (answer sheet, commit at the end)"),
        ("timeattack", "Time attack (5 minutes, misses cost time)"),
        ("survival", "Survival (one life, one revive)"),
        ("sprint", "Syntax sprint (beat the refilling clock)"),
        ("review", f"Spaced review ({due} due today)"),
        ("history", "Past results and weak areas"),
        ("settings", "View or change settings"),
        ("import", "Add a question set file"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def drain_events(controller) -> None:
    """Empty the controller's event queue; the prompts read state directly."""
    for event in controller.channel.drain():
        logger.debug("%s session event %s %s", controller.mode.value, event.kind, event.payload)


def print_question(controller, extra: str = ""):
    q = controller.current_question
    header = f"Q{controller.question_number}/{len(controller.questions)}"
    if extra:
        header += f"  {extra}"
    console.print(f"\n[bold]{header}[/bold]  {q.prompt}\n")
    for i, option in enumerate(q.options, 1):
        console.print(f"  [cyan]{i})[/cyan] {option}")


def _option_choices(controller) -> list:
    return [str(i) for i in range(1, len(controller.current_question.options) + 1)]


def show_feedback(question, correct: bool, time_up: bool = False):
    if time_up:
        console.print("[red]Time's up![/red]")
    if correct:
        console.print("[green]Correct![/green]")
    else:
        console.print(f"[red]Incorrect.[/red] Answer: [green]{question.correct_option}[/green]")
    if question.explanation:
        console.print(f"[dim]{question.explanation}[/dim]")


def play_standard(controller):
    ticker = Ticker(controller)
    while not controller.is_finished:
        drain_events(controller)
        state = controller.current_state
        limit = controller.question_seconds
        print_question(controller, f"[dim]{limit}s per question[/dim]" if limit else "")
        choice = session_prompt("\nYour answer", choices=_option_choices(controller))
        ticker.sync()
        if not state.locked:
            controller.select(int(choice) - 1)
        show_feedback(state.question, bool(state.is_correct), time_up=not state.answered)
        session_prompt("[dim]Press Enter to continue[/dim]", default="")
        ticker.sync()
        controller.advance()


def play_time_attack(controller):
    ticker = Ticker(controller)
    while not controller.is_finished:
        drain_events(controller)
        print_question(
            controller,
            f"[yellow]{controller.remaining_seconds}s left[/yellow]  mistakes {controller.mistakes}",
        )
        choice = session_prompt("\nYour answer", choices=_option_choices(controller))
        ticker.sync()
        if controller.is_finished:
            console.print("[red]Time's up![/red]")
            break
        question = controller.current_question
        correct = controller.select(int(choice) - 1)
        if correct:
            console.print("[green]Correct![/green]")
        else:
            console.print(
                f"[red]Incorrect (-{controller.penalty}s).[/red] Answer: "
                f"[green]{question.correct_option}[/green]"
            )


def play_survival(controller):
    ticker = Ticker(controller)
    while not controller.is_finished:
        drain_events(controller)
        if controller.phase is Phase.AWAITING_REVIVE:
            use_revive = Confirm.ask(
                f"[yellow]Missed! Streak {controller.streak}. Use your one revive?[/yellow]"
            )
            # time spent deciding must not reach the next question's timer
            ticker.sync()
            if use_revive:
                controller.grant_revive()
            else:
                controller.decline_revive()
            continue
        state = controller.current_state
        print_question(controller, f"streak {controller.streak}  [dim]{controller.question_seconds}s[/dim]")
        choice = session_prompt("\nYour answer", choices=_option_choices(controller))
        ticker.sync()
        if state.locked:
            show_feedback(state.question, False, time_up=True)
            continue
        correct = controller.select(int(choice) - 1)
        if not correct:
            show_feedback(state.question, False)


def play_sprint(controller):
    ticker = Ticker(controller)
    while not controller.is_finished:
        drain_events(controller)
        state = controller.current_state
        print_question(
            controller,
            f"[yellow]{controller.remaining_seconds}s[/yellow]  combo {controller.combo}",
        )
        choice = session_prompt(
            "\nAnswer, [cyan]p[/cyan]ass or [cyan]h[/cyan]int",
            choices=_option_choices(controller) + ["p", "h"],
        )
        ticker.sync()
        if controller.is_finished:
            console.print("[red]Time's up![/red]")
            break
        if choice == "h":
            hint = controller.hint("eliminate")
            if hint is None:
                console.print("[dim]No more hints for this question.[/dim]")
            else:
                console.print(f"[dim]Not option {hint + 1}. (-5s)[/dim]")
            continue
        if choice == "p":
            controller.pass_question()
            show_feedback(state.question, False)
        elif controller.select(int(choice) - 1):
            show_feedback(state.question, True)
        else:
            console.print(f"[red]Incorrect (-{controller.penalty}s)[/red]")
            continue
        if controller.reviewing:
            session_prompt("[dim]Press Enter for the next question[/dim]", default="")
            ticker.sync()
            controller.advance()


def show_answer_sheet(controller):
    table = Table(title="Answer Sheet")
    table.add_column("#", justify="right")
    table.add_column("Answer")
    table.add_column("Marked")
    for row in controller.answer_sheet():
        selected = row["selected_index"]
        table.add_row(
            str(row["number"]),
            str(selected + 1) if selected is not None else "[red]-[/red]",
            "*" if row["marked"] else "",
        )
    console.print(table)


def play_mock_test(controller):
    ticker = Ticker(controller)
    while not controller.is_finished:
        drain_events(controller)
        if controller.phase is Phase.SCORING:
            show_answer_sheet(controller)
            if controller.timed_out:
                console.print("[red]Time is up.[/red]")
                session_prompt("[dim]Press Enter to submit[/dim]", default="")
                controller.commit()
                break
            answer = session_prompt("Question number to revisit, or [cyan]c[/cyan] to commit")
            if answer.strip().lower() == "c":
                controller.commit()
            elif answer.strip().isdigit():
                controller.revisit(int(answer) - 1)
            continue
        state = controller.current_state
        remaining = controller.remaining_seconds
        print_question(controller, f"[yellow]{remaining // 60}:{remaining % 60:02d}[/yellow]"
                       if remaining is not None else "")
        if state.selected_index is not None:
            console.print(f"[dim]Current answer: {state.selected_index + 1}[/dim]")
        choice = session_prompt(
            "\nAnswer, [cyan]n[/cyan]ext, [cyan]b[/cyan]ack, [cyan]m[/cyan]ark",
            choices=_option_choices(controller) + ["n", "b", "m"],
        )
        ticker.sync()
        if controller.phase is not Phase.ACTIVE:
            continue
        if choice == "n":
            controller.next_question()
        elif choice == "b":
            controller.previous_question()
        elif choice == "m":
            marked = controller.toggle_mark()
            console.print("[dim]Marked.[/dim]" if marked else "[dim]Unmarked.[/dim]")
        else:
            controller.select(int(choice) - 1)
            controller.next_question()


PLAYERS = {
    StandardSession: play_standard,
    MockTestSession: play_mock_test,
    TimeAttackSession: play_time_attack,
    SurvivalSession: play_survival,
    SyntaxSprintSession: play_sprint,
}


def show_results(controller, has_next_set: bool = False) -> dict:
    outcome = controller.outcome
    summary = summarize(outcome, controller.questions, has_next_set=has_next_set)
    tier = evaluation_tier(outcome.accuracy)
    color = tier_color(tier)
    console.print(Panel(
        f"[bold {color}]{tier_label(tier)}[/bold {color}]\n"
        f"Score: [bold]{outcome.score}[/bold]   Correct: {outcome.correct}/{outcome.total}"
        f" ({summary['accuracy']}%)   Time: {outcome.duration}s",
        title=f"{outcome.mode.replace('_', ' ').title()} Result", border_style=color,
    ))
    for key, value in outcome.metrics.items():
        console.print(f"  [dim]{key.replace('_', ' ')}:[/dim] {value}")
    wrong = [item for item in summary["items"] if not item["is_correct"]]
    if wrong:
        table = Table(title="Review")
        table.add_column("Question")
        table.add_column("Your answer")
        table.add_column("Correct answer", style="green")
        for item in wrong:
            table.add_row(item["prompt"] or item["question_id"], item["selected"] or "-",
                          item["correct_answer"] or "")
        console.print(table)
    return summary


def run_session(db_path: str, controller, bank: QuestionBank = None):
    """Play sessions until the user stops choosing follow-ups."""
    sink = PersistenceSink(db_path)
    while controller is not None:
        if controller.error is not None:
            console.print("[yellow]No questions available![/yellow]")
            return
        try:
            PLAYERS[type(controller)](controller)
        except SessionExitRequested:
            controller.abandon()
            drain_events(controller)
            console.print("[dim]Session abandoned; nothing was saved.[/dim]")
            return
        drain_events(controller)
        next_set = None
        if bank is not None and controller.config.set_id:
            next_set = bank.next_set(controller.config.set_id)
        show_results(controller, has_next_set=next_set is not None)
        report = commit_session(controller, sink)
        if report is not None and not report.saved:
            console.print("[yellow]Your progress may not have saved.[/yellow]")
        actions = suggest_actions(controller.outcome, has_next_set=next_set is not None)
        choices = [a.kind for a in actions]
        choice = Prompt.ask("Next", choices=choices, default=choices[0])
        if choice == TRY_AGAIN:
            controller = controller.retry()
        elif choice == REVIEW_MISTAKES:
            controller = controller.review_mistakes()
        elif choice == NEXT_SET:
            controller = controller.next_set(next_set.questions, set_id=next_set.set_id)
        else:
            controller = None


def choose_set(bank: QuestionBank):
    for i, s in enumerate(bank.sets, 1):
        console.print(f"  [cyan]{i}[/cyan]) {s.name} [dim]({len(s.questions)} questions)[/dim]")
    index = IntPrompt.ask("Select set", choices=[str(i) for i in range(1, len(bank.sets) + 1)])
    return bank.sets[index - 1]


def cmd_quiz(db_path: str, bank: QuestionBank):
    console.print("\n[bold]Standard Quiz[/bold]")
    question_set = choose_set(bank)
    config = load_session_config(db_path, "standard", set_id=question_set.set_id)
    run_session(db_path, StandardSession(question_set.questions, config), bank)


def cmd_mock(db_path: str, bank: QuestionBank):
    console.print("\n[bold]Mock Test[/bold]")
    best = get_best_score(db_path, "mock_test")
    if best:
        console.print(f"[dim]Best score so far: {best}[/dim]")
    config = load_session_config(db_path, "mock_test", set_id="MOCK_TEST")
    run_session(db_path, MockTestSession(bank.questions, config))


def cmd_time_attack(db_path: str, bank: QuestionBank):
    console.print("\n[bold]Time Attack[/bold]")
    config = load_session_config(db_path, "time_attack")
    config.mistake_limit = IntPrompt.ask("Mistake limit (0 = unlimited)", default=config.mistake_limit)
    run_session(db_path, TimeAttackSession(bank.questions, config))


def cmd_survival(db_path: str, bank: QuestionBank):
    console.print("\n[bold]Survival[/bold]")
    best = get_best_score(db_path, "survival")
    if best:
        console.print(f"[dim]High score: {best}[/dim]")
    config = load_session_config(db_path, "survival")
    run_session(db_path, SurvivalSession(bank.questions, config))


def cmd_sprint(db_path: str, bank: QuestionBank):
    console.print("\n[bold]Syntax Sprint[/bold]")
    level = IntPrompt.ask("Difficulty", choices=["1", "2", "3"], default=1)
    questions = filter_questions(bank.questions, difficulty=level)
    config = load_session_config(db_path, "syntax_sprint")
    run_session(db_path, SyntaxSprintSession(questions, config))


def cmd_review(db_path: str, bank: QuestionBank):
    console.print("\n[bold]Spaced Review[/bold]")
    questions = due_questions(db_path, bank)
    if not questions:
        console.print("[green]Nothing due right now![/green]")
        return
    console.print(f"{len(questions)} question(s) due.")
    if Confirm.ask("Remove a question from review instead?", default=False):
        for q in questions:
            console.print(f"  [cyan]{q.id}[/cyan] {q.prompt}")
        qid = Prompt.ask("Question id")
        if delete_review_item(db_path, qid):
            console.print(f"[green]{qid} removed from review.[/green]")
        else:
            console.print(f"[red]{qid} is not scheduled.[/red]")
        return
    config = load_session_config(db_path, "standard", set_id="REVIEW")
    run_session(db_path, StandardSession(questions, config))


def cmd_history(db_path: str):
    outcomes = get_outcomes(db_path, limit=15)
    if not outcomes:
        console.print("[yellow]No sessions yet.[/yellow]")
        return
    table = Table(title="Recent Sessions")
    table.add_column("When")
    table.add_column("Mode", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Correct", justify="right")
    table.add_column("Result")
    for o in outcomes:
        accuracy = o["correct"] / o["total"] if o["total"] else 0.0
        tier = evaluation_tier(accuracy)
        color = tier_color(tier)
        table.add_row(
            (o["finished_at"] or "")[:16].replace("T", " "),
            o["mode"],
            str(o["score"]),
            f"{o['correct']}/{o['total']}",
            f"[{color}]{tier_label(tier)}[/{color}]",
        )
    console.print(table)
    for mode, stats in get_accuracy_by_mode(db_path).items():
        console.print(f"  [cyan]{mode:<14}[/cyan] {stats['sessions']} sessions, {stats['accuracy']}%")
    weak = get_weak_categories(db_path)
    if weak:
        console.print("\n[bold]Weakest categories:[/bold]")
        for w in weak[:5]:
            console.print(f"  [red]{w['score']}%[/red] {w['category']} ({w['total']} answers)")


def cmd_settings(db_path: str):
    settings = get_all_settings(db_path)
    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in settings.items():
        table.add_row(key, value)
    console.print(table)
    key = Prompt.ask("Key to change (blank to keep)", default="")
    if key:
        set_setting(db_path, key, Prompt.ask("Value"))
        console.print(f"[green]{key} updated.[/green]")


def _content_paths(db_path: str) -> list:
    return json.loads(get_setting(db_path, "content_paths", "[]"))


def cmd_import(db_path: str, bank: QuestionBank):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    sets = load_question_sets(file_path)
    for s in sets:
        bank.add_set(s)
    paths = _content_paths(db_path)
    resolved = str(Path(file_path).resolve())
    if resolved not in paths:
        set_setting(db_path, "content_paths", json.dumps(paths + [resolved]))
    total = sum(len(s.questions) for s in sets)
    console.print(f"[green]Imported {len(sets)} set(s), {total} questions.[/green]")


def load_bank(db_path: str) -> QuestionBank:
    bank = QuestionBank(load_bundled_sets())
    for path in _content_paths(db_path):
        try:
            for s in load_question_sets(path):
                bank.add_set(s)
        except (OSError, ContentError) as e:
            logger.warning("skipping question file %s: %s", path, e)
    return bank


def main():
    setup_logging(console=console)
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    bank = load_bank(db_path)
    show_welcome()

    while True:
        show_menu(db_path)
        choice = Prompt.ask("\n[bold]>[/bold]", default="quiz").strip().lower()
        try:
            if choice == "quiz":
                cmd_quiz(db_path, bank)
            elif choice == "mock":
                cmd_mock(db_path, bank)
            elif choice == "timeattack":
                cmd_time_attack(db_path, bank)
            elif choice == "survival":
                cmd_survival(db_path, bank)
            elif choice == "sprint":
                cmd_sprint(db_path, bank)
            elif choice == "review":
                cmd_review(db_path, bank)
            elif choice == "history":
                cmd_history(db_path)
            elif choice == "settings":
                cmd_settings(db_path)
            elif choice == "import":
                cmd_import(db_path, bank)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]See you next session![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except (QuizError, OSError) as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()

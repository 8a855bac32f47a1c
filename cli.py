#!/usr/bin/env python3
"""
Focus Tutor - terminal front end.

Explain a concept, get it critiqued, review the theory, solve a
follow-up exercise, repeat.
"""

import asyncio
import os
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.prompt import Prompt, Confirm
from rich import box

from config import MAX_CYCLES, STATE_FILE
from models import (
    AttemptStatus,
    ExerciseType,
    Feedback,
    TutorError,
    attempt_draft_id,
    exercise_draft_id,
    subject_draft_id,
    themes_draft_id,
)
from schemas import decode_analytical_payload, decode_proposition_payload
from tutor import FeedbackRequest, Tutor, build_tutor

console = Console()


def check_api_keys() -> dict:
    """Check for provider API keys in the environment"""
    keys = {
        "groq": os.environ.get("GROQ_API_KEY"),
        "openai": os.environ.get("OPENAI_API_KEY"),
    }
    return {"keys": keys, "ready": bool(keys["groq"] or keys["openai"])}


def setup_wizard():
    """Interactive setup for API keys"""
    console.print(Panel.fit(
        "[bold cyan]Focus Tutor Setup[/bold cyan]\n\n"
        "The tutor needs an API key for the critique model.\n"
        "  - [green]GROQ_API_KEY[/green] (free at groq.com)\n"
        "  - or [green]OPENAI_API_KEY[/green] with TUTOR_MODEL=openai/<model>\n",
        title="Welcome"
    ))

    if check_api_keys()["ready"]:
        console.print("[green]API key found! You're ready to go.[/green]")
        console.print("[dim]Keys stay in your environment; they are never written to the study data.[/dim]\n")
        return True

    console.print("Get a free GROQ API key at: [link]https://console.groq.com/keys[/link]")
    groq_key = Prompt.ask("Enter GROQ_API_KEY (or press Enter to skip)", default="", show_default=False)
    if not groq_key:
        console.print("\n[red]No key provided. Critiques won't work until one is set.[/red]")
        return False

    env_path = Path(".env").absolute()
    with open(".env", "a") as f:
        f.write(f"\nGROQ_API_KEY={groq_key}\n")
    os.environ["GROQ_API_KEY"] = groq_key
    console.print(f"\n[green]Key saved to:[/green] {env_path}")
    return True


def list_topics(tutor: Tutor):
    """Table of topics with theme and attempt counts"""
    topics = tutor.store.list_topics()
    if not topics:
        console.print("[dim]No topics yet. Start one with: focus-tutor[/dim]")
        return []

    table = Table(title="Topics", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Subject", style="cyan")
    table.add_column("Themes", justify="right")
    table.add_column("Attempts", justify="right", style="green")
    table.add_column("Last Updated", style="dim")

    for topic in topics:
        themes = tutor.store.list_themes(topic.topic_id)
        attempts = sum(len(theme.attempt_ids) for theme in themes)
        table.add_row(
            topic.topic_id[:8],
            topic.subject,
            str(len(themes)),
            str(attempts),
            topic.updated_at.isoformat()[:16],
        )

    console.print(table)
    return topics


def resolve_topic_id(tutor: Tutor, prefix: str):
    """Full topic id from an id or unique id prefix"""
    matches = [t.topic_id for t in tutor.store.list_topics() if t.topic_id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None


def export_topic(tutor: Tutor, topic_ref: str, out: str = None) -> bool:
    topic_id = resolve_topic_id(tutor, topic_ref)
    exported = tutor.store.export_topic(topic_id) if topic_id else None
    if exported is None:
        console.print(f"[red]Topic '{topic_ref}' not found[/red]")
        return False

    if out:
        Path(out).write_text(exported, encoding="utf-8")
        console.print(f"[green]Exported to:[/green] {Path(out).absolute()}")
    else:
        console.print_json(exported)
    return True


def show_models(tutor: Tutor):
    """Fetch and list the provider's models"""
    try:
        with console.status("Fetching models..."):
            models = asyncio.run(tutor.orchestrator.refresh_models())
    except TutorError as e:
        console.print(f"[red]{e.message}[/red]")
        return

    table = Table(title="Available Models", box=box.ROUNDED)
    table.add_column("Model", style="cyan")
    table.add_column("Context", justify="right")
    table.add_column("Description", style="dim")
    for model in models:
        table.add_row(model.id, str(model.context_length or ""), model.description or "")
    console.print(table)
    console.print(f"[dim]Selected: {tutor.orchestrator.model}[/dim]")


def read_text(label: str, draft_id: str = None, tutor: Tutor = None) -> str:
    """Multi-line input, finished by an empty line"""
    console.print(f"[bold]{label}[/bold] [dim](finish with an empty line)[/dim]")
    if draft_id and tutor:
        draft = tutor.store.get_draft(draft_id)
        if draft and draft.value:
            console.print(Panel(draft.value, title="Saved draft", border_style="dim"))
            if Confirm.ask("Use saved draft?", default=True):
                return draft.value

    lines = []
    while True:
        line = console.input("")
        if not line:
            break
        lines.append(line)
        if draft_id and tutor:
            tutor.store.set_draft_value(draft_id, "\n".join(lines))
    return "\n".join(lines)


def show_feedback(feedback: Feedback):
    body = [f"[bold]Summary:[/bold] {feedback.summary}", "", "[bold]Errors:[/bold]"]
    for i, issue in enumerate(feedback.errors, 1):
        body.append(f"  {i}. {issue.point}")
        body.append(f"     [dim]Counterexample:[/dim] {issue.counterexample}")
    body += ["", f"[bold]Suggestion:[/bold] {feedback.suggestion}"]
    console.print(Panel("\n".join(body), title="Critique", border_style="yellow"))


def show_exercise(exercise):
    if exercise.type == ExerciseType.PROPOSITION:
        statements = decode_proposition_payload(exercise.payload)
        text = "\n".join(f"{i}. {s}" for i, s in enumerate(statements, 1))
        text += "\n\nDecide which statements are true and justify each one."
    else:
        text = decode_analytical_payload(exercise.payload)
    console.print(Panel(text, title="Exercise", border_style="cyan"))


def resolve_critique(tutor: Tutor, request: FeedbackRequest):
    """Loop until the learner has a valid critique or gives up"""
    orchestrator = tutor.orchestrator
    while request.feedback is None:
        console.print(f"[red]{request.error.message if request.error else 'No critique received.'}[/red]")
        options = ["p", "q"]
        if request.can_retry:
            console.print("  [cyan]r[/cyan] - Retry")
            options.insert(0, "r")
        console.print("  [cyan]p[/cyan] - Paste a critique (copy the prompt into any chat model)")
        console.print("  [cyan]q[/cyan] - Leave it for now")
        choice = Prompt.ask("Choice", choices=options, default=options[0])

        if choice == "q":
            orchestrator.cancel(request.attempt_id)
            return None
        if choice == "r":
            with console.status("Retrying..."):
                request = asyncio.run(orchestrator.retry_feedback(request.attempt_id))
        else:
            console.print(Panel(orchestrator.manual_prompt(request.attempt_id), title="Prompt"))
            raw = read_text("Paste the JSON answer")
            request = orchestrator.revalidate_feedback(request.attempt_id, raw)
    return request.feedback


def run_cycle(tutor: Tutor, request: FeedbackRequest):
    """Critique -> theory -> exercise -> answer, until the learner stops"""
    orchestrator = tutor.orchestrator
    while True:
        feedback = resolve_critique(tutor, request)
        if feedback is None:
            return

        show_feedback(feedback)
        if not Confirm.ask("Accept this critique?", default=True):
            orchestrator.cancel(request.attempt_id)
            return

        with console.status("Preparing theory..."):
            review = asyncio.run(orchestrator.confirm_feedback(request.attempt_id, feedback))
        if review.theory.text:
            console.print(Panel(review.theory.text, title="Theory", border_style="green"))
        else:
            console.print(f"[yellow]Theory unavailable: {review.theory.error}[/yellow]")

        attempt = review.attempt
        console.print(f"[dim]Version {attempt.latest_version} | Cycles {attempt.cycles}/{MAX_CYCLES}[/dim]")
        if attempt.cycles >= MAX_CYCLES:
            console.print("[yellow]This attempt reached its cycle limit. Start a new attempt to continue.[/yellow]")
            return

        choice = Prompt.ask(
            "Next exercise: [cyan]a[/cyan]nalytical, [cyan]p[/cyan]roposition, or [cyan]q[/cyan]uit",
            choices=["a", "p", "q"],
            default="a",
        )
        if choice == "q":
            return

        kind = ExerciseType.ANALYTICAL if choice == "a" else ExerciseType.PROPOSITION
        try:
            with console.status("Generating exercise..."):
                exercise = asyncio.run(orchestrator.generate_exercise(attempt.attempt_id, kind))
        except TutorError as e:
            console.print(f"[red]{e.message}[/red]")
            return

        show_exercise(exercise)
        answer = read_text("Your answer", exercise_draft_id(exercise.exercise_id), tutor)
        try:
            with console.status("Analyzing..."):
                request = asyncio.run(orchestrator.submit_exercise_answer(attempt.attempt_id, answer))
        except TutorError as e:
            console.print(f"[red]{e.message}[/red]")
            return


def pick_or_create_topic(tutor: Tutor):
    topics = list_topics(tutor)
    if topics and not Confirm.ask("Start a new topic?", default=False):
        ref = Prompt.ask("Topic ID")
        topic_id = resolve_topic_id(tutor, ref)
        if topic_id:
            return tutor.store.get_topic(topic_id)
        console.print(f"[red]Topic '{ref}' not found[/red]")
        return None
    draft_id = subject_draft_id()
    subject = read_text("Subject", draft_id, tutor).strip()
    if not subject:
        return None
    topic = tutor.store.upsert_topic(subject)
    tutor.store.clear_draft(draft_id)
    return topic


def pick_or_create_theme(tutor: Tutor, topic):
    themes = tutor.store.list_themes(topic.topic_id)
    for i, theme in enumerate(themes, 1):
        attempts = tutor.store.list_attempts(theme.theme_id)
        console.print(f"  [cyan]{i}[/cyan] - {theme.title} [dim]({len(attempts)} attempts)[/dim]")
    choice = Prompt.ask("Theme number, or [cyan]n[/cyan] to add themes", default="n")
    if choice.isdigit() and 1 <= int(choice) <= len(themes):
        return themes[int(choice) - 1]

    draft_id = themes_draft_id(topic.topic_id)
    titles = [t.strip() for t in read_text("New theme titles, one per line", draft_id, tutor).splitlines()]
    added = [tutor.store.add_theme(topic.topic_id, title) for title in titles if title]
    tutor.store.clear_draft(draft_id)
    return added[0] if added else None


def study(tutor: Tutor):
    topic = pick_or_create_topic(tutor)
    if topic is None:
        return
    theme = pick_or_create_theme(tutor, topic)
    if theme is None:
        return

    console.print(Panel.fit(f"[bold]{topic.subject}[/bold] / {theme.title}", title="Study"))
    content = read_text("Explain the concept in your own words", attempt_draft_id(theme.theme_id), tutor)
    try:
        with console.status("Analyzing..."):
            request = asyncio.run(tutor.orchestrator.submit(topic.topic_id, theme.theme_id, content))
    except TutorError as e:
        console.print(f"[red]{e.message}[/red]")
        return
    run_cycle(tutor, request)


def resume_pending(tutor: Tutor):
    """Attempts waiting for an exercise answer or a critique"""
    orchestrator = tutor.orchestrator
    pending = [
        (theme, attempt)
        for topic in tutor.store.list_topics()
        for theme in tutor.store.list_themes(topic.topic_id)
        for attempt in tutor.store.list_attempts(theme.theme_id)
        if (attempt.status == AttemptStatus.EXERCISE_GENERATED and attempt.pending_exercise)
        or (attempt.status == AttemptStatus.ANALYZING and orchestrator.get_request(attempt.attempt_id) is None)
    ]
    if not pending:
        console.print("[dim]Nothing waiting to be resumed.[/dim]")
        return

    for i, (theme, attempt) in enumerate(pending, 1):
        waiting = "critique" if attempt.status == AttemptStatus.ANALYZING else "answer"
        console.print(
            f"  [cyan]{i}[/cyan] - {theme.title} [dim]({waiting}, cycle {attempt.cycles}/{MAX_CYCLES})[/dim]"
        )
    choice = Prompt.ask("Attempt", choices=[str(i) for i in range(1, len(pending) + 1)])
    theme, attempt = pending[int(choice) - 1]

    try:
        if attempt.status == AttemptStatus.ANALYZING:
            with console.status("Analyzing..."):
                request = asyncio.run(orchestrator.resume_analysis(attempt.attempt_id))
        else:
            exercise = attempt.pending_exercise
            show_exercise(exercise)
            answer = read_text("Your answer", exercise_draft_id(exercise.exercise_id), tutor)
            with console.status("Analyzing..."):
                request = asyncio.run(orchestrator.submit_exercise_answer(attempt.attempt_id, answer))
    except TutorError as e:
        console.print(f"[red]{e.message}[/red]")
        return
    run_cycle(tutor, request)


def main_menu(tutor: Tutor):
    """Main interactive menu"""
    while True:
        console.print(Panel.fit(
            "[bold cyan]Explain it, get it critiqued, fix it[/bold cyan]\n"
            f"[dim]Model: {tutor.orchestrator.model} | Data: {getattr(tutor.repository, 'path', STATE_FILE)}[/dim]",
            title="Focus Tutor"
        ))

        console.print("\n[bold]What would you like to do?[/bold]\n")
        console.print("  [cyan]1[/cyan] - Study a theme")
        console.print("  [cyan]2[/cyan] - Resume an attempt")
        console.print("  [cyan]3[/cyan] - List topics")
        console.print("  [cyan]4[/cyan] - Choose model")
        console.print("  [cyan]5[/cyan] - Setup API keys")
        console.print("  [cyan]q[/cyan] - Quit")

        choice = Prompt.ask("\nChoice", choices=["1", "2", "3", "4", "5", "q"], default="1")

        if choice == "q":
            break
        elif choice == "1":
            study(tutor)
        elif choice == "2":
            resume_pending(tutor)
        elif choice == "3":
            list_topics(tutor)
        elif choice == "4":
            show_models(tutor)
            model = Prompt.ask("Model id (Enter keeps current)", default="", show_default=False)
            if model:
                tutor.store.set_selected_model(model)
        elif choice == "5":
            setup_wizard()


def cli():
    """Main CLI entry point"""
    import argparse

    parser = argparse.ArgumentParser(
        description="Focus Tutor - explain, get critiqued, practice",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  focus-tutor                          # Interactive study loop
  focus-tutor --list                   # List topics
  focus-tutor --export 3f2a --out t.json  # Export a topic
  focus-tutor --models                 # List provider models
        """
    )
    parser.add_argument("--list", "-l", action="store_true", help="List topics")
    parser.add_argument("--export", metavar="TOPIC_ID", help="Export a topic as JSON")
    parser.add_argument("--out", "-o", metavar="PATH", help="Write export to a file")
    parser.add_argument("--models", action="store_true", help="List available models")
    parser.add_argument("--setup", action="store_true", help="Run setup wizard")
    parser.add_argument("--data", metavar="PATH", help=f"State file (default: {STATE_FILE})")

    args = parser.parse_args()
    tutor = build_tutor(Path(args.data) if args.data else None)

    if args.setup:
        setup_wizard()
    elif args.list:
        list_topics(tutor)
    elif args.export:
        export_topic(tutor, args.export, args.out)
    elif args.models:
        show_models(tutor)
    else:
        if not check_api_keys()["ready"]:
            console.print("[yellow]API keys not configured.[/yellow]")
            if Confirm.ask("Run setup wizard?"):
                setup_wizard()
        main_menu(tutor)


if __name__ == "__main__":
    cli()

#!/usr/bin/env python
"""
Generate a practice session batch by batch through a running exam service.

Progress is checkpointed after every batch, so an interrupted or failed run
can be continued with ``--resume <session id>``. Press Ctrl+C to pause.
"""

import asyncio
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn

from exam_service.assembly import finalize_session, start_generation
from exam_service.catalogue.loader import get_default_catalogue
from exam_service.core.data_models import CoreId, Difficulty, SessionConfig
from exam_service.generation.backends import HttpGenerationBackend
from exam_service.generation.orchestrator import (
    GenerationOutcome,
    GenerationStatus,
    run_generation,
)
from exam_service.generation.remote import RemoteSynthesizer
from exam_service.generation.state import GenerationState
from exam_service.persistence import ExamRepository, FileBlobStore

BACKEND_DIR = Path(__file__).parent.parent.absolute()
DEFAULT_DATA_DIR = BACKEND_DIR / "data"
DEFAULT_BASE_URL = "http://127.0.0.1:8000"

console = Console(force_terminal=True, legacy_windows=True)
app = typer.Typer()


async def run(
    state: GenerationState,
    repository: ExamRepository,
    base_url: str,
    timeout: float,
) -> GenerationOutcome:
    backend = HttpGenerationBackend(base_url, timeout_seconds=timeout)
    synthesizer = RemoteSynthesizer(backend)
    cancel_event = asyncio.Event()
    asyncio.get_running_loop().add_signal_handler(
        signal.SIGINT, cancel_event.set
    )

    with Progress(
        TextColumn("[bold cyan]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task_id = progress.add_task(
            "Generating", total=state.total, completed=state.next_plan_index
        )

        def progress_cb(done: int, total: int, message: str) -> None:
            progress.update(task_id, completed=done, description=message)

        try:
            return await run_generation(
                state,
                synthesizer,
                store=repository,
                progress_callback=progress_cb,
                cancel_event=cancel_event,
            )
        finally:
            await synthesizer.aclose()


@app.command()
def main(
    core: CoreId = typer.Option(CoreId.CORE_1, help="Exam core"),
    difficulty: Difficulty = typer.Option(Difficulty.MEDIUM, help="Difficulty"),
    pbq_count: int = typer.Option(5, help="Number of PBQs to inject"),
    batch_size: int = typer.Option(10, min=1, max=20, help="Items per call"),
    resume: str | None = typer.Option(
        None, help="Session id of a paused or failed run"
    ),
    url: str = typer.Option(DEFAULT_BASE_URL, help="Server base URL"),
    timeout: float = typer.Option(120.0, help="Per-request timeout (s)"),
    data_dir: Path = typer.Option(
        DEFAULT_DATA_DIR, help="Checkpoint and session directory"
    ),
) -> None:
    """Generate (or resume) a session and save the assembled result."""
    repository = ExamRepository(FileBlobStore(data_dir))

    if resume is not None:
        state = repository.load_generation_state(resume)
        if state is None:
            console.print(f"[red]No checkpoint found for {resume}[/red]")
            raise typer.Exit(1)
    else:
        config = SessionConfig(pbq_count=pbq_count, difficulty=difficulty)
        state = start_generation(
            core, config, get_default_catalogue(), batch_size=batch_size
        )
        repository.save_generation_state(state)

    console.print(
        Panel(
            f"Session: [cyan]{state.session_id}[/cyan]\n"
            f"Core: [cyan]{state.core}[/cyan]\n"
            f"Progress: [cyan]{state.next_plan_index}/{state.total}[/cyan]\n"
            f"Server: [cyan]{url}[/cyan]",
            title="Generation",
        )
    )

    outcome = asyncio.run(run(state, repository, url, timeout))

    if outcome.status == GenerationStatus.PAUSED:
        console.print(
            f"[yellow]Paused at {outcome.state.next_plan_index}/"
            f"{outcome.state.total}. Resume with --resume "
            f"{outcome.state.session_id}[/yellow]"
        )
        return
    if outcome.status == GenerationStatus.FAILED:
        assert outcome.error is not None
        console.print(
            f"[red]{outcome.error.code}: {outcome.error.message}[/red]\n"
            f"Resume with --resume {outcome.state.session_id}"
        )
        raise typer.Exit(1)

    session = finalize_session(outcome.state)
    repository.save_session(session)
    repository.delete_generation_state(session.session_id)
    console.print(
        f"[green]Session {session.session_id} ready with "
        f"{len(session.questions)} questions[/green]"
    )


if __name__ == "__main__":
    app()

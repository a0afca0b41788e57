#!/usr/bin/env python
"""
Assemble a practice session with the offline synthesizer and save it as JSON.
"""

from collections import Counter
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from exam_service.assembly import assemble_offline_session
from exam_service.catalogue.loader import get_default_catalogue
from exam_service.core.data_models import (
    CoreId,
    Difficulty,
    ExamSession,
    SessionConfig,
)
from exam_service.core.utils import get_rng

BACKEND_DIR = Path(__file__).parent.parent.absolute()
DEFAULT_OUTPUT_DIR = BACKEND_DIR / "reports" / "sessions"

console = Console(force_terminal=True, legacy_windows=True)
app = typer.Typer()


def print_summary(session: ExamSession) -> None:
    by_domain = Counter(q.domain for q in session.questions)
    by_type = Counter(q.answer_type for q in session.questions)

    table = Table(title="Questions per domain")
    table.add_column("Domain", style="bold")
    table.add_column("Questions", justify="right")
    for domain, count in by_domain.items():
        table.add_row(domain, str(count))
    console.print(table)

    types = Table(title="Questions per answer type")
    types.add_column("Answer type", style="bold")
    types.add_column("Questions", justify="right")
    for answer_type, count in sorted(by_type.items()):
        types.add_row(answer_type, str(count))
    console.print(types)


@app.command()
def main(
    core: CoreId = typer.Option(CoreId.CORE_1, help="Exam core"),
    difficulty: Difficulty = typer.Option(Difficulty.MEDIUM, help="Difficulty"),
    pbq_count: int = typer.Option(5, help="Number of PBQs to inject"),
    session_id: str | None = typer.Option(
        None, help="Session id (drives the item seed)"
    ),
    random_seed: int | None = typer.Option(
        None, help="Seed for the plan and the session id"
    ),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR, help="Directory for the session JSON"
    ),
) -> None:
    """Build a full session offline and write it to disk."""
    config = SessionConfig(pbq_count=pbq_count, difficulty=difficulty)
    session = assemble_offline_session(
        core,
        config,
        get_default_catalogue(),
        session_id=session_id,
        rng=get_rng(random_seed),
    )

    console.print(
        Panel(
            f"Session: [cyan]{session.session_id}[/cyan]\n"
            f"Core: [cyan]{session.core}[/cyan]\n"
            f"Difficulty: [cyan]{difficulty}[/cyan]\n"
            f"Questions: [cyan]{len(session.questions)}[/cyan]",
            title="Offline session",
        )
    )
    print_summary(session)

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{session.session_id}.json"
    path.write_text(
        session.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
    )
    console.print(f"[green]Saved session to {path}[/green]")


if __name__ == "__main__":
    app()

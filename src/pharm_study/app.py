"""Interactive CLI application."""
import logging
from dataclasses import asdict
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from pharm_study.db import init_db, DEFAULT_DB_PATH
from pharm_study.errors import StudyCoreError
from pharm_study.extractor import extract_deck
from pharm_study.knowledge import CATEGORY_LABELS, load_curriculum
from pharm_study.matcher import suggest_organ_system
from pharm_study.models import COMPLETED, GAP_LOW_CONFIDENCE, STUDYING, AnalysisOutcome
from pharm_study.orchestrator import analyze_module, get_knowledge_base
from pharm_study.report import get_coverage_color, get_coverage_label, write_gap_report
from pharm_study.store import create_module, get_latest_run, list_modules, transition_status

console = Console()


def setup_logging(level: int = logging.WARNING) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def show_welcome():
    console.print(Panel(
        "[bold]Pharmacy Study Companion[/bold]\n[dim]Slide coverage and knowledge gap analysis[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("modules", "List study modules"),
        ("new", "Create a study module"),
        ("analyze", "Analyze slide decks for a module"),
        ("gaps", "Show the latest knowledge gaps"),
        ("kb", "Browse an organ system's curriculum"),
        ("report", "Write a Markdown gap report"),
        ("start", "Start studying a ready module"),
        ("complete", "Mark a module completed"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def select_module(db_path: str):
    modules = list_modules(db_path)
    if not modules:
        console.print("[yellow]No modules yet. Use 'new' to create one.[/yellow]")
        return None
    for i, m in enumerate(modules, 1):
        console.print(f"  [cyan]{i}[/cyan]) {m.display_name} [dim]({m.organ_system}, {m.status})[/dim]")
    choice = IntPrompt.ask("Select module", choices=[str(i) for i in range(1, len(modules) + 1)])
    return modules[choice - 1]


def show_gaps(gaps: list, limit: int = 15) -> None:
    if not gaps:
        console.print("[green]No knowledge gaps. Every required topic is covered.[/green]")
        return
    table = Table(title="Knowledge Gaps (highest priority first)")
    table.add_column("Category", style="cyan")
    table.add_column("Topic")
    table.add_column("Reason")
    for gap in gaps[:limit]:
        gap = gap if isinstance(gap, dict) else asdict(gap)
        color = "yellow" if gap["reason"] == GAP_LOW_CONFIDENCE else "red"
        table.add_row(CATEGORY_LABELS[gap["category"]], gap["label"], f"[{color}]{gap['reason']}[/{color}]")
    console.print(table)
    if len(gaps) > limit:
        console.print(f"[dim]... and {len(gaps) - limit} more[/dim]")


def show_outcome(outcome: AnalysisOutcome) -> None:
    if not outcome.ok:
        console.print(f"[red]Analysis failed: {outcome.error}[/red]")
        return
    stats = outcome.module.content_stats
    progress = outcome.module.study_progress
    color = get_coverage_color(stats.coverage_score)
    bar_filled = int(stats.coverage_score / 5)
    bar = f"[{color}]{'█' * bar_filled}{'░' * (20 - bar_filled)}[/{color}]"
    console.print(
        f"\n  Coverage: [bold]{stats.coverage_score}%[/bold] {bar} "
        f"[{color}]{get_coverage_label(stats.coverage_score)}[/{color}]\n"
    )
    console.print(f"  Decks: [bold]{stats.total_power_points}[/bold]  |  "
                  f"Slides: [bold]{stats.total_slides}[/bold]  |  "
                  f"Topics: [bold]{stats.extracted_topics}[/bold]  |  "
                  f"Drugs: [bold]{stats.identified_drugs}[/bold]  |  "
                  f"Pearls: [bold]{stats.clinical_pearls}[/bold]")
    console.print(f"  Completed: [bold]{len(progress.completed_topics)}/{progress.total_topics}[/bold]  |  "
                  f"Mastered: [bold]{len(progress.mastered_concepts)}[/bold]  |  "
                  f"Needs review: [bold]{len(progress.needs_review)}[/bold]\n")
    show_gaps(outcome.gaps)
    for rec in outcome.recommendations[:3]:
        console.print(f"  [yellow]Recommendation: {rec}[/yellow]")


def cmd_modules(db_path: str):
    modules = list_modules(db_path)
    if not modules:
        console.print("[yellow]No modules yet. Use 'new' to create one.[/yellow]")
        return
    table = Table(title="Study Modules")
    table.add_column("Module", style="cyan")
    table.add_column("Organ System")
    table.add_column("Status")
    table.add_column("Coverage", justify="right")
    table.add_column("Gaps", justify="right")
    for m in modules:
        score = m.content_stats.coverage_score
        color = get_coverage_color(score)
        table.add_row(m.display_name, m.organ_system, m.status, f"[{color}]{score}%[/{color}]",
                      str(m.content_stats.knowledge_gaps))
    console.print(table)


def cmd_new(db_path: str):
    name = Prompt.ask("Module name")
    organ_systems = list(load_curriculum())
    default = organ_systems[0]
    sample = Prompt.ask("Sample deck to detect the organ system (Enter to skip)", default="")
    if sample:
        try:
            detected = suggest_organ_system(extract_deck(sample).slides)
        except StudyCoreError as e:
            console.print(f"[red]{e}[/red]")
            detected = None
        if detected:
            console.print(f"[dim]Slides look like {detected} content.[/dim]")
            default = detected
    organ_system = Prompt.ask("Organ system", choices=organ_systems, default=default)
    description = Prompt.ask("Description", default="")
    module = create_module(db_path, name, organ_system, description=description)
    console.print(f"[green]Created {module.display_name} ({module.organ_system})[/green]")


def cmd_analyze(db_path: str):
    module = select_module(db_path)
    if module is None:
        return
    raw = Prompt.ask("Slide files (comma-separated)")
    refs = [part.strip() for part in raw.split(",") if part.strip()]
    if not refs:
        console.print("[yellow]No files given.[/yellow]")
        return
    minutes = IntPrompt.ask("Minutes studied this session", default=0)
    with console.status("Analyzing slides..."):
        outcome = analyze_module(db_path, module.id, refs, study_minutes=minutes)
    show_outcome(outcome)


def cmd_gaps(db_path: str):
    module = select_module(db_path)
    if module is None:
        return
    run = get_latest_run(db_path, module.id)
    if run is None:
        console.print("[yellow]This module has not been analyzed yet.[/yellow]")
        return
    console.print(f"\n[bold]{module.display_name}[/bold] [dim](analyzed {run['finished_at']})[/dim]")
    show_gaps(run["gaps"])
    if run["missing_drugs"]:
        console.print(f"\n  [bold]Missing drugs:[/bold] {', '.join(run['missing_drugs'])}")
    for rec in run["recommendations"]:
        console.print(f"  [yellow]- {rec}[/yellow]")


def cmd_kb(db_path: str):
    organ_systems = list(load_curriculum())
    organ_system = Prompt.ask("Organ system", choices=organ_systems, default=organ_systems[0])
    kb = get_knowledge_base(organ_system)
    table = Table(title=f"{organ_system.title()} Curriculum")
    table.add_column("Category", style="cyan")
    table.add_column("Topics")
    for category, topics in kb.categories().items():
        table.add_row(CATEGORY_LABELS[category], "\n".join(topics))
    console.print(table)


def cmd_report(db_path: str):
    module = select_module(db_path)
    if module is None:
        return
    run = get_latest_run(db_path, module.id)
    if run is None:
        console.print("[yellow]This module has not been analyzed yet.[/yellow]")
        return
    default = str(Path.cwd() / f"{module.name.lower().replace(' ', '-')}-gap-report.md")
    path = write_gap_report(Prompt.ask("Report path", default=default), module, run)
    console.print(f"[green]Report saved to {path}[/green]")


def cmd_status(db_path: str, new_status: str):
    module = select_module(db_path)
    if module is None:
        return
    module = transition_status(db_path, module.id, new_status)
    console.print(f"[green]{module.display_name} is now {module.status}.[/green]")


def main():
    setup_logging()
    db_path = DEFAULT_DB_PATH
    init_db(db_path)

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="modules").strip().lower()
        try:
            if choice == "modules":
                cmd_modules(db_path)
            elif choice == "new":
                cmd_new(db_path)
            elif choice == "analyze":
                cmd_analyze(db_path)
            elif choice == "gaps":
                cmd_gaps(db_path)
            elif choice == "kb":
                cmd_kb(db_path)
            elif choice == "report":
                cmd_report(db_path)
            elif choice == "start":
                cmd_status(db_path, STUDYING)
            elif choice == "complete":
                cmd_status(db_path, COMPLETED)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Good luck with your studies![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()

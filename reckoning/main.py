"""Reckoning CLI: a read-only report on one game's narrative state."""

import argparse
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import Config
from .core.emergence import EmergenceDetector, EmergenceNotifier
from .core.evolution import EvolutionWorkflow
from .core.pattern_observer import PatternObserver, PlayerPatterns
from .core.relationships import RelationshipLedger
from .core.scene_boundary import BoundarySuggestion, SceneBoundaryDetector
from .core.traits import TraitLedger
from .db.session import init_db
from .db.state_manager import StateManager
from .logging_config import setup_logging

console = Console()


def print_banner(game_id: str):
    banner = Text()
    banner.append("Reckoning", style="bold cyan")
    banner.append(" - narrative signal report\n", style="cyan")
    banner.append(f"Game: {game_id}", style="dim")
    console.print(Panel(banner, border_style="cyan", padding=(0, 2)))


def print_patterns(patterns: PlayerPatterns):
    table = Table(title=f"Player patterns: {patterns.player_id}", show_header=True)
    table.add_column("Measure", style="yellow")
    table.add_column("Value")

    table.add_row("Events analyzed", str(patterns.total_events))
    for category, count in patterns.category_counts.items():
        table.add_row(f"  {category}", str(count))
    table.add_row("Mercy vs violence", f"{patterns.ratios.mercy_vs_violence:+.2f}")
    table.add_row("Honesty vs deception", f"{patterns.ratios.honesty_vs_deception:+.2f}")
    table.add_row("Helpful vs harmful", f"{patterns.ratios.helpful_vs_harmful:+.2f}")
    table.add_row(
        "Violence initiation",
        f"{patterns.violence_initiation.attack_first_events}/"
        f"{patterns.violence_initiation.total_violence_events}",
    )
    table.add_row("Social approach", str(patterns.social_approach))
    table.add_row("Dominant traits", ", ".join(patterns.dominant_traits) or "-")
    console.print(table)


def print_boundary(suggestion: BoundarySuggestion):
    ctx = suggestion.scene_context
    if not ctx.scene_id:
        console.print("[dim]No active scene.[/dim]")
        return

    verdict = "[red]end scene[/red]" if suggestion.should_end_scene else "[green]continue[/green]"
    lines = [
        f"Scene {ctx.scene_id} (started turn {ctx.started_turn}, {ctx.event_count} events)",
        f"Suggestion: {verdict}  confidence {suggestion.confidence:.2f}",
    ]
    for signal in suggestion.signals:
        lines.append(f"  [yellow]{signal.type}[/yellow] {signal.strength:.2f}: {signal.reason}")
    console.print(Panel("\n".join(lines), title="[dim]Scene Boundary[/dim]", border_style="dim"))


def print_evolutions(workflow: EvolutionWorkflow, game_id: str):
    pending = workflow.get_pending(game_id)
    table = Table(title=f"Pending evolutions ({len(pending)})", show_header=True)
    table.add_column("Id", style="dim")
    table.add_column("Type")
    table.add_column("Entity")
    table.add_column("Change")
    table.add_column("Reason")

    for evo in pending:
        if evo.trait:
            change = evo.trait
        else:
            old = "?" if evo.old_value is None else f"{evo.old_value:.2f}"
            change = f"{evo.target} {evo.dimension}: {old} -> {evo.new_value:.2f}"
        table.add_row(evo.id[:8], str(evo.evolution_type), str(evo.entity), change, evo.reason)
    console.print(table)


def print_notifications(notifier: EmergenceNotifier, game_id: str):
    pending = notifier.get_pending(game_id)
    table = Table(title=f"Emergence notifications ({len(pending)})", show_header=True)
    table.add_column("NPC")
    table.add_column("Role")
    table.add_column("Confidence", justify="right")
    table.add_column("Reason")

    for note in pending:
        opp = note.opportunity
        style = "red" if opp.type == "villain" else "green"
        table.add_row(opp.entity.id, f"[{style}]{opp.type}[/{style}]", f"{opp.confidence:.2f}", opp.reason)
    console.print(table)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Report patterns, scene state and pending reviews for a game")
    parser.add_argument("game_id", help="Game to report on")
    parser.add_argument("--player", type=str, help="Player id for pattern analysis")
    parser.add_argument("--turn", type=int, help="Current turn for boundary analysis (default: latest)")
    args = parser.parse_args(argv)

    setup_logging(Config.LOG_LEVEL, engine_decisions=Config.LOG_ENGINE_DECISIONS)

    issues = Config.validate()
    if issues:
        console.print("[red]Configuration issues:[/red]")
        for issue in issues:
            console.print(f"  [red]- {issue}[/red]")
        return 1

    init_db()
    print_banner(args.game_id)

    with StateManager() as state:
        traits = TraitLedger(state)
        workflow = EvolutionWorkflow(state, RelationshipLedger(state), traits)
        notifier = EmergenceNotifier(EmergenceDetector(state, traits), state)

        if args.player:
            print_patterns(PatternObserver(state).get_player_patterns(args.game_id, args.player))

        turn = args.turn
        if turn is None:
            recent = state.get_recent_context(args.game_id, 1)
            turn = recent[-1].turn if recent else 0
        print_boundary(SceneBoundaryDetector(state, state).analyze(args.game_id, turn))

        print_evolutions(workflow, args.game_id)
        print_notifications(notifier, args.game_id)

    return 0


if __name__ == "__main__":
    sys.exit(main())

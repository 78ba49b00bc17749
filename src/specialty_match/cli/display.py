"""Rich display helpers for terminal output.

Provides formatted display functions for suggestions, the specialty catalog,
learned rules, learning statistics, and single similarity scores using Rich
tables and panels.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from specialty_match.models.learning import LearnedSuggestion, MatchingRule, MatchingStats
from specialty_match.models.matching import AutoMapSuggestion, SimilarityScore, SpecialtyMapping
from specialty_match.models.specialty import Specialty


def _confidence_style(value: float) -> str:
    if value >= 0.9:
        return "bold green"
    if value >= 0.7:
        return "yellow"
    return "red"


def display_suggestions(suggestions: list[AutoMapSuggestion], console: Console) -> None:
    """Print one row per suggested match, grouped by source.

    Args:
        suggestions: Output of the matching engine.
        console: Rich Console for output.
    """
    if not suggestions:
        console.print("[yellow]No suggestions found.[/yellow]")
        return

    table = Table(title="Suggested Specialty Matches", show_lines=True)
    table.add_column("Source", style="bold cyan")
    table.add_column("Vendor", style="dim")
    table.add_column("Match", style="bold")
    table.add_column("Vendor", style="dim")
    table.add_column("Confidence", justify="right")
    table.add_column("Reason")

    for suggestion in suggestions:
        source = suggestion.source_specialty
        for i, match in enumerate(suggestion.suggested_matches):
            style = _confidence_style(match.confidence)
            table.add_row(
                source.specialty if i == 0 else "",
                source.vendor if i == 0 else "",
                match.specialty.specialty,
                match.specialty.vendor,
                f"[{style}]{match.confidence:.0%}[/{style}]",
                match.reason,
            )

    console.print(table)
    n_matches = sum(len(s.suggested_matches) for s in suggestions)
    console.print(f"\n{len(suggestions)} source specialties, {n_matches} candidate matches")


def display_score(a: str, b: str, score: SimilarityScore, console: Console) -> None:
    style = _confidence_style(score.value)
    console.print(
        Panel(
            f"[bold]{a}[/bold]  vs  [bold]{b}[/bold]\n"
            f"Score: [{style}]{score.value:.2f}[/{style}]\n"
            f"Reason: {score.reason}",
            title="Similarity",
        )
    )


def display_catalog(specialties: list[Specialty], console: Console, title: str = "Specialties") -> None:
    """Print catalog entries with their synonyms.

    Args:
        specialties: Entries to show, in order.
        console: Rich Console for output.
        title: Table title.
    """
    table = Table(title=title, show_lines=True)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold cyan")
    table.add_column("Category")
    table.add_column("Predefined Synonyms")
    table.add_column("Custom Synonyms", style="green")

    for s in specialties:
        table.add_row(
            s.id,
            s.name,
            s.category or "",
            ", ".join(s.synonyms.predefined),
            ", ".join(s.synonyms.custom),
        )

    console.print(table)
    console.print(f"\n{len(specialties)} specialties")


def display_rules(rules: list[MatchingRule], console: Console) -> None:
    if not rules:
        console.print("[yellow]No learned rules yet.[/yellow]")
        return

    table = Table(title="Learned Matching Rules")
    table.add_column("Rule", style="dim", no_wrap=True)
    table.add_column("Pattern", style="bold")
    table.add_column("Type")
    table.add_column("Confidence", justify="right")
    table.add_column("Success", justify="right", style="green")
    table.add_column("Failure", justify="right", style="red")
    table.add_column("Active", justify="center")

    for rule in rules:
        table.add_row(
            rule.rule_id[:8],
            rule.pattern,
            rule.match_type.value,
            f"{rule.confidence:.0%}",
            str(rule.success_count),
            str(rule.failure_count),
            "[green]yes[/green]" if rule.is_active else "[dim]no[/dim]",
        )
    console.print(table)


def display_learned_suggestions(
    specialty: str, suggestions: list[LearnedSuggestion], console: Console
) -> None:
    if not suggestions:
        console.print(f"[yellow]No learned suggestions for '{specialty}'.[/yellow]")
        return

    table = Table(title=f"Learned Suggestions for {specialty}")
    table.add_column("Target", style="bold cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Reason")
    for s in suggestions:
        style = _confidence_style(s.confidence)
        table.add_row(s.target, f"[{style}]{s.confidence:.0%}[/{style}]", s.reason)
    console.print(table)


def display_stats(stats: MatchingStats, console: Console) -> None:
    """Print learning statistics: totals, per-vendor counts, pattern mix.

    Args:
        stats: Aggregated statistics.
        console: Rich Console for output.
    """
    console.print(
        Panel(
            f"Cross-vendor connections: [bold]{stats.total_mappings}[/bold]\n"
            f"Auto-map accuracy: [bold]{stats.accuracy_rate:.1f}%[/bold]\n"
            f"Active rules: [bold]{stats.active_rules}[/bold]\n"
            f"Learning events: [bold]{stats.total_events}[/bold]",
            title="Learning Statistics",
        )
    )

    if stats.vendor_stats:
        vendors = Table(title="Mappings by Vendor")
        vendors.add_column("Vendor", style="bold cyan")
        vendors.add_column("Mapped Specialties", justify="right")
        for vendor, count in sorted(stats.vendor_stats.items()):
            vendors.add_row(vendor, str(count))
        console.print(vendors)

    patterns = Table(title="Pattern Breakdown")
    patterns.add_column("Pattern")
    patterns.add_column("Share", justify="right")
    for name, pct in stats.pattern_breakdown.items():
        patterns.add_row(name, f"{pct:.1f}%")
    console.print(patterns)


def display_mappings(survey_id: str, mappings: list[SpecialtyMapping], console: Console) -> None:
    if not mappings:
        console.print(f"[yellow]No mappings stored for survey '{survey_id}'.[/yellow]")
        return

    table = Table(title=f"Specialty Mappings: {survey_id}")
    table.add_column("Source", style="bold cyan")
    table.add_column("Mapped To", style="bold")
    table.add_column("Confidence", justify="right")
    table.add_column("Verified", justify="center")
    table.add_column("Notes", style="dim")
    for m in mappings:
        table.add_row(
            m.source_specialty,
            ", ".join(m.mapped_specialties),
            f"{m.confidence:.0%}",
            "[green]yes[/green]" if m.is_verified else "no",
            m.notes or "",
        )
    console.print(table)

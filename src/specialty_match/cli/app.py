"""specialty-match CLI application entry point.

Provides commands for scoring and normalizing specialty labels, browsing and
editing the specialty catalog, generating cross-vendor suggestions from an
observations CSV, recording manual mappings, and inspecting what the learning
system has picked up.

Usage:
    specialty-match score <a> <b>
    specialty-match suggest <observations.csv>
    specialty-match catalog
    specialty-match synonym-add <specialty-id> <text>
    specialty-match learn-stats
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console

if TYPE_CHECKING:
    from specialty_match.context import MatchingContext

app = typer.Typer(
    name="specialty-match",
    help="Match vendor survey specialty names to canonical specialties and learn from decisions.",
    no_args_is_help=True,
)

console = Console()

DEFAULT_DB = Path(".specialty_match") / "matching.db"

DbOption = Annotated[
    Path,
    typer.Option("--db", help="SQLite database holding catalog, learning data, and mappings"),
]
DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", help="Directory overriding the bundled reference JSON"),
]


@contextmanager
def _open_context(
    db: Path,
    data_dir: Path | None,
    *,
    min_confidence: float = 0.0,
    timeout: float | None = None,
) -> Iterator[MatchingContext]:
    from specialty_match.context import DEFAULT_SUGGESTION_TIMEOUT, MatchingContext
    from specialty_match.storage.sqlite import SqliteRecordStore

    store = SqliteRecordStore(db)
    ctx = MatchingContext(
        store,
        mapping_db=db,
        data_dir=data_dir,
        min_confidence=min_confidence,
        suggestion_timeout=timeout if timeout is not None else DEFAULT_SUGGESTION_TIMEOUT,
    )
    try:
        ctx.initialize()
        yield ctx
    finally:
        ctx.reset()
        store.close()


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {message}")
    return typer.Exit(code=1)


@app.command()
def version() -> None:
    """Show the current version."""
    from specialty_match import __version__

    console.print(f"specialty-match {__version__}")


@app.command()
def normalize(
    text: Annotated[str, typer.Argument(help="Specialty label to normalize")],
) -> None:
    """Show both normalization levels of a label."""
    from specialty_match.matching.normalize import normalize as normalize_text
    from specialty_match.matching.normalize import registry_key

    console.print(f"normalized:   [bold]{normalize_text(text)}[/bold]")
    console.print(f"registry key: [bold]{registry_key(text)}[/bold]")


@app.command()
def score(
    a: Annotated[str, typer.Argument(help="First specialty label")],
    b: Annotated[str, typer.Argument(help="Second specialty label")],
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Score the similarity of two specialty labels."""
    from specialty_match.cli.display import display_score

    with _open_context(db, data_dir) as ctx:
        display_score(a, b, ctx.scorer.score(a, b), console)


@app.command()
def resolve(
    text: Annotated[str, typer.Argument(help="Label to look up in the catalog")],
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Find the canonical specialty for a label."""
    with _open_context(db, data_dir) as ctx:
        specialty = ctx.registry.resolve(text)
        if specialty is None:
            console.print(f"[yellow]No catalog entry for '{text}'[/yellow]")
            return
        console.print(f"[bold green]{specialty.name}[/bold green] ({specialty.id})")


@app.command()
def catalog(
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
    category: Annotated[
        str | None,
        typer.Option("--category", "-c", help="Only show this category"),
    ] = None,
    export: Annotated[
        Path | None,
        typer.Option("--export", help="Write the catalog to this JSON file"),
    ] = None,
) -> None:
    """List the specialty catalog."""
    from specialty_match.cli.display import display_catalog

    with _open_context(db, data_dir) as ctx:
        if export is not None:
            export.parent.mkdir(parents=True, exist_ok=True)
            export.write_text(ctx.registry.export_json())
            console.print(f"[green]Catalog exported to {export}[/green]")
            return
        specialties = ctx.registry.specialties()
        if category is not None:
            specialties = [s for s in specialties if (s.category or "").lower() == category.lower()]
        display_catalog(specialties, console)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Text to search names and synonyms for")],
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Search the catalog by name or synonym."""
    from specialty_match.cli.display import display_catalog

    with _open_context(db, data_dir) as ctx:
        results = ctx.registry.search(query)
        if not results:
            console.print(f"[yellow]No specialties match '{query}'[/yellow]")
            return
        display_catalog(results, console, title=f"Search: {query}")


@app.command(name="specialty-add")
def specialty_add(
    name: Annotated[str, typer.Argument(help="Canonical name of the new specialty")],
    category: Annotated[str | None, typer.Option("--category", "-c")] = None,
    synonym: Annotated[
        list[str] | None,
        typer.Option("--synonym", "-s", help="Custom synonym (repeatable)"),
    ] = None,
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Add a specialty to the catalog."""
    from specialty_match.errors import SpecialtyMatchError

    with _open_context(db, data_dir) as ctx:
        try:
            specialty = ctx.registry.add_specialty(name, category, synonym or [])
        except SpecialtyMatchError as e:
            raise _fail(str(e)) from e
        console.print(f"[green]Added specialty '{specialty.name}' ({specialty.id})[/green]")


@app.command(name="specialty-delete")
def specialty_delete(
    specialty_id: Annotated[str, typer.Argument(help="Id of the specialty to delete")],
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Delete a specialty and all of its synonyms."""
    from specialty_match.errors import SpecialtyMatchError

    with _open_context(db, data_dir) as ctx:
        try:
            removed = ctx.registry.delete_specialty(specialty_id)
        except SpecialtyMatchError as e:
            raise _fail(str(e)) from e
        console.print(f"[green]Deleted specialty '{removed.name}'[/green]")


@app.command(name="synonym-add")
def synonym_add(
    specialty_id: Annotated[str, typer.Argument(help="Id of the owning specialty")],
    text: Annotated[str, typer.Argument(help="Synonym to add")],
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Add a custom synonym to a specialty."""
    from specialty_match.errors import SpecialtyMatchError

    with _open_context(db, data_dir) as ctx:
        try:
            specialty = ctx.add_synonym(specialty_id, text)
        except SpecialtyMatchError as e:
            raise _fail(str(e)) from e
        console.print(f"[green]Added synonym '{text}' to {specialty.name}[/green]")


@app.command(name="synonym-remove")
def synonym_remove(
    specialty_id: Annotated[str, typer.Argument(help="Id of the owning specialty")],
    text: Annotated[str, typer.Argument(help="Custom synonym to remove")],
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Remove a custom synonym from a specialty."""
    from specialty_match.errors import SpecialtyMatchError

    with _open_context(db, data_dir) as ctx:
        try:
            removed = ctx.remove_synonym(specialty_id, text)
        except SpecialtyMatchError as e:
            raise _fail(str(e)) from e
        if removed:
            console.print(f"[green]Removed synonym '{text}'[/green]")
        else:
            console.print(f"[yellow]'{text}' is not a custom synonym of {specialty_id}[/yellow]")


@app.command()
def suggest(
    observations: Annotated[
        Path,
        typer.Argument(help="CSV with 'specialty' and 'vendor' columns"),
    ],
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
    min_confidence: Annotated[
        float,
        typer.Option("--min-confidence", help="Only show matches scoring above this"),
    ] = 0.0,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Seconds allowed for the suggestion run"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Save suggestions as JSON"),
    ] = None,
) -> None:
    """Suggest cross-vendor specialty matches for an observations CSV."""
    import json

    from specialty_match.cli.display import display_suggestions
    from specialty_match.io.observations import read_observations_csv

    if not observations.exists():
        raise _fail(f"File not found: {observations}")

    try:
        rows = read_observations_csv(observations)
    except ValueError as e:
        raise _fail(str(e)) from e

    with _open_context(db, data_dir, min_confidence=min_confidence, timeout=timeout) as ctx:
        suggestions = ctx.suggest(rows)
        display_suggestions(suggestions, console)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(
            json.dumps([s.model_dump(mode="json") for s in suggestions], indent=2)
        )
        console.print(f"\n[green]Suggestions saved to {output}[/green]")


@app.command(name="map")
def map_specialties(
    source: Annotated[str, typer.Argument(help="Source specialty label")],
    source_vendor: Annotated[str, typer.Argument(help="Vendor of the source label")],
    target: Annotated[str, typer.Argument(help="Target specialty label")],
    target_vendor: Annotated[str, typer.Argument(help="Vendor of the target label")],
    survey_id: Annotated[
        str | None,
        typer.Option("--survey-id", help="Also store a verified mapping for this survey"),
    ] = None,
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Record a manual cross-vendor mapping."""
    from specialty_match.errors import SpecialtyMatchError
    from specialty_match.matching.vendors import normalize_vendor_name
    from specialty_match.models.specialty import Observation

    pair = [
        Observation(specialty=source, vendor=normalize_vendor_name(source_vendor)),
        Observation(specialty=target, vendor=normalize_vendor_name(target_vendor)),
    ]
    with _open_context(db, data_dir) as ctx:
        try:
            group = ctx.map_manually(pair, survey_id=survey_id)
        except (SpecialtyMatchError, ValueError) as e:
            raise _fail(str(e)) from e
        console.print(
            f"[green]Mapped {source} ({pair[0].vendor}) -> {target} ({pair[1].vendor})[/green]"
        )
        console.print(f"[dim]Group {group.id}[/dim]")


@app.command()
def mappings(
    survey_id: Annotated[str, typer.Argument(help="Survey whose mappings to list")],
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """List stored specialty mappings for a survey."""
    from specialty_match.cli.display import display_mappings

    with _open_context(db, data_dir) as ctx:
        stored = ctx.mappings.list_for_survey(survey_id) if ctx.mappings else []
        display_mappings(survey_id, stored, console)


@app.command(name="learn-stats")
def learn_stats(
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Show learning statistics."""
    from specialty_match.cli.display import display_stats

    if not db.exists():
        console.print(f"[yellow]No learning database found at {db}[/yellow]")
        return
    with _open_context(db, data_dir) as ctx:
        display_stats(ctx.stats(), console)


@app.command(name="learn-rules")
def learn_rules(
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
    toggle: Annotated[
        str | None,
        typer.Option("--toggle", help="Flip the active flag of the rule with this id"),
    ] = None,
) -> None:
    """List learned matching rules."""
    from specialty_match.cli.display import display_rules

    if not db.exists():
        console.print(f"[yellow]No learning database found at {db}[/yellow]")
        return
    with _open_context(db, data_dir) as ctx:
        if toggle is not None:
            matches = [r for r in ctx.learning.get_rules() if r.rule_id.startswith(toggle)]
            if len(matches) != 1:
                raise _fail(f"Expected one rule matching '{toggle}', found {len(matches)}")
            rule = ctx.learning.toggle_rule(matches[0].rule_id)
            state = "active" if rule.is_active else "inactive"
            console.print(f"[green]Rule {rule.pattern} is now {state}[/green]")
        display_rules(ctx.learning.get_rules(), console)


@app.command(name="learn-suggest")
def learn_suggest(
    specialty: Annotated[str, typer.Argument(help="Source specialty label")],
    vendor: Annotated[str | None, typer.Option("--vendor", help="Vendor of the label")] = None,
    db: DbOption = DEFAULT_DB,
    data_dir: DataDirOption = None,
) -> None:
    """Show targets the learning system suggests for a label."""
    from specialty_match.cli.display import display_learned_suggestions

    with _open_context(db, data_dir) as ctx:
        display_learned_suggestions(specialty, ctx.suggestions_for(specialty, vendor), console)

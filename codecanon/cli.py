"""Typer-based CLI for codecanon."""

from __future__ import annotations

import logging
from itertools import combinations
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config
from .analyzer import CodeAnalyzer, methods_of
from .dependencies import DependencyGraphBuilder
from .similarity import SimilarityScorer

app = typer.Typer(
    help="codecanon: canonical syntax trees, pattern detection and similarity for Java, Python and JavaScript/TypeScript.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"codecanon v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log parse and scoring details."),
):
    """codecanon: normalize source code into one language-independent tree."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _language_option() -> Optional[str]:
    return typer.Option(None, "--language", "-l", help="Language tag (inferred from the file extension by default).")


def _analyze(path: Path, language: Optional[str]):
    with CodeAnalyzer() as analyzer:
        report = analyzer.analyze_file(path, language)
    if not report.successful:
        typer.echo(f"❌ Could not parse {path}:")
        for error in report.result.errors:
            typer.echo(f"   {error}")
        raise typer.Exit(1)
    return report


@app.command("languages")
def languages():
    """📚 List the language tags this installation can parse."""
    with CodeAnalyzer() as analyzer:
        stats = analyzer.dispatcher.statistics()
    if not stats:
        typer.echo("No grammars available. Install tree-sitter-java / -python / -javascript / -typescript.")
        raise typer.Exit(1)
    table = Table(title="Supported languages", show_header=True)
    table.add_column("Language", style="cyan")
    table.add_column("Adapter")
    for tag, adapter in stats.items():
        table.add_row(tag, adapter)
    console.print(table)


@app.command("parse")
def parse(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to parse."),
    language: Optional[str] = _language_option(),
    depth: int = typer.Option(3, "--depth", "-d", min=1, help="How many tree levels to print."),
):
    """🌳 Parse a file and print its canonical tree."""
    report = _analyze(path, language)
    result = report.result
    typer.echo(
        f"✅ {path} ({result.language}): {result.metrics.node_count} nodes, "
        f"depth {result.metrics.max_depth}, {result.elapsed_ms:.1f}ms"
    )
    for warning in result.warnings:
        typer.echo(f"⚠️  {warning}")

    stack = [(result.root, 0)]
    while stack:
        node, level = stack.pop()
        typer.echo(f"{'  ' * level}{node.render()}")
        if level + 1 < depth:
            stack.extend((child, level + 1) for child in reversed(node.children))


@app.command("validate")
def validate(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to check."),
    language: Optional[str] = _language_option(),
):
    """🔍 Check whether a file parses without syntax errors."""
    lang = language or config.language_for_path(path)
    with CodeAnalyzer() as analyzer:
        if not analyzer.supports_language(lang):
            typer.echo(f"❌ Unsupported language: {lang or path.suffix}")
            raise typer.Exit(1)
        ok = analyzer.validate_syntax(path.read_text(encoding="utf-8", errors="replace"), lang).result()
    if not ok:
        typer.echo(f"❌ {path}: syntax errors found")
        raise typer.Exit(1)
    typer.echo(f"✅ {path}: syntax OK")


@app.command("patterns")
def patterns(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to inspect."),
    language: Optional[str] = _language_option(),
):
    """🧩 Detect design patterns, anti-patterns and code patterns."""
    report = _analyze(path, language)
    if not report.patterns:
        typer.echo("No patterns detected.")
        return
    table = Table(title=f"Patterns in {path.name}", show_header=True)
    table.add_column("Pattern", style="cyan")
    table.add_column("Category")
    table.add_column("Where")
    table.add_column("Confidence", justify="right")
    for finding in report.patterns:
        where = ", ".join(finding.examples) or str(finding.location)
        table.add_row(
            finding.name,
            finding.category.value,
            f"{where} (line {finding.location.start_line})",
            f"{finding.confidence:.2f}",
        )
    console.print(table)

    if report.complexity:
        typer.echo("\nCyclomatic complexity:")
        for name, value in sorted(report.complexity.items(), key=lambda kv: -kv[1]):
            typer.echo(f"  {value:>3}  {name}")


@app.command("similar")
def similar(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to inspect."),
    language: Optional[str] = _language_option(),
    threshold: float = typer.Option(
        config.SIMILARITY_THRESHOLD, "--threshold", "-t", min=0.0, max=1.0,
        help="Minimum similarity to report.",
    ),
):
    """👯 Report pairs of similar methods within one file."""
    report = _analyze(path, language)
    methods = methods_of(report.result.root)
    scorer = SimilarityScorer()
    pairs = []
    for a, b in combinations(methods, 2):
        score = scorer.similarity(a, b)
        if score >= threshold:
            pairs.append((a, b, score))
    if not pairs:
        typer.echo(f"No method pairs at or above {threshold:.2f}.")
        return
    pairs.sort(key=lambda p: p[2], reverse=True)
    table = Table(title=f"Similar methods in {path.name}", show_header=True)
    table.add_column("Method A", style="cyan")
    table.add_column("Method B", style="cyan")
    table.add_column("Score", justify="right")
    for a, b, score in pairs:
        table.add_row(
            f"{a.name} (line {a.location.start_line})",
            f"{b.name} (line {b.location.start_line})",
            f"{score:.3f}",
        )
    console.print(table)


@app.command("deps")
def deps(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to inspect."),
    language: Optional[str] = _language_option(),
):
    """🔗 Show what each declaration in a file depends on."""
    report = _analyze(path, language)
    graph = DependencyGraphBuilder().build([report.result.root])
    if not graph.edges:
        typer.echo(f"No dependencies found in {path.name}.")
        return

    table = Table(title=f"Dependencies in {path.name}", show_header=True)
    table.add_column("Declaration", style="cyan")
    table.add_column("Edge", style="magenta")
    table.add_column("Target")
    for edge in graph.edges:
        source = graph.node(edge.src)
        target = graph.node(edge.dst)
        table.add_row(
            f"{source.kind.value} {source.name} (line {source.location.start_line})",
            edge.edge_type,
            f"{target.kind.value} {target.name}" if target is not None else edge.dst,
        )
    console.print(table)

    for cycle in graph.circular_dependencies():
        names = [graph.node(nid).name for nid in cycle]
        typer.echo(f"⚠️  Circular dependency: {' -> '.join(names + names[:1])}")


@app.command("config")
def show_config(
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Persist the parse pool size."),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", min=0.0, max=1.0, help="Persist the default similarity threshold.",
    ),
):
    """⚙️  Show (or update) the [analysis] settings."""
    updates = {}
    if workers is not None:
        updates["workers"] = workers
    if threshold is not None:
        updates["similarity_threshold"] = threshold
    if updates:
        if not config.save_analysis_config(**updates):
            typer.echo(f"❌ Could not write {config.CONFIG_FILE}")
            raise typer.Exit(1)
        typer.echo(f"✅ Saved to {config.CONFIG_FILE}")

    settings = config.load_analysis_config()
    typer.echo(f"Config file: {config.CONFIG_FILE}")
    typer.echo(f"workers = {settings['workers']}")
    typer.echo(f"similarity_threshold = {settings['similarity_threshold']}")
    typer.echo(f"languages = {', '.join(settings['languages'])}")

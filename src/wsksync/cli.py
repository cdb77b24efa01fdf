from __future__ import annotations

from typing import List, Optional

import typer
from rich import print as rprint
from rich.panel import Panel
from rich.table import Table

from .config import Settings, load_settings
from .errors import WskSyncError
from .export import build_command, export_data, masked_command
from .logging_utils import set_level
from .pipeline import SyncReport, remove_dump, run_sync, split_dump
from .records import derive_filename


app = typer.Typer(add_completion=False, help="Export web source kinds from MongoDB into per-record JSON files")


def _settings(**overrides) -> Settings:
    try:
        s = load_settings(**overrides)
    except WskSyncError as exc:
        rprint(f"[red]{exc}[/]")
        raise typer.Exit(1)
    set_level(s.log_level)
    return s


def _render_report(report: SyncReport, title: str) -> None:
    t = Table(title=title)
    t.add_row("records", str(report.records))
    t.add_row("written", str(report.written))
    t.add_row("unchanged", str(report.unchanged))
    t.add_row("failed", str(report.failed))
    t.add_row("rejected", str(report.rejected))
    t.add_row("collisions", str(len(report.collisions)))
    t.add_row("output_dir", report.output_dir)
    if report.dump_removed:
        t.add_row("dump removed", report.dump_path)
    rprint(t)
    for fn, ids in sorted(report.collisions.items()):
        rprint(f"[yellow]collision[/] {fn}: {', '.join(ids)}")
    for r in report.failures:
        rprint(f"[red]failed[/] {r.filename}: {r.error}")
    for r in report.rejections:
        rprint(f"[red]rejected[/] {r.reason}")


def _finish(report: SyncReport, fail_on_error: bool) -> None:
    if fail_on_error and not report.ok:
        raise typer.Exit(2)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Run a full sync when no command is given."""
    if ctx.invoked_subcommand is None:
        sync(output_dir=None, dump=None, on_collision=None, parser=None, keep_dump=False, fail_on_error=False)


@app.command()
def sync(
    output_dir: Optional[str] = typer.Option(None, "--output-dir", "-o", help="Directory receiving one file per record"),
    dump: Optional[str] = typer.Option(None, "--dump", help="Intermediate dump file"),
    on_collision: Optional[str] = typer.Option(None, "--on-collision", help="overwrite|skip|error"),
    parser: Optional[str] = typer.Option(None, "--parser", help="stream|legacy"),
    keep_dump: bool = typer.Option(False, "--keep-dump", help="Keep the dump after writing"),
    fail_on_error: bool = typer.Option(False, "--fail-on-error", help="Exit 2 if any record failed"),
):
    """Export the collection, write one JSON file per record, remove the dump."""
    s = _settings(output_dir=output_dir, dump_path=dump, on_collision=on_collision, parser=parser, keep_dump=keep_dump or None)
    try:
        report = run_sync(s)
    except WskSyncError as exc:
        rprint(f"[red]{exc}[/]")
        raise typer.Exit(1)
    _render_report(report, "Sync")
    _finish(report, fail_on_error)


@app.command()
def export(dump: Optional[str] = typer.Option(None, "--dump", help="Where to write the dump")):
    """Only run the export tool."""
    s = _settings(dump_path=dump)
    try:
        res = export_data(s)
    except WskSyncError as exc:
        rprint(f"[red]{exc}[/]")
        raise typer.Exit(1)
    rprint(Panel.fit(f"Exported {s.database}.{s.collection} to {res.dump_path} in {res.elapsed_s:.1f}s", title="Export"))


@app.command()
def split(
    dump: str = typer.Argument(..., help="Dump file produced by mongoexport"),
    output_dir: Optional[str] = typer.Option(None, "--output-dir", "-o"),
    on_collision: Optional[str] = typer.Option(None, "--on-collision", help="overwrite|skip|error"),
    parser: Optional[str] = typer.Option(None, "--parser", help="stream|legacy"),
    remove: bool = typer.Option(False, "--remove", help="Delete the dump afterwards"),
    fail_on_error: bool = typer.Option(False, "--fail-on-error", help="Exit 2 if any record failed"),
):
    """Split an existing dump file without exporting."""
    s = _settings(output_dir=output_dir, on_collision=on_collision, parser=parser)
    try:
        report = split_dump(s, dump)
    except WskSyncError as exc:
        rprint(f"[red]{exc}[/]")
        raise typer.Exit(1)
    if remove:
        report.dump_removed = remove_dump(dump)
    _render_report(report, "Split")
    _finish(report, fail_on_error)


@app.command()
def info():
    """Show current configuration."""
    s = _settings()
    t = Table(title="wsk-sync Configuration")
    for k, v in s.model_dump().items():
        t.add_row(k, s.masked_uri() if k == "mongo_uri" else str(v))
    t.add_row("command", " ".join(masked_command(build_command(s))))
    rprint(t)


@app.command()
def filename(ids: List[str] = typer.Argument(..., help="Record ids")):
    """Print the file name each id is written to."""
    for i in ids:
        typer.echo(f"{i}\t{derive_filename(i)}")

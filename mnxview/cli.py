"""mnxview CLI entry point."""

import logging
import sys
from pathlib import Path

import click

from mnxview import __version__
from mnxview.driver import SUCCESS, convert_mnx
from mnxview.errors import MNXError
from mnxview.layout import LayoutOptions

DEFAULT_OPTIONS = LayoutOptions()


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="mnxview")
@click.option("--verbose", "-v", is_flag=True, help="Log measure buffering and line breaks to stderr.")
def main(verbose: bool) -> None:
    """mnxview: lay out MNX scores and engrave them with VexFlow."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# ── render subcommand ──────────────────────────────────────────────────────────

@main.command()
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination sheet file path. Defaults to extension based on --format.",
)
@click.option(
    "--title",
    default=None,
    metavar="TEXT",
    help="Title shown in the output header. Defaults to the score filename stem.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["html", "md-vexflow"], case_sensitive=False),
    default="html",
    show_default=True,
    help="Sheet output format: self-contained HTML or Markdown, both with a VexFlow script.",
)
@click.option(
    "--width",
    type=click.FloatRange(min=200.0),
    default=DEFAULT_OPTIONS.sheet_width,
    show_default=True,
    help="Sheet width in canvas units; lines are justified to this width.",
)
@click.option(
    "--height",
    type=click.FloatRange(min=100.0),
    default=DEFAULT_OPTIONS.sheet_height,
    show_default=True,
    help="Initial sheet height; the canvas grows when the score needs more room.",
)
def render(
    score_file: str,
    output: str | None,
    title: str | None,
    output_format: str,
    width: float,
    height: float,
) -> None:
    """
    Lay out an MNX score and write it as a VexFlow page.

    SCORE_FILE is the path to an MNX (JSON) document.

    \b
    Examples:
      mnxview render score.mnx.json
      mnxview render score.mnx.json -o score.html --title "Minuet"
      mnxview render score.mnx.json --format md-vexflow --width 900
    """
    from mnxview.sheet_exporter import SheetExporter

    score_path = Path(score_file)
    resolved_title = title if title is not None else score_path.stem.split(".")[0].replace("_", " ")
    normalized_format = output_format.lower()
    default_suffix = ".html" if normalized_format == "html" else ".md"
    resolved_output = output if output is not None else str(score_path.with_suffix(default_suffix))

    click.echo(f"mnxview v{__version__}")
    click.echo(f"  Score  : {score_file}")
    click.echo(f"  Format : {normalized_format}")
    click.echo(f"  Title  : {resolved_title}")
    click.echo(f"  Output : {resolved_output}")
    click.echo()

    click.echo("[1/3] Reading MNX document...")
    click.echo(f"[2/3] Laying out systems at width {width:g}...")
    click.echo("[3/3] Writing page...")

    options = LayoutOptions(sheet_width=width, sheet_height=height)
    exporter = SheetExporter(title=resolved_title, output_format=normalized_format, options=options)
    try:
        exporter.export(score_file, resolved_output)
    except MNXError as exc:
        click.echo(f"  ERROR: {exc.describe()}", err=True)
        sys.exit(1)
    except OSError as exc:
        click.echo(f"  ERROR: Could not write output file: {exc}", err=True)
        sys.exit(1)

    click.echo()
    if normalized_format == "html":
        click.echo(f"Done!  Open '{resolved_output}' in any browser.")
    else:
        click.echo(
            f"Done!  Open '{resolved_output}' in a Markdown viewer that allows embedded JavaScript."
        )


# ── check subcommand ───────────────────────────────────────────────────────────

@main.command()
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
def check(score_file: str) -> None:
    """
    Translate an MNX score without writing anything and report the result.

    Prints "Success!" or the categorized error, e.g. "[MNX Parse Error] ...".
    """
    status = convert_mnx(Path(score_file).read_text(encoding="utf-8"))
    click.echo(status)
    if status != SUCCESS:
        sys.exit(1)

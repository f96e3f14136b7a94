"""CLI application — Click-based command hierarchy for moodring.

The main CLI group and global flags. Subcommand modules register
themselves by importing and adding to the group.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from moodring.config import MoodringConfig
from moodring.main import configure_logging


@click.group()
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="State directory (overrides MOODRING_DATA_DIR)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log engine events")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    data_dir: Optional[Path],
    verbose: bool,
    no_color: bool,
) -> None:
    """moodring - an emotion engine that learns which feelings were right."""
    configure_logging(verbose=verbose)
    ctx.ensure_object(dict)
    ctx.obj["json"] = json_output
    ctx.obj["no_color"] = no_color
    ctx.obj["config"] = MoodringConfig(
        engine={"data_dir": data_dir} if data_dir is not None else None
    )


# ---------------------------------------------------------------------------
# Register subcommand modules
# ---------------------------------------------------------------------------

def _register_subcommands() -> None:
    """Import and register all subcommands."""
    from moodring.cli.commands import cycle_cmd, prophecy_cmd, status_cmd, weights_cmd

    cli.add_command(cycle_cmd)
    cli.add_command(status_cmd)
    cli.add_command(weights_cmd)
    cli.add_command(prophecy_cmd)


_register_subcommands()

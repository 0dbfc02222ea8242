"""
promptsync — CLI Entry Point

Usage:
    promptsync sync
    promptsync status [--json]
    promptsync list [--json] [--category agents]
    promptsync activate NAME [--repo URL]
    promptsync deactivate NAME
    promptsync repair
    promptsync cache-clear [--repo URL]
"""

from __future__ import annotations

# Load .env before anything reads the environment
from dotenv import load_dotenv

load_dotenv()

from typing import Optional

import click

from .cli.prompts import activate_cmd, deactivate_cmd, list_cmd
from .cli.sync import cache_clear_cmd, repair_cmd, status_cmd, sync_cmd
from .logging_config import setup_logging


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Config file (default: $PROMPTSYNC_CONFIG or ./promptsync.yaml)")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
@click.option("--log-format", type=click.Choice(["text", "json"]), default=None)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str],
        log_format: Optional[str]) -> None:
    """promptsync — Sync prompt libraries from Git repositories."""
    setup_logging(log_level, log_format)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level
    ctx.obj["log_format"] = log_format


cli.add_command(sync_cmd)
cli.add_command(status_cmd)
cli.add_command(list_cmd)
cli.add_command(activate_cmd)
cli.add_command(deactivate_cmd)
cli.add_command(repair_cmd)
cli.add_command(cache_clear_cmd)


if __name__ == "__main__":
    cli()

"""
Shared helpers for CLI commands.
"""

from __future__ import annotations

import click

from ..config.loader import Settings, load_settings
from ..errors import ConfigurationError
from ..logging_config import setup_logging
from ..service import PromptSync


def get_settings(ctx: click.Context) -> Settings:
    """Settings for this invocation, loaded once."""
    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = load_settings(ctx.obj.get("config_path"))
        except ConfigurationError as e:
            raise click.ClickException(str(e))
        if ctx.obj["settings"].debug and not ctx.obj.get("log_level"):
            setup_logging("DEBUG", ctx.obj.get("log_format"))
    return ctx.obj["settings"]


def get_service(ctx: click.Context) -> PromptSync:
    """PromptSync service for this invocation, built once."""
    if "service" not in ctx.obj:
        ctx.obj["service"] = PromptSync.from_settings(
            get_settings(ctx), providers=ctx.obj.get("providers")
        )
    return ctx.obj["service"]

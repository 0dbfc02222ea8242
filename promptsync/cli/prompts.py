"""
CLI prompt commands — list, activate and deactivate prompts.

Usage:
    promptsync list [--json] [--category agents|instructions|prompts] [--active]
    promptsync activate NAME [--repo URL]
    promptsync deactivate NAME
"""

from __future__ import annotations

import json as json_lib

import click

from ..catalog.models import CATEGORIES
from ..errors import ActivationFailed
from .context import get_service


@click.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--category", type=click.Choice(CATEGORIES), default=None,
              help="Only show one category")
@click.option("--active", "active_only", is_flag=True, help="Only show active prompts")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool, category: str, active_only: bool) -> None:
    """List mirrored and active prompts."""
    service = get_service(ctx)
    groups = service.catalog.by_category()

    if category:
        groups = {category: groups[category]}
    if active_only:
        groups = {name: [r for r in records if r.active] for name, records in groups.items()}

    if as_json:
        data = {name: [r.model_dump() for r in records] for name, records in groups.items()}
        click.echo(json_lib.dumps(data, indent=2))
        return

    for name, records in groups.items():
        active = sum(1 for r in records if r.active)
        click.secho(f"\n{name.capitalize()} ({active}/{len(records)})", bold=True)
        if not records:
            click.echo("  (none)")
            continue
        for r in records:
            mark = "●" if r.active else "○"
            source = r.repository_url or "local"
            click.echo(f"  {mark} {r.workspace_name}  [{source}]")
            click.echo(f"      {r.description}")
    click.echo()


@click.command("activate")
@click.argument("name")
@click.option("--repo", "repository_url", default=None,
              help="Repository URL, when several repositories hold NAME")
@click.pass_context
def activate_cmd(ctx: click.Context, name: str, repository_url: str) -> None:
    """Activate a mirrored prompt by workspace or original name."""
    service = get_service(ctx)
    try:
        workspace_name = service.activate(name, repository_url)
    except ActivationFailed as e:
        raise click.ClickException(str(e))
    click.secho(f"✓ Activated {workspace_name}", fg="green")


@click.command("deactivate")
@click.argument("name")
@click.pass_context
def deactivate_cmd(ctx: click.Context, name: str) -> None:
    """Deactivate an active prompt by workspace name."""
    service = get_service(ctx)
    if service.deactivate(name):
        click.secho(f"✓ Deactivated {name}", fg="green")
    else:
        click.secho(f"Nothing removed for {name}", fg="yellow")

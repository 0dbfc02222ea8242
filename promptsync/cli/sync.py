"""
CLI sync commands — run a sync pass, show status, repair, clear the cache.

Usage:
    promptsync sync [--json]
    promptsync status [--json]
    promptsync repair
    promptsync cache-clear [--repo URL] [--yes]
"""

from __future__ import annotations

import json as json_lib
from dataclasses import asdict

import click

from .context import get_service, get_settings


@click.command("sync")
@click.option("--json", "as_json", is_flag=True, help="Output the sync report as JSON")
@click.pass_context
def sync_cmd(ctx: click.Context, as_json: bool) -> None:
    """Fetch all configured repositories and reconcile active prompts."""
    service = get_service(ctx)
    settings = get_settings(ctx)

    if not settings.repository_refs:
        click.secho("No repositories configured.", fg="yellow")
        click.echo("  Add repositories to promptsync.yaml or set PROMPTSYNC_REPOSITORIES.")
        return

    outcome = service.sync_now()
    if outcome is None:
        click.secho("A sync is already running.", fg="yellow")
        return

    if as_json:
        data = outcome.report.to_dict()
        data["summary"] = outcome.summary
        data["repaired"] = outcome.heal.repair.repaired
        data["recreated"] = outcome.heal.recreated
        data["removed"] = outcome.heal.cleanup.removed
        click.echo(json_lib.dumps(data, indent=2))
    else:
        click.echo()
        for result in outcome.report.repositories:
            if result.success:
                click.echo(f"  ✅ {result.url} ({result.items_updated} updated)")
            else:
                click.echo(f"  ❌ {result.url} — {result.error_kind}: {result.error}")
        heal = outcome.heal
        if heal.repair.repaired or heal.recreated or heal.cleanup.removed:
            click.echo(
                f"\n  Repaired {len(heal.repair.repaired)} links, "
                f"restored {len(heal.recreated)} entries, "
                f"removed {len(heal.cleanup.removed)} orphans"
            )
        for problem in heal.repair.unrecoverable:
            click.secho(f"  ⚠️  {problem}", fg="yellow")
        click.echo()

        if outcome.report.overall_success:
            click.secho(f"✓ {outcome.summary}", fg="green")
        elif outcome.report.succeeded:
            click.secho(f"⚠ {outcome.summary}", fg="yellow")
        else:
            click.secho(f"✗ {outcome.summary}", fg="red")

    if not outcome.report.overall_success:
        ctx.exit(1)


@click.command("status")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status_cmd(ctx: click.Context, as_json: bool) -> None:
    """Show configured repositories and their last sync result."""
    service = get_service(ctx)
    settings = get_settings(ctx)
    state = service.status()
    stats = service.catalog.statistics()

    repositories = []
    for ref in settings.repository_refs:
        status = state.get(ref.url)
        entry = {"url": ref.url, "branch": ref.branch}
        if status:
            entry.update({k: v for k, v in asdict(status).items() if k not in ("url", "branch")})
        else:
            entry.update({"status": "never", "last_sync_iso": None, "last_error": None,
                          "error_kind": None, "items_updated": 0})
        entry["mirrored_files"] = len(service.mirror.list(ref.url))
        repositories.append(entry)

    result = {
        "activation_dir": str(settings.activation_dir),
        "storage_dir": str(service.mirror.storage_root),
        "categories": settings.enabled_categories(),
        "last_sync_iso": state.last_sync_iso,
        "last_summary": state.last_summary,
        "prompts": stats,
        "repositories": repositories,
    }

    if as_json:
        click.echo(json_lib.dumps(result, indent=2, default=str))
        return

    click.echo("\n📚 Prompt Sync Status\n")
    click.echo(f"  Prompts dir:  {result['activation_dir']}")
    click.echo(f"  Storage dir:  {result['storage_dir']}")
    click.echo(f"  Categories:   {', '.join(result['categories']) or '(none)'}")
    click.echo(f"  Active:       {stats['active']}/{stats['total']}")
    if state.last_sync_iso:
        click.echo(f"  Last sync:    {state.last_sync_iso[:19]}")
    click.echo()

    if not repositories:
        click.echo("  No repositories configured.")
        click.echo()
        return

    for r in repositories:
        icon = {"ok": "✅", "failed": "❌"}.get(r["status"], "⏳")
        line = f"  {icon} {r['url']} [{r['branch']}] {r['status']}, {r['mirrored_files']} files"
        if r.get("last_error"):
            line += f" — {r['last_error'][:80]}"
        click.echo(line)
    click.echo()


@click.command("repair")
@click.pass_context
def repair_cmd(ctx: click.Context) -> None:
    """Fix broken links, restore missing entries, remove orphaned copies."""
    service = get_service(ctx)
    heal = service.heal()

    for name in heal.repair.repaired:
        click.echo(f"  🔗 Repaired {name}")
    for name in heal.recreated:
        click.echo(f"  ♻️  Restored {name}")
    for name in heal.cleanup.removed:
        click.echo(f"  🧹 Removed {name}")
    for problem in heal.repair.unrecoverable:
        click.secho(f"  ⚠️  {problem}", fg="yellow")
    for error in heal.cleanup.errors:
        click.secho(f"  ❌ {error}", fg="red")

    if not (heal.repair.repaired or heal.recreated or heal.cleanup.removed
            or heal.repair.unrecoverable or heal.cleanup.errors):
        click.secho("✓ Nothing to repair", fg="green")


@click.command("cache-clear")
@click.option("--repo", "repository_url", default=None, help="Only clear this repository")
@click.confirmation_option(prompt="Delete mirrored prompts and their active entries?")
@click.pass_context
def cache_clear_cmd(ctx: click.Context, repository_url: str) -> None:
    """Delete mirrored content (all repositories, or one)."""
    service = get_service(ctx)
    removed = service.clear_cache(repository_url)
    target = repository_url or "all repositories"
    click.secho(f"✓ Removed {removed} mirrored files from {target}", fg="green")

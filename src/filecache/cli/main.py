"""Main CLI entry point for filecache.

Provides maintenance commands for a cache directory: inspect, purge,
clear, and single-key get/set/delete.
"""

import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from filecache.config import CacheConfig
from filecache.store import CacheStore

# Global console for Rich output
console = Console()


def open_store(ctx: click.Context) -> CacheStore:
    """Build a CacheStore from CLI options and environment.

    Priority for each setting:
    1. Explicit --dir/--secret flags
    2. FILECACHE_* environment variables
    3. Defaults

    Raises:
        click.ClickException: If no cache directory is available
    """
    config = CacheConfig.from_env()
    changes = {}

    cache_dir: Optional[str] = ctx.obj.get("cache_dir")
    if cache_dir:
        changes["cache_dir"] = Path(cache_dir)
    elif not os.environ.get("FILECACHE_DIR"):
        raise click.ClickException(
            "No cache directory given (use --dir or set FILECACHE_DIR)"
        )

    if ctx.obj.get("secret") is not None:
        changes["encryption_key"] = ctx.obj["secret"]

    return CacheStore.from_config(config.evolve(**changes))


@click.group()
@click.option(
    "--dir",
    "-d",
    "cache_dir",
    type=click.Path(file_okay=False),
    help="Cache directory (default: FILECACHE_DIR env var)",
)
@click.option(
    "--secret",
    "-s",
    default=None,
    help="Encryption secret (default: FILECACHE_SECRET env var)",
)
@click.pass_context
def cli(ctx, cache_dir, secret):
    """filecache CLI - Inspect and maintain a file cache directory.

    Use --dir/-d to choose the cache directory, or set FILECACHE_DIR.
    """
    ctx.ensure_object(dict)
    ctx.obj["cache_dir"] = cache_dir
    ctx.obj["secret"] = secret


@cli.command("stats")
@click.pass_context
def stats_cmd(ctx):
    """Show entry counts and disk usage.

    Example:
        filecache -d /tmp/cache stats
    """
    try:
        with open_store(ctx) as store:
            stats = store.stats()

        table = Table(title=f"Cache: {stats['cache_dir']}")
        table.add_column("Metric", style="cyan", no_wrap=True)
        table.add_column("Value", justify="right", style="green")

        table.add_row("Entries", str(stats["entries"]))
        table.add_row("Valid", str(stats["valid"]))
        table.add_row("Expired", str(stats["expired"]))
        table.add_row("Corrupt", str(stats["corrupt"]))
        table.add_row("Size", _format_size(stats["total_size_bytes"]))
        table.add_row("Default TTL", f"{stats['default_ttl']}s")
        table.add_row(
            "Encryption", stats["cipher"] if stats["encrypted"] else "disabled"
        )

        console.print(table)

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("purge")
@click.option(
    "--dry-run", is_flag=True, help="Show what would be removed without removing"
)
@click.pass_context
def purge_cmd(ctx, dry_run):
    """Remove expired and unreadable entries.

    Example:
        filecache -d /tmp/cache purge --dry-run
        filecache -d /tmp/cache purge
    """
    try:
        with open_store(ctx) as store:
            before = store.stats()
            stale = before["expired"] + before["corrupt"]

            if dry_run:
                console.print(
                    f"Would remove {stale} of {before['entries']} entries "
                    f"({before['expired']} expired, {before['corrupt']} corrupt)"
                )
                return

            ok = store.purge()
            after = store.stats()

        removed = before["entries"] - after["entries"]
        if ok:
            console.print(f"[green]✓[/green] Purged {removed} entries")
        else:
            console.print(
                f"[yellow]![/yellow] Purged {removed} entries, "
                f"some files could not be removed"
            )
            sys.exit(1)

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def clear_cmd(ctx, yes):
    """Remove every entry.

    Example:
        filecache -d /tmp/cache clear -y
    """
    try:
        with open_store(ctx) as store:
            if not yes:
                if not click.confirm(f"Remove all entries in {store.cache_dir}?"):
                    console.print("[yellow]Cancelled[/yellow]")
                    return

            ok = store.clear()

        if not ok:
            console.print(
                "[red]✗[/red] Some entries could not be removed", style="red"
            )
            sys.exit(1)
        console.print("[green]✓[/green] Cleared cache")

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("get")
@click.argument("key")
@click.pass_context
def get_cmd(ctx, key):
    """Print the cached value for KEY, or why there is none.

    Example:
        filecache -d /tmp/cache get user.42
    """
    try:
        with open_store(ctx) as store:
            result = store.lookup(key)

        if not result.hit:
            console.print(f"[yellow]Miss[/yellow] ({result.outcome.value})")
            sys.exit(1)

        console.print(repr(result.value), markup=False, highlight=False)

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--ttl", "-t", type=int, default=None, help="TTL in seconds")
@click.pass_context
def set_cmd(ctx, key, value, ttl):
    """Store VALUE (as a string) under KEY.

    Example:
        filecache -d /tmp/cache set greeting hello --ttl 60
    """
    try:
        with open_store(ctx) as store:
            ok = store.set(key, value, ttl)

        if not ok:
            console.print(f"[red]✗[/red] Could not write '{key}'", style="red")
            sys.exit(1)
        console.print(f"[green]✓[/green] Stored '{key}'")

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("delete")
@click.argument("key")
@click.pass_context
def delete_cmd(ctx, key):
    """Delete KEY.

    Example:
        filecache -d /tmp/cache delete greeting
    """
    try:
        with open_store(ctx) as store:
            ok = store.delete(key)

        if not ok:
            console.print(f"[red]✗[/red] Could not delete '{key}'", style="red")
            sys.exit(1)
        console.print(f"[green]✓[/green] Deleted '{key}'")

    except click.ClickException:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


def _format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = size_bytes / 1024
    for unit in ("KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


if __name__ == "__main__":
    cli()

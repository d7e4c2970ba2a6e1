"""CLI entry point for mpublish."""

from __future__ import annotations

from pathlib import Path

import click
from click.core import ParameterSource

from mpublish.errors import ExternalStepError, ReleaseError
from mpublish.models import BumpDirectives
from mpublish.pipeline import run_release
from mpublish.toml import load_config

INSTRUCTIONS = """\
Usage: mpublish [OPTIONS] TARGETS...

Bump, rewrite and publish packages of a monorepo in dependency order.

TARGETS are package names, or "all" for every package. Every package that
depends on a target (directly or not) is published as well.

Examples:
  mpublish all                  bump the patch of every package and publish
  mpublish my-lib -t beta       publish my-lib and its dependents as x.y.z-beta
  mpublish my-lib -m 4          move my-lib and its dependents to minor 4
  mpublish all --no-write -d    list packages in publish order, do nothing

Defaults for --path, --tag, --notag, --verbose and --write can be set in
[tool.mpublish] of the pyproject.toml in the current directory.

Run `mpublish --help` for every option.
"""


@click.command()
@click.pass_context
@click.version_option(package_name="mpublish")
@click.argument("targets", nargs=-1)
@click.option("-j", "--major", default=None, help="Set the major version.")
@click.option(
    "-m", "--minor", default=None, help="Set the minor version (resets patch to 0)."
)
@click.option("-t", "--tag", default=None, help="Prerelease tag to append.")
@click.option("-n", "--notag", is_flag=True, help="Drop existing prerelease tags.")
@click.option(
    "-d", "--dry", is_flag=True, help="Compute everything but run no npm/uv commands."
)
@click.option("-v", "--verbose", is_flag=True, help="Echo commands and changes.")
@click.option(
    "-w/-W",
    "--write/--no-write",
    default=True,
    show_default=True,
    help="Bump and save manifests, or publish current versions as they are.",
)
@click.option(
    "-p",
    "--path",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory containing the packages.  [default: ./packages]",
)
def cli(
    ctx: click.Context,
    targets: tuple[str, ...],
    major: str | None,
    minor: str | None,
    tag: str | None,
    notag: bool,
    dry: bool,
    verbose: bool,
    write: bool,
    path: str | None,
) -> None:
    """Publish monorepo packages and everything that depends on them."""
    if not targets:
        click.echo(INSTRUCTIONS)
        return

    root = Path.cwd()
    write_given = ctx.get_parameter_source("write") is not ParameterSource.DEFAULT
    try:
        config = load_config(root)
        directives = BumpDirectives(
            major=major,
            minor=minor,
            tag=tag if tag is not None else config.tag,
            notag=notag or config.notag,
        )
        run_release(
            root / (path if path is not None else config.path),
            list(targets),
            directives,
            write=write if write_given else config.write,
            dry_run=dry,
            verbose=verbose or config.verbose,
        )
    except ExternalStepError as exc:
        if exc.published:
            click.echo(f"\nAlready published: {', '.join(exc.published)}", err=True)
        raise click.ClickException(str(exc)) from exc
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc

"""CLI entry point for stashlens.

Commands:
  review   — publish SonarQube findings on a Stash pull request
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from stashlens_cli.commands.review import review_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("stashlens"),
    prog_name="stashlens",
)
@click.option(
    "--config",
    "config_path",
    default=".stashlens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="STASHLENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every skipped and published finding.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Publish static-analysis findings as Stash pull request comments."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)

"""Command-line interface for PR Gatekeeper."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console as RichConsole
from rich.logging import RichHandler

from gatekeeper import __version__
from gatekeeper.config import (
    GatekeeperConfig,
    default_config_path,
    load_config,
    save_config,
    set_config_value,
)
from gatekeeper.exceptions import GatekeeperError
from gatekeeper.models import DecisionAction
from gatekeeper.pipeline import AnalysisResult, Gatekeeper
from gatekeeper.ui.console import Console

console = Console()
logger = logging.getLogger("gatekeeper.cli")

EXIT_BLOCKED = 2

OUTPUT_FORMATS = click.Choice(["text", "markdown", "json"])


def _setup_logging(verbose: bool) -> None:
    """Route gatekeeper.* loggers through Rich on stderr when verbose."""
    root = logging.getLogger("gatekeeper")
    if not verbose:
        return
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(
            RichHandler(
                console=RichConsole(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
        )
    root.setLevel(logging.DEBUG)


def _get_project_root(path: str | None = None) -> Path:
    """Resolve the project root or error."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {path}")
        sys.exit(1)
    return root


def _load(config_path: str | None, root: Path) -> GatekeeperConfig:
    try:
        return load_config(Path(config_path) if config_path else root)
    except GatekeeperError as e:
        console.error(str(e))
        sys.exit(1)


def _log_progress(stage: str, current: int, total: int) -> None:
    logger.debug("Stage %s done (%d/%d)", stage, current, total)


def _emit(result: AnalysisResult, output_format: str) -> None:
    """Print the analysis in the requested format."""
    from gatekeeper.github.renderer import render_decision_comment

    if output_format == "json":
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
    elif output_format == "markdown":
        click.echo(render_decision_comment(result))
    else:
        console.show_decision(result)


def _exit_for(result: AnalysisResult, fail_on_block: bool) -> None:
    if fail_on_block and result.decision.action == DecisionAction.BLOCK:
        sys.exit(EXIT_BLOCKED)


@click.group()
@click.version_option(version=__version__, prog_name="gatekeeper")
def main():
    """PR Gatekeeper - risk-based merge decisions for pull requests."""
    pass


# =========================================================================
# Analysis
# =========================================================================

@main.command()
@click.option("--owner", required=True, help="Repository owner (user or organization).")
@click.option("--repo", required=True, help="Repository name.")
@click.option("--pr", "number", required=True, type=int, help="Pull request number.")
@click.option("--config", "config_path", default=None, help="Path to a config file.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.option(
    "--format", "output_format",
    type=OUTPUT_FORMATS,
    default="text",
    help="Output format.",
)
@click.option("--comment", is_flag=True, help="Post the decision as a PR comment.")
@click.option("--no-audit", is_flag=True, help="Do not write an audit log entry.")
@click.option("--fail-on-block", is_flag=True, help="Exit with code 2 when the PR is blocked.")
def analyze(
    owner: str,
    repo: str,
    number: int,
    config_path: str | None,
    verbose: bool,
    output_format: str,
    comment: bool,
    no_audit: bool,
    fail_on_block: bool,
):
    """Analyze a GitHub pull request and decide whether it can merge.

    Usage in CI:

        gatekeeper analyze --owner acme --repo api --pr 42 --comment --fail-on-block
    """
    from gatekeeper.audit.logger import AuditLogger
    from gatekeeper.github.client import GitHubClient
    from gatekeeper.github.renderer import render_decision_comment

    _setup_logging(verbose)
    root = _get_project_root()
    config = _load(config_path, root)

    client = GitHubClient(config.github)
    try:
        result = Gatekeeper(config).analyze(
            client, owner, repo, number, on_progress=_log_progress
        )
    except GatekeeperError as e:
        console.error(str(e))
        sys.exit(1)

    if config.audit.enabled and not no_audit:
        AuditLogger(config.audit, root=root).log(result)

    _emit(result, output_format)

    if comment:
        try:
            client.post_comment(owner, repo, number, render_decision_comment(result))
            console.success(f"Posted decision comment to {owner}/{repo}#{number}")
        except GatekeeperError as e:
            console.error(f"Could not post comment: {e}")
            sys.exit(1)

    _exit_for(result, fail_on_block)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the git repository.")
@click.option("--base", "-b", default="main", help="Base branch to diff against.")
@click.option("--head", default="HEAD", help="Head revision.")
@click.option("--config", "config_path", default=None, help="Path to a config file.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.option(
    "--format", "output_format",
    type=OUTPUT_FORMATS,
    default="text",
    help="Output format.",
)
@click.option("--fail-on-block", is_flag=True, help="Exit with code 2 when the change is blocked.")
def check(
    path: str | None,
    base: str,
    head: str,
    config_path: str | None,
    verbose: bool,
    output_format: str,
    fail_on_block: bool,
):
    """Evaluate the local diff between BASE and HEAD, without GitHub.

    Local usage:

        gatekeeper check --base main
    """
    from gatekeeper.github.diff_parser import snapshot_from_git

    _setup_logging(verbose)
    root = _get_project_root(path)
    config = _load(config_path, root)

    try:
        pr = snapshot_from_git(root, base=base, head=head)
    except GatekeeperError as e:
        console.error(str(e))
        sys.exit(1)

    if not pr.files:
        logger.warning("No changes between %s and %s", base, head)

    result = Gatekeeper(config).evaluate(pr, on_progress=_log_progress)
    _emit(result, output_format)
    _exit_for(result, fail_on_block)


# =========================================================================
# Setup
# =========================================================================

@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
def init(path: str | None, force: bool):
    """Write a default .gatekeeper/config.json."""
    root = _get_project_root(path)
    config_path = default_config_path(root)
    if config_path.exists() and not force:
        console.warning(f"Config already exists: {config_path} (use --force to overwrite)")
        return

    console.banner()
    saved = save_config(root, GatekeeperConfig())
    console.success(f"Configuration saved to {saved}")


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage PR Gatekeeper configuration."""
    root = _get_project_root(path)
    config = _load(None, root)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(mode="json"), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: gatekeeper config get <key>")
            sys.exit(1)
        data = config.model_dump(mode="json")
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: gatekeeper config set <key> <value>")
            sys.exit(1)
        try:
            # Try to parse as JSON for non-string values
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value

            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(f"Set {key} = {parsed_value}")
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except GatekeeperError as e:
            console.error(str(e))
            sys.exit(1)


if __name__ == "__main__":
    main()

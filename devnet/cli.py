"""Click-based CLI for the local devnet environment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import click

from devnet.config import DevnetConfig, load_config, save_config
from devnet.errors import DevnetError
from devnet.lifecycle import EnvironmentController, LifecycleAction, LifecycleResult
from devnet.runner import STDOUT, LogChunk, ensure_required_binaries


@dataclass
class CLIState:
    settings: DevnetConfig
    check_binaries: bool = True

    def controller(self) -> EnvironmentController:
        if self.check_binaries:
            try:
                ensure_required_binaries(
                    [self.settings.git_executable, self.settings.docker_executable]
                )
            except DevnetError as exc:
                raise click.ClickException(str(exc)) from exc
        return EnvironmentController(self.settings, observers=[_echo_chunk])


class ConsoleProgress:
    """Echo step messages; there is no terminal spinner to clear."""

    def __init__(self) -> None:
        self.current: str | None = None

    def set_message(self, text: str) -> None:
        self.current = text
        click.echo(click.style(text, fg="cyan"))

    def clear(self) -> None:
        self.current = None


def _echo_chunk(chunk: LogChunk) -> None:
    text = chunk.text.rstrip("\n")
    if chunk.stream == STDOUT:
        click.echo(click.style(f"GIT:: {text}", fg="green"))
    else:
        click.echo(click.style(f"GIT::NOTE:: {text}", fg="yellow"), err=True)


def _report(result: LifecycleResult) -> None:
    if result.success:
        click.echo(click.style(f"✅ {result.message}", fg="green"))
        return
    click.echo(click.style(f"❌ {result.message}:", fg="red"), err=True)
    if result.diagnostic:
        click.echo(click.style(result.diagnostic.rstrip(), fg="red"), err=True)
    raise click.exceptions.Exit(1)


def _run(state: CLIState, action: LifecycleAction) -> None:
    controller = state.controller()
    _report(controller.run(action, progress=ConsoleProgress()))


@click.group()
@click.option(
    "--checkout",
    type=click.Path(file_okay=False, path_type=Path),
    help="Override the local repository path for this invocation.",
)
@click.option("--repo-url", help="Override the upstream repository URL.")
@click.option("--compose-file", help="Override the docker compose file name.")
@click.option(
    "--skip-binary-check",
    is_flag=True,
    default=False,
    help="Do not verify that git and docker are on PATH.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def app(
    ctx: click.Context,
    checkout: Path | None,
    repo_url: str | None,
    compose_file: str | None,
    skip_binary_check: bool,
    verbose: bool,
) -> None:
    """Manage the local coprocessor devnet environment."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config()
    except DevnetError as exc:
        raise click.ClickException(str(exc)) from exc
    overrides = config.merged(
        repo_url=repo_url,
        checkout_path=checkout,
        compose_file=compose_file,
    )
    ctx.obj = CLIState(settings=overrides, check_binaries=not skip_binary_check)


@app.command()
@click.pass_obj
def start(state: CLIState) -> None:
    """Sync the repository, then build, pull, and start the devnet containers."""

    _run(state, LifecycleAction.START)


@app.command()
@click.pass_obj
def stop(state: CLIState) -> None:
    """Stop the devnet containers and remove their volumes."""

    _run(state, LifecycleAction.STOP)


@app.command()
@click.pass_obj
def update(state: CLIState) -> None:
    """Pull the latest changes for the devnet repository."""

    _run(state, LifecycleAction.UPDATE)


@app.command()
@click.option("--yes", is_flag=True, default=False, help="Do not prompt for confirmation.")
@click.pass_obj
def reset(state: CLIState, yes: bool) -> None:
    """Delete and re-download the devnet repository."""

    if not yes:
        click.confirm(f"Delete {state.settings.checkout} and clone it again?", abort=True)
    _run(state, LifecycleAction.RESET)


@app.command()
@click.option("--repo-url", "saved_repo_url", help="Upstream repository URL to persist.")
@click.option("--branch", help="Branch to persist.")
@click.option(
    "--checkout",
    "saved_checkout",
    type=click.Path(file_okay=False, path_type=Path),
    help="Local repository path to persist.",
)
@click.option("--compose-file", "saved_compose_file", help="Compose file name to persist.")
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds between submodule completion checks.",
)
@click.option(
    "--submodule-timeout",
    type=click.FloatRange(min=0),
    help="Maximum seconds for submodule updates.",
)
@click.option(
    "--kill-on-timeout/--keep-on-timeout",
    default=None,
    help="Whether a timed-out submodule update is killed.",
)
def configure(
    saved_repo_url: str | None,
    branch: str | None,
    saved_checkout: Path | None,
    saved_compose_file: str | None,
    poll_interval: float | None,
    submodule_timeout: float | None,
    kill_on_timeout: bool | None,
) -> None:
    """Update ~/.devnet/config.toml with the options given here.

    Group-level overrides and DEVNET_* variables apply to a single
    invocation and are never written back.
    """

    try:
        settings = load_config(apply_env=False)
    except DevnetError as exc:
        raise click.ClickException(str(exc)) from exc
    settings = settings.merged(
        repo_url=saved_repo_url,
        branch=branch,
        checkout_path=saved_checkout.expanduser().absolute() if saved_checkout else None,
        compose_file=saved_compose_file,
    )
    if poll_interval is not None:
        settings.poll_interval = poll_interval
    if submodule_timeout is not None:
        settings.submodule_timeout = submodule_timeout
    if kill_on_timeout is not None:
        settings.kill_on_timeout = kill_on_timeout
    path = save_config(settings)
    click.echo(f"Saved configuration to {path}.")


def main() -> None:  # pragma: no cover - console script entry point
    app()


if __name__ == "__main__":  # pragma: no cover - module executed as a script
    main()

"""CLI entrypoint for gitabra."""

import logging
from pathlib import Path

import rich_click as click

from gitabra import __version__
from gitabra.commit import CommitError
from gitabra.controllers import CommitCommand, GitabraCliController, StatusCommand
from gitabra.jobs import SpawnError
from gitabra.status import StatusError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = GitabraCliController()


@click.group()
@click.version_option(version=__version__, prog_name="gitabra")
@click.option("--verbose", "-v", is_flag=True, help="Log session and job lifecycle to stderr.")
def gitabra(verbose: bool) -> None:
    """Git porcelain driven from an editing session."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@gitabra.command("commit")
@click.option("--amend", is_flag=True, help="Amend the previous commit.")
@click.option(
    "--handshake-timeout-ms",
    type=click.IntRange(min=1),
    default=None,
    help="How long to wait for git to hand over the message file.",
)
@click.option(
    "--reap-timeout-ms",
    type=click.IntRange(min=1),
    default=None,
    help="How long to wait for git to exit after the message is saved.",
)
@click.option("--editor", default=None, help="Editor command; defaults to $VISUAL / $EDITOR.")
@click.option(
    "--repo",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    default=None,
    help="Repository directory.",
)
def commit(
    amend: bool,
    handshake_timeout_ms: int | None,
    reap_timeout_ms: int | None,
    editor: str | None,
    repo: Path | None,
) -> None:
    """Run `git commit`, editing the message in your editor."""

    try:
        result = CONTROLLER.commit(
            CommitCommand(
                amend=amend,
                handshake_timeout_ms=handshake_timeout_ms,
                reap_timeout_ms=reap_timeout_ms,
                editor=editor,
                cwd=repo,
            ),
        )
    except (CommitError, SpawnError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Commit did not complete.")


@gitabra.command("status")
@click.option(
    "--timeout-ms",
    type=click.IntRange(min=1),
    default=None,
    help="Shared deadline for the git status commands.",
)
@click.option(
    "--repo",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    default=None,
    help="Repository directory.",
)
def status(timeout_ms: int | None, repo: Path | None) -> None:
    """Show branch, staged, unstaged and untracked files."""

    try:
        lines = CONTROLLER.status(StatusCommand(timeout_ms=timeout_ms, cwd=repo))
    except (StatusError, SpawnError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    gitabra()

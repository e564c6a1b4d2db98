from __future__ import annotations

import sys
from pathlib import Path

import typer

from reliz import __version__
from reliz.core.errors import ErrorCode
from reliz.core.options import parse_argv
from reliz.core.result import Err
from reliz.git.repository import Repository
from reliz.output.console import ConsoleProtocol, RichConsole
from reliz.output.errors import print_release_error, release_error_exit_code
from reliz.platform.http import RealHttpClient
from reliz.release.pipeline import ReleasePipeline
from reliz.release.prompts import TyperPrompts

HELP = """Release the project in the current directory.

Arguments are parsed by reliz itself: an optional bump kind (patch, minor,
major, hotfix) and the flags --ci, --dry-run, --no-git-flow, --yes/-y,
--no-increment, --release-version, --only-version, --changelog,
--verbose/-V, --config <path>, --bump=<kind>, --preid=<id>.
"""


app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    rich_markup_mode="rich",
)


def build_pipeline(cwd: Path, console: ConsoleProtocol) -> ReleasePipeline:
    return ReleasePipeline(
        cwd=cwd,
        console=console,
        prompts=TyperPrompts(console),
        repo=Repository(cwd),
        http=RealHttpClient(),
    )


def run_release(argv: list[str], cwd: Path, console: ConsoleProtocol) -> int:
    """Run one release and map the outcome to an exit code."""
    result = build_pipeline(cwd, console).run(argv)
    if isinstance(result, Err):
        print_release_error(result.error, console)
        return release_error_exit_code(result.error)
    return int(ErrorCode.OK)


@app.command(
    help=HELP,
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def release(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    argv = list(ctx.args)
    console = RichConsole(verbose=parse_argv(argv).verbose)
    code = run_release(argv, Path.cwd(), console)
    raise typer.Exit(code=code)


def main() -> None:
    app(args=sys.argv[1:], prog_name="reliz")


if __name__ == "__main__":
    main()

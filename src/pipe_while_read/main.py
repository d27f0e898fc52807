"""CLI entrypoint for pipe-while-read."""

from __future__ import annotations

import logging

import rich_click as click

from pipe_while_read import __version__
from pipe_while_read.config import RunConfig, RuntimeSettings
from pipe_while_read.controllers import PipeCliController

click.rich_click.USE_MARKDOWN = True
CONTROLLER = PipeCliController()

_CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    # options end at the command name so its own flags pass through
    "allow_interspersed_args": False,
}


@click.command(context_settings=_CONTEXT_SETTINGS)
@click.version_option(version=__version__, prog_name="pipe-while-read")
@click.option("-n", "--dry-run", is_flag=True, help="Show commands without executing.")
@click.option("-v", "--verbose", is_flag=True, help="Show detailed execution info on stderr.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress command output.")
@click.option(
    "-j",
    "--jobs",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Run N jobs in parallel.",
)
@click.option(
    "-k",
    "--keep-order",
    is_flag=True,
    help="Print parallel output in input order.",
)
@click.option("-P", "--progress", is_flag=True, help="Show progress bar with ETA on stderr.")
@click.option(
    "-t",
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0),
    default=0,
    show_default=True,
    help="Kill a job after SEC seconds (0 = no limit).",
)
@click.option(
    "-r",
    "--retries",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Retry a failed job N more times.",
)
@click.option(
    "--retry-delay",
    "retry_delay_seconds",
    type=click.FloatRange(min=0),
    default=1.0,
    show_default=True,
    help="Seconds to wait between retries.",
)
@click.option("--fail-fast", is_flag=True, help="Stop all jobs on the first failure.")
@click.option("-0", "--null", "null_delimited", is_flag=True, help="Input records are NUL-delimited.")
@click.option(
    "-d",
    "--delimiter",
    default="\t",
    help="Field delimiter for {1}, {2}, {-1}, ... (default: tab).",
)
@click.option("--trim", is_flag=True, help="Strip leading/trailing whitespace from each record.")
@click.option(
    "-I",
    "--replace",
    "replace_token",
    default="{}",
    show_default=True,
    help="Spelling of the full-record placeholder.",
)
@click.option("--tag", is_flag=True, help="Prefix each output line with its input record.")
@click.option(
    "--stdin",
    "pass_stdin",
    is_flag=True,
    help="Feed the record to the command's stdin instead of as an argument.",
)
@click.option(
    "--delay",
    "delay_seconds",
    type=click.FloatRange(min=0),
    default=0,
    show_default=True,
    help="Seconds to wait before starting each job after the first.",
)
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
def pipe_while_read(  # noqa: PLR0913
    ctx: click.Context,
    command: tuple[str, ...],
    dry_run: bool,
    verbose: bool,
    quiet: bool,
    jobs: int,
    keep_order: bool,
    progress: bool,
    timeout_seconds: float,
    retries: int,
    retry_delay_seconds: float,
    fail_fast: bool,
    null_delimited: bool,
    delimiter: str,
    trim: bool,
    replace_token: str,
    tag: bool,
    pass_stdin: bool,
    delay_seconds: float,
) -> None:
    """Run COMMAND once for every line of standard input.

    Without any placeholder the line is appended as the last argument.

    **Placeholders**

    - `{}` full line, `{.}` line without last extension
    - `{/}` basename, `{//}` directory, `{/.}` basename without extension
    - `{#}` job number, `{%}` job slot (1..N)
    - `{1}`, `{2}`, ... Nth field, `{-1}`, `{-2}`, ... Nth field from the end
    - `{ext}` extension, `{len}` line length

    **Examples**

    - `find . -name '*.log' | pwr -n rm {}`
    - `cat urls.txt | pwr -j4 -P curl -O {}`
    - `ls *.jpeg | pwr mv {} {/.}.jpg`
    - `seq 10 | pwr -j4 -k sh -c 'sleep 1; echo {}'`
    """

    try:
        runtime = RuntimeSettings.from_env()
    except ValueError as error:
        raise click.ClickException(str(error)) from error

    logging.basicConfig(
        level=runtime.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = RunConfig(
        command=command,
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        jobs=jobs,
        timeout_seconds=timeout_seconds,
        retries=retries,
        retry_delay_seconds=retry_delay_seconds,
        keep_order=keep_order,
        progress=progress,
        null_delimited=null_delimited,
        delimiter=delimiter,
        replace_token=replace_token,
        tag=tag,
        fail_fast=fail_fast,
        pass_stdin=pass_stdin,
        delay_seconds=delay_seconds,
        trim=trim,
        runtime=runtime,
    )
    try:
        config.validate()
    except ValueError as error:
        raise click.UsageError(str(error), ctx=ctx) from error

    summary = CONTROLLER.run(config)
    ctx.exit(summary.exit_code)


if __name__ == "__main__":  # pragma: no cover
    pipe_while_read()

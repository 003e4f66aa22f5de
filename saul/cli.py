"""saul CLI - workspace-based HTTP request runner."""

import logging
import sys

import click

TOOL_HELP = """\
saul - workspace-based HTTP request runner.

Each preset is a directory of small TOML documents (request, headers,
query, body, variables) under ~/.config/saul/presets/. saul assembles
them into one HTTP request and sends it.

\b
PRESETS
───────
  saul api                      Select preset 'api' for this terminal
  saul api --create             Create and select it
  saul create api               Create without any documents
  saul rm api other             Delete presets
  saul list                     List presets and their variants
  saul cp api api2              Copy a preset (or api/dev, api2/prod)
  saul status                   Summary of the current preset

\b
SET / GET
─────────
  saul api set url https://api.example.com/users
  saul api set method post
  saul api set header Authorization={@token}
  saul api set body user.name=alice user.active=true tags=[a,b]
  saul api set query page=1
  saul api get body user.name
  saul api get headers
  saul set timeout 10           (current preset)

  Targets: request (req, url), headers (header), query (queries),
  body, variables (vars, var). Values are typed: true/false become
  booleans, [a,b] becomes an array, anything else is a string.

\b
VARIABLES
─────────
  {@name}  {@}   Hard - prompted once, stored in variables.toml, reused
  {?name}  {?}   Soft - prompted on every call, never stored

  Only values that are entirely a placeholder are variables.

  saul api call                 Reuse stored hard values
  saul api call --persist       Re-prompt every hard variable
  saul api call token           Re-prompt only 'token'

\b
EDIT
────
  saul api edit body user.name  Prompt with the current value
  saul api edit headers         Open headers.toml in $EDITOR
  saul api edit curl            Paste a curl command in $EDITOR

\b
VARIANTS
────────
  saul api/prod                 Switch 'api' to variant 'prod'
  saul /staging                 Variant of the current preset
  saul switch prod              Same as /prod

  The first variant takes over the preset's existing documents.

\b
HISTORY
───────
  saul api set history 10       Keep the last 10 responses
  saul api get history          List stored responses, newest first
  saul api get response         Most recent response
  saul api get response 2 body.token

\b
CURL
────
  saul api set curl "curl -X POST https://... -H 'A: b' -d '{...}'"
  saul api get curl             Export as a curl command

\b
OUTPUT FORMAT
─────────────
    STATUS: 200 OK
    TIME: 45ms
    BODY:
    {"id": 1}

  --verbose adds response headers, --raw prints only the body.

\b
CONFIG FILE (~/.config/saul/config.yaml)
────────────────────────────────────────
  \b
  defaults:
    timeout: 30
    history_count: 0
    editor: vim

  $SAUL_CONFIG_DIR overrides ~/.config/saul.
"""


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.argument("args", nargs=-1)
@click.option(
    "--persist",
    is_flag=True,
    default=False,
    help="Prompt for every hard variable again and store the new values.",
)
@click.option(
    "--raw",
    is_flag=True,
    default=False,
    help="Raw output: body only for responses, JSON for documents, curl for 'get'.",
)
@click.option(
    "--create",
    is_flag=True,
    default=False,
    help="Create the preset if it does not exist.",
)
@click.option(
    "--call",
    "call_after",
    is_flag=True,
    default=False,
    help="Send the request after a successful set/edit.",
)
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Include response headers in output and log debug messages.",
)
def main(args, persist, raw, create, call_after, verbose):
    """Run a saul command."""
    from saul.commands import parse_command, run_command
    from saul.config import load_config
    from saul.errors import SaulError
    from saul.session import Session

    _setup_logging(verbose)

    if not args:
        click.echo("saul [preset] [set|get|edit|call|rm] [target] [key=value ...]")
        click.echo("Use 'saul --help' for the full reference.")
        return

    try:
        session = Session.load()
        command = parse_command(
            args,
            session,
            persist=persist,
            raw=raw,
            create=create,
            call_after=call_after,
            verbose=verbose,
        )
        try:
            output = run_command(command, session, load_config())
        finally:
            session.save_if_changed()
    except SaulError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)
    except click.Abort:
        click.echo("Aborted.", err=True)
        sys.exit(1)

    if output:
        click.echo(output)


class _EchoHandler(logging.Handler):
    """Log records to stderr through click, so CliRunner captures them too."""

    def emit(self, record):
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def _setup_logging(verbose: bool) -> None:
    logger = logging.getLogger("saul")
    if not any(isinstance(h, _EchoHandler) for h in logger.handlers):
        handler = _EchoHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


if __name__ == "__main__":
    main()

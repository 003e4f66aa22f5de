"""saul commands - turn argument lists into Commands and run them.

    saul <preset> [set|get|edit|call|rm] [target] [key=value ...]
    saul set|get|edit|call ...        (uses the session's current preset)
    saul <preset>/<variant> ...       (switches the preset's active variant)
    saul /<variant> [...]             (variant of the current preset)
    saul create|rm|cp|list|status|switch|version ...

run_command() returns the text to print (or None) and raises SaulError
subclasses for every failure; turning those into output is the CLI's job.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import click

import saul
from saul import executor, history, workspace
from saul.config import load_config
from saul.curl import export_curl, import_curl
from saul.errors import (
    KeyNotFoundError,
    NotFoundError,
    PresetNotFoundError,
    RequestFailedError,
    StorageError,
    ValidationError,
    VariantNotFoundError,
    VariantPresetMissingError,
)
from saul.filters import (
    extract_response_field,
    format_entry,
    format_history,
    format_output,
    render_value,
)
from saul.session import Session
from saul.store import Document, infer_value
from saul.variables import (
    detect_variable,
    prompt_for_variables,
    store_variable,
    substitute_variables,
    variable_key,
)

logger = logging.getLogger(__name__)

TARGET_ALIASES = {
    "body": "body",
    "headers": "headers",
    "header": "headers",
    "query": "query",
    "queries": "query",
    "request": "request",
    "req": "request",
    "url": "request",
    "variables": "variables",
    "vars": "variables",
    "var": "variables",
}

# Targets that are not documents.
HISTORY_TARGET = "history"
RESPONSE_TARGET = "response"
CURL_TARGET = "curl"

ACTION_OPERATIONS = ("set", "get", "edit", "call")
PRESET_OPERATIONS = ACTION_OPERATIONS + ("rm",)
GLOBAL_OPERATIONS = (
    "create",
    "rm",
    "copy",
    "cp",
    "list",
    "ls",
    "status",
    "switch",
    "version",
)
_GLOBAL_ALIASES = {"list": "ls", "cp": "copy"}
# Operation name of the per-preset `rm`.
REMOVE_TARGETS = "rm_target"

# `saul api set url https://...` and `saul api get url` address request fields directly.
REQUEST_FIELDS = ("url", "method", "timeout", "history")


@dataclass
class Command:
    operation: str
    preset: str = ""
    target: str = ""
    pairs: list[tuple[str, str]] = field(default_factory=list)
    persist: bool = False
    raw: bool = False
    create: bool = False
    call_after: bool = False
    verbose: bool = False

    @property
    def keys(self) -> list[str]:
        return [k for k, _ in self.pairs if k]


def normalize_target(name: str) -> str:
    """Canonical document kind for an alias. Unknown names pass through unchanged."""
    return TARGET_ALIASES.get(name.lower(), name)


# ── Parsing ──────────────────────────────────────────────────────────────


def parse_key_values(args: list[str]) -> list[tuple[str, str]]:
    pairs = []
    for arg in args:
        key, sep, value = arg.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValidationError(f"Invalid key=value pair '{arg}'.")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        pairs.append((key, value))
    return pairs


def parse_command(args: list[str], session: Session | None = None, **flags) -> Command:
    """Build a Command from positional arguments.

    flags are the Command's boolean options (persist, raw, create,
    call_after, verbose).
    """
    args = list(args)
    if not args:
        raise ValidationError("Usage: saul <preset> [set|get|edit|call] [target] [key=value ...]")

    current = session.current_preset if session else ""

    if args[0] in ACTION_OPERATIONS:
        if not current:
            raise ValidationError(
                "No current preset. Select one first with 'saul <preset>'."
            )
        args.insert(0, current)

    head = args[0]

    if head in GLOBAL_OPERATIONS:
        command = Command(operation=_GLOBAL_ALIASES.get(head, head), **flags)
        rest = args[1:]
        if head == "create":
            if not rest:
                raise ValidationError("Preset name required for 'create'.")
            command.preset = rest[0]
        elif head == "rm":
            if not rest:
                raise ValidationError("Preset name required for 'rm'.")
            command.pairs = [(name, "") for name in rest]
        elif head in ("copy", "cp"):
            if len(rest) != 2:
                raise ValidationError("Usage: saul cp <source> <destination>")
            command.pairs = [(name, "") for name in rest]
        elif head == "status":
            command.preset = rest[0] if rest else current
            if not command.preset:
                raise ValidationError(
                    "No current preset. Select one first with 'saul <preset>'."
                )
        elif head == "switch":
            if not rest:
                raise ValidationError("Variant name required for 'switch'.")
            command.preset = _variant_of_current(current, rest[0])
        return command

    if head.startswith("/"):
        preset = _variant_of_current(current, head[1:])
        if len(args) == 1:
            return Command(operation="switch", preset=preset, **flags)
    else:
        preset = head

    if len(args) == 1:
        return Command(operation="select", preset=preset, **flags)

    operation = args[1]
    if operation not in PRESET_OPERATIONS:
        raise ValidationError(f"Unknown command '{operation}'. Use: {', '.join(PRESET_OPERATIONS)}")

    # `saul <preset> rm <target>` removes documents, never presets.
    if operation == "rm":
        operation = REMOVE_TARGETS
    command = Command(operation=operation, preset=preset, **flags)
    rest = args[2:]

    if operation == "call":
        command.pairs = [(name, "") for name in rest]
    elif operation == REMOVE_TARGETS:
        if not rest:
            raise ValidationError("Target required for 'rm' (body, headers, query, request, variables).")
        command.pairs = [(normalize_target(t), "") for t in rest]
    elif operation == "set":
        _parse_set(command, rest)
    else:
        _parse_lookup(command, rest)
    return command


def _variant_of_current(current: str, variant: str) -> str:
    if not current:
        raise ValidationError("No current preset for a relative variant.")
    if not variant:
        raise ValidationError("Variant name required.")
    base, _ = workspace.split_preset(current)
    return f"{base}/{variant}"


def _parse_set(command: Command, rest: list[str]) -> None:
    if not rest:
        raise ValidationError("Target required for 'set' (body, headers, query, request, variables).")
    first = rest[0]
    if first.lower() == CURL_TARGET:
        command.target = CURL_TARGET
        command.pairs = [("", " ".join(rest[1:]))]
    elif first.lower() in REQUEST_FIELDS and len(rest) == 2 and "=" not in first:
        command.target = "request"
        command.pairs = [(first, rest[1])]
    else:
        command.target = normalize_target(first)
        if len(rest) < 2:
            raise ValidationError("At least one key=value pair is required for 'set'.")
        command.pairs = parse_key_values(rest[1:])


def _parse_lookup(command: Command, rest: list[str]) -> None:
    if not rest:
        return
    first = rest[0]
    if first.lower() in (HISTORY_TARGET, RESPONSE_TARGET, CURL_TARGET):
        command.target = first.lower()
        command.pairs = [(key, "") for key in rest[1:]]
    elif first.lower() in REQUEST_FIELDS:
        command.target = "request"
        command.pairs = [(first, "")]
    else:
        command.target = normalize_target(first)
        command.pairs = [(key, "") for key in rest[1:2]]


# ── Dispatch ─────────────────────────────────────────────────────────────


def run_command(command: Command, session: Session, config: dict | None = None) -> str | None:
    """Run one command. Returns text for the terminal, or None."""
    config = config or load_config()

    global_handler = _GLOBAL_HANDLERS.get(command.operation)
    if global_handler is not None:
        return global_handler(command, session)

    _prepare_preset(command, session)

    outputs = []
    handler = _PRESET_HANDLERS[command.operation]
    outputs.append(handler(command, config))
    if command.call_after and command.operation != "call":
        outputs.append(_call(command, config))
    text = "\n".join(o for o in outputs if o)
    return text or None


def _prepare_preset(command: Command, session: Session) -> None:
    """Check (or create) the addressed preset and make it current."""
    base, variant = workspace.split_preset(command.preset)
    workspace.validate_name(base)

    if not workspace.preset_exists(base):
        implicit = command.operation == "set"
        if not (command.create or implicit):
            if variant:
                raise VariantPresetMissingError(base)
            raise PresetNotFoundError(base)
        workspace.create_preset(base)
        logger.debug("Created preset '%s'", base)

    if variant:
        workspace.switch_variant(base, variant)

    session.current_preset = command.preset


# ── Global commands ──────────────────────────────────────────────────────


def _create(command: Command, session: Session) -> str | None:
    base, variant = workspace.split_preset(command.preset)
    workspace.validate_name(base)
    workspace.create_preset(base)
    if variant:
        workspace.switch_variant(base, variant)
    session.current_preset = command.preset
    return None


def _remove_presets(command: Command, session: Session) -> str | None:
    removed = 0
    for name in command.keys:
        base, variant = workspace.split_preset(name)
        try:
            if variant:
                workspace.delete_variant(base, variant)
            else:
                workspace.delete_preset(base)
        except NotFoundError as e:
            logger.warning("%s", e)
            continue
        removed += 1
        if session.current_preset == name or (
            not variant and workspace.split_preset(session.current_preset)[0] == base
        ):
            session.current_preset = ""
    if not removed:
        raise PresetNotFoundError(command.keys[0])
    return None


def _list(command: Command, session: Session) -> str:
    presets = workspace.list_presets()
    if not presets:
        return "No presets."
    lines = []
    for name in presets:
        variants = workspace.list_variants(name)
        if variants:
            active = workspace.get_active_variant(name)
            marked = [f"*{v}" if v == active else v for v in variants]
            lines.append(f"{name}  [{', '.join(marked)}]")
        else:
            lines.append(name)
    return "\n".join(lines)


def _switch(command: Command, session: Session) -> str:
    base, variant = workspace.split_preset(command.preset)
    if not variant:
        raise ValidationError("Variant name required.")
    session.current_preset = workspace.switch_variant(base, variant)
    return f"Switched to variant: {variant}"


def _copy(command: Command, session: Session) -> str:
    source, dest = command.keys
    workspace.copy_preset(source, dest)
    return f"Copied {source} to {dest}"


def _status(command: Command, session: Session) -> str:
    """Summary of a preset: request fields and entry counts per document."""
    preset = command.preset
    base, variant = workspace.split_preset(preset)
    if not workspace.preset_exists(base):
        raise PresetNotFoundError(base)
    if variant and variant not in workspace.list_variants(base):
        raise VariantNotFoundError(base, variant)

    request_doc = workspace.load_document(preset, "request")
    timeout = request_doc.get_str("timeout") or str(executor.DEFAULT_TIMEOUT)
    counts = {
        kind: len(workspace.load_document(preset, kind))
        for kind in ("headers", "query", "body")
    }
    # Stored hard variables are nested per document kind.
    counts["variables"] = sum(
        len(values) if isinstance(values, dict) else 1
        for values in workspace.load_document(preset, "variables").data.values()
    )
    return "\n".join(
        [
            f"Status: {preset}",
            "",
            f"  URL:     {request_doc.get_str('url') or '(not set)'}",
            f"  Method:  {request_doc.get_str('method').upper() or executor.DEFAULT_METHOD}",
            f"  Timeout: {timeout}s",
            "",
            f"  Variables: {counts['variables']}",
            f"  Headers:   {counts['headers']}",
            f"  Query:     {counts['query']}",
            f"  Body keys: {counts['body']}",
            f"  History:   {history.count_responses(preset)}",
        ]
    )


def _version(command: Command, session: Session) -> str:
    return f"saul {saul.__version__}"


_GLOBAL_HANDLERS = {
    "create": _create,
    "rm": _remove_presets,
    "copy": _copy,
    "status": _status,
    "ls": _list,
    "switch": _switch,
    "version": _version,
}


# ── Preset commands ──────────────────────────────────────────────────────


def _select(command: Command, config: dict) -> None:
    return None


def _store_pair(preset: str, target: str, document: Document, key: str, value: str) -> None:
    """Validate one key/value and put it into document (not saved)."""
    if not key:
        raise ValidationError("Key cannot be empty.")

    detected = detect_variable(value)

    if target == "request":
        key = executor.REQUEST_KEY_ALIASES.get(key.lower(), key)
        if key.lower() in ("method", "url", "timeout", "history_count"):
            key = key.lower()
            if detected is None:
                executor.validate_request_field(key, value)

    if detected is not None:
        var_type, name = detected
        document.set(key, value)
        store_variable(preset, variable_key(target, name), var_type)
        return

    if target == "request" and key == "method":
        value = value.upper()
    document.set(key, infer_value(value))


def _document_target(command: Command) -> str:
    if not command.target:
        raise ValidationError("Target required (body, headers, query, request, variables).")
    if command.target not in workspace.DOCUMENT_KINDS:
        raise ValidationError(
            f"Invalid target '{command.target}'. Use: {', '.join(workspace.DOCUMENT_KINDS)}"
        )
    return command.target


def _set(command: Command, config: dict) -> None:
    if command.target == CURL_TARGET:
        text = command.pairs[0][1] if command.pairs else ""
        if not text.strip():
            raise ValidationError("Curl command required.")
        import_curl(command.preset, text)
        return None

    target = _document_target(command)
    document = workspace.load_document(command.preset, target)
    for key, value in command.pairs:
        _store_pair(command.preset, target, document, key, value)
    workspace.save_document(command.preset, target, document)
    return None


def _render_field(value: Any) -> str:
    if isinstance(value, list):
        return " ".join(render_value(v) for v in value)
    return render_value(value)


def _get(command: Command, config: dict) -> str:
    target = command.target
    if target == CURL_TARGET or (not target and command.raw):
        return export_curl(command.preset)
    if target == HISTORY_TARGET:
        if command.raw:
            return json.dumps(history.list_responses(command.preset), indent=2)
        return format_history(history.numbered_responses(command.preset))
    if target == RESPONSE_TARGET:
        return _get_response(command)

    target = _document_target(command)
    document = workspace.load_document(command.preset, target)

    if command.keys:
        key = command.keys[0]
        lookup = key
        if target == "request":
            lookup = executor.REQUEST_KEY_ALIASES.get(key.lower(), key)
        value = document.get(lookup)
        if value is None:
            raise KeyNotFoundError(key, target)
        return _render_field(value)

    if command.raw:
        return document.to_json(indent=2)
    return document.to_toml().rstrip("\n")


def _get_response(command: Command) -> str:
    keys = command.keys
    number = 1
    if keys and keys[0].isdigit():
        number = int(keys[0])
        keys = keys[1:]
    entry = history.load_response(command.preset, number)
    if keys:
        return render_value(extract_response_field(entry, keys[0]))
    return format_entry(entry, raw=command.raw)


def _edit(command: Command, config: dict) -> None:
    editor = config.get("defaults", {}).get("editor") or None

    if command.target == CURL_TARGET:
        text = click.edit(_curl_template(command.preset), editor=editor, extension=".sh")
        if text is None or not text.strip():
            return None
        import_curl(command.preset, text)
        return None

    target = _document_target(command)

    if command.keys:
        key = command.keys[0]
        document = workspace.load_document(command.preset, target)
        lookup = key
        if target == "request":
            lookup = executor.REQUEST_KEY_ALIASES.get(key.lower(), key)
        current = document.get_str(lookup)
        value = click.prompt(key, default=current, show_default=bool(current))
        _store_pair(command.preset, target, document, key, value.strip())
        workspace.save_document(command.preset, target, document)
        return None

    path = workspace.document_path(command.preset, target)
    if not path.exists():
        workspace.save_document(command.preset, target, workspace.load_document(command.preset, target))
    click.edit(filename=str(path), editor=editor)
    # Reload so a broken edit is reported now rather than at the next call.
    Document.load(path, kind=target)
    return None


def _curl_template(preset: str) -> str:
    request_doc = workspace.load_document(preset, "request")
    if not request_doc.get_str("url"):
        return "curl "
    return export_curl(preset)


def _remove_targets(command: Command, config: dict) -> None:
    removed = 0
    for target in command.keys:
        if target not in workspace.DOCUMENT_KINDS:
            logger.warning(
                "Invalid target: %s (valid: %s)", target, ", ".join(workspace.DOCUMENT_KINDS)
            )
            continue
        path = workspace.document_path(command.preset, target)
        if not path.exists():
            logger.warning("%s.toml does not exist in preset '%s'", target, command.preset)
            continue
        try:
            path.unlink()
        except OSError as e:
            raise StorageError("remove", path, e) from e
        removed += 1
    if not removed:
        raise ValidationError("No targets were removed.")
    return None


def _call(command: Command, config: dict) -> str:
    """Prompt for variables, build the request, send it and record the response."""
    defaults = config.get("defaults", {})
    preset = command.preset

    names = command.keys if command.operation == "call" else []
    substitutions = prompt_for_variables(preset, persist=command.persist, names=names)

    documents = {kind: workspace.load_document(preset, kind) for kind in workspace.REQUEST_KINDS}
    for kind, document in documents.items():
        substitute_variables(document, substitutions, kind)

    request = executor.build_request(
        documents["request"],
        documents["headers"],
        documents["body"],
        documents["query"],
        default_timeout=executor.parse_timeout(defaults.get("timeout"), executor.DEFAULT_TIMEOUT),
    )
    logger.debug("%s %s", request["method"], request["url"])

    result = executor.execute_request(**request)
    if result.error:
        raise RequestFailedError(result.error)

    capacity = history.history_capacity(
        documents["request"], _as_int(defaults.get("history_count"))
    )
    history.store_response(preset, history.entry_from_result(request, result), capacity)

    return format_output(result, verbose=command.verbose, raw=command.raw)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


_PRESET_HANDLERS = {
    "select": _select,
    "set": _set,
    "get": _get,
    "edit": _edit,
    "call": _call,
    REMOVE_TARGETS: _remove_targets,
}

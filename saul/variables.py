"""saul variables - hard/soft placeholder detection, prompting, substitution.

A value is a variable only when the whole string is a placeholder:

    {@name}  {@}   hard - value persisted in variables.toml and reused
    {?name}  {?}   soft - prompted on every call, never persisted

Each variable is keyed "<document kind>.<name>", or "<kind>.variable" for
the bare forms. Two bare placeholders in one document therefore share a
single key and a single value.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

import click

from saul import workspace
from saul.errors import StorageError
from saul.store import Document, infer_value

logger = logging.getLogger(__name__)

HARD = "hard"
SOFT = "soft"
BARE_NAME = "variable"

_SIGILS = {"@": HARD, "?": SOFT}
_VARIABLE_RE = re.compile(r"^\{([@?])(\w*)\}$")
# A TOML string literal whose entire content is a placeholder.
_QUOTED_VARIABLE_RE = re.compile(r"""(["'])\{([@?])(\w*)\}\1""")


@dataclass
class VariableInfo:
    key: str  # "<kind>.<name>" lookup key, also the variables.toml path
    type: str  # HARD or SOFT
    name: str  # "" for the bare forms


def detect_variable(value: Any) -> tuple[str, str] | None:
    """Return (type, name) if value is exactly one placeholder, else None."""
    if not isinstance(value, str):
        return None
    m = _VARIABLE_RE.match(value)
    if not m:
        return None
    return _SIGILS[m.group(1)], m.group(2)


def variable_key(kind: str, name: str) -> str:
    return f"{kind}.{name or BARE_NAME}"


def find_variables_in_text(content: str, kind: str) -> list[VariableInfo]:
    """Find placeholders in raw TOML text, first occurrence per key wins."""
    found: list[VariableInfo] = []
    seen: set[str] = set()
    for m in _QUOTED_VARIABLE_RE.finditer(content):
        name = m.group(3)
        key = variable_key(kind, name)
        if key in seen:
            continue
        seen.add(key)
        found.append(VariableInfo(key=key, type=_SIGILS[m.group(2)], name=name))
    return found


def find_all_variables(preset: str) -> list[VariableInfo]:
    """Scan the request-bearing documents of a preset for placeholders."""
    variables: list[VariableInfo] = []
    for kind in workspace.REQUEST_KINDS:
        path = workspace.document_path(preset, kind)
        try:
            content = path.read_text()
        except FileNotFoundError:
            continue
        except OSError as e:
            raise StorageError("read", path, e) from e
        variables.extend(find_variables_in_text(content, kind))
    return variables


def _click_prompt(label: str, default: str) -> str:
    return click.prompt(label, default=default, show_default=bool(default))


def prompt_for_variables(
    preset: str,
    persist: bool = False,
    names: list[str] | None = None,
    prompt_fn: Callable[[str, str], str] | None = None,
) -> dict[str, str]:
    """Resolve every placeholder of a preset to a value.

    Soft variables are always prompted. A hard variable with a stored value
    is reused without asking unless persist is set or it is listed in names;
    otherwise the prompt offers the stored value as default and a new answer
    is written to variables.toml immediately.

    prompt_fn(label, default) -> str replaces the interactive prompt.
    Returns {key: value} for every variable that received a value.
    """
    prompt_fn = prompt_fn or _click_prompt
    variables_doc = workspace.load_document(preset, "variables")
    requested = set(names or [])

    substitutions: dict[str, str] = {}
    for var in find_all_variables(preset):
        forced = var.key in requested or (var.name and var.name in requested)
        label = var.name or var.key

        current = ""
        if var.type == HARD:
            current = variables_doc.get_str(var.key)
            if current and not persist and not forced:
                substitutions[var.key] = current
                continue

        answer = prompt_fn(label, current).strip()

        if var.type == HARD and not answer and current:
            substitutions[var.key] = current
        elif answer:
            substitutions[var.key] = answer
            if var.type == HARD:
                variables_doc.set(var.key, answer)
                workspace.save_document(preset, "variables", variables_doc)
                logger.debug("Stored hard variable %s for '%s'", var.key, preset)

    return substitutions


def store_variable(preset: str, key: str, var_type: str, value: str = "") -> None:
    """Record a hard variable in variables.toml. Soft variables are ignored.

    An existing stored value is only replaced by a non-empty one.
    """
    if var_type != HARD:
        return
    variables_doc = workspace.load_document(preset, "variables")
    if value or not variables_doc.has(key):
        variables_doc.set(key, value)
        workspace.save_document(preset, "variables", variables_doc)


def substitute_variables(
    document: Document,
    substitutions: dict[str, str],
    kind: str | None = None,
) -> int:
    """Replace placeholder values in document (in memory) with resolved ones.

    Lookups use "<kind>.<name>"; kind defaults to the document's own. A
    replaced value goes through infer_value, so "true" becomes a boolean and
    "[a,b]" an array. Array elements are replaced as plain strings.
    Unresolved placeholders are left as they are. Returns the replacement count.
    """
    kind = kind or document.kind
    count = 0

    def resolve(value: str) -> str | None:
        detected = detect_variable(value)
        if detected is None:
            return None
        return _lookup(detected[1], substitutions, kind)

    def walk(node: dict) -> None:
        nonlocal count
        for k, v in node.items():
            if isinstance(v, dict):
                walk(v)
            elif isinstance(v, str):
                new = resolve(v)
                if new is not None:
                    node[k] = infer_value(new)
                    count += 1
            elif isinstance(v, list):
                for i, item in enumerate(v):
                    if isinstance(item, dict):
                        walk(item)
                    elif isinstance(item, str):
                        new = resolve(item)
                        if new is not None:
                            v[i] = new
                            count += 1

    walk(document.data)
    return count


def _lookup(name: str, substitutions: dict[str, str], kind: str | None) -> str | None:
    if kind:
        return substitutions.get(variable_key(kind, name))
    # Without a kind, match on the name part of any key.
    wanted = name or BARE_NAME
    for key, value in substitutions.items():
        if key.split(".", 1)[-1] == wanted:
            return value
    return None

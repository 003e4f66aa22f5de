"""saul workspace - preset and variant directory layout.

Layout under the config root:

    presets/<preset>/
        request.toml headers.toml query.toml body.toml variables.toml
        .config                      active variant name (only with variants)
        variants/<variant>/<same five documents>
        .history/NNN.json
"""

import logging
import os
import shutil
from pathlib import Path

from saul.errors import (
    PresetNotFoundError,
    StorageError,
    ValidationError,
    VariantNotFoundError,
    VariantPresetMissingError,
)
from saul.store import Document, atomic_write

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "saul"
PRESETS_DIR_NAME = "presets"
VARIANTS_DIR_NAME = "variants"
MARKER_FILE = ".config"
HISTORY_DIR_NAME = ".history"
DEFAULT_VARIANT = "default"

DOCUMENT_KINDS = ("request", "headers", "query", "body", "variables")
# Documents that can hold placeholders, in scan order.
REQUEST_KINDS = ("body", "headers", "query", "request")


def config_dir() -> Path:
    """Root of all saul state: $SAUL_CONFIG_DIR or ~/.config/saul."""
    override = os.environ.get("SAUL_CONFIG_DIR")
    return Path(override) if override else CONFIG_DIR


def presets_dir() -> Path:
    return config_dir() / PRESETS_DIR_NAME


# ── Names ────────────────────────────────────────────────────────────────


def split_preset(address: str) -> tuple[str, str | None]:
    """Split 'api/prod' into ('api', 'prod'); 'api' gives ('api', None)."""
    base, sep, variant = address.partition("/")
    return base, (variant or None) if sep else None


def validate_name(name: str, what: str = "preset") -> str:
    if (
        not name
        or name in (".", "..")
        or name.startswith(".")
        or "/" in name
        or "\\" in name
        or "\x00" in name
    ):
        raise ValidationError(f"Invalid {what} name '{name}'.")
    return name


# ── Presets ──────────────────────────────────────────────────────────────


def resolve_preset_path(name: str) -> Path:
    base, _ = split_preset(name)
    return presets_dir() / validate_name(base)


def preset_exists(name: str) -> bool:
    return resolve_preset_path(name).is_dir()


def create_preset(name: str) -> Path:
    """Create the preset directory. Idempotent; no documents are written."""
    path = resolve_preset_path(name)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError("create preset", name, e) from e
    return path


def delete_preset(name: str) -> None:
    path = resolve_preset_path(name)
    if not path.is_dir():
        raise PresetNotFoundError(split_preset(name)[0])
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise StorageError("delete preset", name, e) from e


def list_presets() -> list[str]:
    pdir = presets_dir()
    if not pdir.is_dir():
        return []
    return sorted(p.name for p in pdir.iterdir() if p.is_dir() and not p.name.startswith("."))


# ── Variants ─────────────────────────────────────────────────────────────


def resolve_variant(
    marker: str | None,
    available: list[str],
    default: str = DEFAULT_VARIANT,
) -> str:
    """Pick the active variant from the marker text and existing variants.

    Anything that does not name an existing variant resolves to default.
    """
    if marker:
        name = Path(marker.strip()).name
        if name and name in available:
            return name
    return default


def has_variants(preset: str) -> bool:
    return (resolve_preset_path(preset) / VARIANTS_DIR_NAME).is_dir()


def list_variants(preset: str) -> list[str]:
    vdir = resolve_preset_path(preset) / VARIANTS_DIR_NAME
    if not vdir.is_dir():
        return []
    return sorted(p.name for p in vdir.iterdir() if p.is_dir())


def get_active_variant(preset: str) -> str:
    """Return the variant named by the .config marker.

    Never fails: a missing, unreadable or stale marker logs a warning and
    falls back to the default variant.
    """
    base, _ = split_preset(preset)
    marker_path = resolve_preset_path(base) / MARKER_FILE
    try:
        marker = marker_path.read_text().strip() or None
    except OSError:
        marker = None

    available = list_variants(base)
    active = resolve_variant(marker, available)
    if marker is None:
        if available:
            logger.warning(
                "No active variant recorded for '%s', using '%s'", base, active
            )
    elif Path(marker).name != active:
        logger.warning(
            "Variant '%s' from .config does not exist, using '%s'", marker, active
        )
    return active


def set_active_variant(preset: str, variant: str) -> None:
    base, _ = split_preset(preset)
    preset_path = resolve_preset_path(base)
    if not (preset_path / VARIANTS_DIR_NAME / validate_name(variant, "variant")).is_dir():
        raise VariantNotFoundError(base, variant)
    _write_marker(preset_path, variant)


def ensure_variant_structure(preset: str, variant: str) -> Path:
    """Create variants/<variant>/ for a preset.

    The first variant ever created for a preset takes over the root
    documents (moved, not copied) and becomes the active variant. Later
    calls only create directories.
    """
    base, _ = split_preset(preset)
    validate_name(variant, "variant")
    if not preset_exists(base):
        raise VariantPresetMissingError(base)

    preset_path = resolve_preset_path(base)
    variants_dir = preset_path / VARIANTS_DIR_NAME
    first_variant = not variants_dir.exists()
    variant_path = variants_dir / variant
    try:
        variant_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError("create variant", f"{base}/{variant}", e) from e

    if first_variant:
        for kind in DOCUMENT_KINDS:
            root_file = preset_path / f"{kind}.toml"
            if root_file.exists():
                try:
                    os.rename(root_file, variant_path / root_file.name)
                except OSError as e:
                    raise StorageError("migrate", root_file, e) from e
        _write_marker(preset_path, variant)
        logger.debug("Migrated root documents of '%s' into variant '%s'", base, variant)

    return variant_path


def switch_variant(preset: str, variant: str) -> str:
    base, _ = split_preset(preset)
    ensure_variant_structure(base, variant)
    set_active_variant(base, variant)
    return f"{base}/{variant}"


def delete_variant(preset: str, variant: str) -> None:
    base, _ = split_preset(preset)
    path = resolve_preset_path(base) / VARIANTS_DIR_NAME / validate_name(variant, "variant")
    if not path.is_dir():
        raise VariantNotFoundError(base, variant)
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise StorageError("delete variant", f"{base}/{variant}", e) from e


def copy_preset(source: str, dest: str) -> None:
    """Copy a preset or variant to a new preset or variant.

    preset  -> preset   whole directory (variants and history included);
                        dest must not exist
    variant -> preset   the variant's documents become a new preset
    any     -> variant  documents go into dest's variant, which is created
                        (and dest's base preset too, when copying a preset)
    """
    src_base, src_variant = split_preset(source)
    dest_base, dest_variant = split_preset(dest)
    validate_name(dest_base)

    if not preset_exists(src_base):
        raise PresetNotFoundError(src_base)
    if src_variant and not (
        resolve_preset_path(src_base) / VARIANTS_DIR_NAME / validate_name(src_variant, "variant")
    ).is_dir():
        raise VariantNotFoundError(src_base, src_variant)

    if not dest_variant:
        if preset_exists(dest_base):
            raise ValidationError(f"Destination preset '{dest_base}' already exists.")
        if not src_variant:
            try:
                shutil.copytree(resolve_preset_path(src_base), resolve_preset_path(dest_base))
            except OSError as e:
                raise StorageError("copy preset", f"{source} to {dest}", e) from e
            return
        create_preset(dest_base)
        _copy_documents(documents_dir(source), resolve_preset_path(dest_base))
        return

    if not preset_exists(dest_base):
        if src_variant:
            raise PresetNotFoundError(dest_base)
        create_preset(dest_base)
    dest_path = ensure_variant_structure(dest_base, dest_variant)
    _copy_documents(documents_dir(source), dest_path)


def _copy_documents(src_dir: Path, dest_dir: Path) -> None:
    if src_dir == dest_dir:
        return
    for kind in DOCUMENT_KINDS:
        src_file = src_dir / f"{kind}.toml"
        if not src_file.exists():
            continue
        try:
            shutil.copy2(src_file, dest_dir / src_file.name)
        except OSError as e:
            raise StorageError("copy", src_file, e) from e


def _write_marker(preset_path: Path, variant: str) -> None:
    try:
        atomic_write(preset_path / MARKER_FILE, variant)
    except OSError as e:
        raise StorageError("write", preset_path / MARKER_FILE, e) from e


# ── Documents ────────────────────────────────────────────────────────────


def documents_dir(preset: str) -> Path:
    """Directory holding the documents for a preset address.

    With variants this is the addressed (or active) variant directory,
    otherwise the preset root.
    """
    base, variant = split_preset(preset)
    preset_path = resolve_preset_path(base)
    if (preset_path / VARIANTS_DIR_NAME).is_dir():
        name = validate_name(variant, "variant") if variant else get_active_variant(base)
        return preset_path / VARIANTS_DIR_NAME / name
    return preset_path


def document_path(preset: str, kind: str) -> Path:
    if kind not in DOCUMENT_KINDS:
        raise ValidationError(
            f"Invalid target '{kind}'. Use: {', '.join(DOCUMENT_KINDS)}"
        )
    return documents_dir(preset) / f"{kind}.toml"


def load_document(preset: str, kind: str) -> Document:
    """Load one document. A missing file gives an empty, writable document."""
    path = document_path(preset, kind)
    if path.parent != resolve_preset_path(preset):
        # Variant directories are created on first access.
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError("create variant", path.parent, e) from e
    return Document.load(path, kind=kind)


def save_document(preset: str, kind: str, document: Document) -> Path:
    return document.write(document_path(preset, kind))


def history_dir(preset: str) -> Path:
    return resolve_preset_path(preset) / HISTORY_DIR_NAME

from __future__ import annotations

from pathlib import Path


# Well-known names shared by every generated shard and the one sink installer.
REGISTER_FUNCTION_NAME = "register_implementors"
PENDING_MAP_NAME = "pending_implementors"

SHARD_ROOT_DIRNAME = "implementors"
SCRIPT_SHARD_SUFFIX = ".js"
JSON_SHARD_SUFFIX = ".json"
SHARD_SUFFIXES = (SCRIPT_SHARD_SUFFIX, JSON_SHARD_SUFFIX)


class InvalidSourceIdError(ValueError):
    """Raised when a source identifier is empty or malformed."""


def validate_source_id(value: object) -> str:
    """Return the source id unchanged if it is a usable identifier.

    Notes:
        Uniqueness is not checked here; duplicate ids are resolved by the
        registry with last-writer-wins.
    """
    if not isinstance(value, str):
        raise InvalidSourceIdError(f"Source id must be a string, got {type(value).__name__}")
    if not value.strip():
        raise InvalidSourceIdError("Source id must be non-empty")
    return value


def make_source_id(crate: str, kind: str, name: str) -> str:
    """Build the `<crate>/<kind>.<name>` id naming one interface."""
    for label, part in (("crate", crate), ("kind", kind), ("name", name)):
        if not part or "/" in part:
            raise InvalidSourceIdError(f"Invalid {label} component: {part!r}")
    if "." in kind:
        raise InvalidSourceIdError(f"Invalid kind component: {kind!r}")
    return f"{crate}/{kind}.{name}"


def split_source_id(source_id: str) -> tuple[str, str, str]:
    """Split a conventional source id into (crate, kind, name)."""
    crate, sep, item = validate_source_id(source_id).partition("/")
    kind, dot, name = item.partition(".")
    if not sep or not dot or not crate or not kind or not name or "/" in item:
        raise InvalidSourceIdError(f"Source id does not follow <crate>/<kind>.<name>: {source_id}")
    return crate, kind, name


def source_id_for_path(root: str | Path, path: str | Path) -> str:
    """Derive the source id of a shard file from its location under root.

    Args:
        root (str | Path): Shard root directory.
        path (str | Path): Shard file below root.

    Returns:
        str: Source id such as `tokio_service/trait.Service`.

    Raises:
        InvalidSourceIdError: If the path is outside root or does not follow
            `<crate>/<kind>.<name>.<ext>`.
    """
    shard = Path(path)
    try:
        relative = shard.relative_to(Path(root))
    except ValueError as exc:
        raise InvalidSourceIdError(f"Shard {shard} is not below {root}") from exc
    if shard.suffix not in SHARD_SUFFIXES:
        raise InvalidSourceIdError(f"Unsupported shard extension: {shard.suffix}")
    parts = relative.parts
    if len(parts) != 2:
        raise InvalidSourceIdError(f"Shard path must be <crate>/<kind>.<name>: {relative}")
    kind, _, name = parts[1][: -len(shard.suffix)].partition(".")
    return make_source_id(parts[0], kind, name)


def shard_relpath(source_id: str, suffix: str = JSON_SHARD_SUFFIX) -> Path:
    """Return the path of a shard relative to the shard root."""
    crate, kind, name = split_source_id(source_id)
    return Path(crate) / f"{kind}.{name}{suffix}"

from __future__ import annotations

import html
import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from shardreg.core.models import ImplementorDescriptor, Payload
from shardreg.core.naming import (
    JSON_SHARD_SUFFIX,
    REGISTER_FUNCTION_NAME,
    SCRIPT_SHARD_SUFFIX,
    source_id_for_path,
    split_source_id,
)
from shardreg.core.publisher import ShardPublisher


SCHEMA_PATH = Path(__file__).resolve().parent.parent / "contracts" / "shard.schema.json"

_ASSIGNMENT = re.compile(r"\bimplementors\s*\[")
_TAG = re.compile(r"<[^>]*>")
_WHERE_SPAN = re.compile(r"<span class=['\"]where['\"]>(.*)</span>", re.DOTALL)
_DECODER = json.JSONDecoder()


class ShardFormatError(ValueError):
    """Raised when a shard file cannot be decoded."""


def decode_script_shard(text: str) -> dict[str, list[str]]:
    """Decode a generated script shard into crate -> rendered entries.

    Args:
        text (str): Shard source as emitted by the documentation generator.

    Returns:
        dict[str, list[str]]: Rendered implementor entries per crate, in
        assignment order. A repeated crate keeps its first position and its
        last list.

    Raises:
        ShardFormatError: If an assignment is malformed or the shard does not
            perform the registration handshake.
    """
    if REGISTER_FUNCTION_NAME not in text:
        raise ShardFormatError(f"Shard never calls {REGISTER_FUNCTION_NAME}")

    implementors: dict[str, list[str]] = {}
    # Resume after each parsed list so string contents are never rescanned.
    match = _ASSIGNMENT.search(text)
    while match:
        pos = _skip_ws(text, match.end())
        crate, pos = _read_string(text, pos, "crate name")
        pos = _expect(text, _skip_ws(text, pos), "]")
        pos = _expect(text, _skip_ws(text, pos), "=")
        entries, pos = _read_string_list(text, _skip_ws(text, pos))
        if not crate:
            raise ShardFormatError("Empty crate name in implementor assignment")
        implementors[crate] = entries
        match = _ASSIGNMENT.search(text, pos)
    return implementors


def decode_json_shard(text: str) -> tuple[str, dict[str, list[str]]]:
    """Decode and validate a JSON shard.

    Returns:
        tuple[str, dict[str, list[str]]]: Declared source id and the rendered
        entries per crate.

    Raises:
        json.JSONDecodeError: If the text is not JSON.
        ShardFormatError: If the document does not match the shard schema.
    """
    document = json.loads(text)
    try:
        _shard_validator().validate(document)
    except ValidationError as exc:
        location = "/".join(str(part) for part in exc.absolute_path) or "<root>"
        raise ShardFormatError(f"Invalid shard at {location}: {exc.message}") from exc
    return document["source_id"], dict(document["implementors"])


def encode_json_shard(source_id: str, payload: Iterable[ImplementorDescriptor]) -> str:
    """Serialize a payload as a JSON shard, grouping entries by crate."""
    default_crate, _, _ = split_source_id(source_id)
    implementors: dict[str, list[str]] = {}
    for descriptor in payload:
        implementors.setdefault(descriptor.crate or default_crate, []).append(descriptor.rendered)
    document = {"source_id": source_id, "implementors": implementors}
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def describe_implementor(crate: str | None, rendered: str) -> ImplementorDescriptor:
    """Build a descriptor for one rendered implementor entry.

    Notes:
        The rendered markup is stored untouched; generics and the where clause
        are read from its plain-text form.
    """
    where_clause = None
    head = rendered
    where = _WHERE_SPAN.search(rendered)
    if where:
        head = rendered[: where.start()]
        clause = _normalize(_plain_text(where.group(1)))
        if clause.startswith("where "):
            clause = clause[len("where "):]
        where_clause = clause or None
    return ImplementorDescriptor(
        rendered=rendered,
        crate=crate,
        generics=_impl_generics(_normalize(_plain_text(head))),
        where_clause=where_clause,
    )


def build_payload(implementors: dict[str, list[str]]) -> Payload:
    return tuple(
        describe_implementor(crate, rendered)
        for crate, entries in implementors.items()
        for rendered in entries
    )


def decode_shard_file(root: str | Path, path: str | Path) -> ShardPublisher:
    """Read a shard file and wrap its payload in a publisher.

    Raises:
        ShardFormatError: If the content is malformed or a JSON shard declares
            a source id that differs from its location.
        InvalidSourceIdError: If the path does not follow the shard layout.
    """
    shard = Path(path)
    source_id = source_id_for_path(root, shard)
    text = shard.read_text(encoding="utf-8")
    if shard.suffix == SCRIPT_SHARD_SUFFIX:
        implementors = decode_script_shard(text)
    elif shard.suffix == JSON_SHARD_SUFFIX:
        try:
            declared, implementors = decode_json_shard(text)
        except json.JSONDecodeError as exc:
            raise ShardFormatError(f"Invalid JSON in {shard}: {exc}") from exc
        if declared != source_id:
            raise ShardFormatError(f"Shard {shard} declares {declared}, expected {source_id}")
    else:
        raise ShardFormatError(f"Unsupported shard extension: {shard.suffix}")
    return ShardPublisher(source_id, build_payload(implementors), origin=str(shard))


@lru_cache(maxsize=1)
def _shard_validator() -> Draft202012Validator:
    schema: dict[str, Any] = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    return Draft202012Validator(schema)


def _skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _expect(text: str, pos: int, char: str) -> int:
    if pos >= len(text) or text[pos] != char:
        found = text[pos] if pos < len(text) else "end of shard"
        raise ShardFormatError(f"Expected {char!r} at offset {pos}, found {found!r}")
    return pos + 1


def _read_string(text: str, pos: int, what: str) -> tuple[str, int]:
    try:
        value, end = _DECODER.raw_decode(text, pos)
    except json.JSONDecodeError as exc:
        raise ShardFormatError(f"Invalid {what} at offset {pos}: {exc.msg}") from exc
    if not isinstance(value, str):
        raise ShardFormatError(f"Expected {what} string at offset {pos}")
    return value, end


def _read_string_list(text: str, pos: int) -> tuple[list[str], int]:
    pos = _expect(text, pos, "[")
    values: list[str] = []
    while True:
        pos = _skip_ws(text, pos)
        if pos < len(text) and text[pos] == "]":
            return values, pos + 1
        value, pos = _read_string(text, pos, "implementor entry")
        values.append(value)
        pos = _skip_ws(text, pos)
        if pos < len(text) and text[pos] == ",":
            pos += 1
            continue
        return values, _expect(text, pos, "]")


def _plain_text(markup: str) -> str:
    return html.unescape(_TAG.sub("", markup)).replace("\xa0", " ")


def _normalize(text: str) -> str:
    return " ".join(text.split())


def _impl_generics(text: str) -> tuple[str, ...]:
    if not text.startswith("impl<"):
        return ()
    depth = 0
    current: list[str] = []
    params: list[str] = []
    for index, char in enumerate(text[len("impl<"):]):
        previous = text[len("impl<") + index - 1]
        if char in "<([":
            depth += 1
        elif char == ">" and previous == "-":
            pass
        elif char in ">)]":
            if depth == 0:
                tail = "".join(current).strip()
                if tail:
                    params.append(tail)
                return tuple(params)
            depth -= 1
        elif char == "," and depth == 0:
            params.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    # Unbalanced brackets: no usable parameter list.
    return ()

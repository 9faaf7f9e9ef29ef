from __future__ import annotations

"""shardreg command-line interface entrypoint."""

import argparse
import json
import logging
import os
import sys

from pathlib import Path

import yaml

from shardreg.adapters.shard_source_fs import FileSystemShardSource
from shardreg.adapters.sink_memory import MemorySink
from shardreg.core.config import ViewerConfig
from shardreg.core.naming import shard_relpath
from shardreg.core.page_load import LOAD_ORDERS, PageLoadSummary, simulate_page_load
from shardreg.core.shard_format import encode_json_shard
from shardreg.core.version import get_shardreg_version
from shardreg.ports.shard_source import ShardSource


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean from the environment with a safe default."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes"}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _resolve_collect_config(args: argparse.Namespace) -> ViewerConfig:
    """Merge an optional config file with explicit command-line flags.

    Notes:
        Flags given on the command line win over values from the file.
    """
    if args.config:
        config = ViewerConfig.from_file(args.config)
    elif args.root:
        config = ViewerConfig(shard_root=args.root)
    else:
        raise ValueError("Either --root or --config is required")

    return ViewerConfig(
        shard_root=args.root or config.shard_root,
        load_order=args.order or config.load_order,
        seed=args.seed if args.seed is not None else config.seed,
        install_after=args.install_after if args.install_after is not None else config.install_after,
        strict=args.strict or config.strict,
    )


def _collect(source: ShardSource, config: ViewerConfig) -> tuple[PageLoadSummary, MemorySink]:
    sink = MemorySink()
    summary = simulate_page_load(
        source.iter_shards(),
        sink,
        install_after=config.install_after,
        order=config.load_order,
        seed=config.seed,
    )
    return summary, sink


def _write_output(text: str, out: str | None) -> None:
    if out:
        Path(out).write_text(text, encoding="utf-8")
    else:
        print(text)


def collect_command(args: argparse.Namespace) -> int:
    """Load every shard through the registry and dump what the sink received."""
    try:
        config = _resolve_collect_config(args)
        source = FileSystemShardSource(root=config.shard_root, strict=config.strict)
        summary, sink = _collect(source, config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    result = {
        "summary": summary.as_dict(),
        "skipped": dict(source.errors),
        "implementors": {
            source_id: [descriptor.as_dict() for descriptor in payload]
            for source_id, payload in sink.index().items()
        },
    }
    _write_output(json.dumps(result, indent=2, ensure_ascii=False), args.out)
    return 0


def list_command(args: argparse.Namespace) -> int:
    """Print one line per shard with its implementor count."""
    source = FileSystemShardSource(root=args.root, strict=args.strict)
    try:
        publishers = list(source.iter_shards())
    except (OSError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2
    for publisher in publishers:
        print(f"{publisher.source_id}\t{len(publisher.payload)}")
    return 0


def validate_command(args: argparse.Namespace) -> int:
    """Decode every shard and report the ones that fail."""
    source = FileSystemShardSource(root=args.root, strict=False)
    try:
        publishers = list(source.iter_shards())
    except OSError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    for path, message in sorted(source.errors.items()):
        print(f"FAIL {path}: {message}", file=sys.stderr)
    print(f"{len(publishers)} shard(s) valid, {len(source.errors)} invalid")
    return 1 if source.errors else 0


def export_command(args: argparse.Namespace) -> int:
    """Rewrite discovered shards as JSON shards under another root."""
    source = FileSystemShardSource(root=args.root, strict=True)
    destination = Path(args.out)
    try:
        publishers = list(source.iter_shards())
    except (OSError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2
    for publisher in publishers:
        target = destination / shard_relpath(publisher.source_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(encode_json_shard(publisher.source_id, publisher.payload), encoding="utf-8")
    print(f"Exported {len(publishers)} shard(s) to {destination}")
    return 0


def main() -> int:
    """CLI entrypoint and command registration."""
    parser = argparse.ArgumentParser(prog="shardreg")
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_shardreg_version()}")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("SHARDREG_LOG_LEVEL", "WARNING"),
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    collect_parser = subparsers.add_parser("collect", help="Simulate a page load and dump delivered payloads")
    collect_parser.add_argument("--root", default=None, help="Shard root directory")
    collect_parser.add_argument("--config", default=None, help="Path to viewer.yaml")
    collect_parser.add_argument("--order", choices=list(LOAD_ORDERS), default=None, help="Shard execution order")
    collect_parser.add_argument("--seed", type=int, default=None, help="Seed for shuffled order")
    collect_parser.add_argument(
        "--install-after",
        type=int,
        default=None,
        help="Number of shards executed before the sink is installed",
    )
    collect_parser.add_argument(
        "--strict",
        action="store_true",
        default=_env_bool("SHARDREG_STRICT", False),
        help="Fail on the first malformed shard",
    )
    collect_parser.add_argument("--out", default=None, help="Write JSON to a file")
    collect_parser.set_defaults(func=collect_command)

    list_parser = subparsers.add_parser("list", help="List discovered shards")
    list_parser.add_argument("--root", required=True, help="Shard root directory")
    list_parser.add_argument(
        "--strict",
        action="store_true",
        default=_env_bool("SHARDREG_STRICT", False),
        help="Fail on the first malformed shard",
    )
    list_parser.set_defaults(func=list_command)

    validate_parser = subparsers.add_parser("validate", help="Check that every shard decodes")
    validate_parser.add_argument("--root", required=True, help="Shard root directory")
    validate_parser.set_defaults(func=validate_command)

    export_parser = subparsers.add_parser("export", help="Rewrite shards as JSON shards")
    export_parser.add_argument("--root", required=True, help="Shard root directory")
    export_parser.add_argument("--out", required=True, help="Output shard root")
    export_parser.set_defaults(func=export_command)

    args = parser.parse_args()
    _configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import yaml

from shardreg.core.page_load import LOAD_ORDERS


@dataclass
class ViewerConfig:
    shard_root: str
    load_order: str = "sorted"
    seed: int | None = None
    install_after: int | None = None
    strict: bool = False

    def __post_init__(self) -> None:
        if not self.shard_root:
            raise ValueError("shard_root is required")
        if self.load_order not in LOAD_ORDERS:
            raise ValueError(
                f"Unsupported load_order '{self.load_order}'. Allowed values: {list(LOAD_ORDERS)}"
            )
        if self.install_after is not None and self.install_after < 0:
            raise ValueError("install_after must be >= 0")

    @staticmethod
    def from_file(path: str) -> "ViewerConfig":
        """Load viewer settings from a YAML or JSON file.

        Notes:
            A relative shard_root is resolved against the config file's
            directory so configs can live next to the shards they describe.
        """
        ext = Path(path).suffix.lower()
        with open(path, "r", encoding="utf-8") as handle:
            if ext in {".yaml", ".yml"}:
                data = yaml.safe_load(handle)
            elif ext == ".json":
                data = json.load(handle)
            else:
                raise ValueError(f"Unsupported config file extension: {ext}")

        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")
        if "shard_root" not in data:
            raise ValueError("Config is missing shard_root")

        shard_root = Path(str(data["shard_root"]))
        if not shard_root.is_absolute():
            shard_root = Path(path).parent / shard_root

        seed = data.get("seed")
        install_after = data.get("install_after")
        return ViewerConfig(
            shard_root=str(shard_root),
            load_order=str(data.get("load_order", "sorted")),
            seed=int(seed) if seed is not None else None,
            install_after=int(install_after) if install_after is not None else None,
            strict=_parse_bool(data.get("strict", False), "strict"),
        )

    def snapshot(self) -> dict:
        return {
            "shard_root": self.shard_root,
            "load_order": self.load_order,
            "seed": self.seed,
            "install_after": self.install_after,
            "strict": self.strict,
        }


def _parse_bool(value: object, name: str) -> bool:
    """Accept YAML/JSON booleans and the usual string spellings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")

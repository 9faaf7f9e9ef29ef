from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from shardreg.core.naming import SHARD_SUFFIXES, InvalidSourceIdError
from shardreg.core.publisher import ShardPublisher
from shardreg.core.shard_format import ShardFormatError, decode_shard_file


logger = logging.getLogger(__name__)


@dataclass
class FileSystemShardSource:
    """Discover shard files laid out as `<root>/<crate>/<kind>.<name>.<ext>`."""
    root: str = "implementors"
    strict: bool = False
    errors: dict[str, str] = field(default_factory=dict)

    def iter_shards(self) -> Iterator[ShardPublisher]:
        """Yield a publisher per shard file, in sorted path order.

        Notes:
            In non-strict mode shards that fail to decode are skipped and their
            error is recorded in `errors` keyed by file path.

        Raises:
            FileNotFoundError: If the root directory does not exist.
            ShardFormatError: In strict mode, for the first malformed shard.
            InvalidSourceIdError: In strict mode, for a misplaced shard file.
            OSError: In strict mode, for a shard file that cannot be read.
        """
        base = Path(self.root)
        if not base.is_dir():
            raise FileNotFoundError(f"Shard root not found: {self.root}")
        self.errors.clear()
        for path in self.shard_paths():
            try:
                yield decode_shard_file(base, path)
            except (ShardFormatError, InvalidSourceIdError, UnicodeDecodeError, OSError) as exc:
                if self.strict:
                    raise
                logger.warning("skipping shard %s: %s", path, exc)
                self.errors[str(path)] = str(exc)

    def shard_paths(self) -> list[Path]:
        base = Path(self.root)
        return sorted(
            path
            for path in base.rglob("*")
            if path.is_file() and path.suffix in SHARD_SUFFIXES
        )

import json
import shutil
from pathlib import Path

import pytest

from shardreg.adapters.shard_source_fs import FileSystemShardSource
from shardreg.core.shard_format import ShardFormatError


FIXTURES = Path(__file__).parent / "fixtures" / "implementors"


def _write_json_shard(root: Path, source_id: str, implementors: dict) -> Path:
    crate, item = source_id.split("/")
    path = root / crate / f"{item}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"source_id": source_id, "implementors": implementors}), encoding="utf-8")
    return path


def test_discovers_script_and_json_shards(tmp_path) -> None:
    shutil.copytree(FIXTURES, tmp_path, dirs_exist_ok=True)
    _write_json_shard(tmp_path, "std/trait.Read", {"std": ["impl Read for File"]})
    (tmp_path / "std" / "notes.txt").write_text("ignored", encoding="utf-8")

    source = FileSystemShardSource(root=str(tmp_path))
    publishers = list(source.iter_shards())

    assert [p.source_id for p in publishers] == ["std/trait.Read", "tokio_service/trait.Service"]
    assert len(publishers[0].payload) == 1
    assert len(publishers[1].payload) == 2
    assert source.errors == {}


def test_non_strict_skips_bad_shards(tmp_path) -> None:
    _write_json_shard(tmp_path, "std/trait.Read", {"std": []})
    bad = tmp_path / "std" / "trait.Write.js"
    bad.write_text("var implementors = {};", encoding="utf-8")
    misplaced = tmp_path / "trait.Loose.json"
    misplaced.write_text("{}", encoding="utf-8")

    source = FileSystemShardSource(root=str(tmp_path))
    publishers = list(source.iter_shards())

    assert [p.source_id for p in publishers] == ["std/trait.Read"]
    assert set(source.errors) == {str(bad), str(misplaced)}


def test_strict_raises_on_first_bad_shard(tmp_path) -> None:
    bad = tmp_path / "std" / "trait.Write.js"
    bad.parent.mkdir()
    bad.write_text("var implementors = {};", encoding="utf-8")

    source = FileSystemShardSource(root=str(tmp_path), strict=True)
    with pytest.raises(ShardFormatError):
        list(source.iter_shards())


def test_missing_root(tmp_path) -> None:
    source = FileSystemShardSource(root=str(tmp_path / "missing"))
    with pytest.raises(FileNotFoundError):
        list(source.iter_shards())


def _deny_read(monkeypatch, denied: Path) -> None:
    original = Path.read_text

    def read_text(self, *args, **kwargs):
        if self == denied:
            raise PermissionError(f"Permission denied: '{self}'")
        return original(self, *args, **kwargs)

    monkeypatch.setattr(Path, "read_text", read_text)


def test_non_strict_records_unreadable_shard(monkeypatch, tmp_path) -> None:
    _write_json_shard(tmp_path, "std/trait.Read", {"std": []})
    locked = _write_json_shard(tmp_path, "std/trait.Write", {"std": []})
    _deny_read(monkeypatch, locked)

    source = FileSystemShardSource(root=str(tmp_path))
    publishers = list(source.iter_shards())

    assert [p.source_id for p in publishers] == ["std/trait.Read"]
    assert "Permission denied" in source.errors[str(locked)]


def test_strict_raises_for_unreadable_shard(monkeypatch, tmp_path) -> None:
    locked = _write_json_shard(tmp_path, "std/trait.Write", {"std": []})
    _deny_read(monkeypatch, locked)

    source = FileSystemShardSource(root=str(tmp_path), strict=True)
    with pytest.raises(PermissionError):
        list(source.iter_shards())

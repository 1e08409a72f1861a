"""Tests for content identity and cache slot handling."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

import cache
from errors import DecompressionError
from materialize import Materializer
from models import InputRef
from tests._fixtures.charts import write_chart, zst

CHART = b"#TITLE:Song;\n#NOTES:\n     dance-single:\n     0000\n;\n"
DIGEST = hashlib.md5(CHART).hexdigest()


def test_identity_of_plain_file_is_md5_of_bytes(tmp_path: Path) -> None:
    ref = InputRef(write_chart(tmp_path / "song.sm", CHART), compressed=False)

    assert cache.identity(ref) == DIGEST
    assert cache.identity(ref) == DIGEST


def test_identity_ignores_compression_and_filename(tmp_path: Path) -> None:
    plain = InputRef(write_chart(tmp_path / "a" / "song.sm", CHART), compressed=False)
    packed = InputRef(
        write_chart(tmp_path / "b" / "other.ssc.zst", CHART, compressed=True),
        compressed=True,
    )

    assert cache.identity(plain) == cache.identity(packed) == DIGEST


@pytest.mark.parametrize("mode", ["sibling", "temp"])
def test_streamed_and_materialized_digests_agree(tmp_path: Path, mode: str) -> None:
    ref = InputRef(
        write_chart(tmp_path / "packs" / "song.sm.zst", CHART, compressed=True),
        compressed=True,
    )
    with Materializer(mode, scratch_root=tmp_path) as materializer:
        via_plain = cache.identity_via_plain(ref, materializer)

    assert via_plain == cache.identity(ref)
    assert not (tmp_path / "packs" / "song.sm").exists()


def test_identity_decodes_concatenated_frames(tmp_path: Path) -> None:
    path = tmp_path / "song.sm.zst"
    path.write_bytes(zst(CHART[:10]) + zst(CHART[10:]))

    assert cache.identity(InputRef(path, compressed=True)) == DIGEST


def test_identity_rejects_truncated_stream(tmp_path: Path) -> None:
    payload = zst(CHART * 50)
    path = tmp_path / "song.sm.zst"
    path.write_bytes(payload[: len(payload) // 2])

    with pytest.raises(DecompressionError):
        cache.identity(InputRef(path, compressed=True))


def test_identity_rejects_garbage_and_empty_files(tmp_path: Path) -> None:
    garbage = tmp_path / "garbage.sm.zst"
    garbage.write_bytes(b"this is not zstd at all")
    empty = tmp_path / "empty.sm.zst"
    empty.write_bytes(b"")

    with pytest.raises(DecompressionError):
        cache.identity(InputRef(garbage, compressed=True))
    with pytest.raises(DecompressionError):
        cache.identity(InputRef(empty, compressed=True))


def test_identity_of_missing_file_raises_oserror(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        cache.identity(InputRef(tmp_path / "nope.sm", compressed=False))


def test_slot_for_shards_by_digest_prefix(tmp_path: Path) -> None:
    slot = cache.slot_for(tmp_path / "baseline", DIGEST, "json.zst")

    assert slot == tmp_path / "baseline" / DIGEST[:2] / f"{DIGEST}.json.zst"
    assert not slot.parent.exists()


def test_slot_for_accepts_wider_shards(tmp_path: Path) -> None:
    slot = cache.slot_for(tmp_path, DIGEST, "rssp.json.zst", width=3)

    assert slot.parent.name == DIGEST[:3]
    assert slot.name == f"{DIGEST}.rssp.json.zst"


def test_ensure_parent_and_exists(tmp_path: Path) -> None:
    slot = cache.slot_for(tmp_path / "baseline", DIGEST, "json.zst")
    assert cache.slot_exists(slot) is False

    cache.ensure_parent(slot)
    cache.ensure_parent(slot)
    assert slot.parent.is_dir()
    assert cache.slot_exists(slot) is False

    slot.write_bytes(b"x")
    assert cache.slot_exists(slot) is True


def test_staged_write_moves_file_into_place(tmp_path: Path) -> None:
    slot = tmp_path / "ab" / "slot.json.zst"
    slot.parent.mkdir()

    with cache.staged_write(slot) as partial:
        assert partial != slot
        partial.write_bytes(zst(b"{}"))
        assert not slot.exists()

    assert cache.read_artifact(slot) == b"{}"
    assert list(slot.parent.iterdir()) == [slot]


def test_staged_write_failure_keeps_previous_artifact(tmp_path: Path) -> None:
    slot = tmp_path / "slot.json.zst"
    slot.write_bytes(zst(b"old"))

    with pytest.raises(RuntimeError):
        with cache.staged_write(slot) as partial:
            partial.write_bytes(b"half")
            raise RuntimeError("analyzer died")

    assert cache.read_artifact(slot) == b"old"
    assert list(tmp_path.iterdir()) == [slot]


def test_resolve_baseline_dir_prefers_nested_checkout(tmp_path: Path) -> None:
    assert cache.resolve_baseline_dir(tmp_path) == tmp_path
    (tmp_path / "baseline").mkdir()
    assert cache.resolve_baseline_dir(tmp_path) == tmp_path / "baseline"

import struct
import sys
import zlib
from pathlib import Path

import numpy as np
import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from heightmap2brz.errors import EncodeError, SaveWriteError
from heightmap2brz.image_analysis.sampler import ColorGrid, HeightGrid
from heightmap2brz.optimizer.core import generate_bricks
from heightmap2brz.save import compact
from heightmap2brz.save.bitstream import BitReader, BitWriter
from heightmap2brz.save.compact import MAGIC, read_compressed_bytes, to_compressed_bytes
from heightmap2brz.save.database import BrickRow, ColorRow, MetaEntry, write_structured_file
from heightmap2brz.save.document import GLOW_MATERIAL, PLASTIC_MATERIAL, bricks_to_save
from heightmap2brz.options import GenOptions


def _bricks(options=None, levels=None):
    levels = np.array([[0, 1], [2, 3]] if levels is None else levels, dtype=np.uint32)
    rgba = np.zeros(levels.shape + (4,), dtype=np.uint8)
    rgba[..., 3] = 255
    rgba[0, :, 0] = 200
    return generate_bricks(HeightGrid(levels), ColorGrid(rgba), options or GenOptions())


def test_document_tables_follow_first_use_order():
    document = bricks_to_save(_bricks())
    assert document.brick_count == 4
    assert document.colors == [(200, 0, 0, 255), (0, 0, 0, 255)]
    assert document.materials == [PLASTIC_MATERIAL, GLOW_MATERIAL]
    assert document.material_for(document.bricks[0]) == (PLASTIC_MATERIAL, 5)


def test_glow_bricks_use_glow_material():
    document = bricks_to_save(_bricks(GenOptions(glow=True)))
    assert {document.material_for(b) for b in document.bricks} == {(GLOW_MATERIAL, 1)}


def test_compact_header_layout():
    data = to_compressed_bytes(bricks_to_save(_bricks()))
    magic, version, compression = struct.unpack_from("<3sHB", data)
    assert magic == MAGIC == b"BRZ"
    assert version == compact.FORMAT_VERSION
    assert compression == compact.COMPRESSION_ZLIB
    uncompressed, compressed = struct.unpack_from("<II", data, 6)
    header = zlib.decompress(data[14 : 14 + compressed])
    assert len(header) == uncompressed
    assert header[:4] == struct.pack("<i", len("Plate") + 1)


def test_compact_bricks_decode_back():
    bricks = _bricks(GenOptions(nocollide=True, glow=True))
    document = bricks_to_save(bricks)
    decoded = read_compressed_bytes(to_compressed_bytes(document))
    assert decoded.brick_count == 4
    assert decoded.assets == ["PB_DefaultBrick"]
    assert decoded.author == document.author
    assert [(b.size, b.position) for b in decoded.bricks] == [(b.size, b.position) for b in bricks]
    assert {(b.collision, b.material, b.intensity) for b in decoded.bricks} == {(False, GLOW_MATERIAL, 1)}
    assert [b.color for b in decoded.bricks] == [b.color for b in bricks]


def test_compact_rejects_too_many_bricks(monkeypatch):
    monkeypatch.setattr(compact, "MAX_BRICKS", 3)
    with pytest.raises(EncodeError) as excinfo:
        to_compressed_bytes(bricks_to_save(_bricks()))
    assert "exceeds" in excinfo.value.reason


def test_compact_rejects_unknown_asset():
    document = bricks_to_save(_bricks())
    document.assets = ["PB_Wedge"]
    with pytest.raises(EncodeError):
        to_compressed_bytes(document)


def test_read_rejects_foreign_data():
    with pytest.raises(ValueError):
        read_compressed_bytes(b"PNG\x01\x00\x01")


def test_bit_writer_bounded_and_packed_ints():
    writer = BitWriter()
    writer.write_uint(5, 11)
    writer.write_int_packed(-300)
    writer.write_uint_packed(2**20)
    reader = BitReader(writer.getvalue())
    assert reader.read_uint(11) == 5
    assert reader.read_int_packed() == -300
    assert reader.read_uint_packed() == 2**20


def test_bit_writer_rejects_out_of_range():
    with pytest.raises(ValueError):
        BitWriter().write_uint(4, 4)


def test_structured_file_rows(tmp_path):
    path = tmp_path / "plate.brdb"
    bricks = _bricks(GenOptions(quadtree=True))
    write_structured_file(bricks_to_save(bricks), path)
    assert path.exists()
    assert list(tmp_path.iterdir()) == [path]
    engine = create_engine(f"sqlite:///{path}")
    with Session(engine) as session:
        rows = session.scalars(select(BrickRow).order_by(BrickRow.id)).all()
        meta = {entry.key: entry.value for entry in session.scalars(select(MetaEntry))}
        colors = session.scalars(select(ColorRow)).all()
    engine.dispose()
    assert len(rows) == len(bricks)
    assert (rows[0].position_x, rows[0].position_y, rows[0].position_z) == bricks[0].position
    assert meta["brick_count"] == str(len(bricks))
    assert {(c.r, c.g, c.b, c.a) for c in colors} == {(200, 0, 0, 255), (0, 0, 0, 255)}


def test_structured_file_unwritable_target(tmp_path):
    path = tmp_path / "missing" / "plate.brdb"
    with pytest.raises(SaveWriteError) as excinfo:
        write_structured_file(bricks_to_save(_bricks()), path)
    assert isinstance(excinfo.value, OSError)
    assert not path.parent.exists()


def test_structured_file_failure_keeps_existing_file(tmp_path):
    path = tmp_path / "plate.brdb"
    path.write_bytes(b"previous")
    document = bricks_to_save(_bricks())
    document.assets = ["PB_Wedge"]
    with pytest.raises(EncodeError):
        write_structured_file(document, path)
    assert path.read_bytes() == b"previous"
    assert list(tmp_path.iterdir()) == [path]


def test_pinned_save_time_encodes_identically():
    bricks = _bricks(GenOptions(greedy=True))
    first = to_compressed_bytes(bricks_to_save(bricks, saved_at_ms=42))
    second = to_compressed_bytes(bricks_to_save(bricks, saved_at_ms=42))
    assert first == second
    assert read_compressed_bytes(first).saved_at_ms == 42

"""Compact container (``.brz``): zlib-compressed sections behind a fixed header.

Layout (little-endian)::

    b"BRZ"   magic
    u16      format version
    u8       compression method (1 = zlib)
    3 x section: u32 uncompressed length, u32 compressed length, payload

Sections are the header (map, author, description, save time, brick count),
the lookup tables (assets, materials, colors, owners) and the bit-packed
bricks, one byte-aligned record each.

This section layout is heightmap2brz's own, not the game's container format;
only the ``BRZ`` magic is borrowed from it.
"""
from __future__ import annotations

import logging
import struct
import uuid
import zlib
from dataclasses import dataclass, field
from typing import List, Tuple

from heightmap2brz.errors import EncodeError
from heightmap2brz.options import ASSET_NAMES, BrickAsset

from .bitstream import BitReader, BitWriter
from .document import MAX_INTENSITY, SaveDocument, SaveOwner

logger = logging.getLogger(__name__)

MAGIC = b"BRZ"
FORMAT_VERSION = 1
COMPRESSION_ZLIB = 1
MAX_BRICKS = 10_000_000
DIRECTION_Z_POSITIVE = 4
ROTATION_DEG_0 = 0

_HEADER = struct.Struct("<3sHB")
_SECTION = struct.Struct("<II")


def _pack_string(text: str) -> bytes:
    encoded = text.encode("utf-8") + b"\x00"
    return struct.pack("<i", len(encoded)) + encoded


def _pack_array(items: List[bytes]) -> bytes:
    return struct.pack("<I", len(items)) + b"".join(items)


def _section(payload: bytes) -> bytes:
    compressed = zlib.compress(payload, 9)
    return _SECTION.pack(len(payload), len(compressed)) + compressed


def _asset_names(document: SaveDocument) -> List[str]:
    names = []
    for asset in document.assets:
        if not isinstance(asset, BrickAsset):
            raise EncodeError(f"unrecognized asset id {asset!r}")
        names.append(ASSET_NAMES[asset])
    return names


def _header_section(document: SaveDocument) -> bytes:
    return b"".join(
        [
            _pack_string(document.map_name),
            _pack_string(document.author.name),
            document.author.id.bytes,
            _pack_string(document.description),
            struct.pack("<qI", document.saved_at_ms, document.brick_count),
        ]
    )


def _tables_section(document: SaveDocument, asset_names: List[str]) -> bytes:
    return b"".join(
        [
            _pack_array([_pack_string(name) for name in asset_names]),
            _pack_array([_pack_string(name) for name in document.materials]),
            _pack_array([bytes(color) for color in document.colors]),
            _pack_array([owner.id.bytes + _pack_string(owner.name) for owner in document.owners]),
        ]
    )


def _bricks_section(document: SaveDocument) -> bytes:
    assets = document.asset_index()
    colors = document.color_index()
    materials = {name: index for index, name in enumerate(document.materials)}
    writer = BitWriter()
    for brick in document.bricks:
        if brick.asset not in assets:
            raise EncodeError(f"unrecognized asset id {brick.asset!r}")
        material, intensity = document.material_for(brick)
        writer.write_uint(assets[brick.asset], max(len(assets), 2))
        for half in brick.size:
            writer.write_uint_packed(half)
        for coord in brick.position:
            writer.write_int_packed(coord)
        writer.write_bits(DIRECTION_Z_POSITIVE, 3)
        writer.write_bits(ROTATION_DEG_0, 2)
        writer.write_bit(brick.collision)
        writer.write_bit(True)
        writer.write_uint(materials[material], max(len(materials), 2))
        writer.write_uint(intensity, MAX_INTENSITY + 1)
        writer.write_uint(colors[brick.color], max(len(colors), 2))
        writer.write_uint_packed(0)
        writer.align()
    return writer.getvalue()


def to_compressed_bytes(document: SaveDocument) -> bytes:
    """Serialize ``document`` into the compact container format."""
    if document.brick_count > MAX_BRICKS:
        raise EncodeError(f"{document.brick_count} bricks exceeds the limit of {MAX_BRICKS}")
    asset_names = _asset_names(document)
    payload = b"".join(
        [
            _HEADER.pack(MAGIC, FORMAT_VERSION, COMPRESSION_ZLIB),
            _section(_header_section(document)),
            _section(_tables_section(document, asset_names)),
            _section(_bricks_section(document)),
        ]
    )
    logger.debug("Encoded %d bricks into %d bytes", document.brick_count, len(payload))
    return payload


@dataclass
class DecodedBrick:
    asset: str
    size: Tuple[int, int, int]
    position: Tuple[int, int, int]
    collision: bool
    material: str
    intensity: int
    color: Tuple[int, int, int, int]


@dataclass
class CompactSave:
    version: int
    map_name: str
    author: SaveOwner
    description: str
    saved_at_ms: int
    brick_count: int
    assets: List[str] = field(default_factory=list)
    materials: List[str] = field(default_factory=list)
    colors: List[Tuple[int, int, int, int]] = field(default_factory=list)
    owners: List[SaveOwner] = field(default_factory=list)
    bricks: List[DecodedBrick] = field(default_factory=list)


class _Cursor:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def take(self, count: int) -> bytes:
        if self.offset + count > len(self.data):
            raise ValueError("truncated compact save")
        chunk = self.data[self.offset : self.offset + count]
        self.offset += count
        return chunk

    def unpack(self, fmt: str) -> Tuple:
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self.take(size))

    def string(self) -> str:
        (length,) = self.unpack("<i")
        return self.take(length)[:-1].decode("utf-8")

    def uuid(self) -> uuid.UUID:
        return uuid.UUID(bytes=self.take(16))

    def section(self) -> "_Cursor":
        uncompressed, compressed = self.unpack("<II")
        payload = zlib.decompress(self.take(compressed))
        if len(payload) != uncompressed:
            raise ValueError("section length mismatch")
        return _Cursor(payload)


def read_compressed_bytes(data: bytes) -> CompactSave:
    """Decode a compact container, mainly to inspect what was written."""
    cursor = _Cursor(data)
    magic, version, compression = cursor.unpack("<3sHB")
    if magic != MAGIC or compression != COMPRESSION_ZLIB:
        raise ValueError("not a compact save")

    header = cursor.section()
    map_name = header.string()
    author_name = header.string()
    author = SaveOwner(id=header.uuid(), name=author_name)
    description = header.string()
    saved_at_ms, brick_count = header.unpack("<qI")
    save = CompactSave(
        version=version,
        map_name=map_name,
        author=author,
        description=description,
        saved_at_ms=saved_at_ms,
        brick_count=brick_count,
    )

    tables = cursor.section()
    save.assets = [tables.string() for _ in range(tables.unpack("<I")[0])]
    save.materials = [tables.string() for _ in range(tables.unpack("<I")[0])]
    save.colors = [tuple(tables.take(4)) for _ in range(tables.unpack("<I")[0])]
    for _ in range(tables.unpack("<I")[0]):
        owner_id = tables.uuid()
        save.owners.append(SaveOwner(id=owner_id, name=tables.string()))

    reader = BitReader(cursor.section().data)
    for _ in range(brick_count):
        asset = save.assets[reader.read_uint(max(len(save.assets), 2))]
        size = tuple(reader.read_uint_packed() for _ in range(3))
        position = tuple(reader.read_int_packed() for _ in range(3))
        reader.read_bits(5)
        collision = reader.read_bit()
        reader.read_bit()
        material = save.materials[reader.read_uint(max(len(save.materials), 2))]
        intensity = reader.read_uint(MAX_INTENSITY + 1)
        color = save.colors[reader.read_uint(max(len(save.colors), 2))]
        reader.read_uint_packed()
        reader.align()
        save.bricks.append(
            DecodedBrick(
                asset=asset,
                size=size,
                position=position,
                collision=collision,
                material=material,
                intensity=intensity,
                color=color,
            )
        )
    return save


"""Structured database save format (``.brdb``): a SQLite file via SQLAlchemy."""
from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Dict, List

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, create_engine, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from heightmap2brz.errors import EncodeError, SaveWriteError
from heightmap2brz.options import ASSET_NAMES, BrickAsset

from .compact import DIRECTION_Z_POSITIVE, FORMAT_VERSION, ROTATION_DEG_0
from .document import SaveDocument

logger = logging.getLogger(__name__)

Base = declarative_base()


class MetaEntry(Base):
    """Key/value save metadata."""

    __tablename__ = "meta"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)


class AssetRow(Base):
    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(128), nullable=False, unique=True)


class MaterialRow(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(128), nullable=False, unique=True)


class ColorRow(Base):
    __tablename__ = "colors"

    id = Column(Integer, primary_key=True, autoincrement=False)
    r = Column(Integer, nullable=False)
    g = Column(Integer, nullable=False)
    b = Column(Integer, nullable=False)
    a = Column(Integer, nullable=False)


class OwnerRow(Base):
    __tablename__ = "owners"

    id = Column(Integer, primary_key=True, autoincrement=False)
    uuid = Column(String(36), nullable=False)
    name = Column(String(255), nullable=False)


class BrickRow(Base):
    """One placed brick; sizes are half-extents, positions are centers."""

    __tablename__ = "bricks"

    id = Column(Integer, primary_key=True, autoincrement=False)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False)
    size_x = Column(Integer, nullable=False)
    size_y = Column(Integer, nullable=False)
    size_z = Column(Integer, nullable=False)
    position_x = Column(Integer, nullable=False)
    position_y = Column(Integer, nullable=False)
    position_z = Column(Integer, nullable=False)
    direction = Column(Integer, nullable=False, default=DIRECTION_Z_POSITIVE)
    rotation = Column(Integer, nullable=False, default=ROTATION_DEG_0)
    collision = Column(Boolean, nullable=False, default=True)
    visible = Column(Boolean, nullable=False, default=True)
    material_id = Column(Integer, ForeignKey("materials.id"), nullable=False)
    material_intensity = Column(Integer, nullable=False)
    color_id = Column(Integer, ForeignKey("colors.id"), nullable=False)
    owner_id = Column(Integer, ForeignKey("owners.id"), nullable=False)


def _asset_rows(document: SaveDocument) -> List[AssetRow]:
    rows = []
    for index, asset in enumerate(document.assets):
        if not isinstance(asset, BrickAsset):
            raise EncodeError(f"unrecognized asset id {asset!r}")
        rows.append(AssetRow(id=index, name=ASSET_NAMES[asset]))
    return rows


def _brick_rows(document: SaveDocument) -> List[Dict[str, object]]:
    assets = document.asset_index()
    colors = document.color_index()
    materials = {name: index for index, name in enumerate(document.materials)}
    rows: List[Dict[str, object]] = []
    for index, brick in enumerate(document.bricks):
        material, intensity = document.material_for(brick)
        rows.append(
            {
                "id": index,
                "asset_id": assets[brick.asset],
                "size_x": brick.size[0],
                "size_y": brick.size[1],
                "size_z": brick.size[2],
                "position_x": brick.position[0],
                "position_y": brick.position[1],
                "position_z": brick.position[2],
                "direction": DIRECTION_Z_POSITIVE,
                "rotation": ROTATION_DEG_0,
                "collision": brick.collision,
                "visible": True,
                "material_id": materials[material],
                "material_intensity": intensity,
                "color_id": colors[brick.color],
                "owner_id": 0,
            }
        )
    return rows


def _meta_rows(document: SaveDocument) -> List[MetaEntry]:
    entries = {
        "format_version": str(FORMAT_VERSION),
        "map": document.map_name,
        "description": document.description,
        "author_id": str(document.author.id),
        "author_name": document.author.name,
        "saved_at_ms": str(document.saved_at_ms),
        "brick_count": str(document.brick_count),
    }
    return [MetaEntry(key=key, value=value) for key, value in entries.items()]


def write_structured_file(document: SaveDocument, path: Path | str) -> None:
    """Write ``document`` as a structured database at ``path``.

    The database is built next to the target and moved into place only once
    complete, so a failed write never leaves a partial file behind.
    """
    path = Path(path)
    asset_rows = _asset_rows(document)
    brick_rows = _brick_rows(document)
    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    engine = None
    try:
        engine = create_engine(f"sqlite:///{tmp_path}")
        Base.metadata.create_all(bind=engine)
        session_factory = sessionmaker(bind=engine, autoflush=False)
        with session_factory.begin() as session:
            session.add_all(_meta_rows(document))
            session.add_all(asset_rows)
            session.add_all(
                MaterialRow(id=index, name=name) for index, name in enumerate(document.materials)
            )
            session.add_all(
                ColorRow(id=index, r=color[0], g=color[1], b=color[2], a=color[3])
                for index, color in enumerate(document.colors)
            )
            session.add_all(
                OwnerRow(id=index, uuid=str(owner.id), name=owner.name)
                for index, owner in enumerate(document.owners)
            )
            session.flush()
            if brick_rows:
                session.execute(insert(BrickRow), brick_rows)
        engine.dispose()
        os.replace(tmp_path, path)
    except (OSError, SQLAlchemyError) as exc:
        raise SaveWriteError(path, str(exc)) from exc
    finally:
        if engine is not None:
            engine.dispose()
        if tmp_path.exists():
            tmp_path.unlink()
    logger.info("Wrote %d bricks to %s", document.brick_count, path)

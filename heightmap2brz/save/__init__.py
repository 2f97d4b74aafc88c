"""Save document assembly and the two binary save encoders."""

from .compact import read_compressed_bytes, to_compressed_bytes
from .database import write_structured_file
from .document import SaveDocument, SaveOwner, bricks_to_save

__all__ = [
    "SaveDocument",
    "SaveOwner",
    "bricks_to_save",
    "read_compressed_bytes",
    "to_compressed_bytes",
    "write_structured_file",
]

from citeview.references.index import (
    OpenAction,
    PopoverContent,
    ReferenceIndex,
    ResolvedReference,
    get_extension,
)
from citeview.references.models import Chunk, ChunkPosition, Document, ReferencePayload

__all__ = [
    "Chunk",
    "ChunkPosition",
    "Document",
    "OpenAction",
    "PopoverContent",
    "ReferenceIndex",
    "ReferencePayload",
    "ResolvedReference",
    "get_extension",
]

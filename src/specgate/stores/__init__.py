"""Default file-backed collaborators."""
from specgate.stores.files import FileDocumentStore, LocalFileSink, resolve_within

__all__ = [
    "FileDocumentStore",
    "LocalFileSink",
    "resolve_within",
]

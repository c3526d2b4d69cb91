"""In-memory object store for orchestration and CLI tests."""

from __future__ import annotations

from finance_tracker.storage import StorageDownloadError


class FakeStore:
    """Stand-in for :class:`finance_tracker.storage.S3ObjectStore`."""

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self.objects: dict[str, bytes] = dict(objects or {})
        self.content_types: dict[str, str] = {}
        self.broken: set[str] = set()

    def put(self, key: str, body: bytes, content_type: str) -> None:
        self.objects[key] = body
        self.content_types[key] = content_type

    def list_keys(self, prefix: str) -> list[str]:
        return sorted(k for k in self.objects if k.startswith(prefix))

    def get(self, key: str) -> bytes:
        if key in self.broken:
            raise StorageDownloadError(f"Failed to download {key!r}")
        return self.objects[key]

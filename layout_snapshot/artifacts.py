from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from layout_snapshot.codec import PngCodec
from layout_snapshot.core.image_buffer import ImageBuffer


@dataclass(frozen=True)
class ArtifactRecord:
    name: str
    path: str
    size: int
    sha256: str


class ArtifactStore:
    """Writes encoded images under one output directory and remembers what it wrote."""

    def __init__(self, root_dir: str = "reference", codec: PngCodec | None = None) -> None:
        self._root = Path(root_dir)
        self._codec = codec or PngCodec()
        self._records: dict[str, ArtifactRecord] = {}

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, name: str) -> Path:
        return self._root / name

    def _write_bytes(self, target: Path, payload: bytes) -> ArtifactRecord:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = target.with_name(target.name + ".tmp")
        tmp_path.write_bytes(payload)
        tmp_path.replace(target)
        record = ArtifactRecord(
            name=target.name,
            path=str(target),
            size=len(payload),
            sha256=hashlib.sha256(payload).hexdigest(),
        )
        self._records[record.path] = record
        return record

    async def write_bytes(self, path: str | Path, payload: bytes) -> ArtifactRecord:
        return await asyncio.to_thread(self._write_bytes, Path(path), payload)

    async def write_image(self, path: str | Path, image: ImageBuffer) -> ArtifactRecord:
        payload = await asyncio.to_thread(self._codec.encode, image)
        return await self.write_bytes(path, payload)

    async def write_many(self, items: list[tuple[str | Path, ImageBuffer]]) -> list[ArtifactRecord]:
        """Encode and write every image concurrently; results keep input order."""
        return list(await asyncio.gather(*(self.write_image(path, image) for path, image in items)))

    def get_record(self, path: str | Path) -> Optional[ArtifactRecord]:
        return self._records.get(str(path))

    def list_records(self) -> list[ArtifactRecord]:
        return list(self._records.values())

from __future__ import annotations

import asyncio
import io
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from layout_snapshot.core.errors import DecodeError, MissingInputFile
from layout_snapshot.core.image_buffer import ImageBuffer


class PngCodec:
    """PNG <-> RGBA :class:`ImageBuffer` conversion backed by Pillow."""

    def decode(self, data: bytes, source: str = "<bytes>") -> ImageBuffer:
        try:
            with Image.open(io.BytesIO(data)) as img:
                if img.format != "PNG":
                    raise DecodeError(source, f"expected PNG data, got {img.format or 'unknown'}")
                rgba = img.convert("RGBA")
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise DecodeError(source, str(exc) or exc.__class__.__name__) from exc
        width, height = rgba.size
        return ImageBuffer(width=width, height=height, pixels=rgba.tobytes())

    def encode(self, image: ImageBuffer) -> bytes:
        img = Image.frombytes("RGBA", image.size, image.pixels)
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()

    def read(self, path: str | Path, role: str = "input") -> ImageBuffer:
        src = Path(path)
        if not src.is_file():
            raise MissingInputFile(str(src), role)
        return self.decode(src.read_bytes(), source=str(src))

    async def read_async(self, path: str | Path, role: str = "input") -> ImageBuffer:
        return await asyncio.to_thread(self.read, path, role)

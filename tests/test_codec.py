import io

import pytest
from PIL import Image

from layout_snapshot.codec import PngCodec
from layout_snapshot.core.errors import DecodeError, MissingInputFile
from layout_snapshot.core.image_buffer import ImageBuffer


def _png_bytes(img: Image.Image, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class TestPngCodec:
    """Tests for PngCodec."""

    def test_encode_then_decode_keeps_pixels(self):
        codec = PngCodec()
        image = ImageBuffer(width=2, height=1, pixels=bytes([10, 20, 30, 255, 40, 50, 60, 128]))

        decoded = codec.decode(codec.encode(image))

        assert decoded == image

    def test_rgb_png_decodes_to_rgba(self):
        data = _png_bytes(Image.new("RGB", (3, 2), (1, 2, 3)))

        decoded = PngCodec().decode(data)

        assert decoded.size == (3, 2)
        assert decoded.pixel(2, 1) == (1, 2, 3, 255)

    def test_garbage_raises_decode_error(self):
        with pytest.raises(DecodeError) as excinfo:
            PngCodec().decode(b"not an image", source="broken.png")

        assert excinfo.value.path == "broken.png"
        assert "broken.png" in str(excinfo.value)

    def test_non_png_rejected(self):
        data = _png_bytes(Image.new("RGB", (2, 2)), fmt="JPEG")

        with pytest.raises(DecodeError, match="expected PNG"):
            PngCodec().decode(data)

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(MissingInputFile) as excinfo:
            PngCodec().read(tmp_path / "nope.png", role="reference")

        assert excinfo.value.role == "reference"

    def test_read_truncated_file(self, tmp_path):
        path = tmp_path / "cut.png"
        path.write_bytes(_png_bytes(Image.new("RGBA", (20, 20)))[:40])

        with pytest.raises(DecodeError):
            PngCodec().read(path)

    @pytest.mark.asyncio
    async def test_read_async(self, tmp_path):
        path = tmp_path / "ok.png"
        path.write_bytes(_png_bytes(Image.new("RGBA", (4, 3), (9, 9, 9, 9))))

        decoded = await PngCodec().read_async(path)

        assert decoded.size == (4, 3)

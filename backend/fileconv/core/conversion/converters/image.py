"""Raster image transcoders backed by Pillow."""

from pathlib import Path
from typing import Any, Dict

import structlog
from PIL import Image, UnidentifiedImageError

from fileconv.core.constants import DEFAULT_QUALITY, PNG_COMPRESS_LEVEL, WEBP_METHOD
from fileconv.core.content import ContentRef
from fileconv.core.conversion.converters.base import BaseConverter, ConversionContext
from fileconv.core.exceptions import ConverterFailureError

logger = structlog.get_logger()


class BaseImageConverter(BaseConverter):
    """Shared load/prepare/save flow for image targets.

    Only the first frame of animated input is converted.
    """

    source_types = ("image/",)
    pil_format: str = ""

    def __init__(self, quality: int = DEFAULT_QUALITY) -> None:
        if not 1 <= quality <= 100:
            raise ValueError("quality must be between 1 and 100")
        self.quality = quality

    def _convert(
        self, source: ContentRef, output_path: Path, context: ConversionContext
    ) -> None:
        image = self.load_image(source)
        try:
            context.checkpoint()
            prepared = self.prepare_image(image)
            context.checkpoint()
            with open(output_path, "xb") as output:
                prepared.save(output, format=self.pil_format, **self.save_params())
        finally:
            image.close()

    def load_image(self, source: ContentRef) -> Image.Image:
        """Decode the first frame of ``source``."""
        try:
            with source.open() as stream:
                with Image.open(stream) as img:
                    img.seek(0)
                    img.load()
                    logger.debug(
                        "Image decoded",
                        source_format=img.format,
                        mode=img.mode,
                        n_frames=getattr(img, "n_frames", 1),
                    )
                    return img.copy()
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise ConverterFailureError(
                f"Cannot decode image: {e}",
                details={"converter": self.name, "error": str(e)},
            ) from e
        except (OSError, SyntaxError, ValueError, EOFError) as e:
            # Pillow reports truncated or corrupt streams as OSError
            raise ConverterFailureError(
                f"Image data is malformed: {e}",
                details={"converter": self.name, "error": str(e)},
            ) from e

    def prepare_image(self, image: Image.Image) -> Image.Image:
        """Convert the colour mode to one the target can store."""
        if image.mode in ("RGBA", "LA") and not self._supports_transparency():
            return self._flatten(image)
        if image.mode == "P" and "transparency" in image.info:
            if self._supports_transparency():
                return image.convert("RGBA")
            return self._flatten(image.convert("RGBA"))
        if not self._supports_mode(image.mode):
            if self._supports_transparency() and image.mode in ("RGBA", "LA", "PA"):
                return image.convert("RGBA")
            return image.convert("RGB")
        return image

    def save_params(self) -> Dict[str, Any]:
        """Format-specific keyword arguments for ``Image.save``."""
        return {}

    @staticmethod
    def _flatten(image: Image.Image) -> Image.Image:
        """Composite an image with alpha onto a white background."""
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background

    def _supports_transparency(self) -> bool:
        return False

    def _supports_mode(self, mode: str) -> bool:
        return mode in ("RGB",)


class PngConverter(BaseImageConverter):
    """Any readable image to PNG."""

    target_format = "png"
    pil_format = "PNG"

    def save_params(self) -> Dict[str, Any]:
        return {"compress_level": PNG_COMPRESS_LEVEL}

    def _supports_transparency(self) -> bool:
        return True

    def _supports_mode(self, mode: str) -> bool:
        return mode in ("RGB", "RGBA", "L", "LA", "P", "1")


class JpegConverter(BaseImageConverter):
    """Any readable image to JPEG, flattening transparency onto white."""

    target_format = "jpeg"
    pil_format = "JPEG"

    def save_params(self) -> Dict[str, Any]:
        # JPEG gains little above 95 but grows quickly
        jpeg_quality = max(1, min(95, int((self.quality / 100) * 95)))
        return {
            "quality": jpeg_quality,
            "subsampling": 0 if self.quality > 90 else 2,
            "optimize": True,
        }

    def _supports_mode(self, mode: str) -> bool:
        return mode in ("RGB", "L", "CMYK")


class GifConverter(BaseImageConverter):
    """Any readable image to a single-frame GIF."""

    target_format = "gif"
    pil_format = "GIF"

    def prepare_image(self, image: Image.Image) -> Image.Image:
        image = super().prepare_image(image)
        if image.mode == "RGBA":
            alpha = image.split()[3]
            paletted = image.convert("P", palette=Image.Palette.ADAPTIVE, colors=255)
            # Index 255 is reserved for pixels that are mostly transparent
            result = Image.new("P", paletted.size, 255)
            opaque = Image.eval(alpha, lambda a: 255 if a >= 128 else 0)
            result.paste(paletted, mask=opaque)
            result.putpalette(paletted.getpalette())
            result.info["transparency"] = 255
            return result
        if image.mode not in ("P", "L"):
            return image.convert("P", palette=Image.Palette.ADAPTIVE, colors=256)
        return image

    def save_params(self) -> Dict[str, Any]:
        return {"optimize": True}

    def _supports_transparency(self) -> bool:
        return True

    def _supports_mode(self, mode: str) -> bool:
        return mode in ("P", "L", "RGB", "RGBA")


class BmpConverter(BaseImageConverter):
    """Any readable image to BMP, flattening transparency onto white."""

    target_format = "bmp"
    pil_format = "BMP"

    def _supports_mode(self, mode: str) -> bool:
        return mode in ("RGB", "L", "1", "P")


class WebpConverter(BaseImageConverter):
    """Any readable image to lossy WebP."""

    target_format = "webp"
    pil_format = "WEBP"

    def save_params(self) -> Dict[str, Any]:
        return {"quality": self.quality, "method": WEBP_METHOD}

    def _supports_transparency(self) -> bool:
        return True

    def _supports_mode(self, mode: str) -> bool:
        return mode in ("RGB", "RGBA")

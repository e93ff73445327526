"""Image export utilities for rendered images.

This module writes the 8-bit RGB pixels produced by the integrator to disk.

Supported formats:
    - PPM (plain-text P3), written directly
    - PNG, JPEG and anything else Pillow can encode, chosen by file extension

Example:
    >>> from pathtracer.output.export import save_image
    >>> save_image("output.ppm", result.pixels, result.width, result.height)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _as_image_array(pixels: npt.ArrayLike, width: int, height: int) -> npt.NDArray[np.uint8]:
    """Validate flat pixels and reshape them to (height, width, 3)."""
    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    array = np.asarray(pixels)
    if array.dtype != np.uint8:
        raise ValueError(f"Pixels must be uint8, got {array.dtype}")
    if array.size != width * height * 3:
        raise ValueError(
            f"Expected {width * height * 3} channel values for {width}x{height}, got {array.size}"
        )
    return array.reshape(height, width, 3)


def encode_ppm(pixels: npt.ArrayLike, width: int, height: int) -> str:
    """Encode pixels as plain-text PPM (P3).

    The header is ``P3``, the dimensions and the maximum value 255, followed
    by one ``r g b`` line per pixel, row-major from the top row.

    Args:
        pixels: Flat uint8 array of width * height * 3 channel values.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        The PPM text.

    Raises:
        ValueError: If the pixel data does not match the dimensions.
    """
    image = _as_image_array(pixels, width, height).reshape(-1, 3)
    lines = [f"P3\n{width} {height}\n255\n"]
    lines.extend(f"{r} {g} {b}\n" for r, g, b in image.tolist())
    return "".join(lines)


def save_image(path: PathLike, pixels: npt.ArrayLike, width: int, height: int) -> Path:
    """Save pixels to a file, choosing the format from the extension.

    ``.ppm`` files are written as plain-text P3; any other extension is
    encoded with Pillow.

    Args:
        path: Output file path.
        pixels: Flat uint8 array of width * height * 3 channel values.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        The path written.

    Raises:
        ValueError: If the pixel data does not match the dimensions or Pillow
            does not know the extension.
        OSError: If the file cannot be written.
    """
    path = Path(path)
    image = _as_image_array(pixels, width, height)

    if path.suffix.lower() == ".ppm":
        path.write_text(encode_ppm(image, width, height), encoding="ascii")
    else:
        pil_image = PILImage.fromarray(np.ascontiguousarray(image))
        pil_image.save(path)

    logger.info("Wrote %dx%d image to %s", width, height, path)
    return path

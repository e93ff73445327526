"""Image output: PPM text encoding and Pillow-backed file export."""

from .export import encode_ppm, save_image

__all__ = ["encode_ppm", "save_image"]

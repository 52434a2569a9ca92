"""
Pixel Source Adapter

Turns encoded image bytes (camera uploads, picked files) or raw arrays into
an immutable RGB(A) pixel buffer that the analyzer stages can share across
threads without locking.
"""
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from app.cv.errors import DecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PixelBuffer:
    """Read-only RGB(A) image with its geometry."""
    pixels: np.ndarray  # H x W x 3 (RGB) or H x W x 4 (RGBA), uint8, not writeable
    fingerprint: int  # Content hash, seeds per-image random fallbacks

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def has_alpha(self) -> bool:
        return self.pixels.shape[2] == 4

    @property
    def rgb(self) -> np.ndarray:
        """RGB view (alpha dropped)."""
        return self.pixels[:, :, :3]

    def rng(self, stream: int = 0) -> np.random.Generator:
        """
        Random generator seeded from the image content.

        The same image always drives the same fallback picks; `stream`
        separates the stages so they do not share a sequence.
        """
        return np.random.default_rng([self.fingerprint, stream])

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """
        Wrap an RGB(A) array.

        Accepts H x W (gray), H x W x 3 or H x W x 4 arrays of uint8, uint16
        or floats in [0, 1]. The data is copied and frozen.

        Raises:
            DecodeError: If the array is not image-shaped or has zero area
        """
        if array is None or not isinstance(array, np.ndarray):
            raise DecodeError("Image data is not an array")

        if array.ndim == 2:
            array = np.repeat(array[:, :, np.newaxis], 3, axis=2)

        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise DecodeError(f"Invalid image shape: {array.shape}, expected (H, W, 3) or (H, W, 4)")

        if array.shape[0] == 0 or array.shape[1] == 0:
            raise DecodeError(f"Image has zero area: {array.shape[1]}x{array.shape[0]}")

        pixels = np.ascontiguousarray(_to_uint8(array)).copy()
        pixels.flags.writeable = False

        digest = hashlib.blake2b(digest_size=8)
        digest.update(str(pixels.shape).encode())
        digest.update(pixels.tobytes())

        return cls(pixels=pixels, fingerprint=int.from_bytes(digest.digest(), "big"))


def _to_uint8(array: np.ndarray) -> np.ndarray:
    if array.dtype == np.uint8:
        return array
    if array.dtype == np.uint16:
        return (array // 257).astype(np.uint8)
    if np.issubdtype(array.dtype, np.floating):
        return np.clip(np.rint(array * 255.0), 0, 255).astype(np.uint8)
    return np.clip(array, 0, 255).astype(np.uint8)


def decode_image(data: bytes) -> PixelBuffer:
    """
    Decode encoded image bytes (JPEG, PNG, WebP, ...) into a PixelBuffer.

    Args:
        data: Encoded image bytes

    Returns:
        PixelBuffer in RGB or RGBA channel order

    Raises:
        DecodeError: If the bytes cannot be decoded or the image is empty
    """
    if not data:
        raise DecodeError("Image data is empty")

    try:
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DecodeError(f"Failed to decode image: {e}") from e

    if image is None or image.size == 0:
        raise DecodeError("Data could not be interpreted as an image")

    image = _to_uint8(image)

    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    elif image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    else:
        image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

    buffer = PixelBuffer.from_array(image)
    logger.debug(f"Decoded image {buffer.width}x{buffer.height} (alpha={buffer.has_alpha})")
    return buffer


def load_image(path: Union[str, Path]) -> PixelBuffer:
    """
    Read and decode an image file.

    Raises:
        DecodeError: If the file cannot be read or decoded
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise DecodeError(f"Failed to read image file {path}: {e}") from e
    return decode_image(data)


def compress_image(data: bytes, quality: int = 80) -> bytes:
    """
    Re-encode image bytes as JPEG for storage.

    Alpha is dropped. Raises DecodeError if the input is not an image.
    """
    buffer = decode_image(data)
    bgr = cv2.cvtColor(np.ascontiguousarray(buffer.rgb), cv2.COLOR_RGB2BGR)
    ok, encoded = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise DecodeError("Failed to encode image as JPEG")
    return encoded.tobytes()

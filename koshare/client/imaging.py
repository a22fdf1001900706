"""Photo helpers used when composing a check-in."""

import base64
import io

from PIL import Image

DATA_URL_PREFIX = 'data:image/jpeg;base64,'


def compress(image_bytes: bytes, max_dim: int = 200, quality: int = 60) -> str:
    """Shrink a photo to a JPEG data URL whose longest edge is at most *max_dim*.

    Images already small enough are re-encoded without upscaling.
    """
    img = Image.open(io.BytesIO(image_bytes))
    img.thumbnail((max_dim, max_dim))
    if img.mode != 'RGB':
        img = img.convert('RGB')
    output = io.BytesIO()
    img.save(output, format='JPEG', quality=quality)
    return DATA_URL_PREFIX + base64.b64encode(output.getvalue()).decode('ascii')


def maps_url(latitude: float, longitude: float) -> str:
    """Google Maps link for a coordinate pair, used as the share payload."""
    return f'https://www.google.com/maps?q={latitude},{longitude}'

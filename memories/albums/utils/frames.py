# albums/utils/frames.py
import base64
import binascii
from io import BytesIO

import numpy as np
from PIL import Image, UnidentifiedImageError


def decode_frame(frame_data: str) -> np.ndarray:
    """Decode a base64 image or data URL (``data:image/jpeg;base64,...``) to BGR"""
    if not frame_data or not isinstance(frame_data, str):
        raise ValueError("No frame data")

    encoded = frame_data.split(',', 1)[1] if frame_data.startswith('data:') else frame_data

    try:
        image_data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Frame is not valid base64")

    try:
        frame_image = Image.open(BytesIO(image_data))
        rgb = np.array(frame_image.convert('RGB'))
    except (UnidentifiedImageError, OSError):
        raise ValueError("Frame is not a decodable image")

    return np.ascontiguousarray(rgb[:, :, ::-1])


def encode_frame(frame: np.ndarray, fmt: str = 'JPEG', quality: int = 85) -> str:
    """Encode a BGR frame as a data URL"""
    image = Image.fromarray(np.ascontiguousarray(frame[:, :, ::-1]))
    buffer = BytesIO()
    image.save(buffer, format=fmt, quality=quality)
    mime = 'image/jpeg' if fmt.upper() == 'JPEG' else f'image/{fmt.lower()}'
    return f"data:{mime};base64," + base64.b64encode(buffer.getvalue()).decode('ascii')

import base64

import numpy as np
import pytest

from albums.utils.frames import decode_frame, encode_frame


def test_encoded_frame_decodes_to_bgr(texture):
    frame = texture()
    data_url = encode_frame(frame, fmt='PNG')

    assert data_url.startswith('data:image/png;base64,')
    assert np.array_equal(decode_frame(data_url), frame)


def test_plain_base64_accepted(texture):
    frame = texture()
    encoded = encode_frame(frame).split(',', 1)[1]

    decoded = decode_frame(encoded)
    assert decoded.shape == frame.shape


def test_channel_order_is_bgr():
    frame = np.zeros((4, 4, 3), dtype=np.uint8)
    frame[:, :, 2] = 255  # red in BGR
    decoded = decode_frame(encode_frame(frame, fmt='PNG'))
    assert tuple(decoded[0, 0]) == (0, 0, 255)


@pytest.mark.parametrize('data', [
    '',
    None,
    'data:image/jpeg;base64,!!!not-base64!!!',
    base64.b64encode(b'not an image').decode('ascii'),
])
def test_malformed_frames_rejected(data):
    with pytest.raises(ValueError):
        decode_frame(data)

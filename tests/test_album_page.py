import numpy as np
import pytest
from PIL import Image

from albums.ar_engine import ARDetector
from albums.utils.album_page import (AlbumPageLayout, make_target_image, pil_to_bgr,
                                     render_album_page, save_print_pdf)
from albums.utils.qr import make_qr_image


@pytest.fixture
def still(texture):
    return texture(240, 320, block=8, seed=4)


def test_page_is_a4_at_150_dpi(still):
    page, region = render_album_page(still, 'Annual Day 2025', 'Class 5 Performance',
                                     qr_data='http://localhost:8000/scan/?page=annual-day-2025')

    assert page.size == (1240, 1754)
    x0, y0, x1, y1 = region
    assert 0 < x0 < x1 < 1
    assert 0 < y0 < y1 < 1


def test_video_region_holds_the_still(still):
    page, region = render_album_page(still, 'Sports Day')
    x0, y0, x1, y1 = region
    width, height = page.size

    crop = np.array(page.crop((int(x0 * width), int(y0 * height), int(x1 * width), int(y1 * height))))
    assert crop.std() > 20


def test_custom_layout(still):
    layout = AlbumPageLayout(width=620, height=877, margin=35, mark_size=48)
    page, _ = render_album_page(still, 'Science Fair', layout=layout)
    assert page.size == (620, 877)


def test_empty_frame_rejected():
    with pytest.raises(ValueError):
        render_album_page(np.zeros((0, 0, 3), dtype=np.uint8), 'Nothing')


def test_rendered_page_is_a_good_target(still):
    page, _ = render_album_page(still, 'Annual Day 2025', 'Class 5 Performance')
    target = make_target_image(page)

    features = ARDetector().extract_features(pil_to_bgr(target))
    assert features.feature_count >= 100
    assert ARDetector.calculate_quality_score(features) > 0.3


def test_target_image_downscaled():
    page = Image.new('RGB', (1240, 1754), 'white')
    target = make_target_image(page, max_side=1024)
    assert max(target.size) == 1024
    assert target.size[0] == round(1240 * 1024 / 1754)


def test_small_page_not_upscaled():
    page = Image.new('RGB', (300, 400), 'white')
    assert make_target_image(page, max_side=1024).size == (300, 400)


def test_print_pdf(tmp_path, still):
    page, _ = render_album_page(still, 'Annual Day 2025')
    path = save_print_pdf(page, tmp_path / 'out' / 'page.pdf')

    assert path.read_bytes().startswith(b'%PDF')


def test_qr_image_is_rgb():
    image = make_qr_image('http://localhost:8000/scan/?page=x')
    assert image.mode == 'RGB'
    assert image.size[0] == image.size[1]

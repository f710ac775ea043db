import cv2
import numpy as np
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from albums.services import reset_detector


def blocky_texture(height=300, width=400, block=10, seed=0):
    """Random black/white/grey blocks: corner-rich and unique everywhere"""
    rng = np.random.default_rng(seed)
    cells = rng.choice([0, 90, 170, 255], size=(height // block, width // block)).astype(np.uint8)
    gray = cv2.resize(cells, (width, height), interpolation=cv2.INTER_NEAREST)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)


def place_on_canvas(image, canvas_size=(480, 640), offset=(100, 80), fill=128):
    """Paste an image onto a flat grey frame at (x, y)"""
    canvas = np.full((canvas_size[0], canvas_size[1], 3), fill, dtype=np.uint8)
    x, y = offset
    h, w = image.shape[:2]
    canvas[y:y + h, x:x + w] = image
    return canvas


def write_video(path, frames=20, fps=10.0, size=(320, 240), seed=1):
    width, height = size
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*'MJPG'), fps, (width, height))
    base = blocky_texture(height, width, block=8, seed=seed)
    for i in range(frames):
        frame = base.copy()
        cv2.putText(frame, str(i), (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (0, 0, 255), 2)
        writer.write(frame)
    writer.release()
    return path


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / 'media')
    return settings.MEDIA_ROOT


@pytest.fixture(autouse=True)
def fresh_detector():
    reset_detector()
    yield
    reset_detector()


@pytest.fixture
def texture():
    return blocky_texture


@pytest.fixture
def canvas():
    return place_on_canvas


@pytest.fixture
def video_path(tmp_path):
    return write_video(tmp_path / 'clip.avi')


@pytest.fixture
def video_upload(video_path):
    with open(video_path, 'rb') as f:
        return SimpleUploadedFile('annual-day.avi', f.read(), content_type='video/x-msvideo')


@pytest.fixture
def album_page(db, video_upload):
    from albums.models import AlbumPage
    return AlbumPage.objects.create(
        title='Annual Day 2025',
        subtitle='Class 5 Performance',
        video=video_upload,
    )


@pytest.fixture
def page_frame(album_page):
    """Camera frame showing the generated AR target of album_page"""
    album_page.refresh_from_db()
    target = cv2.imread(album_page.ar_target_image.path)
    h, w = target.shape[:2]
    return place_on_canvas(target, canvas_size=(h + 80, w + 160), offset=(80, 40))

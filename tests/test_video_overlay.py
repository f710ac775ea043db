import numpy as np
import pytest

from albums.ar_engine import VideoOverlayEngine


@pytest.fixture
def engine():
    return VideoOverlayEngine()


@pytest.fixture
def camera_frame():
    return np.zeros((240, 320, 3), dtype=np.uint8)


@pytest.fixture
def red_video():
    frame = np.zeros((90, 160, 3), dtype=np.uint8)
    frame[:, :] = (0, 0, 255)
    return frame


QUAD = [(100, 50), (220, 50), (220, 150), (100, 150)]


def test_video_fills_quad(engine, camera_frame, red_video):
    result = engine.apply_overlay(camera_frame, red_video, QUAD)

    assert result.shape == camera_frame.shape
    assert tuple(result[100, 160]) == (0, 0, 255)
    # Outside the quad stays untouched
    assert tuple(result[10, 10]) == (0, 0, 0)
    # Input frame is not modified
    assert camera_frame.max() == 0


def test_accepts_dict_corners(engine, camera_frame, red_video):
    corners = [{'x': x, 'y': y} for x, y in QUAD]
    result = engine.apply_overlay(camera_frame, red_video, corners)
    assert tuple(result[100, 160]) == (0, 0, 255)


def test_partial_opacity_blends(engine, camera_frame, red_video):
    result = engine.apply_overlay(camera_frame, red_video, QUAD, opacity=0.5)
    assert 120 <= result[100, 160, 2] <= 135
    assert tuple(result[10, 10]) == (0, 0, 0)


def test_invalid_corners_return_copy(engine, camera_frame, red_video):
    result = engine.apply_overlay(camera_frame, red_video, QUAD[:3])
    assert result is not camera_frame
    assert np.array_equal(result, camera_frame)


def test_missing_video_returns_copy(engine, camera_frame):
    result = engine.apply_overlay(camera_frame, None, QUAD)
    assert np.array_equal(result, camera_frame)


def test_camera_frame_required(engine, red_video):
    with pytest.raises(ValueError):
        engine.apply_overlay(None, red_video, QUAD)


def test_outline_drawn_in_place(engine, camera_frame):
    engine.draw_target_outline(camera_frame, QUAD, locked=True)
    assert tuple(camera_frame[50, 160]) == (0, 255, 0)

import pytest

from albums.utils.video_frames import LoopingVideo, extract_frame, video_info


def test_video_info(video_path):
    info = video_info(video_path)

    assert info['fps'] == pytest.approx(10.0)
    assert info['frame_count'] == 20
    assert info['duration'] == pytest.approx(2.0)
    assert (info['width'], info['height']) == (320, 240)


def test_extract_middle_frame(video_path):
    frame = extract_frame(video_path)
    assert frame.shape == (240, 320, 3)


def test_extract_frame_past_end_is_clamped(video_path):
    frame = extract_frame(video_path, at_seconds=60)
    assert frame.shape == (240, 320, 3)


def test_extract_frame_from_missing_file(tmp_path):
    with pytest.raises(ValueError):
        extract_frame(tmp_path / 'missing.mp4')


def test_extract_frame_from_garbage(tmp_path):
    bogus = tmp_path / 'bogus.mp4'
    bogus.write_bytes(b'definitely not a video')
    with pytest.raises(ValueError):
        extract_frame(bogus)


def test_looping_video_rewinds(video_path):
    with LoopingVideo(video_path) as video:
        frames = [video.read() for _ in range(45)]
    assert all(frame is not None for frame in frames)
    assert video.cap is None


def test_looping_video_rejects_missing_file(tmp_path):
    with pytest.raises(ValueError):
        LoopingVideo(tmp_path / 'missing.avi')

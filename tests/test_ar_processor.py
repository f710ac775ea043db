import json

import numpy as np
import pytest

from albums.ar_engine import ARConfig, ARDetector, ARProcessor


@pytest.fixture
def processor(texture):
    processor = ARProcessor(ARConfig(lock_frames=2))
    processor.add_target('page', image=texture(seed=1), video_region=[0.25, 0.25, 0.75, 0.75])
    yield processor
    processor.release()


@pytest.fixture
def red_video():
    frame = np.zeros((90, 160, 3), dtype=np.uint8)
    frame[:, :] = (0, 0, 255)
    return frame


def test_no_targets_is_an_error(texture):
    result = ARProcessor().process_single_frame(texture())
    assert result.success is False
    assert result.error == 'No targets registered'


def test_missing_frame_is_an_error(processor):
    result = processor.process_single_frame(None)
    assert result.success is False
    assert result.output_frame is None


def test_add_target_needs_image_or_features():
    with pytest.raises(ValueError):
        ARProcessor().add_target('x')


def test_add_precomputed_features(texture):
    features = ARDetector().extract_features(texture(seed=3))
    processor = ARProcessor()
    assert processor.add_target(7, features=features) == features.feature_count
    assert '7' in processor.detector


def test_overlay_only_once_locked(processor, texture, canvas, red_video):
    frame = canvas(texture(seed=1), offset=(100, 80))

    first = processor.process_single_frame(frame, video_frame=red_video)
    assert first.success
    assert first.tracking.status == 'detecting'
    assert np.array_equal(first.output_frame, frame)

    second = processor.process_single_frame(frame, video_frame=red_video)
    assert second.tracking.locked
    # Video covers the middle of the page: x 200-400, y 155-305
    assert tuple(second.output_frame[230, 300]) == (0, 0, 255)
    assert np.array_equal(second.output_frame[10, 10], frame[10, 10])
    assert second.performance_metrics['total_time'] > 0


def test_overlay_reads_target_video(processor, texture, canvas, video_path):
    assert processor.set_video_source('page', str(video_path))
    frame = canvas(texture(seed=1), offset=(100, 80))

    processor.process_single_frame(frame)
    result = processor.process_single_frame(frame)

    assert result.tracking.locked
    assert not np.array_equal(result.output_frame, frame)


def test_bad_video_source(processor, tmp_path):
    assert processor.set_video_source('page', str(tmp_path / 'missing.avi')) is False
    assert 'page' not in processor.video_sources


def test_processing_stats(processor, texture, canvas):
    processor.process_single_frame(canvas(texture(seed=1)))
    processor.process_single_frame(np.full((480, 640, 3), 128, dtype=np.uint8))

    stats = processor.get_processing_stats()
    assert stats['processing']['frames_processed'] == 2
    assert stats['processing']['frames_with_detection'] == 1
    assert stats['processing']['detection_rate_percent'] == pytest.approx(50.0)
    assert stats['detector']['targets'] == 1
    assert stats['config']['lock_frames'] == 2


def test_camera_stream_needs_targets():
    assert ARProcessor().start_camera_stream(0) is False


def test_configuration_round_trip(processor, tmp_path):
    path = tmp_path / 'ar.json'
    processor.config.overlay_opacity = 0.7
    processor.save_configuration(str(path))
    assert json.loads(path.read_text())['overlay_opacity'] == 0.7

    other = ARProcessor()
    other.add_target('page', features=processor.detector.targets['page'])
    assert other.load_configuration(str(path))
    assert other.config.overlay_opacity == 0.7
    assert other.tracker.lock_frames == 2
    assert 'page' in other.detector


def test_load_bad_configuration(processor, tmp_path):
    path = tmp_path / 'bad.json'
    path.write_text('{"no_such_option": 1}')
    assert processor.load_configuration(str(path)) is False
    assert processor.load_configuration(str(tmp_path / 'missing.json')) is False


def test_out_of_range_configuration_leaves_processor_unchanged(processor, tmp_path):
    path = tmp_path / 'rough.json'
    path.write_text('{"smoothing": 1.5}')
    detector, tracker = processor.detector, processor.tracker

    assert processor.load_configuration(str(path)) is False

    assert processor.config.smoothing == ARConfig().smoothing
    assert processor.detector is detector
    assert processor.tracker is tracker
    assert 'page' in processor.detector

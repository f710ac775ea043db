import numpy as np
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from albums import services
from albums.ar_engine import TargetFeatures
from albums.models import AlbumPage

pytestmark = pytest.mark.django_db


def test_build_album_page_generates_files(album_page):
    album_page.refresh_from_db()

    for field in album_page.generated_files():
        assert field
    assert album_page.page_pdf.read(4) == b'%PDF'
    album_page.page_pdf.close()

    features = TargetFeatures.from_dict(album_page.target_data)
    assert features.feature_count == album_page.feature_count > 100
    assert max(features.width, features.height) == 1024
    assert len(features.video_region) == 4
    assert 0 < album_page.tracking_quality <= 1
    assert album_page.error_message == ''


def test_unreadable_video_marks_page_failed():
    page = AlbumPage.objects.create(
        title='Broken upload',
        video=SimpleUploadedFile('broken.mp4', b'not a video', content_type='video/mp4'),
    )
    page.refresh_from_db()

    assert page.status == AlbumPage.STATUS_FAILED
    assert 'video' in page.error_message
    assert not page.ar_ready


def test_rebuilding_replaces_files(album_page):
    album_page.refresh_from_db()
    old_pdf = album_page.page_pdf.name

    services.build_album_page(album_page)
    album_page.refresh_from_db()

    assert album_page.status == AlbumPage.STATUS_READY
    assert album_page.page_pdf.storage.exists(album_page.page_pdf.name)
    assert album_page.page_pdf.name == old_pdf or not album_page.page_pdf.storage.exists(old_pdf)


def test_detector_tracks_ready_pages(album_page):
    detector = services.get_detector()
    assert str(album_page.pk) in detector
    assert services.get_detector() is detector

    AlbumPage.objects.filter(pk=album_page.pk).update(is_active=False)
    assert len(services.get_detector()) == 0


def test_scan_frame_locks_on_page(album_page, page_frame):
    session = services.start_session('pytest', '127.0.0.1')

    results = [services.scan_frame(page_frame, session=session) for _ in range(3)]

    assert all(r['marker_detected'] for r in results)
    assert results[0]['tracking']['status'] == 'detecting'
    assert results[-1]['tracking']['status'] == 'locked'
    assert results[-1]['album_page']['slug'] == album_page.slug
    assert results[-1]['session_id'] == str(session.session_id)

    session.refresh_from_db()
    assert session.frames_processed == 3
    assert session.detections_successful == 3
    assert session.album_page == album_page
    assert session.tracker_state['state']['status'] == 'locked'

    album_page.refresh_from_db()
    assert album_page.scan_count == 1
    assert album_page.successful_detections == 3


def test_scan_frame_counts_lost_page(album_page, page_frame):
    session = services.start_session()
    services.scan_frame(page_frame, session=session)

    result = services.scan_frame(np.full((480, 640, 3), 128, dtype=np.uint8), session=session)

    assert not result['marker_detected']
    assert result['tracking']['status'] == 'idle'
    album_page.refresh_from_db()
    assert album_page.failed_detections == 1


def test_scan_frame_without_session(album_page, page_frame):
    result = services.scan_frame(page_frame)
    assert result['session_id'] is None
    assert result['marker_detected']
    assert result['detections'][0]['corners']


def test_end_session_is_idempotent():
    session = services.start_session()
    services.end_session(session)
    ended_at = session.ended_at

    services.end_session(session)

    assert session.ended_at == ended_at
    assert not session.is_active

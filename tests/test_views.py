import json
import uuid

import pytest
from django.urls import reverse

from albums.models import AlbumPage, ScanSession
from albums.utils.frames import encode_frame

pytestmark = pytest.mark.django_db


def post_json(client, url, data):
    return client.post(url, data=json.dumps(data), content_type='application/json')


def test_home_lists_pages(client, album_page):
    response = client.get(reverse('home'))
    assert response.status_code == 200
    assert album_page.title in response.content.decode()


def test_upload_creates_ready_page(client, video_upload):
    response = client.post(reverse('upload_view'), {
        'title': 'Sports Day 2025',
        'subtitle': 'Relay race',
        'video': video_upload,
    })

    page = AlbumPage.objects.get(slug='sports-day-2025')
    assert response.status_code == 302
    assert response['Location'] == page.get_absolute_url()
    assert page.status == AlbumPage.STATUS_READY


def test_upload_form_errors_rerender(client):
    response = client.post(reverse('upload_view'), {'title': 'AD'})
    assert response.status_code == 200
    assert AlbumPage.objects.count() == 0


def test_detail_page(client, album_page):
    response = client.get(album_page.get_absolute_url())
    assert response.status_code == 200
    assert 'Download PDF' in response.content.decode()


def test_detail_missing_page(client):
    assert client.get(reverse('album_page_detail', args=['nope'])).status_code == 404


@pytest.mark.parametrize('kind,content_type,magic', [
    ('pdf', 'application/pdf', b'%PDF'),
    ('png', 'image/png', b'\x89PNG'),
    ('target', 'image/png', b'\x89PNG'),
])
def test_downloads(client, album_page, kind, content_type, magic):
    response = client.get(reverse('download_album_page', args=[album_page.slug, kind]))

    assert response.status_code == 200
    assert response['Content-Type'] == content_type
    assert b''.join(response.streaming_content).startswith(magic)
    response.close()


def test_unknown_download(client, album_page):
    response = client.get(reverse('download_album_page', args=[album_page.slug, 'zip']))
    assert response.status_code == 404


def test_scanner_page(client, album_page):
    response = client.get(reverse('scanner'), {'page': album_page.slug})
    assert response.status_code == 200
    assert '/ws/scan/' in response.content.decode()


def test_targets_api(client, album_page):
    AlbumPage.objects.create(title='Not generated')

    data = client.get(reverse('targets_api')).json()

    assert data['success'] is True
    assert data['count'] == 1
    target = data['targets'][0]
    assert target['slug'] == album_page.slug
    assert target['video_url'].startswith('http://testserver/media/')
    assert target['target_width'] == 724
    assert target['target_height'] == 1024
    assert len(target['video_region']) == 4


def test_scan_api_locks_within_session(client, album_page, page_frame):
    session_id = client.post(reverse('start_session_api')).json()['session_id']
    frame = encode_frame(page_frame, fmt='PNG')

    for count in range(1, 4):
        data = post_json(client, reverse('scan_api'),
                         {'frame': frame, 'session_id': session_id, 'frame_count': count}).json()

    assert data['success'] is True
    assert data['frame_count'] == 3
    assert data['marker_detected'] is True
    assert data['tracking']['locked'] is True
    assert data['album_page']['slug'] == album_page.slug
    assert data['album_page']['video_url'].startswith('http://testserver/media/videos/')


def test_scan_api_starts_session_when_missing(client, album_page, page_frame):
    data = post_json(client, reverse('scan_api'), {'frame': encode_frame(page_frame)}).json()

    assert data['success'] is True
    assert ScanSession.objects.filter(session_id=data['session_id']).exists()


@pytest.mark.parametrize('body,status', [
    ({'frame': 'data:image/jpeg;base64,%%%'}, 400),
    ({}, 400),
    ({'frame': 'abc', 'session_id': 'not-a-uuid'}, 400),
])
def test_scan_api_bad_requests(client, body, status):
    response = post_json(client, reverse('scan_api'), body)
    assert response.status_code == status
    assert response.json()['success'] is False


def test_scan_api_unknown_session(client, page_frame):
    response = post_json(client, reverse('scan_api'),
                         {'frame': encode_frame(page_frame), 'session_id': str(uuid.uuid4())})
    assert response.status_code == 404


def test_scan_api_rejects_invalid_json(client):
    response = client.post(reverse('scan_api'), data='{not json', content_type='application/json')
    assert response.status_code == 400


def test_scan_api_method(client):
    assert client.get(reverse('scan_api')).status_code == 405


def test_session_lifecycle(client, album_page, page_frame):
    response = client.post(reverse('start_session_api'))
    assert response.status_code == 201
    session_id = response.json()['session_id']

    post_json(client, reverse('scan_api'), {'frame': encode_frame(page_frame), 'session_id': session_id})
    data = client.post(reverse('end_session_api', args=[session_id])).json()

    assert data['success'] is True
    assert data['frames_processed'] == 1
    assert data['success_rate'] == pytest.approx(100.0)

    response = post_json(client, reverse('scan_api'), {'frame': encode_frame(page_frame), 'session_id': session_id})
    assert response.status_code == 400


def test_end_unknown_session(client):
    response = client.post(reverse('end_session_api', args=[uuid.uuid4()]))
    assert response.status_code == 404


def test_status_api(client, album_page):
    data = client.get(reverse('album_status_api', args=[album_page.slug])).json()

    assert data['success'] is True
    assert data['generation']['status'] == 'ready'
    assert data['generation']['ready'] is True
    assert data['media']['page_pdf_url'].endswith('.pdf')
    assert data['scan_stats']['total_scans'] == 0


def test_status_api_missing_page(client):
    response = client.get(reverse('album_status_api', args=['nope']))
    assert response.status_code == 404
    assert response.json() == {'success': False, 'error': 'Album page not found'}


def test_regenerate_api(client, album_page):
    response = client.post(reverse('regenerate_api', args=[album_page.slug]))
    assert response.status_code == 200
    assert response.json()['feature_count'] > 100


def test_regenerate_api_requires_post(client, album_page):
    assert client.get(reverse('regenerate_api', args=[album_page.slug])).status_code == 405

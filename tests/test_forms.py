import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from albums.forms import AlbumPageForm

pytestmark = pytest.mark.django_db


def make_form(video, **data):
    fields = {'title': 'Annual Day 2025', 'subtitle': 'Class 5 Performance'}
    fields.update(data)
    return AlbumPageForm(data=fields, files={'video': video})


def test_valid_upload(video_upload):
    form = make_form(video_upload, title='  Annual   Day  2025 ')
    assert form.is_valid(), form.errors
    assert form.cleaned_data['title'] == 'Annual Day 2025'


def test_short_title_rejected(video_upload):
    form = make_form(video_upload, title='AD')
    assert not form.is_valid()
    assert 'title' in form.errors


def test_wrong_content_type_rejected():
    video = SimpleUploadedFile('clip.mp4', b'....', content_type='image/png')
    form = make_form(video)
    assert not form.is_valid()
    assert 'video' in form.errors


def test_wrong_extension_rejected():
    video = SimpleUploadedFile('clip.exe', b'....', content_type='video/mp4')
    form = make_form(video)
    assert not form.is_valid()
    assert 'video' in form.errors


def test_oversized_video_rejected(settings, video_upload):
    settings.ALBUM_AR = {'MAX_VIDEO_SIZE': 1024}
    form = make_form(video_upload)
    assert not form.is_valid()
    assert 'too large' in form.errors['video'][0]


def test_negative_poster_time_rejected(video_upload):
    form = make_form(video_upload, poster_time='-2')
    assert not form.is_valid()
    assert 'poster_time' in form.errors

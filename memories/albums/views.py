import json
import logging
import time

import cv2
from django.contrib import messages
from django.core.exceptions import ValidationError
from django.http import FileResponse, Http404, JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.csrf import csrf_exempt

from .forms import AlbumPageForm
from .models import AlbumPage, ScanSession
from .services import album_page_summary, build_album_page, end_session, scan_frame, start_session
from .utils.frames import decode_frame

logger = logging.getLogger(__name__)

DOWNLOADS = {
    'png': ('page_image', 'image/png', '{slug}.png'),
    'pdf': ('page_pdf', 'application/pdf', '{slug}.pdf'),
    'target': ('ar_target_image', 'image/png', '{slug}-target.png'),
}


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================
def _error(message, status):
    return JsonResponse({'success': False, 'error': message}, status=status)


def _method_not_allowed():
    return _error('Method not allowed', 405)


def _client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR') or None


def _json_body(request):
    try:
        data = json.loads(request.body or b'{}')
    except (ValueError, UnicodeDecodeError):
        raise ValueError('Invalid JSON body')
    if not isinstance(data, dict):
        raise ValueError('JSON body must be an object')
    return data


def _get_session(session_id):
    try:
        return ScanSession.objects.filter(session_id=session_id).first()
    except ValidationError:
        return None


def _absolute_media(request, summary):
    for key in ('video_url', 'target_image_url', 'page_image_url'):
        if summary.get(key):
            summary[key] = request.build_absolute_uri(summary[key])
    return summary


# ============================================================================
# CORE VIEWS
# ============================================================================
def home(request):
    """Home page view"""
    pages = AlbumPage.objects.filter(is_active=True)[:12]
    return render(request, "albums/home.html", {'pages': pages})


def upload_view(request):
    """Upload a school video and generate its printable AR page"""
    if request.method == 'POST':
        form = AlbumPageForm(request.POST, request.FILES)

        if form.is_valid():
            # post_save generates the page, PDF, QR code and target
            page = form.save()
            page.refresh_from_db()

            if page.status == AlbumPage.STATUS_READY:
                messages.success(request, f'Album page "{page.title}" is ready to print!')
            else:
                messages.error(request, f'Album page "{page.title}" could not be generated: {page.error_message}')
            return redirect(page.get_absolute_url())

        logger.info(f"Upload rejected: {form.errors.as_json()}")
    else:
        form = AlbumPageForm()

    context = {
        'form': form,
        'recent_pages': AlbumPage.objects.all()[:10],
    }
    return render(request, 'albums/upload.html', context)


def album_page_detail(request, slug):
    page = get_object_or_404(AlbumPage, slug=slug)

    context = {
        'page': page,
        'ar_ready': page.ar_ready,
        'scan_url': page.get_scan_url(),
        'video_url': page.video.url if page.video else None,
        'stats': page.scan_stats,
    }
    return render(request, 'albums/detail.html', context)


def download_album_page(request, slug, kind):
    """Serve the printable PNG, PDF or the AR target image"""
    if kind not in DOWNLOADS:
        raise Http404(f"Unknown download '{kind}'")

    page = get_object_or_404(AlbumPage, slug=slug)
    field_name, content_type, filename = DOWNLOADS[kind]
    field = getattr(page, field_name)
    if not field:
        raise Http404(f"Album page '{slug}' has no {kind} file yet")

    try:
        handle = field.open('rb')
    except (FileNotFoundError, ValueError):
        raise Http404(f"File missing for album page '{slug}'")

    return FileResponse(handle, as_attachment=True, filename=filename.format(slug=slug),
                        content_type=content_type)


def scanner(request):
    """Camera scanner page"""
    context = {
        'page_slug': request.GET.get('page', ''),
        'ready_count': AlbumPage.objects.ready().count(),
    }
    return render(request, "albums/scanner.html", context)


# ============================================================================
# SCANNING API
# ============================================================================
def targets_api(request):
    """Ready AR targets for client-side trackers"""
    if request.method != 'GET':
        return _method_not_allowed()

    targets = [_absolute_media(request, album_page_summary(page)) for page in AlbumPage.objects.ready()]
    return JsonResponse({'success': True, 'count': len(targets), 'targets': targets})


@csrf_exempt
def scan_api(request):
    """Detect album pages in one camera frame"""
    if request.method != 'POST':
        return _method_not_allowed()

    try:
        data = _json_body(request)
        frame = decode_frame(data.get('frame') or '')
    except ValueError as e:
        return _error(str(e), 400)

    session_id = data.get('session_id')
    if session_id:
        session = _get_session(session_id)
        if session is None:
            return _error('Scan session not found', 404)
        if not session.is_active:
            return _error('Scan session has ended', 400)
    else:
        session = start_session(request.META.get('HTTP_USER_AGENT', ''), _client_ip(request))

    try:
        result = scan_frame(frame, session=session)
    except (ValueError, cv2.error) as e:
        logger.error(f"Frame scan failed for session {session.session_id}: {str(e)}")
        return _error('Frame processing failed', 500)

    if result['album_page']:
        _absolute_media(request, result['album_page'])
    result['frame_count'] = data.get('frame_count', session.frames_processed)
    return JsonResponse(result)


@csrf_exempt
def start_session_api(request):
    if request.method != 'POST':
        return _method_not_allowed()

    session = start_session(request.META.get('HTTP_USER_AGENT', ''), _client_ip(request))
    return JsonResponse({
        'success': True,
        'session_id': str(session.session_id),
        'started_at': session.started_at.isoformat(),
    }, status=201)


@csrf_exempt
def end_session_api(request, session_id):
    if request.method != 'POST':
        return _method_not_allowed()

    session = _get_session(session_id)
    if session is None:
        return _error('Scan session not found', 404)

    end_session(session)
    return JsonResponse({
        'success': True,
        'session_id': str(session.session_id),
        'frames_processed': session.frames_processed,
        'detections_successful': session.detections_successful,
        'success_rate': session.success_rate,
        'ended_at': session.ended_at.isoformat(),
    })


# ============================================================================
# ALBUM PAGE API
# ============================================================================
def album_status_api(request, slug):
    """Generation status and scan statistics of one page"""
    if request.method != 'GET':
        return _method_not_allowed()

    try:
        page = AlbumPage.objects.get(slug=slug)
    except AlbumPage.DoesNotExist:
        return _error('Album page not found', 404)

    return JsonResponse({
        'success': True,
        'album_page': {
            'title': page.title,
            'slug': page.slug,
            'created': page.created_at.isoformat(),
        },
        'generation': {
            'status': page.status,
            'ready': page.ar_ready,
            'error': page.error_message or None,
            'feature_count': page.feature_count,
            'tracking_quality': page.tracking_quality,
            'processing_time': page.processing_time,
        },
        'media': {
            'video_url': page.video.url if page.video else None,
            'page_image_url': page.page_image.url if page.page_image else None,
            'page_pdf_url': page.page_pdf.url if page.page_pdf else None,
            'target_image_url': page.ar_target_image.url if page.ar_target_image else None,
            'qr_code_url': page.qr_code.url if page.qr_code else None,
        },
        'scan_stats': page.scan_stats,
        'timestamp': int(time.time()),
    })


@csrf_exempt
def regenerate_api(request, slug):
    """Re-run page and target generation"""
    if request.method != 'POST':
        return _method_not_allowed()

    try:
        page = AlbumPage.objects.get(slug=slug)
    except AlbumPage.DoesNotExist:
        return _error('Album page not found', 404)

    page = build_album_page(page)
    if page.status != AlbumPage.STATUS_READY:
        return _error(f"Generation failed: {page.error_message}", 500)

    return JsonResponse({
        'success': True,
        'status': page.status,
        'feature_count': page.feature_count,
        'tracking_quality': page.tracking_quality,
        'processing_time': page.processing_time,
    })

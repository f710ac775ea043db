# albums/services.py
"""
Album page generation and frame scanning shared by views, websocket
consumers and management commands.
"""
import logging
import threading
import time
from io import BytesIO

import cv2
from django.core.files.base import ContentFile
from django.db.models import F
from django.utils import timezone

from .ar_engine import ARDetector, TargetFeatures, TargetTracker
from .ar_engine.tracker import LOCKED
from .conf import get_setting
from .models import AlbumPage, ScanSession
from .utils.album_page import (AlbumPageLayout, make_target_image, pil_to_bgr,
                               render_album_page, save_print_pdf)
from .utils.qr import make_qr_image
from .utils.video_frames import extract_frame

logger = logging.getLogger(__name__)

_detector_lock = threading.RLock()
_detector = None
_detector_signature = None


# ============================================================================
# FACTORIES
# ============================================================================
def build_detector() -> ARDetector:
    return ARDetector(
        n_features=get_setting("ORB_FEATURES"),
        max_match_distance=get_setting("MAX_MATCH_DISTANCE"),
        min_good_matches=get_setting("MIN_GOOD_MATCHES"),
        ransac_threshold=get_setting("RANSAC_THRESHOLD"),
        min_corner_confidence=get_setting("MIN_CORNER_CONFIDENCE"),
    )


def tracker_defaults():
    return {
        'smoothing': get_setting("SMOOTHING"),
        'lock_confidence': get_setting("LOCK_CONFIDENCE"),
        'lock_frames': get_setting("LOCK_FRAMES"),
        'lost_frames': get_setting("LOST_FRAMES"),
    }


def build_tracker(state=None) -> TargetTracker:
    return TargetTracker.from_dict(state, **tracker_defaults())


# ============================================================================
# ALBUM PAGE GENERATION
# ============================================================================
def _png_bytes(image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


def _replace_file(field, name, data):
    if field:
        field.delete(save=False)
    field.save(name, ContentFile(data), save=False)


def scan_link(page: AlbumPage) -> str:
    return get_setting("SITE_URL").rstrip('/') + page.get_scan_url()


def build_album_page(page: AlbumPage) -> AlbumPage:
    """
    Generate the printable page, PDF, QR code and AR target for a page.

    The record ends up ``ready`` with target features stored, or ``failed``
    with the reason in ``error_message``.
    """
    start_time = time.time()
    logger.info(f"Generating album page for {page.slug}")

    try:
        frame = extract_frame(page.video.path, page.poster_time)

        layout = AlbumPageLayout(
            width=get_setting("PAGE_WIDTH"),
            height=get_setting("PAGE_HEIGHT"),
            dpi=get_setting("PAGE_DPI"),
        )
        qr_data = scan_link(page)
        page_img, video_region = render_album_page(
            frame,
            title=page.title,
            subtitle=page.subtitle,
            album_name=page.album_name or get_setting("DEFAULT_ALBUM_NAME"),
            caption=get_setting("SCAN_CAPTION"),
            qr_data=qr_data,
            layout=layout,
        )

        target_img = make_target_image(page_img, get_setting("TARGET_MAX_SIDE"))
        features = build_detector().extract_features(pil_to_bgr(target_img), video_region=video_region)
        quality = ARDetector.calculate_quality_score(features)

        pdf_buffer = BytesIO()
        save_print_pdf(page_img, pdf_buffer, dpi=layout.dpi)

        _replace_file(page.page_image, f"{page.slug}.png", _png_bytes(page_img))
        _replace_file(page.page_pdf, f"{page.slug}.pdf", pdf_buffer.getvalue())
        _replace_file(page.ar_target_image, f"{page.slug}-target.png", _png_bytes(target_img))
        _replace_file(page.qr_code, f"{page.slug}.png", _png_bytes(make_qr_image(qr_data)))

    except (ValueError, OSError, cv2.error) as e:
        logger.error(f"❌ Album page generation failed for {page.slug}: {str(e)}")
        page.status = AlbumPage.STATUS_FAILED
        page.error_message = str(e)
        page.processing_time = time.time() - start_time
        page.save(update_fields=['status', 'error_message', 'processing_time', 'updated_at'])
        return page

    page.target_data = features.to_dict()
    page.feature_count = features.feature_count
    page.tracking_quality = quality
    page.status = AlbumPage.STATUS_READY
    page.error_message = ''
    page.processing_time = time.time() - start_time
    page.save()

    if features.feature_count < get_setting("MIN_GOOD_MATCHES"):
        logger.warning(f"Only {features.feature_count} features on {page.slug}, scanning may be unreliable")

    logger.info(f"✅ Album page {page.slug} ready: {features.feature_count} features, "
                f"quality {quality:.2f}, {page.processing_time:.2f}s")
    return page


# ============================================================================
# SHARED DETECTOR
# ============================================================================
def get_detector() -> ARDetector:
    """Process-wide detector holding every ready page, rebuilt when pages change"""
    global _detector, _detector_signature

    signature = tuple(AlbumPage.objects.ready().order_by('pk').values_list('pk', 'updated_at'))

    with _detector_lock:
        if _detector is not None and signature == _detector_signature:
            return _detector

        detector = build_detector()
        for page in AlbumPage.objects.ready().filter(pk__in=[pk for pk, _ in signature]):
            try:
                detector.add_target_features(page.pk, TargetFeatures.from_dict(page.target_data))
            except ValueError as e:
                logger.error(f"Skipping target for {page.slug}: {str(e)}")

        _detector = detector
        _detector_signature = signature
        logger.info(f"Detector rebuilt with {len(detector)} album page targets")
        return _detector


def reset_detector():
    global _detector, _detector_signature
    with _detector_lock:
        _detector = None
        _detector_signature = None


# ============================================================================
# SCANNING
# ============================================================================
def album_page_summary(page: AlbumPage) -> dict:
    target = page.target_data or {}
    return {
        'id': page.pk,
        'slug': page.slug,
        'title': page.title,
        'subtitle': page.subtitle,
        'video_url': page.video.url if page.video else None,
        'target_image_url': page.ar_target_image.url if page.ar_target_image else None,
        'page_image_url': page.page_image.url if page.page_image else None,
        'target_width': target.get('width'),
        'target_height': target.get('height'),
        'video_region': target.get('video_region'),
        'feature_count': page.feature_count,
        'tracking_quality': page.tracking_quality,
    }


def start_session(user_agent='', ip_address=None) -> ScanSession:
    session = ScanSession.objects.create(user_agent=user_agent[:500], ip_address=ip_address)
    logger.info(f"Scan session {session.session_id} started")
    return session


def end_session(session: ScanSession) -> ScanSession:
    if session.ended_at is None:
        session.ended_at = timezone.now()
        session.save(update_fields=['ended_at'])
        logger.info(f"Scan session {session.session_id} ended after {session.frames_processed} frames")
    return session


def scan_frame(frame, session: ScanSession = None, tracker: TargetTracker = None) -> dict:
    """
    Detect album pages in one camera frame.

    Tracker state comes from ``tracker`` when given (websocket connections),
    otherwise from the session record (HTTP clients), otherwise it is fresh.
    """
    start_time = time.time()

    if tracker is None:
        tracker = build_tracker(session.tracker_state if session else None)

    detector = get_detector()
    with _detector_lock:
        results = detector.detect(frame)

    previous_target = tracker.state.target_id
    previous_status = tracker.state.status
    state = tracker.update(results)
    best = ARDetector.best_match(results)

    elapsed_ms = (time.time() - start_time) * 1000

    page = None
    if state.target_id is not None:
        page = AlbumPage.objects.filter(pk=int(state.target_id)).first()

    if best is not None and page is not None:
        page.update_scan_stats(detection_success=True, detection_time=elapsed_ms)
        if state.status == LOCKED and previous_status != LOCKED:
            AlbumPage.objects.filter(pk=page.pk).update(scan_count=F("scan_count") + 1)
            page.scan_count += 1
    elif best is None and previous_target is not None:
        missed = AlbumPage.objects.filter(pk=int(previous_target)).first()
        if missed is not None:
            missed.update_scan_stats(detection_success=False, detection_time=elapsed_ms)

    if session is not None:
        session.frames_processed += 1
        if best is not None:
            session.detections_successful += 1
        if page is not None:
            session.album_page = page
        session.tracker_state = tracker.to_dict()
        session.save(update_fields=['frames_processed', 'detections_successful',
                                    'album_page', 'tracker_state'])

    return {
        'success': True,
        'session_id': str(session.session_id) if session else None,
        'marker_detected': best is not None,
        'detections': [r.to_dict() for r in results.values()],
        'tracking': state.to_dict(),
        'album_page': album_page_summary(page) if page is not None else None,
        'processing_time': elapsed_ms,
    }

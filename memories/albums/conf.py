# albums/conf.py
"""Album AR tunables, overridable through ``settings.ALBUM_AR``."""
from django.conf import settings

DEFAULTS = {
    # Detector
    "ORB_FEATURES": 500,
    "MAX_MATCH_DISTANCE": 50,
    "MIN_GOOD_MATCHES": 10,
    "RANSAC_THRESHOLD": 5.0,
    "MIN_CORNER_CONFIDENCE": 0.3,
    # Tracker
    "SMOOTHING": 0.6,
    "LOCK_CONFIDENCE": 0.5,
    "LOCK_FRAMES": 3,
    "LOST_FRAMES": 5,
    # Album page generation
    "DEFAULT_ALBUM_NAME": "School Memories Album",
    "SCAN_CAPTION": "Scan this page with the Memories app to watch the video!",
    "PAGE_WIDTH": 1240,
    "PAGE_HEIGHT": 1754,
    "PAGE_DPI": 150,
    "TARGET_MAX_SIDE": 1024,
    # Upload limits
    "MAX_VIDEO_SIZE": 100 * 1024 * 1024,
    # Absolute base used in the QR code printed on each page
    "SITE_URL": "http://localhost:8000",
}


def get_setting(name):
    """Return ``ALBUM_AR[name]`` falling back to the built-in default."""
    overrides = getattr(settings, "ALBUM_AR", None) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]

# albums/models.py - Album pages generated from school videos
import logging
import os
import uuid

from django.core.validators import FileExtensionValidator
from django.db import models
from django.urls import reverse
from django.utils.text import slugify

from .conf import get_setting

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = ["mp4", "mov", "webm", "avi", "m4v"]


def validate_and_truncate_filename(instance, filename):
    """Truncate long filenames and ensure they're safe"""
    name, ext = os.path.splitext(filename)

    # Remove or replace problematic characters
    safe_name = "".join(c for c in name if c.isalnum() or c in (' ', '-', '_')).strip()

    # Truncate if too long (leave room for extension and unique suffix)
    max_length = 80
    if len(safe_name) > max_length:
        safe_name = safe_name[:max_length]

    # Add unique suffix if name is generic or empty
    if not safe_name or safe_name.lower() in ['undefined', 'untitled', 'image', 'video', 'blob']:
        safe_name = f"file_{uuid.uuid4().hex[:8]}"

    return f"{safe_name}{ext.lower()}"


def _delete_file(path):
    """Delete a file, logging rather than failing if it cannot be removed"""
    try:
        if path and os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning(f"Could not delete file {path}: {e}")


# Upload path functions
def album_video_path(instance, filename):
    return f"videos/{validate_and_truncate_filename(instance, filename)}"


def album_page_image_path(instance, filename):
    return f"pages/{filename}"


def album_page_pdf_path(instance, filename):
    return f"pages/pdf/{filename}"


def ar_target_image_path(instance, filename):
    return f"targets/{filename}"


def album_qr_path(instance, filename):
    return f"qrcodes/{filename}"


class AlbumPageQuerySet(models.QuerySet):
    def ready(self):
        """Pages that can be scanned: active, with a generated target and a video"""
        return (
            self.filter(is_active=True, status=AlbumPage.STATUS_READY)
            .exclude(ar_target_image='')
            .exclude(video='')
            .exclude(target_data__isnull=True)
        )


class AlbumPage(models.Model):
    """A printable album page linked to the school video it plays in AR"""

    STATUS_PENDING = 'pending'
    STATUS_READY = 'ready'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending generation'),
        (STATUS_READY, 'Ready to scan'),
        (STATUS_FAILED, 'Generation failed'),
    ]

    # Page content
    title = models.CharField(max_length=200, help_text="Event title, e.g. Annual Day 2025")
    subtitle = models.CharField(max_length=200, blank=True, help_text="e.g. Class 5 Performance")
    album_name = models.CharField(max_length=200, blank=True, help_text="Page heading")
    slug = models.SlugField(max_length=60, unique=True, blank=True)

    video = models.FileField(
        upload_to=album_video_path,
        validators=[FileExtensionValidator(allowed_extensions=VIDEO_EXTENSIONS)],
        help_text="School video played over the printed page"
    )
    poster_time = models.FloatField(
        null=True,
        blank=True,
        help_text="Second of the video used as the page still (default: middle)"
    )

    # Generated files
    page_image = models.ImageField(upload_to=album_page_image_path, blank=True, editable=False)
    page_pdf = models.FileField(upload_to=album_page_pdf_path, blank=True, editable=False)
    ar_target_image = models.ImageField(upload_to=ar_target_image_path, blank=True, editable=False)
    qr_code = models.ImageField(upload_to=album_qr_path, blank=True, editable=False)

    # Detector data
    target_data = models.JSONField(
        null=True,
        blank=True,
        editable=False,
        help_text="ORB keypoints/descriptors of the AR target (auto-generated)"
    )
    feature_count = models.IntegerField(default=0)
    tracking_quality = models.FloatField(default=0.0, help_text="Target quality score (0-1)")
    processing_time = models.FloatField(default=0.0, help_text="Page generation time (seconds)")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    error_message = models.TextField(blank=True)

    # Scan analytics
    scan_count = models.IntegerField(default=0)
    successful_detections = models.IntegerField(default=0)
    failed_detections = models.IntegerField(default=0)
    average_detection_time = models.FloatField(default=0.0, help_text="Milliseconds")

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AlbumPageQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.get_status_display()})"

    def save(self, *args, **kwargs):
        if not self.slug:
            base_slug = slugify(self.title)[:50] or f"page-{uuid.uuid4().hex[:8]}"
            slug = base_slug
            count = 1
            while AlbumPage.objects.filter(slug=slug).exists():
                slug = f"{base_slug}-{count}"
                count += 1
            self.slug = slug
        if not self.album_name:
            self.album_name = get_setting("DEFAULT_ALBUM_NAME")
        super().save(*args, **kwargs)

    @property
    def ar_ready(self):
        return (
            self.status == self.STATUS_READY
            and bool(self.target_data)
            and bool(self.ar_target_image)
            and bool(self.video)
        )

    @property
    def detection_success_rate(self):
        total = self.successful_detections + self.failed_detections
        if total == 0:
            return 0.0
        return (self.successful_detections / total) * 100.0

    @property
    def scan_stats(self):
        return {
            'quality_score': self.tracking_quality,
            'feature_count': self.feature_count,
            'success_rate': self.detection_success_rate,
            'avg_detection_time': self.average_detection_time,
            'total_scans': self.scan_count,
        }

    def update_scan_stats(self, detection_success=True, detection_time=0.0):
        """Fold one detection attempt (time in ms) into the running averages"""
        if detection_success:
            self.successful_detections += 1
        else:
            self.failed_detections += 1

        total_detections = self.successful_detections + self.failed_detections
        if total_detections > 1:
            self.average_detection_time = (
                (self.average_detection_time * (total_detections - 1) + detection_time) /
                total_detections
            )
        else:
            self.average_detection_time = detection_time

        self.save(update_fields=[
            'successful_detections',
            'failed_detections',
            'average_detection_time',
        ])

    def get_absolute_url(self):
        return reverse('album_page_detail', kwargs={'slug': self.slug})

    def get_scan_url(self):
        return reverse('scanner') + f"?page={self.slug}"

    def generated_files(self):
        return [self.page_image, self.page_pdf, self.ar_target_image, self.qr_code]

    def delete(self, *args, **kwargs):
        """Clean up uploaded and generated files when deleting"""
        file_paths = []
        for field in [self.video] + self.generated_files():
            if field:
                try:
                    file_paths.append(field.path)
                except (ValueError, NotImplementedError):
                    pass

        result = super().delete(*args, **kwargs)

        for path in file_paths:
            _delete_file(path)
        return result


class ScanSession(models.Model):
    """One camera scanning session, with its tracker state between frames"""

    session_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    album_page = models.ForeignKey(
        AlbumPage,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='scan_sessions',
        help_text="Last album page recognised in this session"
    )
    started_at = models.DateTimeField(auto_now_add=True)
    ended_at = models.DateTimeField(null=True, blank=True)

    frames_processed = models.IntegerField(default=0)
    detections_successful = models.IntegerField(default=0)
    tracker_state = models.JSONField(null=True, blank=True)

    # Device info
    user_agent = models.TextField(blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    class Meta:
        ordering = ['-started_at']

    def __str__(self):
        return f"Scan session {self.session_id}"

    @property
    def is_active(self):
        return self.ended_at is None

    @property
    def success_rate(self):
        if self.frames_processed == 0:
            return 0.0
        return (self.detections_successful / self.frames_processed) * 100.0

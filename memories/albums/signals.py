# albums/signals.py
import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import AlbumPage

logger = logging.getLogger(__name__)


@receiver(post_save, sender=AlbumPage)
def generate_page_after_upload(sender, instance: AlbumPage, created, raw=False, **kwargs):
    if not created or raw or not instance.video:
        return

    from .services import build_album_page
    build_album_page(instance)

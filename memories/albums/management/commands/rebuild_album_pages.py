# albums/management/commands/rebuild_album_pages.py
from django.core.management.base import BaseCommand, CommandError

from albums.models import AlbumPage
from albums.services import build_album_page


class Command(BaseCommand):
    help = 'Regenerate printable album pages and their AR targets'

    def add_arguments(self, parser):
        parser.add_argument('--slug', help='Only rebuild the page with this slug')
        parser.add_argument('--failed-only', action='store_true',
                            help='Only rebuild pages whose generation failed')

    def handle(self, *args, **options):
        pages = AlbumPage.objects.exclude(video='')
        if options['slug']:
            pages = pages.filter(slug=options['slug'])
            if not pages.exists():
                raise CommandError(f"No album page with slug '{options['slug']}'")
        if options['failed_only']:
            pages = pages.filter(status=AlbumPage.STATUS_FAILED)

        self.stdout.write("🔍 Rebuilding album pages...")

        ready_count = 0
        total_count = 0
        for page in pages.order_by('pk'):
            total_count += 1
            page = build_album_page(page)
            if page.status == AlbumPage.STATUS_READY:
                ready_count += 1
                self.stdout.write(f"✅ {page.slug} - {page.feature_count} features, "
                                  f"quality {page.tracking_quality:.2f}")
            else:
                self.stdout.write(f"❌ {page.slug} - {page.error_message}")

        style = self.style.SUCCESS if ready_count == total_count else self.style.WARNING
        self.stdout.write(style(f'Rebuilt {ready_count}/{total_count} album pages'))

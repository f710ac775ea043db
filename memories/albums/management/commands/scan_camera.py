# albums/management/commands/scan_camera.py
import threading

import cv2
from django.core.management.base import BaseCommand, CommandError

from albums.ar_engine import ARConfig, ARProcessor, TargetFeatures
from albums.conf import get_setting
from albums.models import AlbumPage

WINDOW_NAME = 'Memories AR'


def build_config(debug=False) -> ARConfig:
    return ARConfig(
        max_features=get_setting("ORB_FEATURES"),
        max_match_distance=get_setting("MAX_MATCH_DISTANCE"),
        min_good_matches=get_setting("MIN_GOOD_MATCHES"),
        ransac_threshold=get_setting("RANSAC_THRESHOLD"),
        min_corner_confidence=get_setting("MIN_CORNER_CONFIDENCE"),
        smoothing=get_setting("SMOOTHING"),
        lock_confidence=get_setting("LOCK_CONFIDENCE"),
        lock_frames=get_setting("LOCK_FRAMES"),
        lost_frames=get_setting("LOST_FRAMES"),
        show_debug_info=debug,
    )


def load_targets(processor: ARProcessor, pages) -> int:
    """Register every page's target and video on the processor"""
    loaded = 0
    for page in pages:
        try:
            features = TargetFeatures.from_dict(page.target_data)
        except ValueError:
            continue
        processor.add_target(page.pk, features=features, video_path=page.video.path)
        loaded += 1
    return loaded


class Command(BaseCommand):
    help = 'Scan printed album pages with a local camera and play their videos in an OpenCV window'

    def add_arguments(self, parser):
        parser.add_argument('--camera', type=int, default=0, help='Camera index')
        parser.add_argument('--slug', help='Only track the page with this slug')
        parser.add_argument('--debug', action='store_true', help='Draw target outline and confidence')

    def handle(self, *args, **options):
        pages = AlbumPage.objects.ready()
        if options['slug']:
            pages = pages.filter(slug=options['slug'])

        processor = ARProcessor(build_config(options['debug']))
        loaded = load_targets(processor, pages)
        if loaded == 0:
            raise CommandError("No ready album pages to scan")
        self.stdout.write(f"🎯 Tracking {loaded} album page(s), press q to quit")

        latest = {}
        frame_ready = threading.Event()

        def on_frame(result):
            latest['frame'] = result.output_frame
            frame_ready.set()

        if not processor.start_camera_stream(options['camera'], output_callback=on_frame):
            raise CommandError(f"Could not start camera {options['camera']}")

        try:
            while processor.is_processing:
                if not frame_ready.wait(timeout=1.0):
                    continue
                frame_ready.clear()
                cv2.imshow(WINDOW_NAME, latest['frame'])
                if cv2.waitKey(1) & 0xFF == ord('q'):
                    break
        except KeyboardInterrupt:
            pass
        finally:
            processor.release()
            cv2.destroyAllWindows()

        stats = processor.get_processing_stats()['processing']
        self.stdout.write(self.style.SUCCESS(
            f"Processed {stats['frames_processed']} frames, "
            f"{stats['detection_rate_percent']:.1f}% with a detected page"
        ))

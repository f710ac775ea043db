# albums/consumers.py
"""
Websocket scanning: the client streams camera frames and gets one scan
result back per frame. Tracker state lives on the connection.
"""
import logging

import cv2
from channels.generic.websocket import JsonWebsocketConsumer

from .conf import get_setting
from .services import build_tracker, end_session, scan_frame, start_session
from .utils.frames import decode_frame

logger = logging.getLogger(__name__)


def _header(scope, name: bytes) -> str:
    for key, value in scope.get('headers', []):
        if key.lower() == name:
            return value.decode('latin-1')
    return ''


def _site_url(scope) -> str:
    """Origin the client connected to, or SITE_URL when the Host header is missing"""
    host = _header(scope, b'host')
    if host:
        scheme = 'https' if scope.get('scheme') == 'wss' else 'http'
        return f"{scheme}://{host}"
    return get_setting("SITE_URL").rstrip('/')


class ScanConsumer(JsonWebsocketConsumer):

    def connect(self):
        client = self.scope.get('client') or [None]
        self.session = start_session(_header(self.scope, b'user-agent'), client[0])
        self.tracker = build_tracker()
        self.accept()
        self.send_json({'type': 'session', 'success': True, 'session_id': str(self.session.session_id)})

    def disconnect(self, code):
        session = getattr(self, 'session', None)
        if session is not None:
            end_session(session)

    def receive_json(self, content, **kwargs):
        if not isinstance(content, dict):
            self.send_json({'success': False, 'error': 'Message must be a JSON object'})
            return

        if content.get('action') == 'reset':
            self.tracker.reset()
            self.send_json({'type': 'reset', 'success': True, 'tracking': self.tracker.state.to_dict()})
            return

        try:
            frame = decode_frame(content.get('frame') or '')
        except ValueError as e:
            self.send_json({'success': False, 'error': str(e)})
            return

        try:
            result = scan_frame(frame, session=self.session, tracker=self.tracker)
        except (ValueError, cv2.error) as e:
            logger.error(f"Frame scan failed for session {self.session.session_id}: {str(e)}")
            self.send_json({'success': False, 'error': 'Frame processing failed'})
            return

        if result['album_page']:
            site = _site_url(self.scope)
            for key in ('video_url', 'target_image_url', 'page_image_url'):
                url = result['album_page'].get(key)
                if url and url.startswith('/'):
                    result['album_page'][key] = site + url
        result['frame_count'] = content.get('frame_count', self.session.frames_processed)
        self.send_json(result)

# albums/routing.py
from django.urls import path

from . import consumers

websocket_urlpatterns = [
    path('ws/scan/', consumers.ScanConsumer.as_asgi()),
]

# albums/urls.py
from django.urls import path

from . import views

urlpatterns = [
    # Pages
    path('', views.home, name='home'),
    path('upload/', views.upload_view, name='upload_view'),
    path('album/<slug:slug>/', views.album_page_detail, name='album_page_detail'),
    path('album/<slug:slug>/download/<str:kind>/', views.download_album_page, name='download_album_page'),
    path('scan/', views.scanner, name='scanner'),

    # Scanning API
    path('api/targets/', views.targets_api, name='targets_api'),
    path('api/scan/', views.scan_api, name='scan_api'),
    path('api/sessions/', views.start_session_api, name='start_session_api'),
    path('api/sessions/<uuid:session_id>/end/', views.end_session_api, name='end_session_api'),

    # Album page API
    path('api/album/<slug:slug>/status/', views.album_status_api, name='album_status_api'),
    path('api/album/<slug:slug>/regenerate/', views.regenerate_api, name='regenerate_api'),
]

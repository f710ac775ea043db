from django.contrib import admin

from .models import AlbumPage, ScanSession
from .services import build_album_page


@admin.register(AlbumPage)
class AlbumPageAdmin(admin.ModelAdmin):
    list_display = ['title', 'slug', 'status', 'feature_count', 'tracking_quality', 'scan_count', 'is_active',
                    'created_at']
    list_filter = ['status', 'is_active', 'created_at']
    search_fields = ['title', 'subtitle', 'slug', 'album_name']
    readonly_fields = ['slug', 'status', 'error_message', 'feature_count', 'tracking_quality', 'processing_time',
                       'scan_count', 'successful_detections', 'failed_detections', 'average_detection_time',
                       'created_at', 'updated_at']
    actions = ['regenerate_pages', 'delete_selected_objects']

    fieldsets = (
        ('Basic Info', {
            'fields': ('title', 'subtitle', 'album_name', 'slug')
        }),
        ('Media Files', {
            'fields': ('video', 'poster_time')
        }),
        ('Generation', {
            'fields': ('status', 'error_message', 'feature_count', 'tracking_quality', 'processing_time',
                       'is_active'),
        }),
        ('Scan Statistics', {
            'fields': ('scan_count', 'successful_detections', 'failed_detections', 'average_detection_time'),
            'classes': ('collapse',)
        }),
        ('System Info', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def regenerate_pages(self, request, queryset):
        ready = 0
        for page in queryset:
            if build_album_page(page).status == AlbumPage.STATUS_READY:
                ready += 1
        self.message_user(request, f"Regenerated {ready} of {queryset.count()} album page(s).")
    regenerate_pages.short_description = "Regenerate page and AR target"

    def delete_selected_objects(self, request, queryset):
        """Delete one by one so generated files are removed too"""
        count = queryset.count()
        for obj in queryset:
            obj.delete()
        self.message_user(request, f"Successfully deleted {count} album page(s).")
    delete_selected_objects.short_description = "Delete selected album pages"

    def delete_queryset(self, request, queryset):
        for obj in queryset:
            obj.delete()

    def get_actions(self, request):
        """Remove default delete action"""
        actions = super().get_actions(request)
        if 'delete_selected' in actions:
            del actions['delete_selected']
        return actions


@admin.register(ScanSession)
class ScanSessionAdmin(admin.ModelAdmin):
    list_display = ['session_id', 'album_page', 'frames_processed', 'detections_successful', 'started_at',
                    'ended_at']
    list_filter = ['started_at']
    readonly_fields = ['session_id', 'started_at', 'tracker_state']

import albums.models
import django.core.validators
import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='AlbumPage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(help_text='Event title, e.g. Annual Day 2025', max_length=200)),
                ('subtitle', models.CharField(blank=True, help_text='e.g. Class 5 Performance', max_length=200)),
                ('album_name', models.CharField(blank=True, help_text='Page heading', max_length=200)),
                ('slug', models.SlugField(blank=True, max_length=60, unique=True)),
                ('video', models.FileField(help_text='School video played over the printed page', upload_to=albums.models.album_video_path, validators=[django.core.validators.FileExtensionValidator(allowed_extensions=['mp4', 'mov', 'webm', 'avi', 'm4v'])])),
                ('poster_time', models.FloatField(blank=True, help_text='Second of the video used as the page still (default: middle)', null=True)),
                ('page_image', models.ImageField(blank=True, editable=False, upload_to=albums.models.album_page_image_path)),
                ('page_pdf', models.FileField(blank=True, editable=False, upload_to=albums.models.album_page_pdf_path)),
                ('ar_target_image', models.ImageField(blank=True, editable=False, upload_to=albums.models.ar_target_image_path)),
                ('qr_code', models.ImageField(blank=True, editable=False, upload_to=albums.models.album_qr_path)),
                ('target_data', models.JSONField(blank=True, editable=False, help_text='ORB keypoints/descriptors of the AR target (auto-generated)', null=True)),
                ('feature_count', models.IntegerField(default=0)),
                ('tracking_quality', models.FloatField(default=0.0, help_text='Target quality score (0-1)')),
                ('processing_time', models.FloatField(default=0.0, help_text='Page generation time (seconds)')),
                ('status', models.CharField(choices=[('pending', 'Pending generation'), ('ready', 'Ready to scan'), ('failed', 'Generation failed')], default='pending', max_length=20)),
                ('error_message', models.TextField(blank=True)),
                ('scan_count', models.IntegerField(default=0)),
                ('successful_detections', models.IntegerField(default=0)),
                ('failed_detections', models.IntegerField(default=0)),
                ('average_detection_time', models.FloatField(default=0.0, help_text='Milliseconds')),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ScanSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('session_id', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('started_at', models.DateTimeField(auto_now_add=True)),
                ('ended_at', models.DateTimeField(blank=True, null=True)),
                ('frames_processed', models.IntegerField(default=0)),
                ('detections_successful', models.IntegerField(default=0)),
                ('tracker_state', models.JSONField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('album_page', models.ForeignKey(blank=True, help_text='Last album page recognised in this session', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='scan_sessions', to='albums.albumpage')),
            ],
            options={
                'ordering': ['-started_at'],
            },
        ),
    ]

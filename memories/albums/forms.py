# albums/forms.py
from django import forms

from .conf import get_setting
from .models import AlbumPage


class AlbumPageForm(forms.ModelForm):
    """Upload form for a school video and its page text"""

    class Meta:
        model = AlbumPage
        fields = ['title', 'subtitle', 'album_name', 'video', 'poster_time']

        widgets = {
            'title': forms.TextInput(attrs={
                'class': 'form-control',
                'placeholder': 'Annual Day 2025',
                'required': True
            }),
            'subtitle': forms.TextInput(attrs={
                'class': 'form-control',
                'placeholder': 'Class 5 Performance (optional)'
            }),
            'album_name': forms.TextInput(attrs={
                'class': 'form-control',
                'placeholder': get_setting("DEFAULT_ALBUM_NAME")
            }),
            'video': forms.FileInput(attrs={
                'class': 'form-control',
                'accept': 'video/*',
                'required': True
            }),
            'poster_time': forms.NumberInput(attrs={
                'class': 'form-control',
                'min': '0',
                'step': '0.5',
                'placeholder': 'Seconds (default: middle of the video)'
            })
        }

    def clean_video(self):
        """Validate uploaded video"""
        video = self.cleaned_data.get('video')
        if video:
            max_size = get_setting("MAX_VIDEO_SIZE")
            if video.size > max_size:
                raise forms.ValidationError(
                    f"Video file too large. Maximum size is {max_size // (1024 * 1024)}MB."
                )

            # Content type is only known for fresh uploads
            content_type = getattr(video, 'content_type', None)
            allowed_types = ['video/mp4', 'video/quicktime', 'video/webm',
                             'video/x-msvideo', 'video/avi', 'video/x-m4v']
            if content_type and content_type not in allowed_types:
                raise forms.ValidationError("Please upload MP4, MOV, WebM, AVI or M4V video files only.")
        return video

    def clean_title(self):
        """Validate and clean title"""
        title = self.cleaned_data.get('title')
        if title:
            # Remove extra whitespace
            title = ' '.join(title.split())

            if len(title) < 3:
                raise forms.ValidationError("Title must be at least 3 characters long.")
        return title

    def clean_poster_time(self):
        poster_time = self.cleaned_data.get('poster_time')
        if poster_time is not None and poster_time < 0:
            raise forms.ValidationError("Poster time cannot be negative.")
        return poster_time

"""
Video-to-subtitles app built with FastAPI, exposing
- a multi-file video upload endpoint that extracts audio with ffmpeg
and transcribes it with Amazon Transcribe into .srt files,
- and endpoints to list, download, delete and zip the stored subtitles.
"""

__version__ = "0.2.0"

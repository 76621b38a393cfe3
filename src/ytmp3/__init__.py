"""Concurrent batch downloader built around yt-dlp."""

__version__ = "0.4.0"

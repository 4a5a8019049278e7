"""Engine facades: image (Pillow), video (ffmpeg) and analysis (Rekognition)."""

from .analysis import AnalysisEngine
from .image import ImageEngine
from .video import QUALITY_BITRATES, VideoEngine, bitrate_for_quality, staging_files

__all__ = [
    "AnalysisEngine",
    "ImageEngine",
    "VideoEngine",
    "QUALITY_BITRATES",
    "bitrate_for_quality",
    "staging_files",
]

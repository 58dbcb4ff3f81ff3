"""Metadata parsing and reconciliation."""

from .json_parser import parse_json_sidecar, parse_sidecar_data
from .exif_extractor import extract_exif
from .video_extractor import extract_video_metadata
from .reconciler import MetadataReconciler, ReconcileResult

__all__ = [
    'parse_json_sidecar',
    'parse_sidecar_data',
    'extract_exif',
    'extract_video_metadata',
    'MetadataReconciler',
    'ReconcileResult',
]

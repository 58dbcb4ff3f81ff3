"""Classification of takeout entries by extension and naming convention."""

from pathlib import Path
from typing import FrozenSet, Iterable, Optional

from .models import Classification, EntryKind, MediaKind

IMAGE_EXTENSIONS = frozenset({
    '.jpg', '.jpeg', '.jfif', '.png', '.heic', '.heif', '.gif', '.webp',
    '.tiff', '.tif', '.bmp', '.avif',
    # RAW formats
    '.dng', '.cr2', '.cr3', '.nef', '.arw', '.raf', '.orf', '.rw2',
})

VIDEO_EXTENSIONS = frozenset({
    '.mp4', '.mov', '.m4v', '.3gp', '.avi', '.mkv', '.webm',
    '.mts', '.m2ts', '.wmv',
})

# Vendor motion-photo components (Pixel "MP" files and their duplicates)
MOTION_EXTENSIONS = frozenset({'.mp', '.mp~2'})

SIDECAR_EXTENSION = '.json'

# JSON documents that describe albums or the export itself, not a media file
ALBUM_METADATA_FILES = frozenset({
    'metadata.json',
    'metadaten.json',
    'métadonnées.json',
    'print-subscriptions.json',
    'shared_album_comments.json',
    'user-generated-memory-titles.json',
})

SYSTEM_FILES = frozenset({
    'thumbs.db',
    'desktop.ini',
    '.ds_store',
    'icon\r',
    'archive_browser.html',
})

TEMP_EXTENSIONS = frozenset({'.tmp', '.temp', '.cache', '.bak', '.swp'})

_IGNORABLE = Classification(EntryKind.IGNORABLE)
_SIDECAR = Classification(EntryKind.SIDECAR)


class PathClassifier:
    """Classifies a path as media, sidecar or ignorable.

    Pure table lookup on the file name; never touches the filesystem and
    never raises. Unknown extensions are ignorable.
    """

    def __init__(
        self,
        image_extensions: Optional[Iterable[str]] = None,
        video_extensions: Optional[Iterable[str]] = None,
        motion_extensions: Optional[Iterable[str]] = None,
    ) -> None:
        self.image_extensions: FrozenSet[str] = frozenset(image_extensions or IMAGE_EXTENSIONS)
        self.video_extensions: FrozenSet[str] = frozenset(video_extensions or VIDEO_EXTENSIONS)
        self.motion_extensions: FrozenSet[str] = frozenset(motion_extensions or MOTION_EXTENSIONS)

    def classify(self, path: Path | str) -> Classification:
        name = Path(path).name
        lowered = name.lower()

        if lowered in SYSTEM_FILES:
            return _IGNORABLE

        suffix = Path(lowered).suffix
        if suffix in TEMP_EXTENSIONS:
            return _IGNORABLE

        if suffix == SIDECAR_EXTENSION:
            if lowered in ALBUM_METADATA_FILES:
                return _IGNORABLE
            return _SIDECAR

        media_kind = self.media_kind_for(suffix)
        if media_kind is None:
            return _IGNORABLE
        return Classification(EntryKind.MEDIA, media_kind)

    def media_kind_for(self, suffix: str) -> Optional[MediaKind]:
        suffix = suffix.lower()
        if suffix in self.image_extensions:
            return MediaKind.IMAGE
        if suffix in self.video_extensions:
            return MediaKind.VIDEO
        if suffix in self.motion_extensions:
            return MediaKind.MOTION_COMPONENT
        return None

    def is_media(self, path: Path | str) -> bool:
        return self.classify(path).kind is EntryKind.MEDIA

"""Association of media files with their JSON sidecars.

Google Takeout writes one JSON sidecar per media file, but the sidecar name
is not always ``<media name>.json``:

- newer exports use ``<media name>.supplemental-metadata.json`` (or the
  shorter ``.sup-meta.json``);
- edited copies (``IMG_1234-edited.jpg``) have no sidecar of their own and
  share the original's;
- duplicates are numbered on the media stem (``IMG(1).jpg``) but on the
  sidecar tail (``IMG.jpg(1).json``);
- names longer than the exporter's limit are truncated, cutting the
  supplemental suffix or even the media name itself.

Matching only ever looks at sidecars in the media file's own directory.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

SUPPLEMENTAL_SUFFIXES = ('.supplemental-metadata', '.sup-meta')
EDITED_SUFFIX = '-edited'

# "IMG(1)" -> ("IMG", "1")
NUMBERED_STEM_RE = re.compile(r'^(?P<base>.+)\((?P<num>\d+)\)$')

# Trailing supplemental marker, possibly truncated by the exporter, with an
# optional duplicate counter: ".supplemental-metadata", ".supplemen", ".sup-meta(1)"
SUPPLEMENTAL_TAIL_RE = re.compile(r'''
    \.
    (?:
        sup-meta                                                            # short form
      | s(?:u(?:p(?:p(?:l(?:e(?:m(?:e(?:n(?:t(?:a(?:l)?)?)?)?)?)?)?)?)?)?)?   # "supplemental", cut anywhere
        (?:-(?:m(?:e(?:t(?:a(?:d(?:a(?:t(?:a)?)?)?)?)?)?)?)?)?              # "-metadata", cut anywhere
    )
    (?:\(\d+\))?                                                          # duplicate counter
    $
''', re.IGNORECASE | re.VERBOSE)


class MatchRule(str, Enum):
    EXACT = "exact"
    SUFFIX_VARIANT = "suffix_variant"
    PREFIX = "prefix"
    TRUNCATED_NAME = "truncated_name"


@dataclass(frozen=True)
class SidecarMatch:
    path: Path
    rule: MatchRule


def sidecar_core(sidecar_name: str) -> str:
    """Strip ``.json`` and any (possibly truncated) supplemental tail.

    ``IMG_1234.jpg.supplemental-met.json`` -> ``IMG_1234.jpg``
    """
    core = sidecar_name[:-len('.json')] if sidecar_name.lower().endswith('.json') else sidecar_name
    return SUPPLEMENTAL_TAIL_RE.sub('', core)


def _suffix_variant_names(media_name: str) -> List[str]:
    """Candidate sidecar names for the suffix-variant rule, in priority order."""
    candidates = [f"{media_name}{suffix}.json" for suffix in SUPPLEMENTAL_SUFFIXES]

    media = Path(media_name)
    stem, ext = media.stem, media.suffix

    # Edited derivative borrows the original's sidecar
    if stem.lower().endswith(EDITED_SUFFIX):
        original = f"{stem[:-len(EDITED_SUFFIX)]}{ext}"
        candidates.append(f"{original}.json")
        candidates.extend(f"{original}{suffix}.json" for suffix in SUPPLEMENTAL_SUFFIXES)

    # Numbered duplicate: counter moves to the sidecar tail
    numbered = NUMBERED_STEM_RE.match(stem)
    if numbered:
        base, num = numbered.group('base'), numbered.group('num')
        original = f"{base}{ext}"
        candidates.append(f"{original}({num}).json")
        candidates.extend(f"{original}{suffix}({num}).json" for suffix in SUPPLEMENTAL_SUFFIXES)

    return candidates


class SidecarMatcher:
    """Chooses at most one sidecar for a media file.

    Rules are tried in order and the first hit wins:

    1. exact: ``<media name>.json``
    2. suffix variants: supplemental/sup-meta, edited and numbered forms
    3. prefix: a sidecar starting with the media stem at a word boundary;
       the lexicographically first candidate wins
    4. truncated name: the sidecar core is a long enough prefix of the
       media name; the lexicographically first candidate wins
    """

    def __init__(self, truncated_name_min_length: int = 30) -> None:
        self.truncated_name_min_length = truncated_name_min_length

    def match(self, media_path: Path, sidecar_names: Iterable[str]) -> Optional[SidecarMatch]:
        """
        Find the sidecar for ``media_path`` among its sibling sidecars.

        Args:
            media_path: Path to the media file
            sidecar_names: File names of the sidecars in the same directory

        Returns:
            SidecarMatch with the sidecar path and the rule used, or None
        """
        names = sidecar_names if isinstance(sidecar_names, (set, frozenset)) else set(sidecar_names)
        if not names:
            return None

        directory = media_path.parent
        media_name = media_path.name

        exact = f"{media_name}.json"
        if exact in names:
            return SidecarMatch(directory / exact, MatchRule.EXACT)

        for candidate in _suffix_variant_names(media_name):
            if candidate in names:
                return SidecarMatch(directory / candidate, MatchRule.SUFFIX_VARIANT)

        prefixed = sorted(n for n in names if self._is_prefix_match(media_path.stem, n))
        if prefixed:
            if len(prefixed) > 1:
                logger.debug(
                    f"Ambiguous prefix match: {{'media': {media_name!r}, 'candidates': {prefixed!r}, "
                    f"'chosen': {prefixed[0]!r}}}"
                )
            return SidecarMatch(directory / prefixed[0], MatchRule.PREFIX)

        truncated = sorted(n for n in names if self._is_truncated_match(media_name, n))
        if truncated:
            return SidecarMatch(directory / truncated[0], MatchRule.TRUNCATED_NAME)

        return None

    @staticmethod
    def _is_prefix_match(stem: str, sidecar_name: str) -> bool:
        if not stem or not sidecar_name.startswith(stem):
            return False
        rest = sidecar_name[len(stem):]
        # "IMG_1" must not claim "IMG_10.jpg.json"
        return bool(rest) and not rest[0].isalnum()

    def _is_truncated_match(self, media_name: str, sidecar_name: str) -> bool:
        core = sidecar_core(sidecar_name)
        if len(core) < self.truncated_name_min_length:
            return False
        return len(core) < len(media_name) and media_name.startswith(core)

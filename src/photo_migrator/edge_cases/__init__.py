"""Detection of multi-part assets."""

from .live_photos import PairDetector, PairingResult

__all__ = ['PairDetector', 'PairingResult']

# core/converters/__init__.py
"""Per-format conversion strategies.

`STRATEGIES` maps each supported classic format tag to the strategy that drafts
its graph. Formats absent from the table are rejected at classification time.
"""

from core.template_detection import ClassicFormat

from .base import ConversionContext, FormatStrategy
from .map_journal import MapJournalStrategy
from .map_series import MapSeriesStrategy
from .map_tour import MapTourStrategy
from .swipe import SwipeStrategy

STRATEGIES: dict[ClassicFormat, type[FormatStrategy]] = {
    ClassicFormat.MAP_JOURNAL: MapJournalStrategy,
    ClassicFormat.MAP_TOUR: MapTourStrategy,
    ClassicFormat.MAP_SERIES: MapSeriesStrategy,
    ClassicFormat.SWIPE: SwipeStrategy,
}

__all__ = [
    "STRATEGIES",
    "ConversionContext",
    "FormatStrategy",
    "MapJournalStrategy",
    "MapSeriesStrategy",
    "MapTourStrategy",
    "SwipeStrategy",
]

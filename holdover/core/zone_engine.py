"""ZoneEngine — pure classification of elapsed time against thresholds.

    zone:      elapsed compared to the absolute thresholds; equality
               resolves to the more severe zone
    progress:  elapsed / limit_seconds, capped for display

The classification is never capped.  Only the reported progress is, so a
session that keeps publishing long after expiry cannot report an unbounded
value.
"""

from __future__ import annotations

from dataclasses import dataclass

from holdover.domain.enums import Zone
from holdover.domain.thresholds import ThresholdSet

DEFAULT_PROGRESS_CEILING = 1.2


@dataclass(frozen=True)
class ZoneReading:
    zone: Zone
    progress: float
    raw_progress: float


def classify(
    elapsed_seconds: float,
    thresholds: ThresholdSet,
    ceiling: float = DEFAULT_PROGRESS_CEILING,
) -> ZoneReading:
    """Map elapsed seconds to a zone and a display-capped progress."""
    if elapsed_seconds >= thresholds.limit_seconds:
        zone = Zone.EXPIRED
    elif elapsed_seconds >= thresholds.assured_seconds:
        zone = Zone.CAUTION
    else:
        zone = Zone.SAFE

    raw = elapsed_seconds / thresholds.limit_seconds
    return ZoneReading(zone=zone, progress=cap_progress(raw, ceiling), raw_progress=raw)


def cap_progress(progress: float, ceiling: float = DEFAULT_PROGRESS_CEILING) -> float:
    return min(max(progress, 0.0), ceiling)


def zone_for_progress(progress: float, assured_ratio: float) -> Zone:
    """Classify from a progress fraction alone.

    For consumers that only hold progress.  Compares against the assured
    ratio rather than reconstructing elapsed seconds.
    """
    if progress >= 1.0:
        return Zone.EXPIRED
    if progress >= assured_ratio:
        return Zone.CAUTION
    return Zone.SAFE


def escalate(previous: Zone | None, current: Zone) -> Zone:
    """Zone latch: the more severe of the two wins."""
    if previous is None or current.severity >= previous.severity:
        return current
    return previous

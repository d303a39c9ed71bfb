"""
Per-kilometer split builder.

Turns a cumulative distance series (TimedSample, v = meters since start) into
KilometerSplit records for WorkoutPayload.km_splits.

Each 1000 m crossing time is found by linear interpolation between the two
samples that straddle it. A sample that covers several kilometers yields
several splits. Distance left over after the last full kilometer becomes a
shorter final split when `include_partial` is set.

Split averages:
  avg_hr    mean of hr_series samples with start_offset <= t < end_offset
            (None when no sample falls inside the split)
  avg_speed distance_meters / duration in m/s (None for a zero-length split)
"""
from statistics import mean
from typing import List, Optional, Sequence, Tuple

from workout_relay.models.payload import KilometerSplit, TimedSample

SPLIT_METERS = 1000.0


def _avg_hr(hr_series: Sequence[TimedSample], start: float, end: float) -> Optional[float]:
    values = [s.v for s in hr_series if start <= s.t < end]
    return mean(values) if values else None


def _make_split(
    index: int,
    start: float,
    end: float,
    distance: float,
    hr_series: Sequence[TimedSample],
) -> KilometerSplit:
    duration = end - start
    return KilometerSplit(
        index=index,
        start_offset=start,
        end_offset=end,
        duration=duration,
        distance_meters=distance,
        avg_hr=_avg_hr(hr_series, start, end),
        avg_speed=distance / duration if duration > 0 else None,
    )


def compute_kilometer_splits(
    distance_series: Sequence[TimedSample],
    hr_series: Optional[Sequence[TimedSample]] = None,
    split_meters: float = SPLIT_METERS,
    include_partial: bool = True,
) -> Tuple[KilometerSplit, ...]:
    """
    Build splits from cumulative distance samples.

    Args:
        distance_series: Cumulative distance in meters, by offset. Sorted by
            t here. A sample lower than the previous one (GPS jitter) counts
            as no progress.
        hr_series: Optional heart-rate samples for per-split averages.
        split_meters: Split length, 1000 m by default.
        include_partial: Emit the trailing < split_meters remainder.

    Returns:
        Tuple of KilometerSplit, index 1..n. Empty if no distance was covered.
    """
    hr = list(hr_series or ())
    splits: List[KilometerSplit] = []

    split_start_t = 0.0
    split_start_d = 0.0
    next_mark = split_meters
    prev_t = 0.0
    prev_d = 0.0

    for sample in sorted(distance_series, key=lambda s: s.t):
        t = sample.t
        d = max(sample.v, prev_d)

        while d >= next_mark and d > prev_d:
            fraction = (next_mark - prev_d) / (d - prev_d)
            crossing_t = prev_t + fraction * (t - prev_t)
            splits.append(_make_split(
                len(splits) + 1, split_start_t, crossing_t, next_mark - split_start_d, hr
            ))
            split_start_t = crossing_t
            split_start_d = next_mark
            next_mark += split_meters

        prev_t = t
        prev_d = d

    remainder = prev_d - split_start_d
    if include_partial and remainder > 0:
        splits.append(_make_split(len(splits) + 1, split_start_t, prev_t, remainder, hr))

    return tuple(splits)

"""
Workout payload models: one completed workout, its time series and splits.

A WorkoutPayload is produced once by the recording pipeline when a workout
finishes, serialized by transfer.codec, and never modified afterwards. Every
model here is frozen and stores sequences as tuples; a correction means a new
payload with a new id.

Attribute names are snake_case. The field aliases are the wire keys shared
with the watch and phone apps:

  attribute            → wire key
  schema_version       → schemaVersion
  distance_meters      → distanceMeters
  total_energy_kcal    → totalEnergyKcal
  avg_hr               → avgHR
  hr_series            → hrSeries
  pace_series          → paceSeries
  elevation_series     → elevationSeries
  total_ascent         → totalAscent
  km_splits            → kmSplits
  RoutePoint.altitude  → alt

Optional fields default to None, which means "not recorded" and is distinct
from 0.0. Non-finite floats are accepted here and rejected by the encoder.
"""
import math
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)

# Bumped from 1 to 2 when kmSplits was added.
CURRENT_SCHEMA_VERSION = 2


def to_wire_precision(value: datetime) -> datetime:
    """
    Return `value` as an aware UTC datetime truncated to whole milliseconds.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


def _check_non_decreasing(offsets: Sequence[Optional[float]], what: str) -> None:
    previous: Optional[float] = None
    for offset in offsets:
        if offset is None:
            continue
        if previous is not None and offset < previous:
            raise ValueError(f"{what} must be in chronological order")
        previous = offset


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class TimedSample(_WireModel):
    """A scalar value `v` measured `t` seconds after workout start."""

    t: StrictFloat
    v: StrictFloat

    @field_validator("t")
    @classmethod
    def _offset_not_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("sample offset must be non-negative")
        return value


class RoutePoint(_WireModel):
    """One GPS fix on the route, in decimal degrees."""

    lat: StrictFloat
    lon: StrictFloat
    altitude: Optional[StrictFloat] = Field(default=None, alias="alt")  # meters
    t: Optional[StrictFloat] = None  # seconds since workout start

    @field_validator("lat")
    @classmethod
    def _lat_in_range(cls, value: float) -> float:
        if abs(value) > 90:
            raise ValueError(f"latitude {value} outside [-90, 90]")
        return value

    @field_validator("lon")
    @classmethod
    def _lon_in_range(cls, value: float) -> float:
        if abs(value) > 180:
            raise ValueError(f"longitude {value} outside [-180, 180]")
        return value

    @field_validator("t")
    @classmethod
    def _offset_not_negative(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value < 0:
            raise ValueError("route point offset must be non-negative")
        return value


class KilometerSplit(_WireModel):
    """
    Per-kilometer split. Offsets are seconds since workout start.

    `duration` is expected to equal end_offset - start_offset; the producer
    computes it and nothing here re-derives it. `distance_meters` is ~1000
    except for a partial final split.
    """

    index: StrictInt  # 1-based
    start_offset: StrictFloat = Field(alias="startOffset")
    end_offset: StrictFloat = Field(alias="endOffset")
    duration: StrictFloat
    distance_meters: StrictFloat = Field(alias="distanceMeters")
    avg_hr: Optional[StrictFloat] = Field(default=None, alias="avgHR")  # bpm
    avg_speed: Optional[StrictFloat] = Field(default=None, alias="avgSpeed")  # m/s

    @field_validator("index")
    @classmethod
    def _index_one_based(cls, value: int) -> int:
        if value < 1:
            raise ValueError("split index is 1-based")
        return value

    @model_validator(mode="after")
    def _end_after_start(self) -> "KilometerSplit":
        if self.end_offset < self.start_offset:
            raise ValueError(
                f"split {self.index} ends ({self.end_offset}) before it starts ({self.start_offset})"
            )
        return self


class WorkoutPayload(_WireModel):
    """
    The record of one completed workout, as transferred from watch to phone.

    `duration` is stored as given by the producer and is not checked
    against end - start.
    """

    schema_version: StrictInt = Field(default=CURRENT_SCHEMA_VERSION, alias="schemaVersion")
    id: UUID = Field(default_factory=uuid4)
    sport: Optional[StrictStr] = None  # "running", ...
    start: datetime
    end: datetime
    duration: StrictFloat  # seconds

    # Aggregates
    distance_meters: Optional[StrictFloat] = Field(default=None, alias="distanceMeters")
    total_energy_kcal: Optional[StrictFloat] = Field(default=None, alias="totalEnergyKcal")
    avg_hr: Optional[StrictFloat] = Field(default=None, alias="avgHR")
    total_ascent: Optional[StrictFloat] = Field(default=None, alias="totalAscent")

    # Time series, offsets relative to start
    hr_series: Optional[Tuple[TimedSample, ...]] = Field(default=None, alias="hrSeries")
    pace_series: Optional[Tuple[TimedSample, ...]] = Field(default=None, alias="paceSeries")
    elevation_series: Optional[Tuple[TimedSample, ...]] = Field(
        default=None, alias="elevationSeries"
    )
    route: Optional[Tuple[RoutePoint, ...]] = None

    # Added in schema version 2
    km_splits: Optional[Tuple[KilometerSplit, ...]] = Field(default=None, alias="kmSplits")

    @field_validator("schema_version")
    @classmethod
    def _version_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"schemaVersion must be >= 1, got {value}")
        return value

    @field_validator("start", "end")
    @classmethod
    def _utc_millis(cls, value: datetime) -> datetime:
        return to_wire_precision(value)

    @model_validator(mode="after")
    def _check_structure(self) -> "WorkoutPayload":
        if self.end < self.start:
            raise ValueError("end must not be earlier than start")

        for name in ("hr_series", "pace_series", "elevation_series"):
            series = getattr(self, name)
            if series:
                _check_non_decreasing([s.t for s in series], name)

        if self.route:
            _check_non_decreasing([p.t for p in self.route], "route")

        if self.km_splits:
            indexes = [s.index for s in self.km_splits]
            if any(b <= a for a, b in zip(indexes, indexes[1:])):
                raise ValueError("kmSplits indexes must be strictly increasing")

        return self

    def summary_line(self) -> str:
        """One-line inbox summary, e.g. '5.00 km • avgHR 150 • 1 splits'."""
        km = (self.distance_meters or 0.0) / 1000.0
        has_hr = self.avg_hr is not None and math.isfinite(self.avg_hr)
        hr = str(int(self.avg_hr)) if has_hr else "—"
        splits = len(self.km_splits) if self.km_splits else 0
        return f"{km:.2f} km • avgHR {hr} • {splits} splits"

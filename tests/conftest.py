"""Shared test fixtures."""
from datetime import datetime, timezone
from uuid import UUID

import pytest

from workout_relay.inbox.reconciler import WorkoutInbox
from workout_relay.models.payload import KilometerSplit, RoutePoint, TimedSample, WorkoutPayload
from workout_relay.transfer.staging import StagingStore

PAYLOAD_ID = UUID("6f1c2a9e-3b4d-4e5f-8a7b-1c2d3e4f5a6b")
START = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
END = datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc)


@pytest.fixture(name="make_payload")
def make_payload_fixture():
    """Factory for a minimal valid payload; keyword overrides replace fields."""

    def _make(**overrides) -> WorkoutPayload:
        fields = dict(
            id=PAYLOAD_ID,
            sport="running",
            start=START,
            end=END,
            duration=1800.0,
            distance_meters=5000.0,
        )
        fields.update(overrides)
        return WorkoutPayload(**fields)

    return _make


@pytest.fixture(name="full_payload")
def full_payload_fixture() -> WorkoutPayload:
    """A 30-minute run with every optional field populated."""
    return WorkoutPayload(
        id=PAYLOAD_ID,
        sport="running",
        start=START,
        end=END,
        duration=1800.0,
        distance_meters=5000.0,
        total_energy_kcal=412.5,
        avg_hr=151.0,
        total_ascent=42.0,
        hr_series=[TimedSample(t=i * 60.0, v=130.0 + i) for i in range(30)],
        pace_series=[TimedSample(t=i * 60.0, v=360.0 - i) for i in range(30)],
        elevation_series=[TimedSample(t=i * 60.0, v=100.0 + i * 0.5) for i in range(30)],
        route=[
            RoutePoint(lat=40.4168, lon=-3.7038, altitude=657.0, t=0.0),
            RoutePoint(lat=40.4175, lon=-3.7050, t=60.0),
            RoutePoint(lat=40.4181, lon=-3.7061),
        ],
        km_splits=[
            KilometerSplit(
                index=i + 1,
                start_offset=i * 360.0,
                end_offset=(i + 1) * 360.0,
                duration=360.0,
                distance_meters=1000.0,
                avg_hr=145.0 + i,
                avg_speed=2.78,
            )
            for i in range(5)
        ],
    )


@pytest.fixture(name="inbox_store")
def inbox_store_fixture(tmp_path) -> StagingStore:
    return StagingStore(tmp_path / "inbox")


@pytest.fixture(name="inbox")
def inbox_fixture(inbox_store) -> WorkoutInbox:
    return WorkoutInbox(inbox_store)

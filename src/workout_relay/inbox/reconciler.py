"""
WorkoutInbox: the received-workouts collection the phone app shows.

The inbox owns a StagingStore directory of delivered <id>.json files and
exposes them as an immutable snapshot:

  - deduplicated by payload id (the transport may deliver more than once)
  - ordered by start, most recent workout first
  - replaced wholesale on every change, never edited in place, so readers
    on other threads always see a complete collection

reload() rebuilds the snapshot from disk. A file that fails to decode is
logged and skipped so one bad delivery never hides the rest. Callers who
need to surface those skips can pass `on_skip`.
"""
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union
from uuid import UUID

from workout_relay.models.payload import WorkoutPayload
from workout_relay.transfer.codec import DecodingError
from workout_relay.transfer.envelope import verify_metadata
from workout_relay.transfer.staging import StagingStore

logger = logging.getLogger(__name__)

Snapshot = Tuple[WorkoutPayload, ...]
SkipCallback = Callable[[Path, Exception], None]
Subscriber = Callable[[Snapshot], None]


def _ordered(payloads: Iterable[WorkoutPayload]) -> Snapshot:
    return tuple(sorted(payloads, key=lambda p: p.start, reverse=True))


class WorkoutInbox:
    """Deduplicated, newest-first view of the workouts in an inbox directory."""

    def __init__(self, store: StagingStore, on_skip: Optional[SkipCallback] = None):
        """
        Args:
            store: StagingStore over the inbox directory.
            on_skip: Optional diagnostic hook, called with (location, error)
                for every file reload() skips. Does not change what reload()
                returns.
        """
        self.store = store
        self.on_skip = on_skip
        self._items: Snapshot = ()
        self._lock = threading.Lock()
        self._subscribers: List[Subscriber] = []
        # in-flight reload() scans, each with the payloads upserted since it began
        self._scan_seq = 0
        self._upserted_during_scan: Dict[int, List[WorkoutPayload]] = {}

    # ── Reading ───────────────────────────────────────────────────────────────

    @property
    def items(self) -> Snapshot:
        """Current snapshot, newest workout first."""
        return self._items

    def get(self, payload_id: UUID) -> Optional[WorkoutPayload]:
        return next((p for p in self._items if p.id == payload_id), None)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[WorkoutPayload]:
        return iter(self._items)

    # ── Observing ─────────────────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register `callback` to receive every new snapshot.

        Returns a function that unregisters it.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ── Updating ──────────────────────────────────────────────────────────────

    def reload(self) -> Snapshot:
        """
        Rescan the inbox directory and replace the snapshot.

        Files are scanned in name order; if two decode to the same id the
        later one wins. Undecodable, unreadable or vanished files are
        skipped. Files on disk are never modified. Payloads upserted while
        the scan runs are kept in the new snapshot.

        Returns:
            The new snapshot.
        """
        with self._lock:
            self._scan_seq += 1
            scan = self._scan_seq
            self._upserted_during_scan[scan] = []

        by_id: Dict[UUID, WorkoutPayload] = {}
        skipped = 0
        try:
            for location in self.store.locations():
                try:
                    payload = self.store.read(location)
                except (DecodingError, OSError) as exc:  # NotFoundError is an OSError
                    skipped += 1
                    logger.warning("Skipping inbox file %s: %s", location.name, exc)
                    self._report_skip(location, exc)
                    continue
                if payload.id in by_id:
                    logger.info("Duplicate payload %s in %s", payload.id, location.name)
                by_id[payload.id] = payload
        except BaseException:
            with self._lock:
                self._upserted_during_scan.pop(scan, None)
            raise

        def build(_current: Snapshot) -> Snapshot:
            for payload in self._upserted_during_scan.pop(scan, []):
                by_id[payload.id] = payload
            return _ordered(by_id.values())

        snapshot = self._replace(build)
        logger.info("Inbox reloaded: %d workouts, %d skipped", len(snapshot), skipped)
        return snapshot

    def upsert(self, payload: WorkoutPayload) -> Snapshot:
        """Insert or replace `payload` by id and publish the new snapshot."""

        def build(current: Snapshot) -> Snapshot:
            for pending in self._upserted_during_scan.values():
                pending.append(payload)
            return _ordered([p for p in current if p.id != payload.id] + [payload])

        return self._replace(build)

    def receive(
        self,
        location: Union[str, Path],
        metadata: Optional[Mapping[str, str]] = None,
    ) -> WorkoutPayload:
        """
        Accept a file handed over by the transport.

        Decodes the file, checks it against the transfer metadata when
        given, copies it into the inbox directory as <id>.json and upserts it.

        Raises:
            NotFoundError: the delivered file does not exist.
            DecodingError: the file is not a valid payload, or it disagrees
                with `metadata` (EnvelopeMismatchError).
        """
        payload = self.store.read(location)
        if metadata is not None:
            verify_metadata(metadata, payload)
        self.store.import_file(location, payload.id)
        self.upsert(payload)
        logger.info("Received workout %s (start %s)", payload.id, payload.start.isoformat())
        return payload

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _report_skip(self, location: Path, exc: Exception) -> None:
        if self.on_skip is None:
            return
        try:
            self.on_skip(location, exc)
        except Exception:
            logger.exception("on_skip callback failed for %s", location.name)

    def _replace(self, build: Callable[[Snapshot], Snapshot]) -> Snapshot:
        """Swap in build(current) under the lock, then notify subscribers."""
        with self._lock:
            snapshot = build(self._items)
            self._items = snapshot
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Inbox subscriber failed")
        return snapshot


_inbox: Optional[WorkoutInbox] = None


def get_inbox() -> WorkoutInbox:
    """Return the process-wide inbox over Settings.inbox_dir, creating it on first call."""
    global _inbox
    if _inbox is None:
        from workout_relay.config import get_settings

        _inbox = WorkoutInbox(StagingStore(get_settings().inbox_dir))
    return _inbox

"""
Staging store: durable, id-named payload files on local disk.

The sending side stages each finished workout as <id>.json before handing it
to the transport. The receiving side keeps delivered payloads in the same
layout and reads them back for the inbox.

Writes are atomic. Bytes go to a dot-prefixed temp file in the target
directory, are fsynced, then os.replace()d onto <id>.json. A concurrent
reader therefore sees either the previous complete file or the new one,
never a partial write. Writing the same id twice leaves exactly one file
(last write wins).

Cleanup of transferred or ingested files is not handled here.
"""
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, BinaryIO, Callable, Dict, List, Union
from uuid import UUID

from workout_relay.models.payload import WorkoutPayload
from workout_relay.transfer import codec
from workout_relay.transfer.envelope import make_metadata

logger = logging.getLogger(__name__)

PAYLOAD_SUFFIX = ".json"
_TEMP_PREFIX = "."
_TEMP_SUFFIX = ".tmp"


class NotFoundError(FileNotFoundError):
    """Raised when a staged payload location does not exist."""


@dataclass(frozen=True)
class StagedTransfer:
    """A payload file ready for the transport, plus the metadata to send with it."""

    location: Path
    metadata: Dict[str, str]


class StagingStore:
    """
    One directory of <uuid>.json payload files.

    Usage:
        store = StagingStore(settings.outbox_dir)
        staged = store.stage(payload)      # → StagedTransfer(location, metadata)
        ...
        payload = store.read(location)     # on the receiving side
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def location_for(self, payload_id: UUID) -> Path:
        """Deterministic file path for a payload id."""
        return self.directory / f"{payload_id}{PAYLOAD_SUFFIX}"

    def locations(self) -> List[Path]:
        """All complete payload files, sorted by name. Temp files are excluded."""
        if not self.directory.is_dir():
            return []
        return sorted(
            p for p in self.directory.glob(f"*{PAYLOAD_SUFFIX}")
            if p.is_file() and not p.name.startswith(_TEMP_PREFIX)
        )

    # ── Write ─────────────────────────────────────────────────────────────────

    def write(self, payload: WorkoutPayload) -> Path:
        """
        Encode and atomically persist a payload at location_for(payload.id).

        Raises:
            codec.EncodingError: if the payload holds a non-finite number.
                Nothing is written in that case.
        """
        data = codec.encode(payload)
        location = self.location_for(payload.id)
        self._atomic_write(location, lambda tmp: tmp.write(data))
        logger.info("Staged payload %s at %s (%d bytes)", payload.id, location, len(data))
        return location

    def stage(self, payload: WorkoutPayload) -> StagedTransfer:
        """Write the payload and build its transfer metadata."""
        return StagedTransfer(location=self.write(payload), metadata=make_metadata(payload))

    def import_file(self, source: Union[str, Path], payload_id: UUID) -> Path:
        """
        Atomically copy a delivered file into this store as <payload_id>.json.

        The bytes are copied unchanged. The caller is expected to have
        decoded `source` already. `source` itself is left in place.

        Raises:
            NotFoundError: if `source` does not exist.
        """
        source = Path(source)
        location = self.location_for(payload_id)
        if source.resolve() == location.resolve():
            return location

        try:
            src = source.open("rb")
        except FileNotFoundError as exc:
            raise NotFoundError(f"Delivered payload file not found: {source}") from exc

        with src:
            self._atomic_write(location, lambda tmp: shutil.copyfileobj(src, tmp))
        logger.info("Imported %s as %s", source, location)
        return location

    # ── Read ──────────────────────────────────────────────────────────────────

    def read(self, location: Union[str, Path]) -> WorkoutPayload:
        """
        Load and decode a payload file.

        Raises:
            NotFoundError: if the file does not exist.
            codec.DecodingError: if the file content is not a valid payload.
        """
        location = Path(location)
        try:
            data = location.read_bytes()
        except FileNotFoundError as exc:
            raise NotFoundError(f"No staged payload at {location}") from exc
        return codec.decode(data)

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _temp_file(self):
        return NamedTemporaryFile(
            "wb",
            dir=self.directory,
            prefix=_TEMP_PREFIX,
            suffix=_TEMP_SUFFIX,
            delete=False,
        )

    def _atomic_write(self, location: Path, fill: Callable[[BinaryIO], Any]) -> None:
        """Fill a temp file in the store directory, fsync it, rename onto `location`."""
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = self._temp_file()
        temp_path = Path(tmp.name)
        try:
            with tmp:
                fill(tmp)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(temp_path, location)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

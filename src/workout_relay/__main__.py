"""
Command-line entrypoint.

Usage:
    python -m workout_relay stage workout.json        # stage a payload in the outbox
    python -m workout_relay receive FILE [--id UUID]  # accept a delivered file into the inbox
    python -m workout_relay inbox                     # reload and list received workouts
    uvicorn workout_relay.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from workout_relay.config import get_settings
from workout_relay.transfer.codec import DecodingError, EncodingError
from workout_relay.transfer.envelope import METADATA_ID_KEY, METADATA_TYPE_KEY, METADATA_TYPE_VALUE
from workout_relay.transfer.staging import NotFoundError

logger = logging.getLogger(__name__)


def _stage(args: argparse.Namespace) -> int:
    from workout_relay.transfer.codec import decode
    from workout_relay.transfer.staging import StagingStore

    source = Path(args.file)
    try:
        payload = decode(source.read_bytes())
    except FileNotFoundError as exc:
        raise NotFoundError(f"No such payload file: {source}") from exc

    staged = StagingStore(get_settings().outbox_dir).stage(payload)
    print(staged.location)
    print(json.dumps(staged.metadata))
    return 0


def _receive(args: argparse.Namespace) -> int:
    from workout_relay.inbox.reconciler import get_inbox

    metadata = None
    if args.id:
        metadata = {METADATA_TYPE_KEY: METADATA_TYPE_VALUE, METADATA_ID_KEY: args.id}

    payload = get_inbox().receive(args.file, metadata=metadata)
    print(f"{payload.id}  {payload.summary_line()}")
    return 0


def _list_inbox(args: argparse.Namespace) -> int:
    from workout_relay.inbox.reconciler import get_inbox

    items = get_inbox().reload()
    if not items:
        print("Inbox is empty.")
        return 0
    for payload in items:
        print(f"{payload.start:%Y-%m-%d %H:%M}  {payload.id}  {payload.summary_line()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="workout_relay", description="Workout payload relay")
    sub = parser.add_subparsers(dest="command", required=True)

    stage = sub.add_parser("stage", help="Stage a payload JSON file for transfer")
    stage.add_argument("file", help="Payload JSON in wire format")
    stage.set_defaults(handler=_stage)

    receive = sub.add_parser("receive", help="Accept a delivered payload file into the inbox")
    receive.add_argument("file", help="Delivered payload file")
    receive.add_argument("--id", help="Payload id from the transfer metadata (cross-checked)")
    receive.set_defaults(handler=_receive)

    inbox = sub.add_parser("inbox", help="Reload and list received workouts")
    inbox.set_defaults(handler=_list_inbox)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except (DecodingError, EncodingError, NotFoundError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())

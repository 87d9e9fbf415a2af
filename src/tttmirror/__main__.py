"""CLI entry point: python -m tttmirror [-c config.yaml] {demo,decode}"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from rich.columns import Columns
from rich.console import Console

from tttmirror.config import MirrorConfig, load_config
from tttmirror.core.codec import decode_record
from tttmirror.core.errors import TicTacToeError
from tttmirror.core.keys import Identity
from tttmirror.core.ledger import InMemoryLedger
from tttmirror.render import build_board_panel, build_record_table
from tttmirror.session import Session

# X takes the top row while O plays down the middle column
DEMO_MOVES = [("X", 0, 0), ("O", 0, 1), ("X", 1, 0), ("O", 1, 1), ("X", 2, 0)]


async def _run_demo(config: MirrorConfig, console: Console) -> None:
    """Play a scripted game between two sessions on an in-memory ledger."""
    ledger = InMemoryLedger(program_id=config.client.resolve_program_id())
    telemetry_dir = config.telemetry.output_dir

    x = await Session.create(
        ledger, ledger.program_id, Identity.generate(),
        config=config.client, telemetry_dir=telemetry_dir,
    )
    console.print(f"Game record: {x.record}")
    o = await Session.join(
        ledger, ledger.program_id, Identity.generate(), x.record,
        config=config.client, telemetry_dir=telemetry_dir,
    )
    sessions = {"X": x, "O": o}

    async with x, o:
        await asyncio.sleep(0)  # deliver the join to X
        for mark, col, row in DEMO_MOVES:
            await sessions[mark].move(col, row)
            await asyncio.sleep(0)
            console.print(f"{mark} plays ({col}, {row})")
            console.print(Columns([
                build_board_panel(x.view, "Player X", x.abandoned),
                build_board_panel(o.view, "Player O", o.abandoned),
            ]))

    if telemetry_dir is not None:
        console.print(f"Telemetry: {telemetry_dir}")


def _run_decode(path: Path, as_hex: bool, console: Console) -> None:
    data = path.read_bytes()
    if as_hex:
        data = bytes.fromhex(data.decode("ascii").strip())
    console.print(build_record_table(decode_record(data)))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="tttmirror",
        description="Client-side mirror of a ledger-hosted tic-tac-toe game",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to client YAML config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Log session lifecycle details",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("demo", help="Play a scripted game on an in-memory ledger")
    decode = sub.add_parser("decode", help="Decode a raw game record dump")
    decode.add_argument("file", type=Path, help="File holding the record bytes")
    decode.add_argument(
        "--hex",
        action="store_true",
        default=False,
        help="File contains hex text instead of raw bytes",
    )
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.config is not None and not args.config.exists():
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        sys.exit(1)
    try:
        config = load_config(args.config) if args.config else MirrorConfig()
    except (ValueError, yaml.YAMLError) as e:
        print(f"Error: invalid config {args.config}: {e}", file=sys.stderr)
        sys.exit(1)

    console = Console()
    try:
        if args.command == "demo":
            asyncio.run(_run_demo(config, console))
        else:
            _run_decode(args.file, args.hex, console)
    except TicTacToeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

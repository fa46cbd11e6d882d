# cartlink/cli/args.py
from __future__ import annotations

import argparse
from typing import Optional


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cartlink",
        description="Discover the cartridge reader on a serial port and react to inserted cartridges.",
    )
    parser.add_argument("--config", default=None, help="YAML config file (defaults are used when omitted).")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG.")

    # --config is also accepted after the subcommand; SUPPRESS keeps the global value when absent
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=argparse.SUPPRESS, help="YAML config file.")

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_ports = sub.add_parser("ports", parents=[common], help="List serial ports and mark reader candidates.")
    p_ports.add_argument("--all", action="store_true", help="Include ports that are not candidates.")

    p_probe = sub.add_parser("probe", parents=[common], help="Run the identification handshake against one port.")
    p_probe.add_argument("--port", required=True, help="Port path, e.g. COM3 or /dev/ttyUSB0.")

    p_watch = sub.add_parser("watch", parents=[common], help="Run the session manager and print events.")
    p_watch.add_argument("--no-launch", action="store_true", help="Do not launch cartridge executables.")
    p_watch.add_argument("--secs", type=float, default=None, help="Stop after this many seconds.")
    p_watch.add_argument(
        "--send",
        action="append",
        default=[],
        metavar="CMD",
        help="Raw command to send once connected (repeatable).",
    )

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)

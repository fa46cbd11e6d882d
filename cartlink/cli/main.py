# cartlink/cli/main.py
from __future__ import annotations

from typing import Optional

from cartlink.core.errors import CartLinkError

from cartlink.cli.args import parse_args
from cartlink.cli.commands import (
    cmd_ports,
    cmd_probe,
    cmd_watch,
    configure_logging,
    load_cli_config,
)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    try:
        configure_logging(verbosity=args.verbose, log_file=args.log_file)
        config = load_cli_config(args.config)

        if args.cmd == "ports":
            return cmd_ports(config, show_all=args.all)
        if args.cmd == "probe":
            return cmd_probe(config, port=args.port)
        if args.cmd == "watch":
            return cmd_watch(config, launch=not args.no_launch, secs=args.secs, send=args.send)

        return 2
    except CartLinkError as e:
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1
    except KeyboardInterrupt:
        return 130

import sys
import logging
import argparse
from typing import List, Optional

from runsvdir.local.config import effective_settings as config
from runsvdir.log.setup import setup_logging
from runsvdir.local.supervisor import Supervisor

log = logging.getLogger("runsvdir")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="runsvdir",
        description="Start one process per service directory and keep it running while its run file is unchanged.",
    )
    p.add_argument(
        "-p", "--pause", type=int, default=None, metavar="MILLIS",
        help=f"The number of millis to wait between each check (default: {config.PAUSE_MS})",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    p.add_argument(
        "dir", nargs="?", default=None,
        help=f"The directory holding one subdirectory per service (default: {config.SERVICE_DIR})",
    )
    return p


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point of the supervisor."""
    args = build_parser().parse_args(argv)

    if args.pause is not None and args.pause < 0:
        print("runsvdir: --pause must not be negative", file=sys.stderr)
        return 2

    config.apply(
        SERVICE_DIR=args.dir,
        PAUSE_MS=args.pause,
        VERBOSE_LOGGING=True if args.verbose else None,
    )
    setup_logging()
    log.debug(f"Effective settings: {config.as_dict()}")

    supervisor = Supervisor(config)
    supervisor.install_signal_handlers()
    supervisor.supervision_loop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

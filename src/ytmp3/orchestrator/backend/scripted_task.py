"""Deterministic stand-in for yt-dlp used by backend and orchestrator tests."""

from __future__ import annotations

import argparse
import os
import signal
import sys
import time
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Pretend to download the last positional argument according to the script."""

    parser = argparse.ArgumentParser(allow_abbrev=False)
    parser.add_argument("--fail-on", action="append", default=[])
    parser.add_argument("--sleep-on", action="append", default=[])
    parser.add_argument("--interrupt-on", action="append", default=[])
    parser.add_argument("--sleep-seconds", type=float, default=30.0)
    parser.add_argument("--record", type=Path, default=None)
    parser.add_argument("--title-prefix", default="Scripted")
    parser.add_argument("--print", dest="print_template", default=None)
    args, rest = parser.parse_known_args(argv)
    identifier = rest[-1] if rest else ""

    if args.print_template is not None:
        print(f"{args.title_prefix} {identifier}", flush=True)
        return 0

    if args.record is not None:
        with args.record.open("a", encoding="utf-8") as handle:
            handle.write(f"{identifier}\n")

    print(f"[scripted] Extracting {identifier}", flush=True)
    sys.stderr.write(f"[scripted] stderr for {identifier}\n")
    sys.stderr.flush()

    if identifier in args.interrupt_on:
        os.kill(os.getpid(), signal.SIGTERM)

    if identifier in args.sleep_on:
        time.sleep(args.sleep_seconds)

    if identifier in args.fail_on:
        sys.stderr.write(f"ERROR: [scripted] {identifier}: scripted failure\n")
        return 1

    print(f"[download] 100% of {identifier}", flush=True)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

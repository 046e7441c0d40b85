#!/usr/bin/env python3
"""
Decode an append log and print one JSON record per line.
Undecodable lines are reported on stderr and skipped.
"""

import sys
import json
import argparse
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from recordstore.core import codec
from recordstore.core.append_log import AppendLog
from recordstore.core.config import LOG_PATH
from recordstore.core.errors import CodecError


def main(argv=None):
    parser = argparse.ArgumentParser(description='Print the decoded contents of an append log')
    parser.add_argument('logfile', nargs='?', default=LOG_PATH, help='Path to append log file')
    parser.add_argument('--key', help='Only show entries for this key')
    parser.add_argument('--topic', help='Only show entries for this topic')
    args = parser.parse_args(argv)

    if not Path(args.logfile).exists():
        print(f"ERROR: Append log not found: {args.logfile}")
        sys.exit(1)

    shown = 0
    bad = 0
    for line_number, line in AppendLog(args.logfile).stream():
        try:
            record = codec.decode(line)
        except CodecError as e:
            bad += 1
            print(f"line {line_number}: {e.kind}: {e}", file=sys.stderr)
            continue

        if args.key is not None and record.key != args.key:
            continue
        if args.topic is not None and record.topic != args.topic:
            continue

        print(json.dumps(record.to_dict(), ensure_ascii=False))
        shown += 1

    print(f"{shown} entries shown, {bad} undecodable", file=sys.stderr)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
# ruff: noqa: E402
"""Count move-generation leaves for a pocket-drop position.

Drops are ordinary moves here, so a position with pieces in hand branches
far wider than its standard-chess counterpart: ``4k3/8/8/8/8/8/8/4K3[N] w``
has 5 king moves and 62 knight drops at depth 1.
"""
from __future__ import annotations

import argparse
import os
import sys
import time

# Make `pocketchess/` importable when run as `python scripts/perft.py`
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from pocketchess.engine.perft import divide, perft
from pocketchess.engine.position import STARTING_FEN, PocketBoard


def main() -> None:
    parser = argparse.ArgumentParser(description="Perft node counts, drops included")
    parser.add_argument(
        "--fen",
        type=str,
        default=STARTING_FEN,
        help="FEN with pockets in brackets, e.g. '.../4K3[Nn] w - - 0 1' (default: startpos)",
    )
    parser.add_argument(
        "--moves", nargs="*", default=[], help="UCI moves (drops as N@f3) played before counting"
    )
    parser.add_argument("--depth", type=int, default=3, help="Perft depth (default: 3)")
    parser.add_argument(
        "--divide", action="store_true", help="Print the count below each root move and drop"
    )
    args = parser.parse_args()

    board = PocketBoard.from_setup(args.fen)
    for uci in args.moves:
        board.push_uci(uci)

    start = time.perf_counter()
    if args.divide:
        counts = divide(board, args.depth)
        drops = {m: n for m, n in counts.items() if "@" in m}
        for uci in sorted(counts):
            print(f"{uci}: {counts[uci]}")
        print(f"root moves={len(counts)} root drops={len(drops)}")
        nodes = sum(counts.values())
    else:
        nodes = perft(board, args.depth)
    elapsed = time.perf_counter() - start
    print(
        f"fen={board.fen()} depth={args.depth} nodes={nodes} "
        f"time_ms={int(elapsed * 1000)} nps={int(nodes / max(elapsed, 1e-9))}"
    )


if __name__ == "__main__":
    main()

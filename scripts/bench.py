#!/usr/bin/env python3
# ruff: noqa: E402
from __future__ import annotations

import argparse
import json
import os
import platform
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

# Ensure repo root (which contains `pocketchess/`) is importable when running directly
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from pocketchess.engine.game import Game
from pocketchess.search.config import SearchConfig
from pocketchess.search.service import MctsService, SearchResult


DEFAULT_POSITIONS: List[Dict[str, Any]] = [
    {"id": "startpos", "name": "Start position", "fen": Game.new().to_fen()},
    {
        "id": "pockets",
        "name": "Both sides holding pieces",
        "fen": "r1bqk2r/pppp1ppp/2n2n2/2b1p3/2B1P3/5N2/PPPP1PPP/RNBQK2R[Nn] w KQkq - 4 4",
    },
    {
        "id": "check",
        "name": "White in check with a knight in hand",
        "fen": "4r1k1/8/8/8/8/8/8/4K3[N] w - - 0 1",
    },
]


@dataclass
class BenchItem:
    id: str
    name: str
    fen: str
    iterations: Optional[int] = None


def load_positions(path: Optional[str]) -> List[BenchItem]:
    if path is None:
        data: Dict[str, Any] = {"positions": DEFAULT_POSITIONS}
    else:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    items: List[BenchItem] = []
    for obj in data.get("positions", []):
        items.append(
            BenchItem(
                id=str(obj.get("id", obj.get("name", "pos"))),
                name=str(obj.get("name", "Unnamed")),
                fen=str(obj["fen"]),
                iterations=(int(obj["iterations"]) if obj.get("iterations") is not None else None),
            )
        )
    return items


def bench_position(
    svc: MctsService, item: BenchItem, *, iterations: int, seed: Optional[int]
) -> Dict[str, Any]:
    try:
        game = Game.from_fen(item.fen)
    except ValueError as e:
        raise ValueError(f"Invalid FEN for {item.id}: {e}") from e

    config = SearchConfig(iterations=item.iterations or iterations, seed=seed)
    res: SearchResult = svc.search(game, config)
    ips = int(res.iterations * 1000 / max(1, res.time_ms))
    return {
        "id": item.id,
        "name": item.name,
        "fen": item.fen,
        "best_move": res.best_move.uci() if res.best_move else None,
        "iterations": res.iterations,
        "nodes": res.nodes,
        "time_ms": res.time_ms,
        "iterations_per_s": ips,
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Measure MCTS iteration throughput")
    parser.add_argument("--positions", default=None, help="Path to positions.json")
    parser.add_argument("--iterations", type=int, default=50, help="MCTS iterations per position")
    parser.add_argument("--seed", type=int, default=0, help="Rollout RNG seed")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    parser.add_argument(
        "--progress", action="store_true", help="Print per-position progress to stderr"
    )
    args = parser.parse_args()

    items = load_positions(args.positions)
    if not items:
        raise SystemExit("No positions found in positions file")

    svc = MctsService()
    results: List[Dict[str, Any]] = []
    t0 = time.perf_counter()
    for idx, it in enumerate(items, start=1):
        if args.progress:
            sys.stderr.write(f"[{idx}/{len(items)}] {it.id}: running...\n")
            sys.stderr.flush()
        res = bench_position(svc, it, iterations=max(1, args.iterations), seed=args.seed)
        results.append(res)
        if args.progress:
            sys.stderr.write(
                f"    iterations={res['iterations']} time={res['time_ms']}ms "
                f"nodes={res['nodes']} best={res['best_move']}\n"
            )
            sys.stderr.flush()

    dt_ms = int((time.perf_counter() - t0) * 1000)
    payload = {
        "meta": {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "python": sys.version.split()[0],
            "platform": platform.platform(),
            "config": {"iterations": args.iterations, "seed": args.seed},
        },
        "results": results,
        "summary": {
            "positions": len(results),
            "total_time_ms": dt_ms,
            "total_iterations": sum(r["iterations"] for r in results),
        },
    }
    print(json.dumps(payload, indent=2 if args.pretty else None))


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from ..engine.errors import PositionError
from ..engine.game import Game
from ..engine.position import STARTING_FEN
from ..protocol.uci.loop import run_uci
from ..search.config import DEFAULT_EXPLORATION, SearchConfig
from ..search.service import MctsService


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pocketchess", description="Pocket-drop chess position tool and MCTS engine"
    )
    parser.add_argument(
        "--fen", type=str, default=STARTING_FEN, help="FEN, pockets in brackets (default: startpos)"
    )
    parser.add_argument(
        "--moves", nargs="*", default=[], help="UCI moves to apply, drops as N@f3"
    )
    parser.add_argument("--iterations", type=int, default=None, help="Run an MCTS search")
    parser.add_argument("--seed", type=int, default=None, help="Rollout RNG seed")
    parser.add_argument(
        "--exploration", type=float, default=DEFAULT_EXPLORATION, help="UCT exploration constant"
    )
    parser.add_argument("--uci", action="store_true", help="Speak UCI on stdin/stdout")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())

    if args.uci:
        run_uci()
        return 0

    try:
        game = Game.from_fen(args.fen)
    except PositionError as e:
        print(f"error: {e} (kinds={int(e.kinds)})", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"error: invalid fen: {e}", file=sys.stderr)
        return 2

    for uci in args.moves:
        try:
            game.apply_uci(uci)
        except ValueError:
            print(f"error: illegal move {uci} in {game.to_fen()}", file=sys.stderr)
            return 2

    print(game.board.epd())

    if args.iterations is not None:
        try:
            config = SearchConfig(
                iterations=args.iterations,
                exploration_constant=args.exploration,
                seed=args.seed,
            )
        except ValidationError as e:
            print(f"error: {e}", file=sys.stderr)
            return 2
        result = MctsService().search(game, config)
        for child in sorted(result.children, key=lambda c: c.simulations, reverse=True):
            san = game.board.san(child.move)
            print(f"{san:8} {child.simulations:6d} {child.win_rate:.3f}")
        best = game.board.san(result.best_move) if result.best_move else "(none)"
        print(
            f"bestmove {best} iterations={result.iterations} nodes={result.nodes} "
            f"time_ms={result.time_ms}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())

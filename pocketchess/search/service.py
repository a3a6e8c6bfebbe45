from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import chess

from ..engine.game import Game
from .config import SearchConfig
from .tree import SearchInvariantError, SearchTree


logger = logging.getLogger(__name__)


@dataclass
class ChildStats:
    move: chess.Move
    simulations: int
    wins: float

    @property
    def win_rate(self) -> float:
        return self.wins / self.simulations if self.simulations else 0.0


@dataclass
class SearchResult:
    best_move: Optional[chess.Move]
    children: List[ChildStats]
    iterations: int
    nodes: int
    time_ms: int


class MctsService:
    """Bounded MCTS runs over a game position.

    The tree itself only knows single iterations. This service decides how
    many to run and applies the "most simulated root child" policy.
    """

    def search(
        self,
        game: Game,
        config: Optional[SearchConfig] = None,
        *,
        stop_event: Optional[threading.Event] = None,
        on_iter: Optional[
            Callable[
                [
                    int,  # iterations done
                    int,  # time_ms since start
                    int,  # nodes in tree
                ],
                None,
            ]
        ] = None,
    ) -> SearchResult:
        cfg = config or SearchConfig()
        tree = SearchTree(game.board, cfg)
        start = time.perf_counter()
        deadline = start + cfg.movetime_ms / 1000 if cfg.movetime_ms is not None else None

        done = 0
        while done < cfg.iterations:
            if stop_event is not None and stop_event.is_set():
                break
            if deadline is not None and done > 0 and time.perf_counter() >= deadline:
                break
            tree.execute_mcts()
            done += 1
            if on_iter is not None:
                on_iter(done, int((time.perf_counter() - start) * 1000), len(tree))

        time_ms = int((time.perf_counter() - start) * 1000)
        children = root_children(tree)
        best = most_simulated(children)
        logger.info(
            "mcts search finished",
            extra={"iterations": done, "nodes": len(tree), "time_ms": time_ms},
        )
        return SearchResult(
            best_move=best.move if best is not None else None,
            children=children,
            iterations=done,
            nodes=len(tree),
            time_ms=time_ms,
        )


def root_children(tree: SearchTree) -> List[ChildStats]:
    stats: List[ChildStats] = []
    for child_id in tree.node(tree.root).children:
        child = tree.node(child_id)
        if child.move is None:
            raise SearchInvariantError(f"root child {child_id} has no move")
        stats.append(ChildStats(move=child.move, simulations=child.simulations, wins=child.wins))
    return stats


def most_simulated(children: List[ChildStats]) -> Optional[ChildStats]:
    """Pick the child with the most simulations; earliest wins ties."""
    best: Optional[ChildStats] = None
    for c in children:
        if best is None or c.simulations > best.simulations:
            best = c
    return best

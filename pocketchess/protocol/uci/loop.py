from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from pydantic import ValidationError

from ...engine.game import Game
from ...search.config import DEFAULT_EXPLORATION, DEFAULT_ITERATIONS, SearchConfig
from ...search.service import MctsService, SearchResult


logger = logging.getLogger(__name__)

Writer = Callable[[str], None]

# Upper bound for "go infinite"; "stop" normally ends the search first.
INFINITE_ITERATIONS = 10_000_000


@dataclass
class GoParams:
    nodes: Optional[int] = None
    movetime_ms: Optional[int] = None
    infinite: bool = False


class UCIEngine:
    """UCI protocol adapter around the MCTS core.

    Notes:
    - Core remains pure; I/O is isolated here.
    - Drops use UCI drop notation (``N@f3``) in ``position ... moves``.
    - One background search at a time; a new ``go`` cancels the running one.
    """

    def __init__(self) -> None:
        self.game: Game = Game.new()
        self.search = MctsService()
        self._search_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._result_lock = threading.Lock()
        self._last_result: Optional[SearchResult] = None
        self._search_running = False
        self._gen = 0  # generation id to invalidate stale workers
        # Engine options
        self.iterations: int = DEFAULT_ITERATIONS
        self.exploration: float = DEFAULT_EXPLORATION
        self.seed: Optional[int] = None

    # ---- Command handlers ----
    def cmd_uci(self, write: Writer) -> None:
        write("id name pocketchess")
        write("id author pocketchess developers")
        write(f"option name Iterations type spin default {DEFAULT_ITERATIONS} min 1 max 1000000")
        write(f"option name Exploration type string default {DEFAULT_EXPLORATION}")
        write("option name Seed type string default <empty>")
        write("uciok")

    def cmd_isready(self, write: Writer) -> None:
        write("readyok")

    def cmd_ucinewgame(self) -> None:
        self.game = Game.new()
        self._cancel_running_search()

    def cmd_position(self, args: List[str]) -> None:
        # position [startpos | fen <FEN> ] [moves m1 m2 ...]
        if not args:
            return
        idx = 0
        if args[idx] == "startpos":
            self.game = Game.new()
            idx += 1
        elif args[idx] == "fen":
            idx += 1
            fen_tokens: List[str] = []
            while idx < len(args) and args[idx] != "moves":
                fen_tokens.append(args[idx])
                idx += 1
            if fen_tokens:
                try:
                    self.game = Game.from_fen(" ".join(fen_tokens))
                except ValueError as e:
                    logger.warning("ignoring invalid position: %s", e)
                    return
        if idx < len(args) and args[idx] == "moves":
            idx += 1
            while idx < len(args):
                u = args[idx]
                idx += 1
                try:
                    self.game.apply_uci(u)
                except ValueError:
                    # Stop at the first invalid/illegal move per typical UCI robustness
                    logger.warning("ignoring illegal move %s and the rest of the line", u)
                    break

    def cmd_setoption(self, args: List[str]) -> None:
        # setoption name <name> [value <value>]
        if not args:
            return
        i = 0
        if args[i] == "name":
            i += 1
        name_tokens: List[str] = []
        while i < len(args) and args[i] != "value":
            name_tokens.append(args[i])
            i += 1
        value_tokens: List[str] = []
        if i < len(args) and args[i] == "value":
            i += 1
            value_tokens = args[i:]
        name = " ".join(name_tokens).strip().lower()
        value = " ".join(value_tokens).strip()
        try:
            if name == "iterations":
                self.iterations = SearchConfig(iterations=int(value)).iterations
            elif name == "exploration":
                self.exploration = SearchConfig(
                    exploration_constant=float(value)
                ).exploration_constant
            elif name == "seed":
                self.seed = None if value in ("", "<empty>") else int(value)
        except (ValueError, ValidationError):
            logger.warning("ignoring invalid value %r for option %r", value, name)

    def cmd_go(self, args: List[str], write: Writer) -> None:
        params = self._parse_go_args(args)
        config = self._config_for(params)
        self._cancel_running_search()
        self._stop_event = threading.Event()
        with self._result_lock:
            self._last_result = None
        self._search_running = True
        self._gen += 1
        gen = self._gen
        stop_event = self._stop_event
        game = Game(board=self.game.board.copy())

        def worker() -> None:
            res = self.search.search(
                game,
                config,
                stop_event=stop_event,
                on_iter=self._make_iter_callback(gen, write),
            )
            with self._result_lock:
                self._last_result = res
            if stop_event.is_set() or gen != self._gen:
                self._search_running = False
                return
            self._emit_info(res, write)
            best = res.best_move.uci() if res.best_move else "(none)"
            write(f"bestmove {best}")
            self._search_running = False

        self._search_thread = threading.Thread(target=worker, name="uci-search", daemon=True)
        self._search_thread.start()

    def cmd_stop(self, write: Writer) -> None:
        # Signal stop and report the stopped search's best move ourselves
        self._stop_event.set()
        self._gen += 1  # invalidate any current worker's output
        thread = self._search_thread
        if thread is not None and thread.is_alive():
            # The service checks the stop event between iterations, so this
            # returns after at most one rollout.
            thread.join()
        with self._result_lock:
            res = self._last_result
            self._last_result = None
        legal = self.game.legal_moves()
        if res is None or res.best_move not in legal:
            # No search result for this position; fall back to the first legal move
            best_uci = legal[0].uci() if legal else "(none)"
        else:
            best_uci = res.best_move.uci()
        write(f"bestmove {best_uci}")

    # ---- Utilities ----
    def _parse_go_args(self, args: List[str]) -> GoParams:
        gp = GoParams()
        i = 0
        while i < len(args):
            tok = args[i]
            if tok in ("nodes", "movetime") and i + 1 < len(args):
                try:
                    value = int(args[i + 1])
                except ValueError:
                    value = None
                if tok == "nodes":
                    gp.nodes = value
                else:
                    gp.movetime_ms = value
                i += 2
                continue
            if tok == "infinite":
                gp.infinite = True
            # Clock controls are not supported; callers bound the search with nodes/movetime
            i += 1
        return gp

    def _config_for(self, gp: GoParams) -> SearchConfig:
        iterations = self.iterations
        if gp.infinite:
            iterations = INFINITE_ITERATIONS
        elif gp.nodes is not None:
            iterations = max(1, gp.nodes)
        elif gp.movetime_ms is not None:
            # Time governs; the iteration cap only guards against runaway searches
            iterations = INFINITE_ITERATIONS
        movetime = max(1, gp.movetime_ms) if gp.movetime_ms is not None else None
        return SearchConfig(
            exploration_constant=self.exploration,
            iterations=iterations,
            movetime_ms=movetime,
            seed=self.seed,
        )

    def _emit_info(self, res: SearchResult, write: Writer) -> None:
        time_ms = max(0, res.time_ms)
        nps = int(res.iterations * 1000 / max(1, time_ms))
        best = next((c for c in res.children if c.move == res.best_move), None)
        if best is not None:
            # Win rate mapped to a centipawn-like score from the mover's view
            cp = int(round((best.win_rate - 0.5) * 2000))
            write(
                f"info nodes {res.iterations} time {time_ms} nps {nps} tree {res.nodes} "
                f"score cp {cp} pv {best.move.uci()}"
            )
        else:
            write(f"info nodes {res.iterations} time {time_ms} nps {nps} tree {res.nodes}")

    def _make_iter_callback(self, gen: int, write: Writer):
        def _cb(iterations: int, time_ms: int, nodes: int) -> None:
            # Suppress if search was stopped or superseded; report every 100 iterations
            if self._stop_event.is_set() or gen != self._gen or iterations % 100:
                return
            write(f"info nodes {iterations} time {time_ms} tree {nodes}")

        return _cb

    def _cancel_running_search(self) -> None:
        if self._search_running:
            self._stop_event.set()
            self._gen += 1
        # Do not join; thread is daemonized and its output is suppressed via gen


def _default_writer(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def run_uci() -> None:
    eng = UCIEngine()
    for raw in sys.stdin:
        line = raw.strip()
        if not line:
            continue
        parts = line.split()
        cmd, args = parts[0], parts[1:]

        if cmd == "uci":
            eng.cmd_uci(_default_writer)
        elif cmd == "isready":
            eng.cmd_isready(_default_writer)
        elif cmd == "setoption":
            eng.cmd_setoption(args)
        elif cmd == "ucinewgame":
            eng.cmd_ucinewgame()
        elif cmd == "position":
            eng.cmd_position(args)
        elif cmd == "go":
            eng.cmd_go(args, _default_writer)
        elif cmd == "stop":
            eng.cmd_stop(_default_writer)
        elif cmd == "quit":
            break
        # Ignore unknown commands per UCI convention

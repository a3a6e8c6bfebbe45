from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import chess

from .position import STARTING_FEN, CastlingMode, PocketBoard


@dataclass
class Game:
    """Game wrapper around a pocket board with helper operations.

    Responsibility: track board state, expose legal moves, apply moves.
    Repetition history lives on the board's own move stack.
    """

    board: PocketBoard
    move_stack: List[chess.Move] = field(default_factory=list)

    @classmethod
    def new(cls) -> "Game":
        return cls(board=PocketBoard.from_setup(STARTING_FEN))

    @classmethod
    def from_fen(cls, fen: str, *, chess960: bool = False) -> "Game":
        mode = CastlingMode.CHESS960 if chess960 else CastlingMode.STANDARD
        return cls(board=PocketBoard.from_setup(fen, mode))

    def to_fen(self) -> str:
        return self.board.fen()

    def legal_moves(self) -> List[chess.Move]:
        return list(self.board.legal_moves)

    def apply_move(self, move: chess.Move) -> None:
        if not self.board.is_legal(move):
            raise ValueError("illegal move")
        self.board.push(move)
        self.move_stack.append(move)

    def apply_uci(self, uci: str) -> chess.Move:
        """Parse and apply a UCI move (``e2e4``, ``e7e8q`` or ``N@f3``).

        Raises:
            ValueError: If ``uci`` is malformed or the move is illegal.
        """
        move = chess.Move.from_uci(uci)
        self.apply_move(move)
        return move

    def undo_move(self) -> None:
        if not self.move_stack:
            raise ValueError("no moves to undo")
        self.move_stack.pop()
        self.board.pop()

    # --- State flags for protocol ---
    def in_check(self) -> bool:
        return self.board.is_check()

    def checkmate(self) -> bool:
        return self.board.is_checkmate()

    def stalemate(self) -> bool:
        return self.board.is_stalemate()

    def is_draw(self) -> bool:
        # Stalemate, seventy-five moves or fivefold repetition
        outcome = self.board.outcome()
        return outcome is not None and outcome.winner is None

    def outcome(self) -> Optional[chess.Outcome]:
        return self.board.outcome()

    def move_history_uci(self) -> List[str]:
        return [m.uci() for m in self.move_stack]

from __future__ import annotations

from typing import Dict, Iterable

import chess


class Pocket:
    """Pieces one side holds in hand and may drop back onto the board.

    Counts are kept for every piece type, kings included, so that raw setup
    data with a king in hand can be represented and then rejected by
    validation. Positions that passed validation never hold a king.
    """

    def __init__(self, symbols: Iterable[str] = "") -> None:
        self._counts: Dict[chess.PieceType, int] = {pt: 0 for pt in chess.PIECE_TYPES}
        for symbol in symbols:
            self.add(chess.PIECE_SYMBOLS.index(symbol.lower()))

    def add(self, piece_type: chess.PieceType) -> None:
        self._counts[piece_type] += 1

    def remove(self, piece_type: chess.PieceType) -> None:
        """Take one piece out of the pocket.

        Raises:
            ValueError: If the pocket holds no piece of ``piece_type``.
        """
        if self._counts[piece_type] <= 0:
            raise ValueError(
                f"pocket holds no {chess.piece_name(piece_type)} to remove"
            )
        self._counts[piece_type] -= 1

    def count(self, piece_type: chess.PieceType) -> int:
        return self._counts[piece_type]

    def extend(self, other: "Pocket") -> None:
        for pt, n in other._counts.items():
            self._counts[pt] += n

    def reset(self) -> None:
        for pt in self._counts:
            self._counts[pt] = 0

    def copy(self) -> "Pocket":
        pocket = type(self)()
        pocket._counts = dict(self._counts)
        return pocket

    def __len__(self) -> int:
        return sum(self._counts.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pocket):
            return NotImplemented
        return self._counts == other._counts

    def __str__(self) -> str:
        return "".join(chess.piece_symbol(pt) * self._counts[pt] for pt in chess.PIECE_TYPES)

    def __repr__(self) -> str:
        return f"Pocket('{self}')"

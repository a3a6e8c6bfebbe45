from __future__ import annotations

import enum
from typing import Optional

import chess


class PositionErrorKinds(enum.IntFlag):
    """Reasons a setup was rejected.

    Standard chess violations are reported by python-chess as ``chess.Status``
    bits and translated one-to-one; ``VARIANT`` is raised only by the pocket
    rules (more material than the board can ever hold).
    """

    EMPTY_BOARD = enum.auto()
    MISSING_KING = enum.auto()
    TOO_MANY_KINGS = enum.auto()
    PAWNS_ON_BACKRANK = enum.auto()
    INVALID_CASTLING_RIGHTS = enum.auto()
    INVALID_EP_SQUARE = enum.auto()
    OPPOSITE_CHECK = enum.auto()
    IMPOSSIBLE_CHECK = enum.auto()
    IMPOSSIBLE_MATERIAL = enum.auto()
    VARIANT = enum.auto()


IMPOSSIBLE_MATERIAL_STATUS = (
    chess.STATUS_TOO_MANY_WHITE_PAWNS
    | chess.STATUS_TOO_MANY_BLACK_PAWNS
    | chess.STATUS_TOO_MANY_WHITE_PIECES
    | chess.STATUS_TOO_MANY_BLACK_PIECES
)

_STATUS_KINDS = (
    (chess.STATUS_EMPTY, PositionErrorKinds.EMPTY_BOARD),
    (chess.STATUS_NO_WHITE_KING | chess.STATUS_NO_BLACK_KING, PositionErrorKinds.MISSING_KING),
    (chess.STATUS_TOO_MANY_KINGS, PositionErrorKinds.TOO_MANY_KINGS),
    (chess.STATUS_PAWNS_ON_BACKRANK, PositionErrorKinds.PAWNS_ON_BACKRANK),
    (chess.STATUS_BAD_CASTLING_RIGHTS, PositionErrorKinds.INVALID_CASTLING_RIGHTS),
    (chess.STATUS_INVALID_EP_SQUARE, PositionErrorKinds.INVALID_EP_SQUARE),
    (chess.STATUS_OPPOSITE_CHECK, PositionErrorKinds.OPPOSITE_CHECK),
    (
        chess.STATUS_TOO_MANY_CHECKERS | chess.STATUS_IMPOSSIBLE_CHECK,
        PositionErrorKinds.IMPOSSIBLE_CHECK,
    ),
    (IMPOSSIBLE_MATERIAL_STATUS, PositionErrorKinds.IMPOSSIBLE_MATERIAL),
)


def kinds_from_status(status: chess.Status) -> PositionErrorKinds:
    """Translate python-chess status bits into ``PositionErrorKinds``."""
    kinds = PositionErrorKinds(0)
    for mask, kind in _STATUS_KINDS:
        if status & mask:
            kinds |= kind
    return kinds


class PositionError(ValueError):
    """Setup data does not describe a legal pocket-drop position.

    Attributes:
        kinds (PositionErrorKinds): Every violated invariant.
        status (Optional[chess.Status]): The python-chess status the kinds
            were derived from, after pocket adjustments.
    """

    def __init__(self, kinds: PositionErrorKinds, status: Optional[chess.Status] = None) -> None:
        self.kinds = kinds
        self.status = status
        names = ", ".join(k.name for k in PositionErrorKinds if k & kinds and k.name)
        super().__init__(f"invalid position: {names}")

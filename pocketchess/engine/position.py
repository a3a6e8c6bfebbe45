from __future__ import annotations

import enum
from typing import Iterable, Iterator, List, Optional, Union

import chess

from .errors import (
    IMPOSSIBLE_MATERIAL_STATUS,
    PositionError,
    PositionErrorKinds,
    kinds_from_status,
)
from .pocket import Pocket


STARTING_FEN = chess.STARTING_FEN

# Board squares bound the material that can exist at once: everything in
# hand must still fit on the board.
MAX_MATERIAL = 64
MAX_PAWNS = 32

_PIECE_DROPS = (chess.KNIGHT, chess.BISHOP, chess.ROOK, chess.QUEEN)
_POCKET_SYMBOLS = set("pnbrqkPNBRQK")


class CastlingMode(enum.Enum):
    STANDARD = "standard"
    CHESS960 = "chess960"


class _PocketBoardState(chess._BoardState):
    def __init__(self, board: "PocketBoard") -> None:
        super().__init__(board)
        self.pockets = [pocket.copy() for pocket in board.pockets]

    def restore(self, board: "PocketBoard") -> None:  # type: ignore[override]
        super().restore(board)
        board.pockets = [pocket.copy() for pocket in self.pockets]


class PocketBoard(chess.Board):
    """Pocket-drop chess position on top of python-chess.

    Captured pieces go to the capturer's pocket and can be dropped back on an
    empty square instead of making a board move. Everything else (attacks,
    castling, en passant, SAN, outcome detection) is python-chess.

    Notes:
    - ``pockets`` is indexed by color like python-chess tables
      (``pockets[chess.WHITE]``).
    - A promoted piece is credited as a pawn when captured.
    - FEN/EPD carry pockets in brackets after the board part, e.g.
      ``.../RNBQKBNR[Qpp] w KQkq - 0 1``.
    """

    uci_variant = "pocketdrop"
    starting_fen = STARTING_FEN

    def __init__(self, fen: Optional[str] = STARTING_FEN, *, chess960: bool = False) -> None:
        self.pockets = [Pocket(), Pocket()]
        super().__init__(fen, chess960=chess960)

    @classmethod
    def from_setup(
        cls, setup: str = STARTING_FEN, castling_mode: CastlingMode = CastlingMode.STANDARD
    ) -> "PocketBoard":
        """Build a validated position from raw setup text.

        Args:
            setup (str): FEN, optionally with pockets in brackets or as a ninth
                ``/``-separated field of the board part.
            castling_mode (CastlingMode): Standard or Chess960 castling.

        Returns:
            PocketBoard: The constructed position.

        Raises:
            ValueError: If ``setup`` cannot be parsed (raised by python-chess).
            PositionError: If the parsed position violates any invariant; the
                error carries every violated ``PositionErrorKinds`` flag.
        """
        board = cls(setup, chess960=castling_mode is CastlingMode.CHESS960)
        kinds = board.error_kinds()
        if kinds:
            raise PositionError(kinds, board.status())
        return board

    # --- Validation ---
    def _material_count(self) -> int:
        return chess.popcount(self.occupied) + len(self.pockets[chess.WHITE]) + len(
            self.pockets[chess.BLACK]
        )

    def _pawn_count(self) -> int:
        return (
            chess.popcount(self.pawns)
            + self.pockets[chess.WHITE].count(chess.PAWN)
            + self.pockets[chess.BLACK].count(chess.PAWN)
        )

    def status(self) -> chess.Status:
        status = super().status()
        if self.pockets[chess.WHITE].count(chess.KING) or self.pockets[chess.BLACK].count(
            chess.KING
        ):
            status |= chess.STATUS_TOO_MANY_KINGS
        if self._pawn_count() > MAX_PAWNS:
            # Pawns in hand count against the same limit as pawns on the board.
            status |= chess.STATUS_TOO_MANY_WHITE_PAWNS | chess.STATUS_TOO_MANY_BLACK_PAWNS
        elif self._material_count() <= MAX_MATERIAL:
            # Drops can rebuild material balances standard chess calls impossible.
            status &= ~IMPOSSIBLE_MATERIAL_STATUS
        return status

    def error_kinds(self) -> PositionErrorKinds:
        kinds = kinds_from_status(self.status())
        if self._material_count() > MAX_MATERIAL:
            kinds |= PositionErrorKinds.VARIANT
        return kinds

    def is_valid(self) -> bool:
        return not self.error_kinds()

    # --- Drops ---
    def legal_put_squares_mask(self) -> chess.Bitboard:
        """Return the squares a piece may be dropped on, ignoring pawn ranks.

        Returns:
            chess.Bitboard: Every empty square when not in check, the squares
                strictly between a single checker and the king, or nothing
                when two pieces give check.
        """
        empty = chess.BB_ALL & ~self.occupied
        checkers = self.checkers_mask()
        if not checkers:
            return empty
        king = self.king(self.turn)
        if king is None or chess.popcount(checkers) > 1:
            return chess.BB_EMPTY
        return chess.between(king, chess.msb(checkers)) & empty

    def legal_put_squares(self) -> chess.SquareSet:
        return chess.SquareSet(self.legal_put_squares_mask())

    def generate_legal_drops(
        self, to_mask: chess.Bitboard = chess.BB_ALL
    ) -> Iterator[chess.Move]:
        pocket = self.pockets[self.turn]
        targets = self.legal_put_squares_mask() & to_mask
        held = [pt for pt in _PIECE_DROPS if pocket.count(pt)]
        if held:
            for to_square in chess.scan_forward(targets):
                for piece_type in held:
                    yield chess.Move(to_square, to_square, drop=piece_type)
        if pocket.count(chess.PAWN):
            for to_square in chess.scan_forward(targets & ~chess.BB_BACKRANKS):
                yield chess.Move(to_square, to_square, drop=chess.PAWN)

    def generate_legal_moves(
        self, from_mask: chess.Bitboard = chess.BB_ALL, to_mask: chess.Bitboard = chess.BB_ALL
    ) -> Iterator[chess.Move]:
        yield from super().generate_legal_moves(from_mask, to_mask)
        # A drop has from_square == to_square, so it must pass both masks.
        yield from self.generate_legal_drops(from_mask & to_mask)

    def is_pseudo_legal(self, move: chess.Move) -> bool:
        if not move.drop:
            return super().is_pseudo_legal(move)
        to_bb = chess.BB_SQUARES[move.to_square]
        return (
            move.from_square == move.to_square
            and move.promotion is None
            and move.drop != chess.KING
            and not self.occupied & to_bb
            and not (move.drop == chess.PAWN and chess.BB_BACKRANKS & to_bb)
            and self.pockets[self.turn].count(move.drop) > 0
        )

    def is_legal(self, move: chess.Move) -> bool:
        if not move.drop:
            return super().is_legal(move)
        return self.is_pseudo_legal(move) and bool(
            self.legal_put_squares_mask() & chess.BB_SQUARES[move.to_square]
        )

    def san_candidates(
        self, piece_type: chess.PieceType, to_square: chess.Square
    ) -> List[chess.Move]:
        """Legal moves of ``piece_type`` to ``to_square``, the drop included."""
        moves = list(
            super().generate_legal_moves(
                self.pieces_mask(piece_type, self.turn), chess.BB_SQUARES[to_square]
            )
        )
        if piece_type != chess.KING:
            drop = chess.Move(to_square, to_square, drop=piece_type)
            if self.is_legal(drop):
                moves.append(drop)
        return moves

    def parse_san(self, san: str) -> chess.Move:
        if "@" not in san:
            return super().parse_san(san)
        symbol, _, square_name = san.rstrip("+#").partition("@")
        try:
            piece_type = chess.PIECE_SYMBOLS.index(symbol.lower()) if symbol else chess.PAWN
            to_square = chess.parse_square(square_name)
        except ValueError as e:
            raise chess.InvalidMoveError(f"invalid san: {san!r}") from e
        for move in self.san_candidates(piece_type, to_square):
            if move.drop:
                return move
        raise chess.IllegalMoveError(f"illegal san: {san!r} in {self.fen()}")

    # --- Mutation ---
    def _captured_credit(self, move: chess.Move) -> Optional[chess.PieceType]:
        if not self.is_capture(move):
            return None
        if self.is_en_passant(move):
            return chess.PAWN
        if self.promoted & chess.BB_SQUARES[move.to_square]:
            return chess.PAWN
        return self.piece_type_at(move.to_square)

    def push(self, move: chess.Move) -> None:
        """Apply ``move`` without a legality check, keeping pockets in step.

        Raises:
            ValueError: If ``move`` drops a piece the mover does not hold.
        """
        pocket = self.pockets[self.turn]
        if move.drop and not pocket.count(move.drop):
            raise ValueError(f"no {chess.piece_name(move.drop)} in pocket for {move.uci()}")
        credit = self._captured_credit(move)
        # The base push snapshots the pre-move state (pockets included) first.
        super().push(move)
        if move.drop:
            pocket.remove(move.drop)
        elif credit is not None:
            pocket.add(credit)

    def play(self, move: chess.Move) -> None:
        """Apply a legal move in place.

        Raises:
            chess.IllegalMoveError: If ``move`` is not legal here.
        """
        if not self.is_legal(move):
            raise chess.IllegalMoveError(f"illegal move {move.uci()} in {self.fen()}")
        self.push(move)

    def is_irreversible(self, move: chess.Move) -> bool:
        if move.drop:
            return False
        if self.is_castling(move):
            return True
        if self.is_en_passant(move):
            return False
        rights = self.clean_castling_rights()
        touched = chess.BB_SQUARES[move.from_square] | chess.BB_SQUARES[move.to_square]
        if rights & touched:
            return True
        back_rank = chess.BB_RANK_1 if self.turn == chess.WHITE else chess.BB_RANK_8
        return self.piece_type_at(move.from_square) == chess.KING and bool(rights & back_rank)

    # --- Rule overrides ---
    def has_insufficient_material(self, color: chess.Color) -> bool:
        return False

    def is_variant_end(self) -> bool:
        return False

    def variant_outcome(self) -> Optional[chess.Outcome]:
        return None

    # --- External material ---
    def add_material(
        self,
        white: Union[Pocket, Iterable[str]] = "",
        black: Union[Pocket, Iterable[str]] = "",
    ) -> None:
        """Add pieces from outside the board to the pockets.

        In bughouse this is how a partner's captures arrive. Symbols are read
        case-insensitively; the argument decides the color. The result is not
        validated here, so check ``error_kinds()`` or ``is_valid()`` before
        relying on the position.

        Args:
            white: Pieces for White's pocket.
            black: Pieces for Black's pocket.
        """
        for color, material in ((chess.WHITE, white), (chess.BLACK, black)):
            incoming = material if isinstance(material, Pocket) else Pocket(material)
            self.pockets[color].extend(incoming)

    # --- State plumbing for python-chess ---
    def apply_mirror(self) -> None:
        super().apply_mirror()
        self.pockets.reverse()

    def reset_board(self) -> None:
        super().reset_board()
        for pocket in self.pockets:
            pocket.reset()

    def clear_board(self) -> None:
        super().clear_board()
        for pocket in self.pockets:
            pocket.reset()

    def _board_state(self) -> _PocketBoardState:  # type: ignore[override]
        return _PocketBoardState(self)

    def _transposition_key(self):
        return (
            super()._transposition_key(),
            self.promoted,
            str(self.pockets[chess.WHITE]),
            str(self.pockets[chess.BLACK]),
        )

    def copy(self, *, stack: bool | int = True) -> "PocketBoard":
        board = super().copy(stack=stack)
        board.pockets = [pocket.copy() for pocket in self.pockets]
        return board

    # --- FEN / EPD ---
    def set_fen(self, fen: str) -> None:
        parts = fen.split(None, 1)
        if not parts:
            raise ValueError(f"empty fen: {fen!r}")
        position_part = parts[0]
        info_part = parts[1] if len(parts) > 1 else ""

        pocket_part = ""
        if position_part.endswith("]"):
            if "[" not in position_part:
                raise ValueError(f"unterminated pocket in fen: {fen!r}")
            position_part, pocket_part = position_part[:-1].split("[", 1)
        elif position_part.count("/") == 8:
            position_part, pocket_part = position_part.rsplit("/", 1)
        pocket_part = pocket_part.replace("-", "")
        if not set(pocket_part) <= _POCKET_SYMBOLS:
            raise ValueError(f"invalid pocket in fen: {fen!r}")

        super().set_fen(f"{position_part} {info_part}".strip())
        self.pockets[chess.WHITE] = Pocket(c for c in pocket_part if c.isupper())
        self.pockets[chess.BLACK] = Pocket(c for c in pocket_part if c.islower())

    def board_fen(self, *, promoted: Optional[bool] = None) -> str:
        if promoted is None:
            promoted = True
        return super().board_fen(promoted=promoted)

    def pocket_fen(self) -> str:
        return str(self.pockets[chess.WHITE]).upper() + str(self.pockets[chess.BLACK])

    def epd(  # type: ignore[override]
        self,
        *,
        shredder: bool = False,
        en_passant: str = "legal",
        promoted: Optional[bool] = None,
        **operations,
    ) -> str:
        epd = super().epd(
            shredder=shredder, en_passant=en_passant, promoted=promoted, **operations
        )
        board_part, info_part = epd.split(" ", 1)
        return f"{board_part}[{self.pocket_fen()}] {info_part}"

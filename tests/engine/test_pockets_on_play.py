from __future__ import annotations

import chess
import pytest

from pocketchess.engine.errors import PositionError, PositionErrorKinds
from pocketchess.engine.pocket import Pocket
from pocketchess.engine.position import PocketBoard


def test_pawn_double_push_from_startpos() -> None:
    b = PocketBoard.from_setup()
    b.play(chess.Move.from_uci("e2e4"))
    assert b.piece_at(chess.E2) is None
    assert b.piece_at(chess.E4) == chess.Piece(chess.PAWN, chess.WHITE)
    assert b.turn == chess.BLACK
    assert b.ep_square == chess.E3
    assert len(b.pockets[chess.WHITE]) == 0
    assert len(b.pockets[chess.BLACK]) == 0


def test_put_decrements_pocket_and_places_piece() -> None:
    b = PocketBoard.from_setup("4k3/8/8/8/8/8/8/4K3[NN] w - - 0 1")
    b.play(chess.Move(chess.D4, chess.D4, drop=chess.KNIGHT))
    assert b.pockets[chess.WHITE].count(chess.KNIGHT) == 1
    assert b.piece_at(chess.D4) == chess.Piece(chess.KNIGHT, chess.WHITE)
    assert b.turn == chess.BLACK


def test_capture_credits_captured_role_to_capturer() -> None:
    b = PocketBoard.from_setup("4k3/8/8/3n4/8/8/8/3RK3 w - - 0 1")
    b.play(chess.Move.from_uci("d1d5"))
    assert b.pockets[chess.WHITE].count(chess.KNIGHT) == 1
    assert len(b.pockets[chess.WHITE]) == 1
    assert len(b.pockets[chess.BLACK]) == 0


def test_capturing_a_promoted_piece_credits_a_pawn() -> None:
    # "~" marks the queen on d5 as a promoted pawn
    b = PocketBoard.from_setup("4k3/8/8/3q~4/8/8/8/3RK3 w - - 0 1")
    assert b.promoted & chess.BB_D5
    b.play(chess.Move.from_uci("d1d5"))
    assert b.pockets[chess.WHITE].count(chess.PAWN) == 1
    assert b.pockets[chess.WHITE].count(chess.QUEEN) == 0


def test_promotion_then_capture_credits_a_pawn() -> None:
    b = PocketBoard.from_setup("1r2k3/P7/8/8/8/8/8/4K3 w - - 0 1")
    b.play(chess.Move.from_uci("a7a8q"))
    assert b.fen().startswith("Q~r2k3/")
    b.play(chess.Move.from_uci("b8a8"))
    assert b.pockets[chess.BLACK].count(chess.PAWN) == 1
    assert b.pockets[chess.BLACK].count(chess.QUEEN) == 0


def test_en_passant_credits_a_pawn() -> None:
    b = PocketBoard.from_setup("4k3/8/8/3Pp3/8/8/8/4K3 w - e6 0 1")
    b.play(chess.Move.from_uci("d5e6"))
    assert b.piece_at(chess.E5) is None
    assert b.pockets[chess.WHITE].count(chess.PAWN) == 1


def test_castling_leaves_pockets_alone() -> None:
    b = PocketBoard.from_setup("r3k2r/8/8/8/8/8/8/R3K2R[Pp] w KQkq - 0 1")
    b.play(chess.Move.from_uci("e1g1"))
    assert str(b.pockets[chess.WHITE]) == "p"
    assert str(b.pockets[chess.BLACK]) == "p"


def test_pop_restores_pockets() -> None:
    b = PocketBoard.from_setup("4k3/8/8/3n4/8/8/8/3RK3[B] w - - 0 1")
    before = b.fen()
    b.play(chess.Move.from_uci("d1d5"))
    b.play(chess.Move.from_uci("e8e7"))
    b.play(chess.Move.from_uci("B@c4"))
    assert b.pockets[chess.WHITE].count(chess.BISHOP) == 0
    b.pop()
    b.pop()
    b.pop()
    assert b.fen() == before
    assert b.pockets[chess.WHITE].count(chess.BISHOP) == 1
    assert b.pockets[chess.WHITE].count(chess.KNIGHT) == 0


def test_copy_does_not_share_pockets() -> None:
    b = PocketBoard.from_setup("4k3/8/8/8/8/8/8/4K3[N] w - - 0 1")
    c = b.copy()
    c.play(chess.Move.from_uci("N@d4"))
    assert b.pockets[chess.WHITE].count(chess.KNIGHT) == 1
    assert c.pockets[chess.WHITE].count(chess.KNIGHT) == 0


def test_play_rejects_illegal_moves() -> None:
    b = PocketBoard.from_setup()
    with pytest.raises(chess.IllegalMoveError):
        b.play(chess.Move.from_uci("e2e5"))
    with pytest.raises(chess.IllegalMoveError):
        b.play(chess.Move(chess.E4, chess.E4, drop=chess.KNIGHT))


def test_unchecked_push_of_missing_drop_raises() -> None:
    b = PocketBoard.from_setup()
    with pytest.raises(ValueError):
        b.push(chess.Move(chess.E4, chess.E4, drop=chess.KNIGHT))
    assert b.fen() == PocketBoard().fen()


def test_fen_round_trip_with_pockets() -> None:
    fen = "4k3/8/8/8/8/8/8/4K3[Npn] w - - 0 1"
    b = PocketBoard.from_setup(fen)
    assert b.fen() == fen
    assert PocketBoard.from_setup("4k3/8/8/8/8/8/8/4K3/Npn w - - 0 1") == b
    assert b.epd() == "4k3/8/8/8/8/8/8/4K3[Npn] w - -"


CASTLING_FEN = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"


@pytest.mark.parametrize(
    "fen, uci, expected",
    [
        (CASTLING_FEN, "e1e2", True),
        (CASTLING_FEN, "a1a2", True),
        (CASTLING_FEN, "e1g1", True),
        (CASTLING_FEN, "a1a8", True),
        ("4k3/8/8/8/8/8/8/4K3 w - - 0 1", "e1e2", False),
        ("r3k2r/8/8/8/8/8/8/4K3 w kq - 0 1", "e1e2", False),
        ("4k3/8/8/8/8/8/4P3/4K3 w - - 0 1", "e2e4", False),
        ("4k3/8/8/3n4/8/8/8/3RK3 w - - 0 1", "d1d5", False),
        ("4k3/8/8/3Pp3/8/8/8/4K3 w - e6 0 1", "d5e6", False),
        ("4k3/8/8/8/8/8/8/4K3[N] w - - 0 1", "N@d4", False),
    ],
)
def test_irreversible_moves(fen: str, uci: str, expected: bool) -> None:
    b = PocketBoard.from_setup(fen)
    assert b.is_irreversible(chess.Move.from_uci(uci)) is expected


def test_bare_kings_are_not_a_draw() -> None:
    b = PocketBoard.from_setup("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
    assert not b.has_insufficient_material(chess.WHITE)
    assert not b.has_insufficient_material(chess.BLACK)
    assert not b.is_insufficient_material()
    assert b.outcome() is None
    assert b.variant_outcome() is None
    assert not b.is_variant_end()


def test_king_shuffle_repeats_position() -> None:
    b = PocketBoard.from_setup("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
    for _ in range(2):
        for uci in ("e1e2", "e8e7", "e2e1", "e7e8"):
            b.push_uci(uci)
    assert b.is_repetition(3)


def test_mirror_swaps_pockets() -> None:
    b = PocketBoard.from_setup("4k3/8/8/8/8/8/8/4K3[Np] w - - 0 1")
    m = b.mirror()
    assert m.pockets[chess.BLACK].count(chess.KNIGHT) == 1
    assert m.pockets[chess.WHITE].count(chess.PAWN) == 1
    assert m.fen() == "4k3/8/8/8/8/8/8/4K3[Pn] b - - 0 1"
    # the original is untouched
    assert b.pockets[chess.WHITE].count(chess.KNIGHT) == 1


def test_add_material_fills_both_pockets() -> None:
    b = PocketBoard.from_setup()
    b.add_material("Q", Pocket("nn"))
    assert b.fen() == "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR[Qnn] w KQkq - 0 1"
    assert b.is_valid()
    b.add_material(black="p")
    assert str(b.pockets[chess.BLACK]) == "pnn"
    assert PocketBoard.from_setup(b.fen()) == b


def test_added_pawns_count_against_the_pawn_limit() -> None:
    b = PocketBoard.from_setup()
    b.add_material("P" * 17)
    assert b.error_kinds() == PositionErrorKinds.IMPOSSIBLE_MATERIAL
    assert not b.is_valid()
    with pytest.raises(PositionError) as exc:
        PocketBoard.from_setup(b.fen())
    assert exc.value.kinds == PositionErrorKinds.IMPOSSIBLE_MATERIAL


def test_added_material_counts_against_the_board_size() -> None:
    b = PocketBoard.from_setup()
    b.add_material("Q" * 16, "q" * 16)
    assert b.is_valid()
    b.add_material("R")
    assert b.error_kinds() == PositionErrorKinds.VARIANT
    with pytest.raises(PositionError) as exc:
        PocketBoard.from_setup(b.fen())
    assert exc.value.kinds == PositionErrorKinds.VARIANT

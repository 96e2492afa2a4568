from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

BOARD_SIZE = 8
MOVE_LIMIT = 200
FILES = "abcdefgh"
STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


class Color(str, Enum):
    white = "white"
    black = "black"

    @property
    def opponent(self) -> "Color":
        return Color.black if self is Color.white else Color.white


class PieceKind(IntEnum):
    pawn = 1
    knight = 2
    bishop = 3
    rook = 4
    queen = 5
    king = 6


class GameResult(str, Enum):
    in_progress = "in_progress"
    white_won = "white_won"
    black_won = "black_won"
    drawn = "drawn"


class Termination(str, Enum):
    checkmate = "checkmate"
    stalemate = "stalemate"
    move_limit = "move_limit"


_SYMBOLS: Dict[PieceKind, str] = {
    PieceKind.pawn: "p",
    PieceKind.knight: "n",
    PieceKind.bishop: "b",
    PieceKind.rook: "r",
    PieceKind.queen: "q",
    PieceKind.king: "k",
}
_KINDS_BY_SYMBOL = {symbol: kind for kind, symbol in _SYMBOLS.items()}


class Square(NamedTuple):
    """Board coordinate; row 0 is black's back rank, row 7 is white's."""

    row: int
    col: int

    @classmethod
    def from_algebraic(cls, name: str) -> "Square":
        if len(name) != 2 or name[0] not in FILES or name[1] not in "12345678":
            raise ValueError(f"Invalid square name: {name!r}")
        return cls(BOARD_SIZE - int(name[1]), FILES.index(name[0]))

    @property
    def on_board(self) -> bool:
        return 0 <= self.row < BOARD_SIZE and 0 <= self.col < BOARD_SIZE

    @property
    def algebraic(self) -> str:
        return f"{FILES[self.col]}{BOARD_SIZE - self.row}"


class Move(NamedTuple):
    source: Square
    target: Square

    @classmethod
    def from_uci(cls, uci: str) -> "Move":
        """Parse `e2e4`; a trailing promotion letter is accepted and ignored."""
        text = uci.strip().lower()
        if len(text) not in (4, 5) or (len(text) == 5 and text[4] not in "qrbn"):
            raise ValueError(f"Invalid UCI string: {uci!r}")
        return cls(Square.from_algebraic(text[:2]), Square.from_algebraic(text[2:4]))

    @classmethod
    def from_coordinates(cls, from_row: int, from_col: int, to_row: int, to_col: int) -> "Move":
        return cls(Square(from_row, from_col), Square(to_row, to_col))


@dataclass(frozen=True, slots=True)
class Piece:
    kind: PieceKind
    color: Color

    @property
    def symbol(self) -> str:
        symbol = _SYMBOLS[self.kind]
        return symbol.upper() if self.color is Color.white else symbol

    @classmethod
    def from_symbol(cls, symbol: str) -> "Piece":
        kind = _KINDS_BY_SYMBOL.get(symbol.lower())
        if kind is None:
            raise ValueError(f"Unknown piece symbol: {symbol!r}")
        return cls(kind, Color.white if symbol.isupper() else Color.black)


KNIGHT_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (-2, -1), (-2, 1), (-1, -2), (-1, 2), (1, -2), (1, 2), (2, -1), (2, 1),
)
KING_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1),
)
ORTHOGONAL: Tuple[Tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))
DIAGONAL: Tuple[Tuple[int, int], ...] = ((-1, -1), (-1, 1), (1, -1), (1, 1))

_HOME_ROW = {Color.white: 7, Color.black: 0}
_PAWN_STEP = {Color.white: -1, Color.black: 1}
_PAWN_START_ROW = {Color.white: 6, Color.black: 1}
_PROMOTION_ROW = {Color.white: 0, Color.black: 7}
_KING_HOME_COL = 4
_BACK_RANK = (
    PieceKind.rook,
    PieceKind.knight,
    PieceKind.bishop,
    PieceKind.queen,
    PieceKind.king,
    PieceKind.bishop,
    PieceKind.knight,
    PieceKind.rook,
)
_SLIDES = {
    PieceKind.bishop: DIAGONAL,
    PieceKind.rook: ORTHOGONAL,
    PieceKind.queen: ORTHOGONAL + DIAGONAL,
}


def _on_board(row: int, col: int) -> bool:
    return 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE


@dataclass(slots=True)
class _UndoRecord:
    move: Move
    piece: Piece
    captured: Optional[Piece]
    captured_square: Square
    rook_move: Optional[Tuple[Square, Square]]
    en_passant: Optional[Square]
    castling: Tuple[bool, bool, bool, bool, bool, bool]
    check: bool
    result: GameResult
    termination: Optional[Termination]


class Board:
    """Chess position with full move legality and game-over detection.

    Build positions with `Board.new_initial()` or `Board.from_fen()`; the bare
    constructor yields an empty grid without kings.
    """

    def __init__(self) -> None:
        self._grid: List[List[Optional[Piece]]] = [[None] * BOARD_SIZE for _ in range(BOARD_SIZE)]
        self._kings: Dict[Color, Square] = {}
        self._history: List[_UndoRecord] = []
        self.turn = Color.white
        self.result = GameResult.in_progress
        self.termination: Optional[Termination] = None
        self.check = False
        self.en_passant: Optional[Square] = None
        self.white_king_moved = False
        self.black_king_moved = False
        self.white_rook_a_moved = False
        self.white_rook_h_moved = False
        self.black_rook_a_moved = False
        self.black_rook_h_moved = False
        self.move_count = 0

    # ------------------------------------------------------------------ setup

    @classmethod
    def new_initial(cls) -> "Board":
        board = cls()
        for col, kind in enumerate(_BACK_RANK):
            board._grid[0][col] = Piece(kind, Color.black)
            board._grid[1][col] = Piece(PieceKind.pawn, Color.black)
            board._grid[6][col] = Piece(PieceKind.pawn, Color.white)
            board._grid[7][col] = Piece(kind, Color.white)
        board._kings = {
            Color.white: Square(7, _KING_HOME_COL),
            Color.black: Square(0, _KING_HOME_COL),
        }
        return board

    @classmethod
    def from_fen(cls, fen: str) -> "Board":
        fields = fen.split()
        if len(fields) < 2:
            raise ValueError(f"FEN needs at least placement and side to move: {fen!r}")

        ranks = fields[0].split("/")
        if len(ranks) != BOARD_SIZE:
            raise ValueError(f"FEN placement must have 8 ranks: {fields[0]!r}")

        board = cls()
        for row, rank in enumerate(ranks):
            col = 0
            for char in rank:
                if char.isdigit():
                    col += int(char)
                    continue
                if col >= BOARD_SIZE:
                    raise ValueError(f"FEN rank overflows the board: {rank!r}")
                piece = Piece.from_symbol(char)
                board._grid[row][col] = piece
                if piece.kind is PieceKind.king:
                    if piece.color in board._kings:
                        raise ValueError(f"More than one {piece.color.value} king in {fen!r}")
                    board._kings[piece.color] = Square(row, col)
                col += 1
            if col != BOARD_SIZE:
                raise ValueError(f"FEN rank does not cover 8 files: {rank!r}")

        for color in Color:
            if color not in board._kings:
                raise ValueError(f"Missing {color.value} king in {fen!r}")

        if fields[1] not in ("w", "b"):
            raise ValueError(f"Invalid side to move: {fields[1]!r}")
        board.turn = Color.white if fields[1] == "w" else Color.black

        castling = fields[2] if len(fields) > 2 else "-"
        board.white_rook_h_moved = "K" not in castling
        board.white_rook_a_moved = "Q" not in castling
        board.black_rook_h_moved = "k" not in castling
        board.black_rook_a_moved = "q" not in castling
        board.white_king_moved = board.white_rook_h_moved and board.white_rook_a_moved
        board.black_king_moved = board.black_rook_h_moved and board.black_rook_a_moved

        if len(fields) > 3 and fields[3] != "-":
            board.en_passant = Square.from_algebraic(fields[3])

        fullmove = int(fields[5]) if len(fields) > 5 else 1
        board.move_count = max(0, (fullmove - 1) * 2 + (1 if board.turn is Color.black else 0))

        board._refresh_status()
        return board

    # --------------------------------------------------------------- queries

    @property
    def game_over(self) -> bool:
        return self.result is not GameResult.in_progress

    @property
    def winner(self) -> Optional[Color]:
        if self.result is GameResult.white_won:
            return Color.white
        if self.result is GameResult.black_won:
            return Color.black
        return None

    def piece_at(self, square: Square) -> Optional[Piece]:
        return self._grid[square.row][square.col]

    def pieces(self) -> Iterator[Tuple[Square, Piece]]:
        """Yield occupied squares in scan order (rows 0-7, then cols 0-7)."""
        for row in range(BOARD_SIZE):
            for col in range(BOARD_SIZE):
                piece = self._grid[row][col]
                if piece is not None:
                    yield Square(row, col), piece

    def king_square(self, color: Color) -> Square:
        return self._kings[color]

    def in_check(self, color: Color) -> bool:
        return self.is_attacked(self._kings[color], color.opponent)

    def is_attacked(self, square: Square, by_color: Color) -> bool:
        grid = self._grid
        row, col = square

        pawn_row = row - _PAWN_STEP[by_color]
        if 0 <= pawn_row < BOARD_SIZE:
            for pawn_col in (col - 1, col + 1):
                if 0 <= pawn_col < BOARD_SIZE:
                    piece = grid[pawn_row][pawn_col]
                    if piece is not None and piece.color is by_color and piece.kind is PieceKind.pawn:
                        return True

        for offsets, kind in ((KNIGHT_OFFSETS, PieceKind.knight), (KING_OFFSETS, PieceKind.king)):
            for dr, dc in offsets:
                r, c = row + dr, col + dc
                if _on_board(r, c):
                    piece = grid[r][c]
                    if piece is not None and piece.color is by_color and piece.kind is kind:
                        return True

        for directions, sliders in (
            (ORTHOGONAL, (PieceKind.rook, PieceKind.queen)),
            (DIAGONAL, (PieceKind.bishop, PieceKind.queen)),
        ):
            for dr, dc in directions:
                r, c = row + dr, col + dc
                while _on_board(r, c):
                    piece = grid[r][c]
                    if piece is not None:
                        if piece.color is by_color and piece.kind in sliders:
                            return True
                        break
                    r += dr
                    c += dc
        return False

    def is_legal(self, move: Move) -> bool:
        source, target = move
        if not (_on_board(*source) and _on_board(*target)):
            return False

        piece = self._grid[source.row][source.col]
        if piece is None or piece.color is not self.turn:
            return False

        occupant = self._grid[target.row][target.col]
        if occupant is not None and occupant.color is piece.color:
            return False

        if not self._follows_movement_rule(piece, source, target):
            return False

        return not self._exposes_king(piece, source, target)

    def legal_moves(self) -> List[Move]:
        return list(self._iter_legal_moves())

    def uci(self, move: Move) -> str:
        text = move.source.algebraic + move.target.algebraic
        piece = self.piece_at(move.source)
        if (
            piece is not None
            and piece.kind is PieceKind.pawn
            and move.target.row == _PROMOTION_ROW[piece.color]
        ):
            text += "q"
        return text

    def fingerprint(self) -> str:
        """64-character piece layout key, one character per square in scan order."""
        return "".join(
            piece.symbol if piece is not None else "."
            for row in self._grid
            for piece in row
        )

    def fen(self) -> str:
        ranks = []
        for row in self._grid:
            text = ""
            empty = 0
            for piece in row:
                if piece is None:
                    empty += 1
                    continue
                if empty:
                    text += str(empty)
                    empty = 0
                text += piece.symbol
            if empty:
                text += str(empty)
            ranks.append(text)

        castling = ""
        if not self.white_king_moved and not self.white_rook_h_moved:
            castling += "K"
        if not self.white_king_moved and not self.white_rook_a_moved:
            castling += "Q"
        if not self.black_king_moved and not self.black_rook_h_moved:
            castling += "k"
        if not self.black_king_moved and not self.black_rook_a_moved:
            castling += "q"

        en_passant = self.en_passant.algebraic if self.en_passant is not None else "-"
        side = "w" if self.turn is Color.white else "b"
        fullmove = self.move_count // 2 + 1
        return f"{'/'.join(ranks)} {side} {castling or '-'} {en_passant} 0 {fullmove}"

    # ------------------------------------------------------------- mutation

    def apply(self, move: Move) -> None:
        """Play `move` without validating it; callers check `is_legal` first."""
        source, target = move
        grid = self._grid
        piece = grid[source.row][source.col]

        captured_square = target
        if (
            piece.kind is PieceKind.pawn
            and source.col != target.col
            and grid[target.row][target.col] is None
            and self.en_passant == target
        ):
            captured_square = Square(source.row, target.col)
        captured = grid[captured_square.row][captured_square.col]
        record = _UndoRecord(
            move=move,
            piece=piece,
            captured=captured,
            captured_square=captured_square,
            rook_move=None,
            en_passant=self.en_passant,
            castling=self._castling_flags(),
            check=self.check,
            result=self.result,
            termination=self.termination,
        )
        grid[captured_square.row][captured_square.col] = None

        if piece.kind is PieceKind.king and abs(target.col - source.col) == 2:
            kingside = target.col > source.col
            rook_from = Square(source.row, 7 if kingside else 0)
            rook_to = Square(source.row, 5 if kingside else 3)
            grid[rook_to.row][rook_to.col] = grid[rook_from.row][rook_from.col]
            grid[rook_from.row][rook_from.col] = None
            record.rook_move = (rook_from, rook_to)

        grid[source.row][source.col] = None
        placed = piece
        if piece.kind is PieceKind.pawn and target.row == _PROMOTION_ROW[piece.color]:
            placed = Piece(PieceKind.queen, piece.color)
        grid[target.row][target.col] = placed

        if piece.kind is PieceKind.king:
            self._kings[piece.color] = target

        self.en_passant = None
        if piece.kind is PieceKind.pawn and abs(target.row - source.row) == 2:
            self.en_passant = Square((source.row + target.row) // 2, source.col)

        if piece.kind is PieceKind.king:
            self._mark_king_moved(piece.color)
        elif piece.kind is PieceKind.rook and source.row == _HOME_ROW[piece.color]:
            self._mark_rook_moved(piece.color, source.col)
        # A rook taken on its corner can no longer castle either.
        if (
            captured is not None
            and captured.kind is PieceKind.rook
            and captured_square.row == _HOME_ROW[captured.color]
        ):
            self._mark_rook_moved(captured.color, captured_square.col)

        self.turn = self.turn.opponent
        self.move_count += 1
        self._history.append(record)
        self._refresh_status()

    def undo(self) -> None:
        """Revert the most recent `apply` made on this instance."""
        if not self._history:
            raise IndexError("No move to undo.")
        record = self._history.pop()
        grid = self._grid
        source, target = record.move

        grid[target.row][target.col] = None
        grid[source.row][source.col] = record.piece
        grid[record.captured_square.row][record.captured_square.col] = record.captured
        if record.rook_move is not None:
            rook_from, rook_to = record.rook_move
            grid[rook_from.row][rook_from.col] = grid[rook_to.row][rook_to.col]
            grid[rook_to.row][rook_to.col] = None
        if record.piece.kind is PieceKind.king:
            self._kings[record.piece.color] = source

        self.en_passant = record.en_passant
        self._restore_castling_flags(record.castling)
        self.check = record.check
        self.result = record.result
        self.termination = record.termination
        self.turn = record.piece.color
        self.move_count -= 1

    def clone(self) -> "Board":
        other = Board()
        other._grid = [row[:] for row in self._grid]
        other._kings = dict(self._kings)
        other.turn = self.turn
        other.result = self.result
        other.termination = self.termination
        other.check = self.check
        other.en_passant = self.en_passant
        other._restore_castling_flags(self._castling_flags())
        other.move_count = self.move_count
        return other

    # ------------------------------------------------------------- internals

    def _iter_legal_moves(self) -> Iterator[Move]:
        for source, piece in self.pieces():
            if piece.color is not self.turn:
                continue
            for target in sorted(self._candidate_targets(source, piece)):
                move = Move(source, target)
                if self.is_legal(move):
                    yield move

    def _candidate_targets(self, source: Square, piece: Piece) -> set[Square]:
        row, col = source
        kind = piece.kind
        targets: set[Square] = set()

        if kind is PieceKind.pawn:
            step = _PAWN_STEP[piece.color]
            for dr, dc in ((step, 0), (2 * step, 0), (step, -1), (step, 1)):
                if _on_board(row + dr, col + dc):
                    targets.add(Square(row + dr, col + dc))
        elif kind is PieceKind.knight or kind is PieceKind.king:
            offsets = KNIGHT_OFFSETS if kind is PieceKind.knight else KING_OFFSETS + ((0, -2), (0, 2))
            for dr, dc in offsets:
                if _on_board(row + dr, col + dc):
                    targets.add(Square(row + dr, col + dc))
        else:
            for dr, dc in _SLIDES[kind]:
                r, c = row + dr, col + dc
                while _on_board(r, c):
                    targets.add(Square(r, c))
                    if self._grid[r][c] is not None:
                        break
                    r += dr
                    c += dc
        return targets

    def _follows_movement_rule(self, piece: Piece, source: Square, target: Square) -> bool:
        dr = target.row - source.row
        dc = target.col - source.col
        kind = piece.kind

        if kind is PieceKind.pawn:
            return self._is_pawn_move(piece.color, source, target, dr, dc)
        if kind is PieceKind.knight:
            return (abs(dr), abs(dc)) in ((1, 2), (2, 1))
        if kind is PieceKind.king:
            if max(abs(dr), abs(dc)) == 1:
                return True
            if dr == 0 and abs(dc) == 2:
                return self._can_castle(piece.color, source, target)
            return False

        diagonal = abs(dr) == abs(dc) and dr != 0
        straight = (dr == 0) != (dc == 0)
        if kind is PieceKind.bishop and not diagonal:
            return False
        if kind is PieceKind.rook and not straight:
            return False
        if kind is PieceKind.queen and not (diagonal or straight):
            return False
        return self._path_clear(source, target)

    def _is_pawn_move(self, color: Color, source: Square, target: Square, dr: int, dc: int) -> bool:
        step = _PAWN_STEP[color]
        occupant = self._grid[target.row][target.col]

        if dc == 0:
            if dr == step:
                return occupant is None
            if dr == 2 * step and source.row == _PAWN_START_ROW[color]:
                return self._grid[source.row + step][source.col] is None and occupant is None
            return False

        if abs(dc) == 1 and dr == step:
            if occupant is not None:
                return occupant.color is not color
            if self.en_passant == target:
                passed = self._grid[source.row][target.col]
                return passed is not None and passed.kind is PieceKind.pawn and passed.color is not color
        return False

    def _path_clear(self, source: Square, target: Square) -> bool:
        row_step = (target.row > source.row) - (target.row < source.row)
        col_step = (target.col > source.col) - (target.col < source.col)
        row, col = source.row + row_step, source.col + col_step
        while (row, col) != (target.row, target.col):
            if self._grid[row][col] is not None:
                return False
            row += row_step
            col += col_step
        return True

    def _can_castle(self, color: Color, source: Square, target: Square) -> bool:
        home = _HOME_ROW[color]
        if source != (home, _KING_HOME_COL) or self._king_moved(color):
            return False

        kingside = target.col > source.col
        rook_col = 7 if kingside else 0
        if self._rook_moved(color, rook_col):
            return False
        rook = self._grid[home][rook_col]
        if rook is None or rook.kind is not PieceKind.rook or rook.color is not color:
            return False

        low, high = sorted((source.col, rook_col))
        if any(self._grid[home][col] is not None for col in range(low + 1, high)):
            return False

        enemy = color.opponent
        if self.is_attacked(source, enemy):
            return False
        direction = 1 if kingside else -1
        for distance in (1, 2):
            if self.is_attacked(Square(home, source.col + direction * distance), enemy):
                return False
        return True

    def _exposes_king(self, piece: Piece, source: Square, target: Square) -> bool:
        grid = self._grid
        captured_square = target
        if piece.kind is PieceKind.pawn and source.col != target.col and grid[target.row][target.col] is None:
            captured_square = Square(source.row, target.col)
        captured = grid[captured_square.row][captured_square.col]

        grid[captured_square.row][captured_square.col] = None
        grid[source.row][source.col] = None
        grid[target.row][target.col] = piece
        king = target if piece.kind is PieceKind.king else self._kings[piece.color]
        attacked = self.is_attacked(king, piece.color.opponent)
        grid[target.row][target.col] = None
        grid[captured_square.row][captured_square.col] = captured
        grid[source.row][source.col] = piece
        return attacked

    def _refresh_status(self) -> None:
        self.check = self.in_check(self.turn)
        if next(self._iter_legal_moves(), None) is None:
            if self.check:
                self.result = GameResult.white_won if self.turn is Color.black else GameResult.black_won
                self.termination = Termination.checkmate
            else:
                self.result = GameResult.drawn
                self.termination = Termination.stalemate
        elif self.move_count > MOVE_LIMIT:
            self.result = GameResult.drawn
            self.termination = Termination.move_limit
        else:
            self.result = GameResult.in_progress
            self.termination = None

    def _king_moved(self, color: Color) -> bool:
        return self.white_king_moved if color is Color.white else self.black_king_moved

    def _rook_moved(self, color: Color, col: int) -> bool:
        if color is Color.white:
            return self.white_rook_h_moved if col == 7 else self.white_rook_a_moved
        return self.black_rook_h_moved if col == 7 else self.black_rook_a_moved

    def _mark_king_moved(self, color: Color) -> None:
        if color is Color.white:
            self.white_king_moved = True
        else:
            self.black_king_moved = True

    def _mark_rook_moved(self, color: Color, col: int) -> None:
        if col not in (0, 7):
            return
        if color is Color.white:
            if col == 0:
                self.white_rook_a_moved = True
            else:
                self.white_rook_h_moved = True
        elif col == 0:
            self.black_rook_a_moved = True
        else:
            self.black_rook_h_moved = True

    def _castling_flags(self) -> Tuple[bool, bool, bool, bool, bool, bool]:
        return (
            self.white_king_moved,
            self.black_king_moved,
            self.white_rook_a_moved,
            self.white_rook_h_moved,
            self.black_rook_a_moved,
            self.black_rook_h_moved,
        )

    def _restore_castling_flags(self, flags: Tuple[bool, bool, bool, bool, bool, bool]) -> None:
        (
            self.white_king_moved,
            self.black_king_moved,
            self.white_rook_a_moved,
            self.white_rook_h_moved,
            self.black_rook_a_moved,
            self.black_rook_h_moved,
        ) = flags

    def __str__(self) -> str:
        lines = ["", "  a b c d e f g h"]
        for row in range(BOARD_SIZE):
            cells = " ".join(
                piece.symbol if piece is not None else "." for piece in self._grid[row]
            )
            rank = BOARD_SIZE - row
            lines.append(f"{rank} {cells} {rank}")
        lines.append("  a b c d e f g h")
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Board({self.fen()!r})"


__all__ = [
    "BOARD_SIZE",
    "Board",
    "Color",
    "GameResult",
    "MOVE_LIMIT",
    "Move",
    "Piece",
    "PieceKind",
    "STARTING_FEN",
    "Square",
    "Termination",
]

from __future__ import annotations

import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    case,
    distinct,
    func,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.chessmind.domain.chess.board import Move, Square
from src.chessmind.domain.training.records import (
    FINGERPRINT_LENGTH,
    GameRecord,
    GameRecordError,
    GameRecordRepository,
    MoveOutcome,
    MoveRecord,
    PositionStats,
)
from src.chessmind.infrastructure.persistence.base import Base, session_scope


class GameRecordRow(Base):  # type: ignore[misc]
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)
    winner = Column(String(16), nullable=True)
    moves_count = Column(Integer, nullable=True)
    white_epsilon = Column(Float, nullable=False)
    black_epsilon = Column(Float, nullable=False)


class MoveRecordRow(Base):  # type: ignore[misc]
    __tablename__ = "moves"
    __table_args__ = (
        Index("idx_moves_game_id", "game_id"),
        Index("idx_moves_board_hash", "board_hash"),
        Index("idx_moves_result", "result"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    move_number = Column(Integer, nullable=False)
    from_row = Column(Integer, nullable=False)
    from_col = Column(Integer, nullable=False)
    to_row = Column(Integer, nullable=False)
    to_col = Column(Integer, nullable=False)
    evaluation = Column(Float, nullable=False)
    board_hash = Column(String(FINGERPRINT_LENGTH), nullable=False)
    result = Column(String(16), nullable=False, default=MoveOutcome.ongoing.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SqlAlchemyGameRecordRepository(GameRecordRepository):
    """SQLAlchemy-backed store for self-play games and their moves."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def start_game(
        self,
        white_epsilon: float,
        black_epsilon: float,
        started_at: datetime | None = None,
    ) -> int:
        record = GameRecordRow(
            started_at=started_at or datetime.now(timezone.utc),
            white_epsilon=white_epsilon,
            black_epsilon=black_epsilon,
        )
        self._session.add(record)
        self._commit("start game")
        return int(record.id)

    def record_move(self, move_record: MoveRecord) -> MoveRecord:
        row = self._to_row(move_record)
        self._session.add(row)
        self._commit("record move")
        return self._move_to_entity(row)

    def record_moves(self, records: Iterable[MoveRecord]) -> int:
        rows = [self._to_row(record) for record in records]
        self._session.add_all(rows)
        self._commit("record moves")
        return len(rows)

    def finish_game(
        self,
        game_id: int,
        winner: str,
        moves_count: int,
        finished_at: datetime | None = None,
    ) -> GameRecord:
        record = self._session.get(GameRecordRow, game_id)
        if record is None:
            raise GameRecordError(f"Game {game_id} not found.")
        record.winner = winner
        record.moves_count = moves_count
        record.finished_at = finished_at or datetime.now(timezone.utc)
        self._commit("finish game")
        return self._game_to_entity(record)

    def get_game(self, game_id: int) -> GameRecord | None:
        record = self._session.get(GameRecordRow, game_id)
        return self._game_to_entity(record) if record else None

    def moves_for_game(self, game_id: int) -> List[MoveRecord]:
        rows = self._session.scalars(
            select(MoveRecordRow)
            .where(MoveRecordRow.game_id == game_id)
            .order_by(MoveRecordRow.move_number)
        )
        return [self._move_to_entity(row) for row in rows]

    def total_games(self) -> int:
        return int(self._session.scalar(select(func.count(GameRecordRow.id))) or 0)

    def position_stats(self, fingerprint: str) -> PositionStats:
        counts = self._session.execute(
            select(
                func.count(distinct(MoveRecordRow.game_id)),
                func.sum(case((MoveRecordRow.result == MoveOutcome.win.value, 1), else_=0)),
                func.sum(case((MoveRecordRow.result == MoveOutcome.loss.value, 1), else_=0)),
                func.sum(case((MoveRecordRow.result == MoveOutcome.draw.value, 1), else_=0)),
                func.avg(MoveRecordRow.evaluation),
            ).where(MoveRecordRow.board_hash == fingerprint)
        ).one()
        total_games, wins, losses, draws, average = counts

        best = self._session.scalars(
            select(MoveRecordRow)
            .where(
                MoveRecordRow.board_hash == fingerprint,
                MoveRecordRow.result == MoveOutcome.win.value,
            )
            .order_by(MoveRecordRow.evaluation.desc(), MoveRecordRow.id)
            .limit(1)
        ).first()

        return PositionStats(
            fingerprint=fingerprint,
            total_games=int(total_games or 0),
            wins=int(wins or 0),
            losses=int(losses or 0),
            draws=int(draws or 0),
            average_evaluation=float(average) if average is not None else None,
            best_move=self._row_move(best) if best is not None else None,
            best_move_evaluation=float(best.evaluation) if best is not None else None,
        )

    def similar_moves(self, fingerprint: str, limit: int = 10) -> List[MoveRecord]:
        """Moves previously played from this exact position, best-scored first."""
        rows = self._session.scalars(
            select(MoveRecordRow)
            .where(MoveRecordRow.board_hash == fingerprint)
            .order_by(MoveRecordRow.evaluation.desc(), MoveRecordRow.id)
            .limit(limit)
        )
        return [self._move_to_entity(row) for row in rows]

    def update_move_results(self, game_id: int, result: MoveOutcome) -> int:
        outcome = self._session.execute(
            update(MoveRecordRow)
            .where(MoveRecordRow.game_id == game_id)
            .values(result=result.value)
        )
        self._commit("update move results")
        return int(outcome.rowcount or 0)

    def _commit(self, action: str) -> None:
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise GameRecordError(f"Failed to {action}: {exc}") from exc

    @staticmethod
    def _to_row(record: MoveRecord) -> MoveRecordRow:
        source, target = record.move
        return MoveRecordRow(
            game_id=record.game_id,
            move_number=record.move_number,
            from_row=source.row,
            from_col=source.col,
            to_row=target.row,
            to_col=target.col,
            evaluation=float(record.evaluation),
            board_hash=record.fingerprint,
            result=record.result.value,
            created_at=record.created_at or datetime.now(timezone.utc),
        )

    @staticmethod
    def _row_move(row: MoveRecordRow) -> Move:
        return Move(Square(row.from_row, row.from_col), Square(row.to_row, row.to_col))

    @classmethod
    def _move_to_entity(cls, row: MoveRecordRow) -> MoveRecord:
        return MoveRecord(
            id=row.id,
            game_id=row.game_id,
            move_number=row.move_number,
            move=cls._row_move(row),
            evaluation=float(row.evaluation),
            fingerprint=row.board_hash,
            result=MoveOutcome(row.result),
            created_at=row.created_at,
        )

    @staticmethod
    def _game_to_entity(record: GameRecordRow) -> GameRecord:
        return GameRecord(
            id=record.id,
            started_at=record.started_at,
            finished_at=record.finished_at,
            winner=record.winner,
            moves_count=record.moves_count,
            white_epsilon=float(record.white_epsilon),
            black_epsilon=float(record.black_epsilon),
        )


@contextmanager
def repository_scope(
    factory: sessionmaker,
    lock: threading.Lock | None = None,
) -> Iterator[SqlAlchemyGameRecordRepository]:
    """One session (and one connection) per unit of work, held under `lock` when given."""
    with lock or nullcontext():
        try:
            with session_scope(factory=factory) as session:
                yield SqlAlchemyGameRecordRepository(session)
        except SQLAlchemyError as exc:
            raise GameRecordError(f"Game record storage failed: {exc}") from exc


__all__ = ["GameRecordRow", "MoveRecordRow", "SqlAlchemyGameRecordRepository", "repository_scope"]

# Simple SQLite data layer using SQLAlchemy for round results.

from __future__ import annotations
from sqlalchemy import create_engine, Column, Integer, String, DateTime, func, delete
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import select
from typing import Dict
import logging
from .config import DB_PATH

logger = logging.getLogger(__name__)

Base = declarative_base()

class RoundResult(Base):
    __tablename__ = "round_results"
    id = Column(Integer, primary_key=True)
    round_id = Column(String, index=True, nullable=False)
    mode = Column(String, nullable=False)    # "artist"/"song"
    source = Column(String, nullable=False)  # "daily"/"practice"/"spotify"
    target = Column(String, nullable=False)
    outcome = Column(String, nullable=False)  # "won"/"lost"
    attempts_used = Column(Integer, nullable=False)
    max_attempts = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

_engine = create_engine(f"sqlite:///{DB_PATH}", echo=False, future=True)
SessionLocal = sessionmaker(bind=_engine, autoflush=False, autocommit=False, future=True)

def init_db():
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(_engine)

def record_result(round_id: str, mode: str, source: str, target: str, outcome: str,
                  attempts_used: int, max_attempts: int):
    with SessionLocal() as s:
        s.add(RoundResult(
            round_id=round_id,
            mode=mode,
            source=source,
            target=target,
            outcome=outcome,
            attempts_used=attempts_used,
            max_attempts=max_attempts,
        ))
        s.commit()
    logger.debug(f"Recorded {outcome} for round {round_id}")

def result_stats() -> Dict:
    """
    Aggregate the result log:
     - played / wins / losses
     - win_rate as a percentage rounded to one decimal
     - distribution: attempts used -> number of wins, keyed by string
    """
    with SessionLocal() as s:
        rows = s.execute(select(RoundResult.outcome, RoundResult.attempts_used)).all()

    wins = [attempts for outcome, attempts in rows if outcome == "won"]
    distribution: Dict[str, int] = {}
    for attempts in sorted(wins):
        distribution[str(attempts)] = distribution.get(str(attempts), 0) + 1

    played = len(rows)
    return {
        "played": played,
        "wins": len(wins),
        "losses": played - len(wins),
        "win_rate": round(100.0 * len(wins) / played, 1) if played else 0.0,
        "distribution": distribution,
    }

def clear_results():
    with SessionLocal() as s:
        s.execute(delete(RoundResult))
        s.commit()

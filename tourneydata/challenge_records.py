"""Players' entries in challenges: scores, rankings, prizes and leaderboards."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
    Uuid,
    delete,
    false,
    func,
    select,
    update,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from tourneydata.challenges import (
    Challenge,
    ChallengeData,
    ChallengeResponse,
    _parse_int,
    format_challenges_for_response,
)
from tourneydata.db import Base, Database
from tourneydata.users import UserAccount, UserInfo, get_user

_COMPLETED = "Completed"
_CANCELLED = "Cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _nonzero(*pairs):
    """Equality conditions for the pairs whose value is set."""
    return [column == value for column, value in pairs if value]


def _paged(statement, page: int, per_page: int):
    offset = (page - 1) * per_page
    if per_page > 0:
        statement = statement.limit(per_page)
    if offset > 0:
        statement = statement.offset(offset)
    return statement


def _percent_of(percentage: int, pool: int) -> int:
    """``percentage * pool / 100`` truncated toward zero."""
    product = percentage * pool
    quotient = abs(product) // 100
    return quotient if product >= 0 else -quotient


class _UuidText(TypeDecorator):
    """A UUID column read and written as its text form."""

    impl = Uuid
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> uuid.UUID | None:
        if value is None or value == "":
            return None
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_result_value(self, value: Any, dialect: Any) -> str | None:
        return None if value is None else str(value)


class ChallengeRecord(Base):
    __tablename__ = "challenge_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    user_id: Mapped[str] = mapped_column(String, default="")
    challenge_id: Mapped[str | None] = mapped_column(_UuidText, nullable=True)
    platform: Mapped[str] = mapped_column(String, default="")
    player_id: Mapped[str] = mapped_column(String, default="")
    public_address: Mapped[str] = mapped_column(String, default="")
    register_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    challenge_deadline: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    challenge_type: Mapped[str] = mapped_column(String, default="")
    score: Mapped[float] = mapped_column(Float, default=0.0)
    ranking_number: Mapped[int] = mapped_column(Integer, default=0)
    score_reported: Mapped[bool] = mapped_column(Boolean, default=False)
    prize_earned: Mapped[int] = mapped_column(BigInteger, default=0)
    scoring: Mapped[Any] = mapped_column(JSON, nullable=True)
    score_map: Mapped[Any] = mapped_column(JSON, nullable=True)
    team_name: Mapped[str] = mapped_column(String, default="")


@dataclass
class ChallengeRecordOutput:
    """A finished challenge as seen in a player's history."""

    user_id: str = ""
    challenge_id: str = ""
    challenge_name: str = ""
    challenge_type: str = ""
    status: str = ""
    entry_fee: str = ""
    prize_earned: int = 0
    finish_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "challengeId": self.challenge_id,
            "challengeName": self.challenge_name,
            "challengeType": self.challenge_type,
            "status": self.status,
            "entryFee": self.entry_fee,
            "prizeEarned": self.prize_earned,
            "finishDate": self.finish_date.isoformat() if self.finish_date else None,
        }


@dataclass
class ChallengeLeader:
    """One line of a challenge leaderboard."""

    avatar_url: str = ""
    display_name: str = ""
    score: float = 0.0
    team_name: str = ""
    score_map: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "avatarUrl": self.avatar_url,
            "displayName": self.display_name,
            "score": self.score,
            "teamName": self.team_name,
            "scoreMap": self.score_map,
        }


@dataclass
class TeamScore:
    """The summed score of a team and the players behind it."""

    team_name: str
    team_score: float = 0.0
    players: list[ChallengeLeader] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "teamName": self.team_name,
            "teamScore": self.team_score,
            "players": [player.to_dict() for player in self.players],
        }


def insert_challenge_record(db: Database, record: ChallengeRecord) -> ChallengeRecord:
    """Store an entry and count it among the challenge's participants."""
    with db.session() as session:
        session.add(record)
        session.flush()
        if record.challenge_id:
            session.execute(
                update(ChallengeData)
                .where(ChallengeData.challenge_id == uuid.UUID(str(record.challenge_id)))
                .values(participant_count=ChallengeData.participant_count + 1)
            )
        return record


def batch_insert_challenge_records(
    db: Database, records: Iterable[ChallengeRecord]
) -> list[ChallengeRecord]:
    """Store several entries in one transaction."""
    records = list(records)
    with db.session() as session:
        session.add_all(records)
        session.flush()
        return records


def update_challenge_record(db: Database, record: ChallengeRecord) -> ChallengeRecord:
    """Save every field of an entry, inserting it if it is new."""
    with db.session() as session:
        stored = session.merge(record)
        session.flush()
        return stored


def _records(db: Database, statement) -> list[ChallengeRecord]:
    with db.session() as session:
        return list(session.execute(statement).scalars())


def get_records_to_report(db: Database) -> list[ChallengeRecord]:
    return _records(
        db, select(ChallengeRecord).where(ChallengeRecord.score_reported == false())
    )


def get_records_by_challenge(db: Database, challenge_id: str) -> list[ChallengeRecord]:
    """Entries of a challenge, best score first."""
    return _records(
        db,
        select(ChallengeRecord)
        .where(*_nonzero((ChallengeRecord.challenge_id, challenge_id)))
        .order_by(ChallengeRecord.score.desc()),
    )


def get_records_by_user(
    db: Database, challenge_id: str, user_id: str
) -> list[ChallengeRecord]:
    return _records(
        db,
        select(ChallengeRecord)
        .where(
            *_nonzero(
                (ChallengeRecord.challenge_id, challenge_id),
                (ChallengeRecord.user_id, user_id),
            )
        )
        .order_by(ChallengeRecord.score.desc()),
    )


def group_by_team(leaders: Iterable[ChallengeLeader]) -> list[TeamScore]:
    """Sum leaders' scores per team, highest team first; teamless leaders drop out."""
    teams: dict[str, TeamScore] = {}
    for leader in leaders:
        if not leader.team_name:
            continue
        team = teams.setdefault(leader.team_name, TeamScore(team_name=leader.team_name))
        team.players.append(leader)
        team.team_score += leader.score
    return sorted(teams.values(), key=lambda team: team.team_score, reverse=True)


def get_challenge_leaderboard(
    db: Database, challenge_id: str, per_page: int
) -> list[ChallengeLeader]:
    """The top ``per_page`` entries of a challenge with their players' profiles."""
    statement = (
        select(ChallengeRecord)
        .where(*_nonzero((ChallengeRecord.challenge_id, challenge_id)))
        .order_by(ChallengeRecord.score.desc())
    )
    if per_page > 0:
        statement = statement.limit(per_page)
    leaders = []
    for record in _records(db, statement):
        user = get_user(db, record.user_id)
        leaders.append(
            ChallengeLeader(
                avatar_url=user.avatar_url,
                display_name=user.display_name,
                score=record.score,
                team_name=record.team_name,
                score_map=record.score_map,
            )
        )
    return leaders


def get_records_page(
    db: Database, username: str, page: int, per_page: int
) -> list[ChallengeRecord]:
    statement = (
        select(ChallengeRecord)
        .where(ChallengeRecord.user_id == username)
        .order_by(ChallengeRecord.id)
    )
    return _records(db, _paged(statement, page, per_page))


def get_records_by_type_page(
    db: Database, username: str, challenge_type: str, page: int, per_page: int
) -> list[ChallengeRecord]:
    statement = (
        select(ChallengeRecord)
        .where(
            *_nonzero(
                (ChallengeRecord.user_id, username),
                (ChallengeRecord.challenge_type, challenge_type),
            )
        )
        .order_by(ChallengeRecord.id)
    )
    return _records(db, _paged(statement, page, per_page))


def get_records_by_type(
    db: Database, username: str, challenge_type: str
) -> list[ChallengeRecord]:
    return _records(
        db,
        select(ChallengeRecord).where(
            *_nonzero(
                (ChallengeRecord.user_id, username),
                (ChallengeRecord.challenge_type, challenge_type),
            )
        ),
    )


def _delete_statement(record: ChallengeRecord):
    if not record.id:
        raise ValueError("missing where clause")
    return delete(ChallengeRecord).where(ChallengeRecord.id == record.id)


def delete_challenge_record(db: Database, record: ChallengeRecord) -> None:
    with db.session() as session:
        session.execute(_delete_statement(record))


def batch_delete_challenge_records(
    db: Database, records: Iterable[ChallengeRecord]
) -> None:
    """Delete several entries in one transaction."""
    statements = [_delete_statement(record) for record in records]
    with db.session() as session:
        for statement in statements:
            session.execute(statement)


def _finished_condition(username: str):
    return (ChallengeData.status == _COMPLETED, ChallengeRecord.user_id == username)


def count_finished_records(db: Database, username: str) -> int:
    """Number of a player's entries in completed challenges."""
    statement = (
        select(func.count())
        .select_from(ChallengeRecord)
        .outerjoin(
            ChallengeData, ChallengeRecord.challenge_id == ChallengeData.challenge_id
        )
        .where(*_finished_condition(username))
    )
    with db.session() as session:
        return session.execute(statement).scalar_one()


def get_finished_records(
    db: Database, username: str, page: int, per_page: int
) -> list[ChallengeRecordOutput]:
    """One page of a player's entries in completed challenges."""
    statement = (
        select(
            ChallengeRecord.user_id,
            ChallengeRecord.challenge_id,
            ChallengeRecord.challenge_type,
            ChallengeRecord.prize_earned,
            ChallengeData.challenge_name,
            ChallengeData.status,
            ChallengeData.entry_fee,
            ChallengeData.cutoff_date,
        )
        .select_from(ChallengeRecord)
        .outerjoin(
            ChallengeData, ChallengeRecord.challenge_id == ChallengeData.challenge_id
        )
        .where(*_finished_condition(username))
        .order_by(ChallengeRecord.id)
    )
    with db.session() as session:
        rows = session.execute(_paged(statement, page, per_page)).all()
    return [
        ChallengeRecordOutput(
            user_id=row.user_id or "",
            challenge_id=row.challenge_id or "",
            challenge_name=row.challenge_name or "",
            challenge_type=row.challenge_type or "",
            status=row.status or "",
            entry_fee=row.entry_fee or "",
            prize_earned=row.prize_earned or 0,
            finish_date=row.cutoff_date,
        )
        for row in rows
    ]


def report_challenge_winners(db: Database, challenge: Challenge) -> list[ChallengeRecord]:
    """Rank the best entries and award them their share of the prize pool.

    Returns the challenge's entries as they were read before ranking.
    """
    challenge_id = str(challenge.challenge_id)
    records = get_records_by_challenge(db, challenge_id)
    winners = challenge.number_of_winners
    if len(records) < winners:
        raise ValueError("not enough winners")
    allocation = challenge.prize_allocation.split(",")
    if len(allocation) != winners:
        raise ValueError("prize allocation string does not match number of winners")
    with db.session() as session:
        for rank, (record, share) in enumerate(zip(records, allocation), start=1):
            try:
                percentage = _parse_int(share)
            except ValueError:
                percentage = 0
            values: dict[str, Any] = {"ranking_number": rank, "updated_at": _utcnow()}
            prize = _percent_of(percentage, challenge.target_prize_pool)
            if prize:
                values["prize_earned"] = prize
            session.execute(
                update(ChallengeRecord)
                .where(
                    ChallengeRecord.challenge_id == challenge_id,
                    ChallengeRecord.user_id == record.user_id,
                )
                .values(**values)
            )
    return records


def challenge_player_avatars(db: Database, challenge_type: str) -> list[UserInfo]:
    """Distinct players who entered challenges, optionally of one type."""
    statement = (
        select(
            UserAccount.sub,
            UserAccount.username,
            UserAccount.display_name,
            UserAccount.avatar_url,
        )
        .select_from(ChallengeRecord)
        .outerjoin(UserAccount, ChallengeRecord.user_id == UserAccount.username)
    )
    if challenge_type:
        statement = statement.where(ChallengeRecord.challenge_type == challenge_type)
    statement = statement.group_by(
        ChallengeRecord.user_id,
        UserAccount.sub,
        UserAccount.username,
        UserAccount.display_name,
        UserAccount.avatar_url,
    )
    with db.session() as session:
        rows = session.execute(statement).all()
    return [
        UserInfo(
            sub=row.sub or "",
            username=row.username or "",
            display_name=row.display_name or "",
            avatar_url=row.avatar_url or "",
        )
        for row in rows
    ]


def get_registered_challenges(db: Database, user_id: str) -> list[ChallengeResponse]:
    """Challenges a player has entered that were not cancelled, earliest first."""
    statement = (
        select(ChallengeData)
        .join(
            ChallengeRecord, ChallengeData.challenge_id == ChallengeRecord.challenge_id
        )
        .where(ChallengeRecord.user_id == user_id, ChallengeData.status != _CANCELLED)
        .order_by(ChallengeData.start_date)
    )
    with db.session() as session:
        rows = list(session.execute(statement).scalars())
    return format_challenges_for_response(rows)
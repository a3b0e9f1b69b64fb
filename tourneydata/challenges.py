"""Challenges: storage, wire encoding and the shape served to clients."""

from __future__ import annotations

import json
import re
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

import msgpack
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Integer,
    String,
    Text,
    Uuid,
    or_,
    select,
    true,
    update,
)
from sqlalchemy.orm import Mapped, mapped_column

from tourneydata.catalog import Featured
from tourneydata.db import Base, Database

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INTEGER = re.compile(r"[+-]?[0-9]+")

_UNTAGGED = (
    ("challenge_id", "ChallengeID"),
    ("created_at", "CreatedAt"),
    ("updated_at", "UpdatedAt"),
    ("deleted_at", "DeletedAt"),
)
_TAGGED = (
    ("challenge_name", "1"),
    ("is_sponsored", "2"),
    ("challenge_type", "3"),
    ("fee_type", "4"),
    ("minute_time_window", "5"),
    ("min_participants", "6"),
    ("challenge_rule", "7"),
    ("entry_fee", "8"),
    ("number_of_winners", "9"),
    ("prize_allocation", "10"),
    ("cutoff_date", "11"),
    ("start_date", "12"),
    ("organizer_id", "13"),
    ("banner_url", "14"),
    ("contract_address", "15"),
    ("status", "16"),
    ("participant_count", "17"),
    ("target_prize_pool", "18"),
    ("fee_percentage", "19"),
    ("organizer_percentage", "20"),
    ("game_mode", "21"),
    ("number_of_games", "22"),
    ("entry_once", "23"),
    ("title", "24"),
    ("organizer_contribute", "25"),
    ("max_participants", "26"),
)
_SCORING_TAG = "4"
_BASE_ATTRS = tuple(name for name, _ in _UNTAGGED + _TAGGED)
_ATTR_BY_KEY = {key: name for name, key in _UNTAGGED + _TAGGED}
_DATETIME_ATTRS = frozenset(
    {"created_at", "updated_at", "deleted_at", "cutoff_date", "start_date"}
)
_OPEN_STATUSES = ("Registration", "Ready")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def _parse_int(text: str) -> int:
    """Parse a base-10 signed 64-bit integer, rejecting anything else."""
    if not isinstance(text, str) or not _INTEGER.fullmatch(text):
        raise ValueError(f"invalid integer {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"integer out of range {text!r}")
    return value


def _aware(moment: datetime | None) -> datetime | None:
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class ChallengeData(Base):
    __tablename__ = "challenge_data"

    challenge_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    challenge_name: Mapped[str] = mapped_column(String, default="")
    is_sponsored: Mapped[bool] = mapped_column(Boolean, default=False)
    challenge_type: Mapped[str] = mapped_column(String, default="")
    fee_type: Mapped[str] = mapped_column(String, default="")
    minute_time_window: Mapped[int] = mapped_column(Integer, default=0)
    min_participants: Mapped[int] = mapped_column(BigInteger, default=0)
    challenge_rule: Mapped[str] = mapped_column(Text, default="")
    entry_fee: Mapped[str] = mapped_column(String, default="")
    number_of_winners: Mapped[int] = mapped_column(Integer, default=0)
    prize_allocation: Mapped[str] = mapped_column(String, default="")
    cutoff_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    organizer_id: Mapped[str] = mapped_column(String, default="")
    banner_url: Mapped[str] = mapped_column(String, default="")
    contract_address: Mapped[str] = mapped_column(String, default="")
    status: Mapped[str] = mapped_column(String, default="")
    participant_count: Mapped[int] = mapped_column(Integer, default=0)
    target_prize_pool: Mapped[int] = mapped_column(BigInteger, default=0)
    fee_percentage: Mapped[int] = mapped_column(BigInteger, default=0)
    organizer_percentage: Mapped[int] = mapped_column(BigInteger, default=0)
    game_mode: Mapped[str] = mapped_column(String, default="")
    number_of_games: Mapped[int] = mapped_column(Integer, default=0)
    entry_once: Mapped[bool] = mapped_column(Boolean, default=False)
    title: Mapped[str] = mapped_column(String, default="")
    organizer_contribute: Mapped[int] = mapped_column(BigInteger, default=0)
    max_participants: Mapped[int] = mapped_column(Integer, default=0)
    scoring: Mapped[Any] = mapped_column(JSON, nullable=True)


@dataclass
class Challenge:
    """A challenge with its scoring rules decoded."""

    challenge_id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    challenge_name: str = ""
    is_sponsored: bool = False
    challenge_type: str = ""
    fee_type: str = ""
    minute_time_window: int = 0
    min_participants: int = 0
    challenge_rule: str = ""
    entry_fee: str = ""
    number_of_winners: int = 0
    prize_allocation: str = ""
    cutoff_date: datetime | None = None
    start_date: datetime | None = None
    organizer_id: str = ""
    banner_url: str = ""
    contract_address: str = ""
    status: str = ""
    participant_count: int = 0
    target_prize_pool: int = 0
    fee_percentage: int = 0
    organizer_percentage: int = 0
    game_mode: str = ""
    number_of_games: int = 0
    entry_once: bool = False
    title: str = ""
    organizer_contribute: int = 0
    max_participants: int = 0
    scoring: dict[str, str | None] = field(default_factory=dict)


@dataclass
class ChallengeResponse:
    """A challenge as presented to clients."""

    challenge_id: str
    challenge_name: str = ""
    is_sponsored: bool = False
    challenge_type: str = ""
    minute_time_window: int = 0
    min_participants: int = 0
    challenge_rule: str = ""
    entry_fee: int = 0
    fee_type: str = ""
    prize_allocation: list[int] = field(default_factory=list)
    end_date: datetime | None = None
    start_date: datetime | None = None
    banner_url: str = ""
    status: str = ""
    participant_count: int = 0
    min_prize_pool: int = 0
    game_mode: str = ""
    number_of_games: int = 0
    entry_once: bool = False
    url: str = ""
    fee_percentage: int = 0
    organizer_percentage: int = 0
    scoring: Any = None
    fund_contribute: int = 0
    max_participants: int = 0

    def to_dict(self) -> dict[str, Any]:
        def stamp(moment: datetime | None) -> str | None:
            return moment.isoformat() if moment is not None else None

        return {
            "challengeId": self.challenge_id,
            "challengeName": self.challenge_name,
            "isSponsored": self.is_sponsored,
            "challengeType": self.challenge_type,
            "minuteTimeWindow": self.minute_time_window,
            "minParticipants": self.min_participants,
            "challengeRule": self.challenge_rule,
            "entryFee": self.entry_fee,
            "feeType": self.fee_type,
            "prizeAllocation": list(self.prize_allocation),
            "endDate": stamp(self.end_date),
            "startDate": stamp(self.start_date),
            "bannerUrl": self.banner_url,
            "status": self.status,
            "participantCount": self.participant_count,
            "minPrizePool": self.min_prize_pool,
            "gameMode": self.game_mode,
            "numberOfGames": self.number_of_games,
            "entryOnce": self.entry_once,
            "url": self.url,
            "feePercentage": self.fee_percentage,
            "organizerPercentage": self.organizer_percentage,
            "scoring": self.scoring,
            "fundContribute": self.fund_contribute,
            "maxParticipants": self.max_participants,
        }


def _decode_scoring(raw: Any) -> dict[str, str | None]:
    if isinstance(raw, (bytes, bytearray, str)):
        raw = json.loads(raw)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("scoring must be a JSON object")
    return {str(key): (None if value is None else str(value)) for key, value in raw.items()}


def _to_challenge(row: ChallengeData) -> Challenge:
    values = {name: getattr(row, name) for name in _BASE_ATTRS}
    return Challenge(**values, scoring=_decode_scoring(row.scoring))


def _pack_value(name: str, value: Any) -> Any:
    if name == "challenge_id":
        return _as_uuid(value).bytes
    if name in _DATETIME_ATTRS:
        return _aware(value)
    return value


def pack_challenge(challenge: Challenge) -> bytes:
    """Encode a challenge as a MessagePack map keyed by its wire tags."""
    pairs = [
        (key, _pack_value(name, getattr(challenge, name)))
        for name, key in _UNTAGGED + _TAGGED
    ]
    scoring = challenge.scoring
    pairs.append((_SCORING_TAG, dict(scoring) if scoring is not None else None))
    packer = msgpack.Packer(use_bin_type=True, datetime=True)
    return packer.pack_map_pairs(pairs)


def unpack_challenge(data: bytes) -> Challenge:
    """Decode a challenge written by :func:`pack_challenge`."""
    try:
        pairs = msgpack.unpackb(
            data,
            raw=False,
            timestamp=3,
            object_pairs_hook=list,
            strict_map_key=False,
        )
    except (ValueError, TypeError, msgpack.exceptions.UnpackException) as exc:
        raise ValueError(f"malformed challenge data: {exc}") from exc
    if not isinstance(pairs, list):
        raise ValueError("challenge data is not a map")
    challenge = Challenge()
    for key, value in pairs:
        if key == _SCORING_TAG and isinstance(value, list):
            challenge.scoring = _decode_scoring(dict(value))
            continue
        if key == _SCORING_TAG and value is None:
            continue
        name = _ATTR_BY_KEY.get(key)
        if name is None:
            continue
        if name == "challenge_id":
            if not isinstance(value, (bytes, bytearray)) or len(value) != 16:
                raise ValueError("challenge id must be 16 bytes")
            value = uuid.UUID(bytes=bytes(value))
        setattr(challenge, name, value)
    return challenge


def create_challenge(db: Database, challenge: Challenge) -> ChallengeData:
    """Store a new challenge."""
    values = {
        name: getattr(challenge, name)
        for name in _BASE_ATTRS
        if getattr(challenge, name) is not None
    }
    values["challenge_id"] = _as_uuid(challenge.challenge_id)
    scoring = dict(challenge.scoring) if challenge.scoring is not None else None
    row = ChallengeData(**values, scoring=scoring)
    with db.session() as session:
        session.add(row)
        session.flush()
        return row


def _load_row(db: Database, challenge_id: uuid.UUID | str) -> ChallengeData:
    key = _as_uuid(challenge_id)
    with db.session() as session:
        return session.execute(
            select(ChallengeData).where(ChallengeData.challenge_id == key).limit(1)
        ).scalar_one()


def get_challenge(db: Database, challenge_id: uuid.UUID | str) -> Challenge:
    return _to_challenge(_load_row(db, challenge_id))


def get_challenge_response(
    db: Database, challenge_id: uuid.UUID | str
) -> ChallengeResponse:
    return format_challenges_for_response([_load_row(db, challenge_id)])[0]


def get_sponsored_challenges(db: Database) -> list[ChallengeResponse]:
    """Sponsored challenges still open, earliest start first."""
    statement = (
        select(ChallengeData)
        .where(
            ChallengeData.is_sponsored == true(),
            or_(*(ChallengeData.status == status for status in _OPEN_STATUSES)),
        )
        .order_by(ChallengeData.start_date)
    )
    with db.session() as session:
        rows = list(session.execute(statement).scalars())
    return format_challenges_for_response(rows)


def get_featured_challenges(db: Database) -> list[ChallengeResponse]:
    """Featured challenges still open, earliest start first."""
    with db.session() as session:
        object_ids = session.execute(select(Featured.object_id)).scalars()
        featured = set()
        for object_id in object_ids:
            try:
                featured.add(uuid.UUID(object_id))
            except (ValueError, TypeError):
                continue
        if not featured:
            return []
        rows = list(
            session.execute(
                select(ChallengeData)
                .where(
                    ChallengeData.challenge_id.in_(featured),
                    or_(*(ChallengeData.status == status for status in _OPEN_STATUSES)),
                )
                .order_by(ChallengeData.start_date)
            ).scalars()
        )
    return format_challenges_for_response(rows)


def get_challenges_by_status(db: Database, status: str) -> list[Challenge]:
    with db.session() as session:
        rows = list(
            session.execute(
                select(ChallengeData).where(ChallengeData.status == status)
            ).scalars()
        )
    return [_to_challenge(row) for row in rows]


def _update(db: Database, challenge_id: uuid.UUID | str, **values: Any) -> None:
    key = _as_uuid(challenge_id)
    with db.session() as session:
        session.execute(
            update(ChallengeData)
            .where(ChallengeData.challenge_id == key)
            .values(**values, updated_at=_utcnow())
        )


def update_organizer_contribute(
    db: Database, challenge_id: uuid.UUID | str, amount: int
) -> None:
    _update(db, challenge_id, organizer_contribute=amount)


def update_challenge_state(
    db: Database, challenge_id: uuid.UUID | str, status: str
) -> None:
    _update(db, challenge_id, status=status)


def update_challenge_banner(
    db: Database, challenge_id: uuid.UUID | str, banner_url: str
) -> Challenge:
    """Set the banner of an existing challenge."""
    challenge = get_challenge(db, challenge_id)
    _update(db, challenge.challenge_id, banner_url=banner_url)
    challenge.banner_url = banner_url
    return challenge


def format_challenges_for_response(
    rows: Iterable[ChallengeData | Challenge],
) -> list[ChallengeResponse]:
    """Turn stored challenges into client responses."""
    responses = []
    for row in rows:
        entry_fee = _parse_int(row.entry_fee)
        prizes = (
            [_parse_int(prize) for prize in row.prize_allocation.split(",")]
            if row.prize_allocation
            else []
        )
        scoring = row.scoring
        if isinstance(scoring, (bytes, bytearray, str)):
            scoring = json.loads(scoring)
        responses.append(
            ChallengeResponse(
                challenge_id=str(_as_uuid(row.challenge_id)),
                challenge_name=row.challenge_name,
                is_sponsored=row.is_sponsored,
                challenge_type=row.challenge_type.upper(),
                minute_time_window=row.minute_time_window,
                min_participants=row.min_participants,
                challenge_rule=row.challenge_rule,
                entry_fee=entry_fee,
                fee_type=row.fee_type,
                prize_allocation=prizes,
                end_date=row.cutoff_date,
                start_date=row.start_date,
                banner_url=row.banner_url,
                status=row.status.upper(),
                participant_count=row.participant_count,
                min_prize_pool=row.target_prize_pool,
                game_mode=row.game_mode.upper(),
                number_of_games=row.number_of_games,
                entry_once=row.entry_once,
                url=row.title,
                fee_percentage=row.fee_percentage,
                organizer_percentage=row.organizer_percentage,
                scoring=scoring,
                fund_contribute=row.organizer_contribute,
                max_participants=row.max_participants,
            )
        )
    return responses


__all__ = [name for name in (f.name for f in fields(Challenge)) if False] + [
    "ChallengeData",
    "Challenge",
    "ChallengeResponse",
    "pack_challenge",
    "unpack_challenge",
    "create_challenge",
    "get_challenge",
    "get_challenge_response",
    "get_sponsored_challenges",
    "get_featured_challenges",
    "get_challenges_by_status",
    "update_organizer_contribute",
    "update_challenge_state",
    "update_challenge_banner",
    "format_challenges_for_response",
]
"""Reference data: admin settings, badges, notifications, game catalogue, deposits."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType

from sqlalchemy import DateTime, Integer, String, Uuid, func, select
from sqlalchemy.orm import Mapped, mapped_column

from tourneydata.db import Base, Database

logger = logging.getLogger(__name__)

PRIZE_ALLOCATION = MappingProxyType({3: (50, 30, 20)})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _nonzero(*pairs):
    """Equality conditions for the pairs whose value is set."""
    return [column == value for column, value in pairs if value]


def _paginate(statement, page: int, per_page: int):
    offset = (page - 1) * per_page
    if per_page > 0:
        statement = statement.limit(per_page)
    if offset > 0:
        statement = statement.offset(offset)
    return statement


def _page_count(count: int, per_page: int) -> int:
    return -(-count // per_page)


class AdminConfig(Base):
    __tablename__ = "admin_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    rpc_node_url: Mapped[str] = mapped_column(String, default="")
    faucet_key: Mapped[str] = mapped_column(String, default="")
    spwn_contract: Mapped[str] = mapped_column(String, default="")
    spwn_fee: Mapped[str] = mapped_column(String, default="")
    cred_contract: Mapped[str] = mapped_column(String, default="")
    cred_fee: Mapped[str] = mapped_column(String, default="")
    usdc_contract: Mapped[str] = mapped_column(String, default="")
    usdc_fee: Mapped[str] = mapped_column(String, default="")
    wallet_url: Mapped[str] = mapped_column(String, default="")
    adapter_url: Mapped[str] = mapped_column(String, default="")
    organizer_url: Mapped[str] = mapped_column(String, default="")
    admin_user_id: Mapped[str] = mapped_column(String, default="")
    api_rate: Mapped[int] = mapped_column(Integer, default=0)


class Badge(Base):
    __tablename__ = "badges"

    badge_id: Mapped[str] = mapped_column(String, primary_key=True)
    badge_url: Mapped[str] = mapped_column(String, default="")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    icon: Mapped[str] = mapped_column(String, default="")
    keyword: Mapped[str] = mapped_column(String, default="")
    link: Mapped[str] = mapped_column(String, default="")
    message: Mapped[str] = mapped_column(String, default="")
    kind: Mapped[str] = mapped_column("type", String, default="")
    username: Mapped[str] = mapped_column(String, default="")


class Featured(Base):
    __tablename__ = "featureds"

    object_title: Mapped[str] = mapped_column(String, primary_key=True)
    object_id: Mapped[str] = mapped_column(String, default="")
    object_type: Mapped[str] = mapped_column(String, default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


class Console(Base):
    __tablename__ = "consoles"

    game_type: Mapped[str] = mapped_column(String, primary_key=True)
    console_name: Mapped[str] = mapped_column(String, primary_key=True)


class ChallengeSubType(Base):
    __tablename__ = "challenge_sub_types"

    challenge_type: Mapped[str] = mapped_column(String, primary_key=True)
    subtype: Mapped[str] = mapped_column(String, primary_key=True)


class GameSubType(Base):
    __tablename__ = "game_sub_types"

    game_type: Mapped[str] = mapped_column(String, primary_key=True)
    game_sub_type: Mapped[str] = mapped_column(String, primary_key=True)
    team_size: Mapped[int] = mapped_column(Integer, default=0)


class GameType(Base):
    __tablename__ = "game_types"

    game_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    game_type: Mapped[str] = mapped_column(String, default="")


class TournamentFormat(Base):
    __tablename__ = "tournament_formats"

    format_name: Mapped[str] = mapped_column("format", String, primary_key=True)
    label: Mapped[str] = mapped_column(String, default="")
    max_winners: Mapped[int] = mapped_column(Integer, default=0)


@dataclass(frozen=True)
class BestOfNFormat:
    """Best-of-N settings for all rounds, semi-finals and finals."""

    all_rounds: str = ""
    semi_finals: str = ""
    finals: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "allRounds": self.all_rounds,
            "semiFinals": self.semi_finals,
            "finals": self.finals,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BestOfNFormat:
        return cls(
            all_rounds=data.get("allRounds", ""),
            semi_finals=data.get("semiFinals", ""),
            finals=data.get("finals", ""),
        )


class DepositRecord(Base):
    __tablename__ = "deposit_records"

    tx_hash: Mapped[str] = mapped_column(String, primary_key=True)
    tx_id: Mapped[str] = mapped_column(String, default="")
    tx_sender: Mapped[str] = mapped_column(String, default="")
    tx_receiver: Mapped[str] = mapped_column(String, default="")
    poa_address: Mapped[str] = mapped_column(String, default="")
    coin_type: Mapped[str] = mapped_column(String, default="")
    coin_amount: Mapped[str] = mapped_column(String, default="")
    spwn_amount: Mapped[str] = mapped_column(String, default="")
    mint_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    action: Mapped[str] = mapped_column(String, default="")
    tx_status: Mapped[str] = mapped_column(String, default="")
    fee: Mapped[str] = mapped_column(String, default="")
    remark: Mapped[str] = mapped_column(String, default="")


def read_admin_config(db: Database) -> AdminConfig:
    """Return the first admin configuration row."""
    with db.session() as session:
        return session.execute(
            select(AdminConfig).order_by(AdminConfig.id).limit(1)
        ).scalar_one()


def store_badge_url(db: Database, badge_url: str, badge_id: str) -> Badge:
    """Insert or replace the URL of a badge."""
    badge = Badge(badge_id=badge_id, badge_url=badge_url)
    logger.debug("storing badge %s -> %s", badge_id, badge_url)
    with db.session() as session:
        return session.merge(badge)


def get_all_badge_urls(db: Database) -> list[Badge]:
    with db.session() as session:
        badges = list(session.execute(select(Badge)).scalars())
    logger.debug("loaded %d badges", len(badges))
    return badges


def get_badge_url(db: Database, badge_id: str) -> Badge:
    with db.session() as session:
        return session.execute(
            select(Badge)
            .where(*_nonzero((Badge.badge_id, badge_id)))
            .order_by(Badge.badge_id)
            .limit(1)
        ).scalar_one()


def create_notification(db: Database, note: Notification) -> Notification:
    with db.session() as session:
        session.add(note)
        session.flush()
        return note


def read_notifications(db: Database, username: str) -> list[Notification]:
    with db.session() as session:
        return list(
            session.execute(
                select(Notification).where(
                    *_nonzero((Notification.username, username))
                )
            ).scalars()
        )


def insert_featured(db: Database, featured: Featured) -> Featured:
    """Insert or replace a featured entry, stamping its update time."""
    entry = Featured(
        object_title=featured.object_title,
        object_id=featured.object_id,
        object_type=featured.object_type,
        updated_at=_utcnow(),
    )
    with db.session() as session:
        return session.merge(entry)


def get_featured(db: Database, object_title: str) -> Featured:
    with db.session() as session:
        return session.execute(
            select(Featured)
            .where(*_nonzero((Featured.object_title, object_title)))
            .order_by(Featured.object_title)
            .limit(1)
        ).scalar_one()


def list_featured(db: Database, object_type: str) -> list[Featured]:
    statement = select(Featured)
    if object_type:
        statement = statement.where(Featured.object_type == object_type)
    with db.session() as session:
        return list(session.execute(statement).scalars())


def get_consoles_for_game_type(db: Database, game_type: str) -> list[str]:
    with db.session() as session:
        return list(
            session.execute(
                select(Console.console_name).where(
                    *_nonzero((Console.game_type, game_type))
                )
            ).scalars()
        )


def create_challenge_sub_type(
    db: Database, challenge_type: str, sub_type: str
) -> ChallengeSubType:
    with db.session() as session:
        return session.merge(
            ChallengeSubType(challenge_type=challenge_type, subtype=sub_type)
        )


def get_challenge_types(db: Database) -> list[ChallengeSubType]:
    with db.session() as session:
        return list(session.execute(select(ChallengeSubType)).scalars())


def create_game_sub_type(
    db: Database, game_type: str, game_sub_type: str, team_size: int
) -> GameSubType:
    game = GameSubType(
        game_type=game_type, game_sub_type=game_sub_type, team_size=team_size
    )
    logger.debug("storing game sub type %s/%s", game_type, game_sub_type)
    with db.session() as session:
        return session.merge(game)


def get_specific_game_sub_type(
    db: Database, game_type: str, game_sub_type: str
) -> list[GameSubType]:
    with db.session() as session:
        return list(
            session.execute(
                select(GameSubType).where(
                    *_nonzero(
                        (GameSubType.game_type, game_type),
                        (GameSubType.game_sub_type, game_sub_type),
                    )
                )
            ).scalars()
        )


def get_game_sub_types(db: Database, game_type: str) -> list[GameSubType]:
    with db.session() as session:
        return list(
            session.execute(
                select(GameSubType).where(
                    *_nonzero((GameSubType.game_type, game_type))
                )
            ).scalars()
        )


def delete_game_sub_type(db: Database, game_type: str, game_sub_type: str) -> None:
    """Delete the first matching sub type; raise if there is none."""
    with db.session() as session:
        found = session.execute(
            select(GameSubType)
            .where(
                *_nonzero(
                    (GameSubType.game_type, game_type),
                    (GameSubType.game_sub_type, game_sub_type),
                )
            )
            .order_by(GameSubType.game_type, GameSubType.game_sub_type)
            .limit(1)
        ).scalar_one()
        session.delete(found)


def create_game_type(db: Database, game_type: str) -> GameType:
    game = GameType(game_type_id=uuid.uuid4(), game_type=game_type)
    logger.debug("creating game type %s", game_type)
    with db.session() as session:
        session.add(game)
        return game


def get_specific_game_type(db: Database, game_type: str) -> list[GameType]:
    with db.session() as session:
        return list(
            session.execute(
                select(GameType).where(*_nonzero((GameType.game_type, game_type)))
            ).scalars()
        )


def get_game_types(db: Database) -> list[GameType]:
    with db.session() as session:
        return list(session.execute(select(GameType)).scalars())


def create_format(
    db: Database, format_name: str, label: str, max_winners: int
) -> TournamentFormat:
    with db.session() as session:
        return session.merge(
            TournamentFormat(
                format_name=format_name, label=label, max_winners=max_winners
            )
        )


def get_format(db: Database, format_name: str) -> list[TournamentFormat]:
    with db.session() as session:
        return list(
            session.execute(
                select(TournamentFormat).where(
                    *_nonzero((TournamentFormat.format_name, format_name))
                )
            ).scalars()
        )


def list_formats(db: Database) -> list[TournamentFormat]:
    with db.session() as session:
        return list(session.execute(select(TournamentFormat)).scalars())


def get_user_deposit_records(
    db: Database, public_address: str, page: int, per_page: int
) -> list[DepositRecord]:
    """One page of an address's deposits, newest first."""
    statement = (
        select(DepositRecord)
        .where(*_nonzero((DepositRecord.poa_address, public_address)))
        .order_by(DepositRecord.mint_date.desc())
    )
    with db.session() as session:
        return list(
            session.execute(_paginate(statement, page, per_page)).scalars()
        )


def count_deposit_record_pages(db: Database, public_address: str, per_page: int) -> int:
    """Number of pages of ``per_page`` deposits held by an address."""
    if per_page <= 0:
        raise ValueError("per_page must be positive")
    with db.session() as session:
        count = session.execute(
            select(func.count())
            .select_from(DepositRecord)
            .where(DepositRecord.poa_address == public_address)
        ).scalar_one()
    return _page_count(count, per_page)
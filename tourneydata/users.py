"""User accounts, linked game and payment accounts, and activity feeds."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, func, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from tourneydata.db import Base, Database, RecordNotFoundError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _nonzero(*pairs):
    """Equality conditions for the pairs whose value is set."""
    return [column == value for column, value in pairs if value]


def _json_value(raw: Any) -> Any:
    """Accept JSON text or an already decoded value."""
    if isinstance(raw, (bytes, bytearray, str)):
        return json.loads(raw)
    return raw


@dataclass
class Battlenet:
    battletag: str = ""
    region: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"battletag": self.battletag, "region": self.region}

    @classmethod
    def from_dict(cls, data: dict | None) -> Battlenet:
        data = data or {}
        return cls(battletag=data.get("battletag", ""), region=data.get("region", ""))


@dataclass
class Epic:
    epic_id: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"epicId": self.epic_id}

    @classmethod
    def from_dict(cls, data: dict | None) -> Epic:
        return cls(epic_id=(data or {}).get("epicId", ""))


@dataclass
class Steam:
    steam_id: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"steamId": self.steam_id}

    @classmethod
    def from_dict(cls, data: dict | None) -> Steam:
        return cls(steam_id=(data or {}).get("steamId", ""))


@dataclass
class Paypal:
    paypal_id: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"paypalId": self.paypal_id}

    @classmethod
    def from_dict(cls, data: dict | None) -> Paypal:
        return cls(paypal_id=(data or {}).get("paypalId", ""))


@dataclass
class GameAccount:
    battlenet: Battlenet = field(default_factory=Battlenet)
    epic: Epic = field(default_factory=Epic)
    steam: Steam = field(default_factory=Steam)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {
            "battlenet": self.battlenet.to_dict(),
            "epic": self.epic.to_dict(),
            "steam": self.steam.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> GameAccount:
        data = data or {}
        return cls(
            battlenet=Battlenet.from_dict(data.get("battlenet")),
            epic=Epic.from_dict(data.get("epic")),
            steam=Steam.from_dict(data.get("steam")),
        )


@dataclass
class PaymentAccount:
    paypal: Paypal = field(default_factory=Paypal)

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"paypal": self.paypal.to_dict()}

    @classmethod
    def from_dict(cls, data: dict | None) -> PaymentAccount:
        return cls(paypal=Paypal.from_dict((data or {}).get("paypal")))


@dataclass
class Favourite:
    favourite_game: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {"favouriteGame": list(self.favourite_game)}

    @classmethod
    def from_dict(cls, data: dict | None) -> Favourite:
        return cls(favourite_game=list((data or {}).get("favouriteGame") or []))


class UserAccount(Base):
    __tablename__ = "user_accounts"

    sub: Mapped[str] = mapped_column(String, primary_key=True)
    username: Mapped[str] = mapped_column(String, default="")
    favourite: Mapped[Any] = mapped_column(JSON, nullable=True)
    display_name: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    avatar_url: Mapped[str] = mapped_column(String, default="")
    profile_banner: Mapped[str] = mapped_column(String, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    online_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    eth_gifted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    public_address: Mapped[str] = mapped_column(String, default="")
    phone_number: Mapped[str] = mapped_column(String, default="")
    enabled_2fa: Mapped[bool] = mapped_column("enabled2_fa", Boolean, default=False)


class UserGameAccount(Base):
    __tablename__ = "user_game_accounts"

    sub: Mapped[str] = mapped_column(String, primary_key=True)
    game_account: Mapped[Any] = mapped_column(JSON, nullable=True)

    @property
    def account(self) -> GameAccount:
        return GameAccount.from_dict(self.game_account)


class UserPaymentAccount(Base):
    __tablename__ = "user_payment_accounts"

    sub: Mapped[str] = mapped_column(String, primary_key=True)
    payment_account: Mapped[Any] = mapped_column(JSON, nullable=True)

    @property
    def account(self) -> PaymentAccount:
        return PaymentAccount.from_dict(self.payment_account)


class UserFeed(Base):
    __tablename__ = "user_feeds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    sub: Mapped[str] = mapped_column(String, default="")
    icon: Mapped[str] = mapped_column(String, default="")
    link: Mapped[str] = mapped_column(String, default="")
    message: Mapped[str] = mapped_column(String, default="")


@dataclass
class UserInfo:
    """The public face of a user."""

    sub: str = ""
    username: str = ""
    display_name: str = ""
    avatar_url: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "sub": self.sub,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
        }

    @classmethod
    def from_account(cls, account: UserAccount) -> UserInfo:
        return cls(
            sub=account.sub,
            username=account.username,
            display_name=account.display_name,
            avatar_url=account.avatar_url,
        )


def _first_user(session: Session, *conditions) -> UserAccount:
    return session.execute(
        select(UserAccount).where(*conditions).order_by(UserAccount.sub).limit(1)
    ).scalar_one()


def _modify_user(db: Database, sub: str, **values: Any) -> UserAccount:
    with db.session() as session:
        user = _first_user(session, *_nonzero((UserAccount.sub, sub)))
        for name, value in values.items():
            setattr(user, name, value)
        session.flush()
        return user


def user_signup(
    db: Database,
    username: str,
    display_name: str,
    public_address: str,
    sub: str,
    favourite: Any,
) -> UserAccount:
    """Store a new account together with empty game and payment accounts."""
    user = UserAccount(
        sub=sub,
        username=username,
        display_name=display_name,
        is_active=True,
        public_address=public_address,
        eth_gifted_at=_utcnow(),
        favourite=_json_value(favourite),
    )
    game = UserGameAccount(sub=sub, game_account=GameAccount().to_dict())
    payment = UserPaymentAccount(sub=sub, payment_account=PaymentAccount().to_dict())
    with db.session() as session:
        stored = session.merge(user)
        session.merge(game)
        session.merge(payment)
        session.flush()
        return stored


def get_user(db: Database, sub: str) -> UserAccount:
    try:
        with db.session() as session:
            return _first_user(session, *_nonzero((UserAccount.sub, sub)))
    except RecordNotFoundError:
        logger.error("user %s not found", sub)
        raise


def get_user_game_account(db: Database, sub: str) -> GameAccount:
    with db.session() as session:
        row = session.execute(
            select(UserGameAccount)
            .where(*_nonzero((UserGameAccount.sub, sub)))
            .order_by(UserGameAccount.sub)
            .limit(1)
        ).scalar_one()
        return row.account


def count_users(db: Database) -> int:
    with db.session() as session:
        return session.execute(
            select(func.count()).select_from(UserAccount)
        ).scalar_one()


def get_user_by_display_name(db: Database, display_name: str) -> UserAccount:
    with db.session() as session:
        return _first_user(
            session, *_nonzero((UserAccount.display_name, display_name))
        )


def get_user_sub_by_username(db: Database, username: str) -> str:
    with db.session() as session:
        return session.execute(
            select(UserAccount.sub)
            .where(*_nonzero((UserAccount.username, username)))
            .order_by(UserAccount.sub)
            .limit(1)
        ).scalar_one()


def count_display_name_usage(db: Database, display_name: str) -> int:
    with db.session() as session:
        return session.execute(
            select(func.count())
            .select_from(UserAccount)
            .where(*_nonzero((UserAccount.display_name, display_name)))
        ).scalar_one()


def get_user_profile(db: Database, username: str) -> UserAccount:
    with db.session() as session:
        return _first_user(session, *_nonzero((UserAccount.username, username)))


def update_display_name(db: Database, sub: str, display_name: str) -> UserAccount:
    return _modify_user(db, sub, display_name=display_name)


def update_phone_number(db: Database, sub: str, phone_number: str) -> UserAccount:
    """Set the phone number; an empty number leaves the stored one alone."""
    if phone_number:
        return _modify_user(db, sub, phone_number=phone_number)
    return _modify_user(db, sub)


def disable_2fa(db: Database, sub: str) -> UserAccount:
    return _modify_user(db, sub, enabled_2fa=False)


def enable_2fa(db: Database, sub: str) -> UserAccount:
    return _modify_user(db, sub, enabled_2fa=True)


def update_online_time(db: Database, sub: str) -> UserAccount:
    return _modify_user(db, sub, online_time=_utcnow())


def update_avatar(db: Database, sub: str, avatar_url: str) -> UserAccount:
    return _modify_user(db, sub, avatar_url=avatar_url)


def update_profile_banner(db: Database, sub: str, profile_banner: str) -> UserAccount:
    return _modify_user(db, sub, profile_banner=profile_banner)


def update_eth_gifted_at(db: Database, sub: str) -> UserAccount:
    return _modify_user(db, sub, eth_gifted_at=_utcnow())


def update_favourite(db: Database, sub: str, favourite: Any) -> UserAccount:
    return _modify_user(db, sub, favourite=_json_value(favourite))


def search_by_display_name(db: Database, pattern: str) -> list[UserAccount]:
    """Users whose display name matches a SQL LIKE pattern."""
    with db.session() as session:
        return list(
            session.execute(
                select(UserAccount).where(UserAccount.display_name.like(pattern))
            ).scalars()
        )


def create_user_feed(db: Database, feed: UserFeed) -> UserFeed:
    with db.session() as session:
        session.add(feed)
        session.flush()
        return feed


def read_user_feed(db: Database, sub: str) -> list[UserFeed]:
    with db.session() as session:
        return list(
            session.execute(
                select(UserFeed).where(*_nonzero((UserFeed.sub, sub)))
            ).scalars()
        )
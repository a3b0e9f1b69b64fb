"""Links from users to their social media accounts."""

from __future__ import annotations

from enum import Enum
from typing import Any

from sqlalchemy import String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from tourneydata.db import Base, Database, RecordNotFoundError


def _nonzero(*pairs):
    return [column == value for column, value in pairs if value]


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        return value.value
    return value or ""


class SocialType(str, Enum):
    TWITTER = "TWITTER"
    TWITCH = "TWITCH"
    DISCORD = "DISCORD"

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        try:
            cls(value)
        except ValueError:
            return False
        return True


class SocialLink(Base):
    __tablename__ = "social_links"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    social_type: Mapped[str] = mapped_column(String, primary_key=True)
    social_id: Mapped[str] = mapped_column(String, default="")


class SocialHandler:
    """Stores one social account per user and network."""

    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def _load(session: Session, user_id: str, social_type) -> SocialLink:
        return session.execute(
            select(SocialLink)
            .where(
                *_nonzero(
                    (SocialLink.user_id, user_id),
                    (SocialLink.social_type, _text(social_type)),
                )
            )
            .order_by(SocialLink.user_id, SocialLink.social_type)
            .limit(1)
        ).scalar_one()

    def create_social_link(self, link: SocialLink) -> SocialLink:
        """Store a link, replacing the account id of an existing one."""
        try:
            self.fetch_social_link(link.user_id, link.social_type)
        except RecordNotFoundError:
            stored = SocialLink(
                user_id=link.user_id,
                social_type=_text(link.social_type),
                social_id=link.social_id or "",
            )
            with self.db.session() as session:
                session.add(stored)
                session.flush()
                return stored
        return self.update_social_link(link.user_id, link.social_id, link.social_type)

    def delete_social_link(self, user_id: str, social_type) -> None:
        with self.db.session() as session:
            session.delete(self._load(session, user_id, social_type))

    def update_social_link(self, user_id: str, social_id: str, social_type) -> SocialLink:
        with self.db.session() as session:
            link = self._load(session, user_id, social_type)
            link.social_id = social_id
            session.flush()
            return link

    def fetch_social_link(self, user_id: str, social_type) -> SocialLink:
        with self.db.session() as session:
            return self._load(session, user_id, social_type)

    def fetch_all_social_links(self, user_id: str) -> list[SocialLink]:
        with self.db.session() as session:
            return list(
                session.execute(
                    select(SocialLink).where(SocialLink.user_id == user_id)
                ).scalars()
            )
"""Friend invitations and friend lists."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, or_, select, update
from sqlalchemy.orm import Mapped, mapped_column

from tourneydata.db import Base, Database
from tourneydata.users import UserAccount

APPROVE = 1
UNDECIDED = 0
REJECT = -1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _nonzero(*pairs):
    return [column == value for column, value in pairs if value]


class Friend(Base):
    __tablename__ = "friends"

    user_id_one: Mapped[str] = mapped_column(String, primary_key=True)
    user_id_two: Mapped[str] = mapped_column(String, primary_key=True)
    user_one_decision: Mapped[int] = mapped_column(Integer, default=UNDECIDED)
    user_two_decision: Mapped[int] = mapped_column(Integer, default=UNDECIDED)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


@dataclass
class InvitationRequestUser:
    display_name: str = ""
    avatar_url: str = ""
    user_two_decision: int = UNDECIDED

    def to_dict(self) -> dict:
        return {
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
            "userTwoDecision": self.user_two_decision,
        }


def create_friend_invite(db: Database, invite: Friend) -> Friend:
    with db.session() as session:
        session.add(invite)
        session.flush()
        return invite


def fetch_friend_invites(
    db: Database, applicant_id: str, accept_user_id: str
) -> list[Friend]:
    with db.session() as session:
        return list(
            session.execute(
                select(Friend).where(
                    *_nonzero(
                        (Friend.user_id_one, applicant_id),
                        (Friend.user_id_two, accept_user_id),
                    )
                )
            ).scalars()
        )


def get_friend_invitations(db: Database, user_id: str) -> list[InvitationRequestUser]:
    """Undecided invitations sent to a user, with the senders' profiles."""
    statement = (
        select(
            UserAccount.display_name,
            UserAccount.avatar_url,
            Friend.user_two_decision,
        )
        .select_from(Friend)
        .outerjoin(UserAccount, Friend.user_id_one == UserAccount.sub)
        .where(Friend.user_id_two == user_id, Friend.user_two_decision == UNDECIDED)
    )
    with db.session() as session:
        return [
            InvitationRequestUser(
                display_name=display_name or "",
                avatar_url=avatar_url or "",
                user_two_decision=decision,
            )
            for display_name, avatar_url, decision in session.execute(statement)
        ]


def get_friend_list(db: Database, user_id: str) -> list[Friend]:
    """Friendships of a user that both sides have approved."""
    statement = select(Friend).where(
        or_(Friend.user_id_one == user_id, Friend.user_id_two == user_id),
        Friend.user_one_decision + Friend.user_two_decision == 2 * APPROVE,
    )
    with db.session() as session:
        return list(session.execute(statement).scalars())


def _decide(db: Database, applicant_id: str, user_id: str, decision: int) -> None:
    conditions = _nonzero(
        (Friend.user_id_one, applicant_id), (Friend.user_id_two, user_id)
    )
    if not conditions:
        raise ValueError("missing where clause")
    with db.session() as session:
        session.execute(
            update(Friend)
            .where(*conditions)
            .values(user_two_decision=decision, updated_at=_utcnow())
        )


def approve_friend_invitation(db: Database, applicant_id: str, user_id: str) -> None:
    _decide(db, applicant_id, user_id, APPROVE)


def reject_friend_invitation(db: Database, applicant_id: str, user_id: str) -> None:
    _decide(db, applicant_id, user_id, REJECT)
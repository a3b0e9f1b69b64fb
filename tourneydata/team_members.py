"""Team membership: roles, join requests and their approval."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import DateTime, String, delete, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from tourneydata.db import Base, Database
from tourneydata.users import UserAccount, get_user


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _nonzero(*pairs):
    """Equality conditions for the pairs whose value is set."""
    return [column == value for column, value in pairs if value]


def _text(value: Any) -> str:
    """The stored text of an enum member or plain string."""
    if isinstance(value, Enum):
        return value.value
    return value or ""


class _CheckedEnum(str, Enum):
    @classmethod
    def is_valid(cls, value: Any) -> bool:
        """Tell whether ``value`` names one of the members."""
        try:
            cls(value)
        except ValueError:
            return False
        return True


class TransferType(_CheckedEnum):
    FUND = "FUND"
    DISTRIBUTE = "DISTRIBUTE"


class Role(_CheckedEnum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"


class Status(_CheckedEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RequestType(_CheckedEnum):
    INVITE = "INVITE"
    APPLY = "APPLY"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


@dataclass
class JoinRequestBody:
    """Body of a request to join or invite someone into a team."""

    team_id: str = ""
    action: RequestType | None = None
    user_id: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "teamId": self.team_id,
            "action": _text(self.action),
            "userId": self.user_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> JoinRequestBody:
        action = data.get("action")
        return cls(
            team_id=data.get("teamId", ""),
            action=RequestType(action) if action else None,
            user_id=data.get("userId", ""),
        )


class TeamMember(Base):
    __tablename__ = "team_members"

    team_id: Mapped[str] = mapped_column(String, primary_key=True)
    sub: Mapped[str] = mapped_column(String, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    role: Mapped[str] = mapped_column(String, default=Role.MEMBER.value)
    status: Mapped[str] = mapped_column(String, default=Status.PENDING.value)
    request_type: Mapped[str] = mapped_column(String, default="")

    user = None


class TeamMemberHandler:
    """Reads and changes the membership rows of teams."""

    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def _load(session: Session, team_id: str, sub: str) -> TeamMember:
        member = session.execute(
            select(TeamMember)
            .where(*_nonzero((TeamMember.team_id, team_id), (TeamMember.sub, sub)))
            .order_by(TeamMember.team_id, TeamMember.sub)
            .limit(1)
        ).scalar_one()
        member.user = session.execute(
            select(UserAccount)
            .where(*_nonzero((UserAccount.sub, member.sub)))
            .order_by(UserAccount.sub)
            .limit(1)
        ).scalar_one()
        return member

    def create_team_member(
        self, team_id: str, sub: str, role: Role | str, request_type: RequestType | str
    ) -> TeamMember:
        """Add a user to a team; owners start approved, everyone else pending."""
        role = Role(role)
        request_type = RequestType(request_type)
        get_user(self.db, sub)
        status = Status.APPROVED if role is Role.OWNER else Status.PENDING
        member = TeamMember(
            team_id=team_id,
            sub=sub,
            role=role.value,
            status=status.value,
            request_type=request_type.value,
        )
        with self.db.session() as session:
            session.add(member)
            session.flush()
            return member

    def _modify(self, team_id: str, sub: str, **values: str) -> TeamMember:
        with self.db.session() as session:
            member = self._load(session, team_id, sub)
            for name, value in values.items():
                setattr(member, name, value)
            session.flush()
            return member

    def change_role(self, team_id: str, sub: str, role: Role | str) -> TeamMember:
        return self._modify(team_id, sub, role=Role(role).value)

    def approve(self, team_id: str, sub: str) -> TeamMember:
        return self._modify(team_id, sub, status=Status.APPROVED.value)

    def reject(self, team_id: str, sub: str) -> TeamMember:
        return self._modify(team_id, sub, status=Status.REJECTED.value)

    def delete_team_member(self, team_id: str, sub: str) -> None:
        with self.db.session() as session:
            session.delete(self._load(session, team_id, sub))

    def delete_team_members(self, team_id: str) -> None:
        """Remove every member of a team."""
        if not team_id:
            raise ValueError("missing where clause")
        with self.db.session() as session:
            session.execute(delete(TeamMember).where(TeamMember.team_id == team_id))

    def find_team_member(self, team_id: str, sub: str) -> TeamMember:
        with self.db.session() as session:
            return self._load(session, team_id, sub)

    def find_team_members(self, team_id: str) -> list[TeamMember]:
        """All members of a team with their accounts, oldest first."""
        with self.db.session() as session:
            members = list(
                session.execute(
                    select(TeamMember)
                    .where(*_nonzero((TeamMember.team_id, team_id)))
                    .order_by(TeamMember.created_at)
                ).scalars()
            )
            for member in members:
                member.user = session.execute(
                    select(UserAccount)
                    .where(*_nonzero((UserAccount.sub, member.sub)))
                    .order_by(UserAccount.sub)
                    .limit(1)
                ).scalar_one()
            return members
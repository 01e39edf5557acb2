"""
Board access resolution and it does:
- Normalizes stored roles and sharing settings
- Resolves the caller's effective role (owner > member > link sharing)
- Answers whether the caller may run AI planning on a board

Main purpose:
One capability check before any model is called.
"""


from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from caseboard_ai.core.errors import BoardNotFoundError
from caseboard_ai.core.logging import get_logger
from caseboard_ai.db import repo

log = get_logger("core.access")

BOARD_ROLES = ("owner", "editor", "viewer")
SHARE_ROLES = ("editor", "viewer")
VISIBILITIES = ("private", "auth_link", "public_link")


@dataclass(frozen=True)
class BoardAccess:
    effective_role: str
    can_read: bool
    can_edit: bool
    can_apply_ai: bool
    visibility: str
    auth_link_role: str
    public_link_role: str


def normalize_board_role(value: Any) -> Optional[str]:
    return value if value in BOARD_ROLES else None


def _share_role(value: Any, fallback: str) -> str:
    return value if value in SHARE_ROLES else fallback


def resolve_board_access(
    *,
    owner_id: Optional[str],
    user_id: Optional[str],
    is_authenticated: bool,
    explicit_member_role: Optional[str] = None,
    sharing: Optional[dict] = None,
) -> BoardAccess:
    sharing = sharing or {}
    owner = owner_id.strip() if isinstance(owner_id, str) else ""
    user = user_id.strip() if isinstance(user_id, str) else ""
    member_role = normalize_board_role(explicit_member_role)

    # Unknown visibility is treated as link sharing for signed-in users
    visibility = sharing.get("visibility") if sharing.get("visibility") in VISIBILITIES else "auth_link"
    auth_link_role = _share_role(sharing.get("auth_link_role"), "editor")
    public_link_role = _share_role(sharing.get("public_link_role"), "viewer")

    if is_authenticated and owner and user and owner == user:
        role = "owner"
    elif member_role:
        role = member_role
    elif visibility == "private":
        role = "none"
    elif visibility == "auth_link":
        role = auth_link_role if is_authenticated else "none"
    else:
        role = public_link_role

    can_edit = role in ("owner", "editor")
    return BoardAccess(
        effective_role=role,
        can_read=role != "none",
        can_edit=can_edit,
        can_apply_ai=can_edit and is_authenticated,
        visibility=visibility,
        auth_link_role=auth_link_role,
        public_link_role=public_link_role,
    )


class BoardAccessService:
    """SQL-backed access checks. ``session_factory`` returns an AsyncSession context manager."""

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        if session_factory is None:
            from caseboard_ai.db.session import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory

    async def resolve(self, board_id: str, actor_id: str) -> BoardAccess:
        async with self.session_factory() as db:
            board = await repo.get_board(db, board_id)
            if board is None:
                raise BoardNotFoundError(f"board {board_id} does not exist")
            member_role = await repo.get_member_role(db, board_id, actor_id)

        return resolve_board_access(
            owner_id=board.owner_id,
            user_id=actor_id,
            is_authenticated=True,
            explicit_member_role=member_role,
            sharing={
                "visibility": board.visibility,
                "auth_link_role": board.auth_link_role,
                "public_link_role": board.public_link_role,
            },
        )

    async def can_invoke_ai(self, board_id: str, actor_id: str) -> bool:
        access = await self.resolve(board_id, actor_id)
        log.info(f"Board access board={board_id} user={actor_id} role={access.effective_role}")
        return access.can_apply_ai

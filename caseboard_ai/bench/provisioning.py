from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from caseboard_ai.bench.report import timestamp_slug
from caseboard_ai.core.auth import mint_token
from caseboard_ai.core.config import Settings, settings as default_settings
from caseboard_ai.core.errors import BenchmarkSetupError
from caseboard_ai.core.logging import get_logger
from caseboard_ai.db import repo
from caseboard_ai.db.models import Board

log = get_logger("bench.provisioning")


@dataclass(frozen=True)
class AuthContext:
    token: str
    user_id: str
    source: str  # explicit-token | minted-token


def resolve_auth(
    explicit_token: Optional[str],
    cfg: Settings = default_settings,
    user_id: Optional[str] = None,
) -> AuthContext:
    token = (explicit_token or "").strip()
    if token:
        return AuthContext(token=token, user_id=(user_id or "").strip() or "unknown", source="explicit-token")

    uid = (user_id or cfg.BENCHMARK_USER_ID or "").strip()
    if not cfg.AUTH_TOKEN_SECRET or not uid:
        raise BenchmarkSetupError(
            "No auth token provided. Pass --token / AI_AUTH_TOKEN, or set AUTH_TOKEN_SECRET and BENCHMARK_USER_ID."
        )
    minted = mint_token(cfg.AUTH_TOKEN_SECRET, uid, cfg.AUTH_TOKEN_TTL_SECONDS)
    return AuthContext(token=minted, user_id=uid, source="minted-token")


async def create_benchmark_boards(
    count: int,
    prefix: str,
    user_id: str,
    session_factory: Optional[Callable[[], AsyncSession]] = None,
) -> list[str]:
    """Private boards owned by ``user_id`` with an owner membership row each."""
    if count <= 0:
        return []
    if session_factory is None:
        from caseboard_ai.db.session import SessionLocal

        session_factory = SessionLocal

    stamp = timestamp_slug()
    board_ids: list[str] = []
    async with session_factory() as db:
        for i in range(count):
            suffix = f"{i + 1:02d}"
            board_id = f"{prefix}-{stamp}-{suffix}"
            await repo.upsert_board(
                db,
                Board(
                    id=board_id,
                    title=f"AB Benchmark {suffix}",
                    owner_id=user_id,
                    visibility="private",
                    auth_link_role="editor",
                    public_link_role="viewer",
                ),
            )
            await repo.upsert_member(db, board_id, user_id, "owner")
            board_ids.append(board_id)

    log.info(f"Created {len(board_ids)} benchmark board(s) for user={user_id}")
    return board_ids

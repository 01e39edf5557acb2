"""
Database table definitions and it stores:
- Board ownership and sharing metadata
- Explicit board memberships
- Trace events for provider calls
Main purpose:
Define the data the planning service reads and the traces it writes.
"""



from sqlalchemy import String, Text, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from caseboard_ai.db.base import Base

class Board(Base):
    __tablename__ = "boards"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String, default="")
    owner_id: Mapped[str] = mapped_column(String, index=True, default="")
    visibility: Mapped[str] = mapped_column(String, default="private")  # private|auth_link|public_link
    auth_link_role: Mapped[str] = mapped_column(String, default="editor")  # editor|viewer
    public_link_role: Mapped[str] = mapped_column(String, default="viewer")  # editor|viewer
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

class BoardMember(Base):
    __tablename__ = "board_members"
    id: Mapped[str] = mapped_column(String, primary_key=True)  # "<board_id>_<user_id>"
    board_id: Mapped[str] = mapped_column(String, index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    role: Mapped[str] = mapped_column(String, default="viewer")  # owner|editor|viewer
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
Index("ix_board_members_board_user", BoardMember.board_id, BoardMember.user_id, unique=True)

class TraceEvent(Base):
    __tablename__ = "trace_events"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    run_id: Mapped[str] = mapped_column(String, index=True)
    run_name: Mapped[str] = mapped_column(String, index=True)
    project: Mapped[str] = mapped_column(String, default="")
    event_type: Mapped[str] = mapped_column(String)  # start|end|error
    payload: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

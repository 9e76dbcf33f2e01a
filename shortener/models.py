"""SQLAlchemy ORM models for the persistence adapter.

Data Model Layout
=================
::
    short_urls table
    ├─ id (INTEGER PRIMARY KEY)
    ├─ short_code (VARCHAR(6) UNIQUE, INDEXED)
    ├─ original_url (TEXT NOT NULL)
    ├─ clicks (INTEGER DEFAULT 0)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW())
    └─ updated_at (TIMESTAMPTZ, DEFAULT NOW(), ON UPDATE)

Key Behaviours
===============
- short_code is unique and indexed; it is the lookup key for every adapter
  operation.
- original_url is stored exactly as submitted, without length limits.
- clicks starts at 0 and only ever grows through atomic increments.
- created_at and updated_at are set by the database.

Classes:
    URLRecord:  Durable code -> URL mapping with its click counter.
"""

import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortener.codegen import DEFAULT_CODE_LENGTH
from shortener.database import Base

__all__ = ["URLRecord"]


class URLRecord(Base):
    __tablename__ = "short_urls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(String(DEFAULT_CODE_LENGTH), unique=True, index=True, nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    clicks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<URLRecord(id={self.id}, short_code='{self.short_code}', clicks={self.clicks})>"

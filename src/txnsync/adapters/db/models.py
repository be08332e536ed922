from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    TIMESTAMP,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class Property(Base):
    """Flat key/value property backing ``SqlKeyValueStore``."""

    __tablename__ = "properties"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class SheetHeader(Base):
    """Header row of a named sheet, stored as a JSON array."""

    __tablename__ = "sheet_headers"

    sheet: Mapped[str] = mapped_column(String, primary_key=True)
    columns: Mapped[str] = mapped_column(Text, nullable=False)  # JSON array


class SheetRowEntry(Base):
    """One data row of a sheet; ``position`` is the 0-based row index."""

    __tablename__ = "sheet_rows"
    __table_args__ = (UniqueConstraint("sheet", "position", name="uq_sheet_row"),)

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sheet: Mapped[str] = mapped_column(String, nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    cells: Mapped[str] = mapped_column(Text, nullable=False)  # JSON array


class SheetColumnFormat(Base):
    """Display format hint for a sheet column (0-based column index)."""

    __tablename__ = "sheet_column_formats"

    sheet: Mapped[str] = mapped_column(String, primary_key=True)
    column: Mapped[int] = mapped_column(Integer, primary_key=True)
    format: Mapped[str] = mapped_column(String, nullable=False)

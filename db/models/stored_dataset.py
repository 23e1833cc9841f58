"""
db/models/stored_dataset.py

Stored dataset model: one normalized dataset serialized as a JSON document.
"""

from typing import Any

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class StoredDatasetRow(Base, TimestampMixin):
    """
    One normalized dataset.

    payload holds the records, stage events, actors and metadata exactly as
    produced by db.repositories.serialization, so the row can be loaded back
    without re-running normalization.
    """

    __tablename__ = "stored_datasets"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="dataset-<uuid hex>",
    )

    source_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Origin adapter: csv_upload, google_sheets, generic_crm, api, manual",
    )

    row_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Raw rows read from the source",
    )

    record_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    payload: Mapped[dict[str, Any]] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StoredDatasetRow id={self.id} source_type={self.source_type!r} "
            f"records={self.record_count}>"
        )

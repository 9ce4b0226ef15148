# models/persisted_block.py
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime

from dex_metrics.storage.models.store_value import Base


class PersistedBlock(Base):
    """Marker row written in the same transaction as a block's store values."""
    __tablename__ = "persisted_blocks"

    block_number = Column(BigInteger, primary_key=True, autoincrement=False)
    processed_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<PersistedBlock {self.block_number}>"

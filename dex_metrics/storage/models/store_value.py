# models/store_value.py
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Index, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class StoreValue(Base):
    """Last value of one key of one store, as of the last persisted block."""
    __tablename__ = "store_values"

    store_name   = Column(String(64),  primary_key=True)
    key          = Column(String(255), primary_key=True)
    value        = Column(Text,        nullable=False)     # encoded, see storage.writer
    kind         = Column(String(16),  nullable=False)     # decimal / int / pool / ...
    ordinal      = Column(BigInteger,  nullable=False)     # ordinal of the last write
    block_number = Column(BigInteger,  nullable=False)
    updated_at   = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_store_values_block_number", "block_number"),
    )

    def __repr__(self) -> str:
        return f"<StoreValue {self.store_name}:{self.key}={self.value} @{self.block_number}>"

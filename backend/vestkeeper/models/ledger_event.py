"""Journal of committed vesting events."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, BigInteger, DateTime, Index, JSON, Enum as SQLEnum

from vestkeeper.models.database import Base
from vestkeeper.services.notifications import EventType


class LedgerEvent(Base):
    """
    One row per committed engine event.

    Schedule state at any past timestamp is rebuilt by replaying rows in id
    order up to that timestamp.
    """
    __tablename__ = "ledger_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(SQLEnum(EventType), nullable=False, index=True)

    # Engine clock at commit time
    timestamp = Column(BigInteger, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    beneficiary = Column(String(128), nullable=True, index=True)
    schedule_index = Column(Integer, nullable=True)
    amount = Column(BigInteger, nullable=True)

    # Type-specific fields (period bounds, accrual list, cursor)
    data = Column(JSON, nullable=True)

    __table_args__ = (
        Index('ix_ledger_events_beneficiary_ts', 'beneficiary', 'timestamp'),
    )

    def __repr__(self):
        return f"<LedgerEvent(id={self.id}, type={self.event_type}, ts={self.timestamp}, beneficiary={self.beneficiary})>"

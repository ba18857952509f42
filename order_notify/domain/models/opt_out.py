"""Customer opt-out record. Presence means the customer refused notifications."""

from sqlalchemy import Column, DateTime, String, Text

from order_notify.infrastructure.database import Base


class OptOut(Base):
    __tablename__ = "opt_outs"

    id = Column(String(36), primary_key=True)
    customer_phone = Column(Text, nullable=False)
    customer_phone_hash = Column(String(64), nullable=False, unique=True, index=True)
    opted_out_at = Column(DateTime(timezone=True), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<OptOut {self.id} at {self.opted_out_at}>"

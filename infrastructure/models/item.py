"""
Item database model - SQLAlchemy ORM mapping.
Infrastructure detail only; business rules live in domain.item.entity.Item
"""
import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Uuid

from .base import Base


class ItemModel(Base):
    """ORM mapping for the items table.

    `version` is SQLAlchemy's version counter: every UPDATE/DELETE is issued
    with `WHERE version = <loaded value>`, so a concurrent change surfaces as
    StaleDataError instead of being silently overwritten.
    """
    __tablename__ = "items"
    __table_args__ = (
        Index("ix_items_created", "created"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, comment="Display name")
    created_at = Column("created", DateTime(timezone=True), nullable=False, comment="Insert time")
    updated_at = Column("modified", DateTime(timezone=True), nullable=True, comment="Last mutation time")
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<ItemModel(id={self.id}, name='{self.name}', version={self.version})>"

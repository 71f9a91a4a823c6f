"""Household, member, record type and record models

These tables are owned by the record-keeping side of the product; the insight
engine only reads them through the record store.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from datetime import datetime

from household_insights.models.base import Base


class Member(Base):
    """A person belonging to a household"""
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=True)
    household_id = Column(String, index=True, nullable=False)
    role = Column(String, default="member")  # admin, member
    created_at = Column(DateTime, default=datetime.utcnow)


class RecordType(Base):
    """User-defined record definition; `fields` holds a JSON array of field specs"""
    __tablename__ = "record_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, index=True, nullable=True)
    household_id = Column(String, index=True, nullable=False)
    fields = Column(Text, nullable=True)
    icon = Column(String, nullable=True)
    color = Column(String, nullable=True)
    created_by = Column(Integer, ForeignKey("members.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Record(Base):
    """A single logged observation; `content` holds a JSON object of field values"""
    __tablename__ = "records"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=True)
    record_type_id = Column(Integer, ForeignKey("record_types.id"), index=True, nullable=True)
    household_id = Column(String, index=True, nullable=False)
    member_id = Column(Integer, ForeignKey("members.id"), index=True, nullable=True)
    tags = Column(Text, nullable=True)  # Comma-separated
    created_at = Column(DateTime, default=datetime.utcnow, index=True, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

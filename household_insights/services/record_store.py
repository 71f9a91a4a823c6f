"""
Record Store

Read-only access to a household's records, members and record type
definitions. The insight engine and suggestion lookups only depend on the
RecordStore interface; SQLRecordStore is the SQLAlchemy-backed implementation.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

from sqlalchemy.orm import Session

from household_insights.models.base import SessionLocal
from household_insights.models.household import Member as MemberRow, Record, RecordType


@dataclass(frozen=True)
class RawRecord:
    """A record as handed to the compiler; content is a mapping or JSON text"""
    id: int
    title: str
    content: Any
    category: Optional[str]
    member_id: Optional[int]
    record_type_id: Optional[int]
    created_at: Optional[datetime]
    tags: Optional[str] = None
    member_name: Optional[str] = None
    record_type_name: Optional[str] = None


@dataclass(frozen=True)
class Member:
    id: int
    name: str
    household_id: str
    role: str = "member"


@dataclass(frozen=True)
class RecordTypeDef:
    """Record type definition; fields is a JSON array (text) or a list of dicts"""
    id: int
    name: str
    category: Optional[str]
    description: Optional[str]
    fields: Any


class RecordStore(ABC):
    """Source of truth for household data. Empty lists mean "no data"."""

    @abstractmethod
    def fetch_records(
        self,
        household_id: str,
        limit: int,
        recent_first: bool = True,
        record_type_id: Optional[int] = None,
        member_id: Optional[int] = None,
        since: Optional[datetime] = None
    ) -> List[RawRecord]:
        pass

    @abstractmethod
    def fetch_members(self, household_id: str) -> List[Member]:
        pass

    @abstractmethod
    def fetch_record_type_definitions(self, household_id: str) -> List[RecordTypeDef]:
        pass


class SQLRecordStore(RecordStore):
    """RecordStore over the members / record_types / records tables"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def fetch_records(
        self,
        household_id: str,
        limit: int,
        recent_first: bool = True,
        record_type_id: Optional[int] = None,
        member_id: Optional[int] = None,
        since: Optional[datetime] = None
    ) -> List[RawRecord]:
        db = self.session_factory()
        try:
            query = (
                db.query(Record, MemberRow.name, RecordType.name, RecordType.category)
                .outerjoin(MemberRow, Record.member_id == MemberRow.id)
                .outerjoin(RecordType, Record.record_type_id == RecordType.id)
                .filter(Record.household_id == household_id)
            )
            if record_type_id is not None:
                query = query.filter(Record.record_type_id == record_type_id)
            if member_id is not None:
                query = query.filter(Record.member_id == member_id)
            if since is not None:
                query = query.filter(Record.created_at >= since)

            if recent_first:
                query = query.order_by(Record.created_at.desc(), Record.id.desc())
            else:
                query = query.order_by(Record.created_at.asc(), Record.id.asc())

            rows = query.limit(limit).all()

            return [
                RawRecord(
                    id=record.id,
                    title=record.title,
                    content=record.content,
                    category=category,
                    member_id=record.member_id,
                    record_type_id=record.record_type_id,
                    created_at=record.created_at,
                    tags=record.tags,
                    member_name=member_name,
                    record_type_name=record_type_name,
                )
                for record, member_name, record_type_name, category in rows
            ]
        finally:
            db.close()

    def fetch_members(self, household_id: str) -> List[Member]:
        db = self.session_factory()
        try:
            rows = (
                db.query(MemberRow)
                .filter(MemberRow.household_id == household_id)
                .order_by(MemberRow.id)
                .all()
            )
            return [
                Member(id=m.id, name=m.name, household_id=m.household_id, role=m.role or "member")
                for m in rows
            ]
        finally:
            db.close()

    def fetch_record_type_definitions(self, household_id: str) -> List[RecordTypeDef]:
        db = self.session_factory()
        try:
            rows = (
                db.query(RecordType)
                .filter(RecordType.household_id == household_id)
                .order_by(RecordType.id)
                .all()
            )
            return [
                RecordTypeDef(
                    id=rt.id,
                    name=rt.name,
                    category=rt.category,
                    description=rt.description,
                    fields=rt.fields,
                )
                for rt in rows
            ]
        finally:
            db.close()

"""
Keyed record store over SQLModel tables.

Records are written at seed time and only read afterwards. Lookups are
exact-match on a single field; a blank filter value means "no filter".
"""
from typing import Any, Generic, Iterable, List, Optional, Type, TypeVar
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, select, func
from assistant.errors import DuplicateRecord, UnknownField
from assistant.models.customer import Customer
from assistant.logging import logger

RecordT = TypeVar("RecordT", bound=SQLModel)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class RecordStore(Generic[RecordT]):
    """Read-mostly store for one record model (``Customer`` by default)."""

    def __init__(self, engine: Engine, model: Type[RecordT] = Customer):
        self.engine = engine
        self.model = model

    def _column(self, field: str):
        if field not in self.model.model_fields:
            raise UnknownField(f"{self.model.__name__} has no field '{field}'")
        return getattr(self.model, field)

    def put(self, record: RecordT) -> RecordT:
        """Insert a record. Its identifier is assigned here and never changes."""
        with Session(self.engine) as session:
            if record.id is not None and session.get(self.model, record.id) is not None:
                raise DuplicateRecord(f"{self.model.__name__} {record.id} already exists")
            session.add(record)
            session.commit()
            session.refresh(record)
        return record

    def put_all(self, records: Iterable[RecordT]) -> List[RecordT]:
        saved = [self.put(r) for r in records]
        logger.info(f"Stored {len(saved)} {self.model.__name__} records")
        return saved

    def get(self, record_id: int) -> Optional[RecordT]:
        with Session(self.engine) as session:
            return session.get(self.model, record_id)

    def get_all(self) -> List[RecordT]:
        with Session(self.engine) as session:
            return list(session.exec(select(self.model).order_by(self.model.id)).all())

    # Name used by the tool layer
    list_all = get_all

    def find_by_field(self, field: str, value: Any = None) -> List[RecordT]:
        """Exact-match lookup. A blank or missing value returns every record."""
        column = self._column(field)
        if _is_blank(value):
            return self.get_all()
        with Session(self.engine) as session:
            stmt = select(self.model).where(column == value).order_by(self.model.id)
            return list(session.exec(stmt).all())

    def distinct_values(self, field: str) -> List[Any]:
        """Distinct values of a field, in first-seen (id) order."""
        self._column(field)
        seen: dict = {}
        for record in self.get_all():
            seen.setdefault(getattr(record, field), None)
        return list(seen)

    def count(self) -> int:
        with Session(self.engine) as session:
            return session.exec(select(func.count(self.model.id))).one()

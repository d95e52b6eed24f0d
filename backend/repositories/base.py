# backend/repositories/base.py
from typing import Generic, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy.orm import Query, Session

from utils.errors import NotFoundError

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    """Persistence helpers shared by every repository.

    Repositories only flush; committing (or rolling back) is the caller's job so
    that a service can group several writes into one transaction.
    """

    model: Type[ModelT]
    label: str = "Record"

    def __init__(self, db: Session):
        self.db = db

    def query(self) -> Query:
        return self.db.query(self.model)

    def find(self, id_: int) -> Optional[ModelT]:
        return self.db.get(self.model, id_)

    def find_or_fail(self, id_: int) -> ModelT:
        obj = self.find(id_)
        if obj is None:
            raise NotFoundError(f"{self.label} not found")
        return obj

    def find_or_fail_with_lock(self, id_: int) -> ModelT:
        # SELECT ... FOR UPDATE (ignored by SQLite)
        obj = self.query().filter(self.model.id == id_).with_for_update().first()
        if obj is None:
            raise NotFoundError(f"{self.label} not found")
        return obj

    def find_many(self, ids: Iterable[int]) -> List[ModelT]:
        ids = list(ids)
        if not ids:
            return []
        return self.query().filter(self.model.id.in_(ids)).all()

    def all(self, clauses: Sequence = (), order_by=None) -> List[ModelT]:
        q = self.query().filter(*clauses)
        if order_by is not None:
            q = q.order_by(order_by)
        return q.all()

    def count(self, clauses: Sequence = ()) -> int:
        return self.query().filter(*clauses).count()

    def exists(self, *clauses) -> bool:
        return self.query().filter(*clauses).first() is not None

    def paginate(self, q: Query, page: int = 1, per_page: int = 15) -> Tuple[List[ModelT], int]:
        total = q.order_by(None).count()
        items = q.offset((page - 1) * per_page).limit(per_page).all()
        return items, total

    def create(self, **data) -> ModelT:
        obj = self.model(**data)
        self.db.add(obj)
        self.db.flush()
        return obj

    def update(self, obj: ModelT, **data) -> ModelT:
        for key, value in data.items():
            setattr(obj, key, value)
        self.db.flush()
        return obj

    def delete(self, obj: ModelT) -> None:
        self.db.delete(obj)
        self.db.flush()

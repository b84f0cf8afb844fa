import math
from typing import Any, Mapping, Optional, Union

from sqlalchemy import delete as sqlalchemy_delete
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from records_api.errors import ConflictError, RecordNotFoundError, RecordValidationError
from records_api.log import logger
from records_api.models import RecordModel, utcnow
from records_api.schemas import RecordCreate, RecordOut, RecordPage, RecordUpdate, validate_record


def escape_like(term: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return (
        term.replace(escape, escape * 2)
        .replace("%", f"{escape}%")
        .replace("_", f"{escape}_")
    )


class BaseRepository:
    entity_name = "Item"
    conflict_message = "Unique constraint violated"
    conflict_field = "id"
    # Substrings identifying the unique constraint in driver error messages
    conflict_markers = ()

    def __init__(self, db: AsyncSession, model):
        self.db = db
        self.model = model

    async def _commit(self):
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not any(marker in str(e.orig) for marker in self.conflict_markers):
                raise
            logger.warning(f"{self.model.__name__} write rejected: {self.conflict_message}")
            raise ConflictError(
                self.conflict_message,
                errors=[{"field": self.conflict_field, "message": self.conflict_message}],
                original_exception=e,
            )

    async def create(self, obj_data: dict):
        obj = self.model(**obj_data)
        self.db.add(obj)
        await self._commit()
        await self.db.refresh(obj)
        return obj

    async def get_by_id(self, item_id: int):
        result = await self.db.execute(
            select(self.model).where(self.model.id == item_id)
        )
        return result.scalars().first()

    async def get_or_404(self, item_id: int):
        obj = await self.get_by_id(item_id)
        if obj is None:
            raise RecordNotFoundError(f"{self.entity_name} with id {item_id} not found")
        return obj

    async def update(self, obj, update_data: dict):
        for key, value in update_data.items():
            setattr(obj, key, value)
        await self._commit()
        await self.db.refresh(obj)
        return obj

    async def delete(self, item_id: int) -> bool:
        result = await self.db.execute(
            sqlalchemy_delete(self.model).where(self.model.id == item_id)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()


class RecordRepository(BaseRepository):
    entity_name = "Record"
    conflict_message = "Email already in use"
    conflict_field = "email"
    # SQLite names the column, MySQL and PostgreSQL name the constraint
    conflict_markers = ("uq_records_email", "records.email")

    def __init__(self, db: AsyncSession):
        super().__init__(db, RecordModel)

    async def create(self, data: Union[RecordCreate, Mapping[str, Any]]) -> RecordModel:
        payload = validate_record(data)
        now = utcnow()
        record = await super().create(
            {**payload.model_dump(), "created_at": now, "updated_at": now}
        )
        logger.info(f"Record created: {record.id}", extra={"record_id": record.id})
        return record

    async def get(self, record_id: int) -> RecordModel:
        return await self.get_or_404(record_id)

    async def update(self, record_id: int, data: Union[RecordUpdate, Mapping[str, Any]]) -> RecordModel:
        if isinstance(data, RecordUpdate):
            changes = data.model_dump(exclude_unset=True)
        else:
            changes = dict(data)

        record = await self.get_or_404(record_id)
        if not changes:
            return record

        current = {"name": record.name, "email": record.email, "message": record.message}
        unknown = set(changes) - set(current)
        if unknown:
            raise RecordValidationError(
                "Validation failed",
                errors=[{"field": field, "message": "Extra inputs are not permitted"} for field in sorted(unknown)],
            )
        payload = validate_record({**current, **changes})

        try:
            record = await super().update(
                record,
                {**{key: getattr(payload, key) for key in changes}, "updated_at": utcnow()},
            )
        except ConflictError:
            # The rollback expired the instance; reload it so callers can keep using it
            await self.db.refresh(record)
            raise
        logger.info(f"Record updated: {record.id}", extra={"record_id": record.id})
        return record

    async def delete(self, record_id: int) -> None:
        # Not idempotent: a second delete of the same id is a not-found
        record = await self.get_or_404(record_id)
        await super().delete(record.id)
        logger.info(f"Record deleted: {record_id}", extra={"record_id": record_id})

    async def list_page(self, page: int = 1, limit: int = 10, search: Optional[str] = None) -> RecordPage:
        errors = []
        if page < 1:
            errors.append({"field": "page", "message": "page must be at least 1"})
        if limit < 1:
            errors.append({"field": "limit", "message": "limit must be at least 1"})
        if errors:
            raise RecordValidationError("Validation failed", errors=errors)

        query = select(self.model)
        count_query = select(func.count()).select_from(self.model)
        if search:
            pattern = f"%{escape_like(search)}%"
            condition = or_(
                self.model.name.ilike(pattern, escape="\\"),
                self.model.email.ilike(pattern, escape="\\"),
                self.model.message.ilike(pattern, escape="\\"),
            )
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = (await self.db.execute(count_query)).scalar_one()
        offset = (page - 1) * limit
        records = []
        # Offsets past the last row skip the query; limit and offset stay within the row count
        if offset < total:
            result = await self.db.execute(
                query.order_by(self.model.created_at.desc(), self.model.id.desc())
                .offset(offset)
                .limit(min(limit, total))
            )
            records = result.scalars().all()

        return RecordPage(
            data=[RecordOut.model_validate(record) for record in records],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        )

"""Row-oriented records store backed by SQLAlchemy."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from vitrine.core import models
from vitrine.core.database import SessionLocal, session_scope
from vitrine.core.errors import RecordInsertError
from vitrine.core.logging import get_logger

logger = get_logger(__name__)

PENDING = "pending"


@dataclass(frozen=True, slots=True)
class VerificationSubmission:
    owner_id: str
    front_url: str
    back_url: str
    selfie_url: str
    status: str = PENDING
    id: str | None = None


class RecordsStore:
    """Reads the plan catalog and writes verification submissions."""

    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    async def fetch_rows(self, table: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._fetch_rows_sync, table)

    def _fetch_rows_sync(self, table: str) -> list[dict[str, Any]]:
        if table != models.SubscriptionPlan.__tablename__:
            raise ValueError(f"Table {table!r} cannot be read as a catalog")
        with session_scope(self._session_factory) as session:
            plans = (
                session.query(models.SubscriptionPlan)
                .order_by(models.SubscriptionPlan.price.asc(), models.SubscriptionPlan.created_at.asc())
                .all()
            )
            return [plan.as_row() for plan in plans]

    def upsert_plan(self, data: dict[str, Any]) -> str:
        with session_scope(self._session_factory) as session:
            plan = session.get(models.SubscriptionPlan, data["id"]) if data.get("id") else None
            if plan is None:
                plan = models.SubscriptionPlan(**data)
                session.add(plan)
            else:
                for key, value in data.items():
                    setattr(plan, key, value)
            session.flush()
            return plan.id

    async def insert_verification(self, submission: VerificationSubmission) -> VerificationSubmission:
        try:
            record_id = await asyncio.to_thread(self._insert_verification_sync, submission)
        except SQLAlchemyError as exc:
            logger.error("verification_insert_failed", owner_id=submission.owner_id, error=str(exc))
            raise RecordInsertError("Failed to record verification submission") from exc
        logger.info("verification_recorded", owner_id=submission.owner_id, record_id=record_id)
        return VerificationSubmission(
            owner_id=submission.owner_id,
            front_url=submission.front_url,
            back_url=submission.back_url,
            selfie_url=submission.selfie_url,
            status=submission.status,
            id=record_id,
        )

    def _insert_verification_sync(self, submission: VerificationSubmission) -> str:
        with session_scope(self._session_factory) as session:
            record = models.VerificationDocument(
                user_id=submission.owner_id,
                document_front_url=submission.front_url,
                document_back_url=submission.back_url,
                document_selfie_url=submission.selfie_url,
                status=submission.status,
            )
            session.add(record)
            session.flush()
            return record.id

    def list_verifications(self, owner_id: str) -> list[VerificationSubmission]:
        with session_scope(self._session_factory) as session:
            rows = (
                session.query(models.VerificationDocument)
                .filter(models.VerificationDocument.user_id == owner_id)
                .order_by(models.VerificationDocument.created_at.asc())
                .all()
            )
            return [
                VerificationSubmission(
                    owner_id=row.user_id,
                    front_url=row.document_front_url,
                    back_url=row.document_back_url,
                    selfie_url=row.document_selfie_url,
                    status=row.status,
                    id=row.id,
                )
                for row in rows
            ]


__all__ = ["PENDING", "RecordsStore", "VerificationSubmission"]

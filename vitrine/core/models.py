"""SQLAlchemy ORM models for the records store."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


JSONType = JSONB().with_variant(JSON(), "sqlite")


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id: Mapped[str] = mapped_column(String(64), default=lambda: str(uuid.uuid4()), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    price: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Either a plain list of strings or {"items": [...]}
    features: Mapped[Any | None] = mapped_column(JSONType)
    color: Mapped[str | None] = mapped_column(String(32))
    icon: Mapped[str | None] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    def as_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "features": self.features,
            "color": self.color,
            "icon": self.icon,
        }


class VerificationDocument(Base):
    __tablename__ = "verification_documents"

    id: Mapped[str] = mapped_column(String(64), default=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    document_front_url: Mapped[str] = mapped_column(Text, nullable=False)
    document_back_url: Mapped[str] = mapped_column(Text, nullable=False)
    document_selfie_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="pending", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime)


__all__ = ["JSONType", "SubscriptionPlan", "VerificationDocument"]

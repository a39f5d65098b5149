"""Identity document capture and submission for manual review."""
from __future__ import annotations

import asyncio
import base64
import io
import time
from dataclasses import dataclass
from typing import Callable

from PIL import Image, ImageOps, UnidentifiedImageError

from vitrine.core.errors import AuthRequired, CheckoutError, IncompleteSubmission, UploadError
from vitrine.core.logging import get_logger
from vitrine.core.observability import verification_submissions_total
from vitrine.core.settings import Settings, get_settings
from vitrine.services.navigation import Navigator, Screen
from vitrine.services.notifications import Notifier
from vitrine.services.records import RecordsStore, VerificationSubmission
from vitrine.services.storage import StorageError, StorageService

logger = get_logger(__name__)

SLOT_IDS = ("front", "back", "selfie")
PLACEHOLDER_PREVIEW = "/placeholder.svg"

_SLOT_COPY = {
    "front": (
        "Frente do Documento",
        "Envie uma foto clara da frente do seu documento de identidade (RG ou CNH)",
    ),
    "back": (
        "Verso do Documento",
        "Envie uma foto clara do verso do seu documento de identidade",
    ),
    "selfie": (
        "Selfie com Documento",
        "Envie uma selfie segurando o documento ao lado do rosto",
    ),
}


@dataclass(slots=True)
class DocumentSlot:
    slot_id: str
    title: str
    instruction: str
    file: bytes | None = None
    filename: str | None = None
    content_type: str | None = None
    preview: str = PLACEHOLDER_PREVIEW

    @property
    def is_bound(self) -> bool:
        return self.file is not None


def build_preview(data: bytes, content_type: str | None, max_side: int) -> str:
    """Return a data URL suitable for displaying the captured file."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img).convert("RGB")
            img.thumbnail((max_side, max_side))
            buffer = io.BytesIO()
            img.save(buffer, format="JPEG", quality=80)
        return "data:image/jpeg;base64," + base64.b64encode(buffer.getvalue()).decode()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        mime = content_type or "application/octet-stream"
        return f"data:{mime};base64," + base64.b64encode(data).decode()


def _unix_millis() -> int:
    return int(time.time() * 1000)


class DocumentUploadOrchestrator:
    """Holds the three document slots and submits them as one unit.

    A submission either ends with three stored objects plus one ``pending``
    record, or with an error. Objects uploaded before a later step fails are
    deleted again unless ``verification_compensate_uploads`` is turned off.
    """

    def __init__(
        self,
        storage: StorageService,
        records: RecordsStore,
        notifier: Notifier | None = None,
        navigator: Navigator | None = None,
        settings: Settings | None = None,
        clock: Callable[[], int] = _unix_millis,
    ) -> None:
        self.settings = settings or get_settings()
        self.storage = storage
        self.records = records
        self.notifier = notifier or Notifier()
        self.navigator = navigator or Navigator()
        self.clock = clock
        self.slots: dict[str, DocumentSlot] = {
            slot_id: DocumentSlot(slot_id=slot_id, title=title, instruction=instruction)
            for slot_id, (title, instruction) in _SLOT_COPY.items()
        }
        self.is_uploading = False

    def bind_file(
        self,
        slot_id: str,
        data: bytes,
        filename: str | None = None,
        content_type: str | None = None,
    ) -> DocumentSlot:
        try:
            slot = self.slots[slot_id]
        except KeyError:
            raise ValueError(f"Unknown document slot {slot_id!r}") from None
        slot.file = data
        slot.filename = filename
        slot.content_type = content_type
        slot.preview = build_preview(data, content_type, self.settings.preview_max_side)
        return slot

    def missing_slots(self) -> list[str]:
        return [slot_id for slot_id in SLOT_IDS if not self.slots[slot_id].is_bound]

    async def submit(self, owner_id: str | None) -> VerificationSubmission:
        if not owner_id:
            self.notifier.notify("auth_required")
            self.navigator.go(Screen.SIGN_IN)
            raise AuthRequired("Sign in to submit documents")

        missing = self.missing_slots()
        if missing:
            self.notifier.notify("documents_incomplete")
            raise IncompleteSubmission(missing)

        self.is_uploading = True
        try:
            submission = await self._submit(owner_id)
        except CheckoutError as exc:
            verification_submissions_total.labels(result=exc.kind).inc()
            self.notifier.notify(exc.notice)
            raise
        finally:
            self.is_uploading = False

        verification_submissions_total.labels(result="recorded").inc()
        self.notifier.notify("documents_sent")
        self.navigator.go(Screen.DASHBOARD)
        return submission

    async def _submit(self, owner_id: str) -> VerificationSubmission:
        bucket = self.settings.verification_bucket
        millis = self.clock()
        keys = {slot_id: f"verification/{owner_id}/{slot_id}_{millis}" for slot_id in SLOT_IDS}
        uploaded: dict[str, str] = {}

        if self.settings.verification_parallel_uploads:
            results = await asyncio.gather(
                *(self._upload(bucket, slot_id, keys[slot_id]) for slot_id in SLOT_IDS),
                return_exceptions=True,
            )
            failure: BaseException | None = None
            for slot_id, result in zip(SLOT_IDS, results):
                if isinstance(result, BaseException):
                    failure = failure or result
                else:
                    uploaded[slot_id] = result
            if failure is not None:
                await self._compensate(bucket, uploaded)
                raise failure
        else:
            for slot_id in SLOT_IDS:
                try:
                    uploaded[slot_id] = await self._upload(bucket, slot_id, keys[slot_id])
                except UploadError:
                    await self._compensate(bucket, uploaded)
                    raise

        urls = {slot_id: self.storage.get_public_url(bucket, path) for slot_id, path in uploaded.items()}
        pending = VerificationSubmission(
            owner_id=owner_id,
            front_url=urls["front"],
            back_url=urls["back"],
            selfie_url=urls["selfie"],
        )
        try:
            return await self.records.insert_verification(pending)
        except CheckoutError:
            await self._compensate(bucket, uploaded)
            raise

    async def _upload(self, bucket: str, slot_id: str, key: str) -> str:
        slot = self.slots[slot_id]
        assert slot.file is not None
        try:
            path = await asyncio.to_thread(self.storage.upload, bucket, key, slot.file, slot.content_type)
        except StorageError as exc:
            logger.error("verification_upload_failed", slot=slot_id, key=key, error=str(exc))
            raise UploadError(f"Failed to upload {slot_id} document", slot=slot_id) from exc
        logger.info("verification_uploaded", slot=slot_id, key=key, size=len(slot.file))
        return path

    async def _compensate(self, bucket: str, uploaded: dict[str, str]) -> None:
        if not uploaded:
            return
        paths = list(uploaded.values())
        if not self.settings.verification_compensate_uploads:
            logger.warning("verification_objects_orphaned", bucket=bucket, paths=paths)
            return
        try:
            await asyncio.to_thread(self.storage.remove, bucket, paths)
        except StorageError as exc:
            logger.error("verification_compensation_failed", bucket=bucket, paths=paths, error=str(exc))
            return
        logger.info("verification_compensated", bucket=bucket, paths=paths)


__all__ = [
    "PLACEHOLDER_PREVIEW",
    "SLOT_IDS",
    "DocumentSlot",
    "DocumentUploadOrchestrator",
    "build_preview",
]

"""Identity document submission routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, File, Request, UploadFile, status

from vitrine.api import schemas
from vitrine.api.dependencies.auth import get_optional_owner
from vitrine.services.navigation import Navigator
from vitrine.services.notifications import Notifier
from vitrine.services.verification import DocumentUploadOrchestrator

router = APIRouter(prefix="/api/v1", tags=["verification"])


@router.post("/verification", response_model=schemas.VerificationOut, status_code=status.HTTP_201_CREATED)
async def submit_documents(
    request: Request,
    front: UploadFile | None = File(default=None),
    back: UploadFile | None = File(default=None),
    selfie: UploadFile | None = File(default=None),
    owner_id: str | None = Depends(get_optional_owner),
) -> schemas.VerificationOut:
    notifier = Notifier()
    navigator = Navigator()
    orchestrator = DocumentUploadOrchestrator(
        request.app.state.storage,
        request.app.state.records,
        notifier=notifier,
        navigator=navigator,
    )
    for slot_id, upload in (("front", front), ("back", back), ("selfie", selfie)):
        if upload is not None and upload.filename:
            orchestrator.bind_file(slot_id, await upload.read(), upload.filename, upload.content_type)

    submission = await orchestrator.submit(owner_id)
    return schemas.VerificationOut(
        id=submission.id,
        status=submission.status,
        document_front_url=submission.front_url,
        document_back_url=submission.back_url,
        document_selfie_url=submission.selfie_url,
        next_screen=navigator.destination.value if navigator.destination else None,
        notices=[schemas.NoticeOut(**notice.as_dict()) for notice in notifier.drain()],
    )

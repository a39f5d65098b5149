"""User-facing notices emitted by the checkout and verification flows.

Presentation is someone else's job; this module only decides *which* notice
goes out, with the product's fixed copy, and keeps them for whoever renders.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from vitrine.core.logging import get_logger

logger = get_logger(__name__)

Level = Literal["success", "error", "info"]


@dataclass(frozen=True, slots=True)
class Notice:
    key: str
    title: str
    description: str
    level: Level = "info"

    def as_dict(self) -> dict[str, str]:
        return {"key": self.key, "title": self.title, "description": self.description, "level": self.level}


NOTICES: dict[str, Notice] = {
    "plan_selected": Notice(
        "plan_selected", "Plano selecionado", "{plan} por {duration}", "success"
    ),
    "no_plans": Notice(
        "no_plans",
        "Nenhum plano disponível",
        "Nenhum plano disponível no momento. Por favor, volte mais tarde.",
    ),
    "card_incomplete": Notice(
        "card_incomplete",
        "Informações incompletas",
        "Por favor, preencha todos os dados do cartão.",
        "error",
    ),
    "payment_processing": Notice(
        "payment_processing", "Processando...", "Seu pagamento já está sendo processado."
    ),
    "payment_approved": Notice(
        "payment_approved",
        "Pagamento aprovado!",
        "Seu anúncio está sendo processado e em breve estará disponível.",
        "success",
    ),
    "payment_declined": Notice(
        "payment_declined",
        "Pagamento recusado",
        "Seu pagamento não foi aprovado. Verifique os dados ou tente outro método.",
        "error",
    ),
    "payment_unavailable": Notice(
        "payment_unavailable",
        "Erro no pagamento",
        "Não foi possível concluir o pagamento agora. Por favor, tente novamente.",
        "error",
    ),
    "auth_required": Notice(
        "auth_required",
        "Você precisa estar logado",
        "Por favor, faça login para enviar seus documentos.",
        "error",
    ),
    "documents_incomplete": Notice(
        "documents_incomplete",
        "Documentos incompletos",
        "Por favor, envie todos os documentos solicitados para continuar.",
        "error",
    ),
    "upload_failed": Notice(
        "upload_failed",
        "Erro ao enviar documentos",
        "Ocorreu um erro ao enviar seus documentos. Por favor, tente novamente.",
        "error",
    ),
    "documents_sent": Notice(
        "documents_sent",
        "Documentos enviados",
        "Seus documentos foram enviados com sucesso e serão analisados em breve.",
        "success",
    ),
    "generic_failure": Notice(
        "generic_failure", "Algo deu errado", "Por favor, tente novamente.", "error"
    ),
}


class Notifier:
    """Collects notices in emission order."""

    def __init__(self) -> None:
        self.history: list[Notice] = []

    def notify(self, key: str, **params: Any) -> Notice:
        template = NOTICES[key]
        notice = Notice(
            key=template.key,
            title=template.title,
            description=template.description.format(**params) if params else template.description,
            level=template.level,
        )
        self.history.append(notice)
        logger.info("notice_emitted", key=key, level=notice.level)
        return notice

    @property
    def last(self) -> Notice | None:
        return self.history[-1] if self.history else None

    def drain(self) -> list[Notice]:
        notices, self.history = self.history, []
        return notices


__all__ = ["NOTICES", "Notice", "Notifier"]

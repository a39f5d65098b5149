"""Seed the subscription plan catalog with the default tiers."""
from __future__ import annotations

from vitrine.core.database import init_database
from vitrine.core.logging import get_logger, setup_logging
from vitrine.services.records import RecordsStore

logger = get_logger(__name__)

PLANS = [
    {
        "id": "gratis",
        "name": "Grátis",
        "price": 0,
        "features": {"items": ["Anúncio básico", "Visível por 1 dia"]},
        "icon": "star",
    },
    {
        "id": "safira",
        "name": "Safira",
        "price": 30,
        "features": {"items": ["Destaque na busca", "Até 5 fotos"]},
    },
    {
        "id": "rubi",
        "name": "Rubi",
        "price": 60,
        "features": {"items": ["Destaque na busca", "Até 10 fotos", "Selo verificado"]},
    },
    {
        "id": "diamante",
        "name": "Diamante",
        "price": 100,
        "features": {"items": ["Topo da página inicial", "Fotos ilimitadas", "Selo verificado"]},
        "icon": "diamond",
    },
]


def main() -> None:
    setup_logging()
    init_database()
    records = RecordsStore()
    for data in PLANS:
        records.upsert_plan(data)
    logger.info("plans_seeded", plans=[plan["id"] for plan in PLANS])


if __name__ == "__main__":
    main()

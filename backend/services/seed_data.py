"""
Knowledge-base seeding.

The curated conditions ship as a JSON file and are inserted once: if the
catalog already holds any record, seeding does nothing.
"""

import json
from pathlib import Path

from config.logging_config import get_logger
from models.models import MedicalCondition
from services.condition_catalog import ConditionCatalog

logger = get_logger(__name__)


def load_seed_conditions(path: Path | str) -> tuple[MedicalCondition, ...]:
    """
    Load the curated conditions from a JSON file.

    Raises:
        FileNotFoundError: The seed file is missing.
        pydantic.ValidationError: An entry does not match MedicalCondition.
    """
    seed_path = Path(path)
    if not seed_path.exists():
        raise FileNotFoundError(f"Condition seed file not found: {seed_path}")

    with open(seed_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    conditions = tuple(MedicalCondition.model_validate(item) for item in data.get("conditions", []))
    logger.info("Loaded seed conditions", path=str(seed_path), count=len(conditions))
    return conditions


async def seed_catalog(catalog: ConditionCatalog, conditions: tuple[MedicalCondition, ...]) -> int:
    """
    Insert the seed conditions into an empty catalog.

    Returns:
        Number of conditions inserted (0 when the catalog was already seeded).
    """
    existing = await catalog.count()
    if existing > 0:
        logger.info("Database already seeded", count=existing)
        return 0

    logger.info("Seeding medical knowledge base...")
    inserted = await catalog.insert_many(conditions)
    logger.info("Medical knowledge base seeded successfully", count=inserted)
    return inserted

"""
backend/seed/seed_categories.py
Seed default course categories (idempotent)
"""
import logging

from sqlalchemy import func, select

from backend.database import Database
from backend.orm.category import Category

logger = logging.getLogger(__name__)


CATEGORIES = [
    {"name": "Web Development", "description": "Frontend, backend and full-stack web engineering", "color": "#3B82F6"},
    {"name": "Data Science", "description": "Statistics, analytics and machine learning", "color": "#10B981"},
    {"name": "Mobile Development", "description": "Native and cross-platform mobile apps", "color": "#8B5CF6"},
    {"name": "Design", "description": "UI, UX and graphic design", "color": "#EC4899"},
    {"name": "Business", "description": "Management, marketing and entrepreneurship", "color": "#F59E0B"},
    {"name": "Languages", "description": "Spoken and written language courses", "color": "#EF4444"},
]


async def seed_categories(database: Database) -> int:
    """
    Insert the default categories when the table is empty.

    Returns:
        Number of categories created
    """
    async with database.session_factory() as session:
        result = await session.execute(select(func.count(Category.id)))
        if (result.scalar() or 0) > 0:
            logger.info("Categories already seeded")
            return 0

        for data in CATEGORIES:
            session.add(Category(**data))
        await session.commit()

    logger.info(f"Seeded {len(CATEGORIES)} categories")
    return len(CATEGORIES)

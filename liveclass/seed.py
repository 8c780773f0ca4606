"""Seed the configured admin user if not present."""
import logging

from liveclass.config import settings
from liveclass.models.user import User, UserRole
from liveclass.api.deps import get_password_hash

logger = logging.getLogger(__name__)


async def seed_admin():
    if not settings.admin_password:
        logger.info("ADMIN_PASSWORD not set, skipping admin seed")
        return
    existing = await User.find_one(User.email == settings.admin_email)
    if existing:
        return
    await User(
        email=settings.admin_email,
        hashed_password=get_password_hash(settings.admin_password),
        role=UserRole.ADMIN,
        name=settings.admin_name,
    ).insert()
    logger.info(f"Seeded admin user {settings.admin_email}")

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.models import User, UserRole


async def get_admin_ids(db: AsyncSession) -> list[int]:
    res = await db.execute(
        select(User.id)
        .where(User.role == UserRole.ADMIN)
        .where(User.is_active.is_(True))
        .order_by(User.id)
    )
    return list(res.scalars().all())

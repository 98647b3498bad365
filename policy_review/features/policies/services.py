from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from policy_review.models import PolicyRule as DBPolicyRule


async def list_active_policies(db: AsyncSession, excluded_policy_ids: Iterable[UUID] = ()) -> list[DBPolicyRule]:
    """list active policy rules, newest first, skipping any explicitly excluded rules"""

    query = select(DBPolicyRule).where(DBPolicyRule.is_active.is_(True)).order_by(DBPolicyRule.created_at.desc())
    excluded = list(excluded_policy_ids)
    if excluded:
        query = query.where(DBPolicyRule.id.not_in(excluded))
    result = await db.execute(query)
    return list(result.scalars().all())

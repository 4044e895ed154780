from typing import Dict, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from bidding_api.dao.base_dao import BaseDAO
from bidding_api.models.user import User


class UserDAO(BaseDAO[User]):
    def __init__(self):
        super().__init__(User)

    async def get_map_by_ids(self, db: AsyncSession, ids: Iterable[str]) -> Dict[str, User]:
        users = await self.get_by_ids(db, [user_id for user_id in ids if user_id])
        return {user.id: user for user in users}

user_dao = UserDAO()

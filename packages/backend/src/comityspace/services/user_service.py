"""User profile updates for organization members."""

from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from comityspace.db.models import User
from comityspace.errors import NotFoundError


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def update_profile(
        self,
        user_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        birth_date: Optional[date] = None,
        emergency_contact_name: Optional[str] = None,
        emergency_contact_phone: Optional[str] = None,
    ) -> User:
        """Overwrite the editable profile fields (blank → NULL).

        A profile counts as completed once first name, last name and
        phone are all present.
        """
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        user.first_name = first_name or None
        user.last_name = last_name or None
        user.phone = phone or None
        user.address = address or None
        user.birth_date = birth_date
        user.emergency_contact_name = emergency_contact_name or None
        user.emergency_contact_phone = emergency_contact_phone or None
        user.profile_completed = bool(user.first_name and user.last_name and user.phone)

        await self.db.commit()
        return user

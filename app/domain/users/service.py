"""User service - Business logic for the user directory"""

import logging

from sqlalchemy.orm import Session

from ...models import User
from ...shared.errors import DomainValidationError, NotFoundError
from ...shared.filters import DataFilters, PaginatedResult
from .repository import SEARCHABLE_USER_COLUMNS, UserRepository
from .schemas import UserCreate, UserUpdate, location_columns

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepository()

    def get_users(self) -> list[User]:
        return self.repo.get_all(self.db)

    def get_user(self, user_id: str) -> User:
        """Get a specific user"""
        user = self.repo.get_by_id(self.db, user_id)
        if not user:
            raise NotFoundError("user not found")
        return user

    def get_user_by_email(self, email: str) -> User:
        user = self.repo.get_by_email(self.db, email)
        if not user:
            raise NotFoundError("user not found")
        return user

    def create_user(self, data: UserCreate) -> User:
        """Create a new, active user"""
        logger.info(f"📥 Creating user {data.email}")

        user_data = {
            "user_name": data.userName,
            "email": data.email,
            "first_name": data.firstName,
            "last_name": data.lastName,
            "role": data.role,
            "profile_picture": data.profilePicture,
            "status": True,
            **location_columns(data.location),
        }

        user = self.repo.create(self.db, **user_data)
        logger.info(f"✅ User created: {user.id}")
        return user

    def update_user(self, user_id: str, data: UserUpdate) -> User:
        """Update only the fields present in the request"""
        user = self.get_user(user_id)

        field_map = {
            "userName": "user_name",
            "email": "email",
            "firstName": "first_name",
            "lastName": "last_name",
            "role": "role",
            "status": "status",
            "profilePicture": "profile_picture",
        }
        updates = {
            column: getattr(data, name)
            for name, column in field_map.items()
            if name in data.model_fields_set
        }
        if "location" in data.model_fields_set:
            updates.update(location_columns(data.location))

        if not updates:
            raise DomainValidationError("No valid fields to update")

        for column in ("user_name", "email", "first_name", "last_name", "role", "status"):
            if column in updates and updates[column] is None:
                raise DomainValidationError(f"{column} cannot be null")

        logger.info(f"✏️ Updating user {user_id}: {sorted(updates)}")
        return self.repo.update(self.db, user, **updates)

    def delete_user(self, user_id: str) -> dict:
        """Delete a user that no schedule references"""
        user = self.get_user(user_id)

        references = self.repo.count_schedule_references(self.db, user_id)
        if references:
            logger.warning(f"⚠️ Refusing to delete user {user_id}: {references} schedule(s) reference it")
            raise DomainValidationError("user is referenced by schedules and cannot be deleted")

        self.repo.delete(self.db, user)
        logger.info(f"🗑️ User deleted: {user_id}")
        return {"message": "resource deleted successfully"}

    def search_users(self, filters: DataFilters) -> PaginatedResult[User]:
        logger.info(f"🔎 Searching users page={filters.page} page_size={filters.page_size}")
        return self.repo.search_paginated(self.db, filters)

    def search_by_property(self, property_name: str, search_text: str) -> list[str]:
        """Distinct values of a user property matching the text, for autocomplete"""
        column = SEARCHABLE_USER_COLUMNS.get(property_name)
        if column is None:
            logger.warning(f"⚠️ Invalid property for search: {property_name}")
            raise DomainValidationError(f"Unsupported search property: {property_name}")

        values = self.repo.search_by_property(self.db, column, search_text)
        logger.info(f"🔎 Found {len(values)} value(s) for {property_name} matching '{search_text}'")
        return values

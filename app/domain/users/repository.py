"""User repository - Database operations for users"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import User
from ...models_schedule import Schedule
from ...shared.errors import RepositoryError, ResourceAlreadyExistsError
from ...shared.filters import DataFilters, PaginatedResult, apply_filters, paginate

logger = logging.getLogger(__name__)

# Public field name -> column, for search and sort
USER_COLUMNS = {
    "id": User.id,
    "userName": User.user_name,
    "email": User.email,
    "firstName": User.first_name,
    "lastName": User.last_name,
    "status": User.status,
    "role": User.role,
    "city": User.location_city,
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
}

# Text columns whose distinct values can be looked up by substring
SEARCHABLE_USER_COLUMNS = {
    name: USER_COLUMNS[name]
    for name in ("userName", "email", "firstName", "lastName", "role", "city")
}


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"⚠️ Unique constraint hit while trying to {action}: {e.orig}")
        raise ResourceAlreadyExistsError("user name or email already exists") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to {action}: {e}")
        raise RepositoryError(f"failed to {action}") from e


class UserRepository:
    """Repository for user database operations"""

    @staticmethod
    def get_all(db: Session) -> list[User]:
        return db.query(User).order_by(User.created_at.desc()).all()

    @staticmethod
    def get_by_id(db: Session, user_id: str) -> Optional[User]:
        """Get a user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.lower()).first()

    @staticmethod
    def create(db: Session, **user_data) -> User:
        """Create a new user"""
        user = User(**user_data)
        db.add(user)
        _commit(db, "create user")
        db.refresh(user)
        return user

    @staticmethod
    def update(db: Session, user: User, **updates) -> User:
        """Update a user with provided fields"""
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        _commit(db, "update user")
        db.refresh(user)
        return user

    @staticmethod
    def delete(db: Session, user: User) -> None:
        db.delete(user)
        _commit(db, "delete user")

    @staticmethod
    def count_schedule_references(db: Session, user_id: str) -> int:
        """Number of schedules naming the user as client or assignee"""
        return (
            db.query(Schedule)
            .filter((Schedule.client_user_id == user_id) | (Schedule.assigned_user_id == user_id))
            .count()
        )

    @staticmethod
    def search_paginated(db: Session, filters: DataFilters) -> PaginatedResult[User]:
        """Search users with like/match/date filters and pagination"""
        query = apply_filters(db.query(User), filters, USER_COLUMNS)
        if not filters.sort_by:
            query = query.order_by(User.created_at.desc())
        return paginate(query, filters)

    @staticmethod
    def search_by_property(db: Session, column, search_text: str, limit: int = 20) -> list[str]:
        """Distinct values of one column containing the text, case-insensitively"""
        rows = (
            db.query(column)
            .filter(column.ilike(f"%{search_text}%"))
            .distinct()
            .order_by(column)
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]

"""User router - FastAPI endpoints for the user directory"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...shared.filters import DataFilters, DateRangeFilter, SortDirection
from ...shared.validators import parse_id, to_utc_naive
from .schemas import UserCreate, UserResponse, UserSearchResponse, UserUpdate, user_to_response
from .service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    """Dependency injection for UserService"""
    return UserService(db)


@router.post("", response_model=UserResponse)
async def create_user(data: UserCreate, service: UserService = Depends(get_user_service)):
    """Create a new user"""
    return user_to_response(service.create_user(data))


@router.get("", response_model=list[UserResponse])
async def get_users(service: UserService = Depends(get_user_service)):
    """Get all users"""
    return [user_to_response(u) for u in service.get_users()]


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    page: int = Query(1),
    pageSize: int = Query(10),
    userName: Optional[str] = Query(None, description="Substring match on user name"),
    email: Optional[str] = Query(None, description="Substring match on email"),
    firstName: Optional[str] = Query(None),
    lastName: Optional[str] = Query(None),
    role: Optional[list[str]] = Query(None, description="Exact role match"),
    status: Optional[bool] = Query(None),
    createdFrom: Optional[datetime] = Query(None),
    createdTo: Optional[datetime] = Query(None),
    sortBy: Optional[list[str]] = Query(None),
    sortDirection: SortDirection = Query(SortDirection.ASC),
    service: UserService = Depends(get_user_service),
):
    """Search users with pagination"""
    like = {
        name: [value]
        for name, value in (
            ("userName", userName),
            ("email", email),
            ("firstName", firstName),
            ("lastName", lastName),
        )
        if value
    }
    matches = {}
    if role:
        matches["role"] = role
    if status is not None:
        matches["status"] = [status]

    date_ranges = []
    if createdFrom or createdTo:
        date_ranges.append(
            DateRangeFilter("createdAt", to_utc_naive(createdFrom), to_utc_naive(createdTo))
        )

    filters = DataFilters(
        page=page,
        page_size=pageSize,
        date_ranges=date_ranges,
        sort_by=sortBy or [],
        sort_direction=sortDirection,
        like=like,
        matches=matches,
    )
    result = service.search_users(filters)
    return UserSearchResponse(
        data=[user_to_response(u) for u in result.data],
        total=result.total,
        page=result.page,
        pageSize=result.page_size,
        totalPages=result.total_pages,
    )


@router.get("/search-property", response_model=list[str])
async def search_by_property(
    property: str = Query(..., description="userName, email, firstName, lastName, role or city"),
    searchText: str = Query(""),
    service: UserService = Depends(get_user_service),
):
    """Distinct values of one user property containing the search text"""
    return service.search_by_property(property, searchText)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, service: UserService = Depends(get_user_service)):
    """Get a specific user"""
    return user_to_response(service.get_user(parse_id(user_id, "user id")))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    data: UserUpdate,
    service: UserService = Depends(get_user_service),
):
    """Update a user"""
    return user_to_response(service.update_user(parse_id(user_id, "user id"), data))


@router.delete("/{user_id}")
async def delete_user(user_id: str, service: UserService = Depends(get_user_service)):
    """Delete a user"""
    return service.delete_user(parse_id(user_id, "user id"))

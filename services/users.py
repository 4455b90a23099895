# services/users.py
"""Users known from Onshape sign-ins"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.database_models import User, db, utcnow
from core.errors import ApiError, NotFoundError

logger = logging.getLogger(__name__)


def display_name(first_name: Optional[str], last_name: Optional[str] = None) -> Optional[str]:
    """"First L" for first name plus last initial, first name alone without a last name"""
    if not first_name:
        return None
    if last_name:
        return f"{first_name} {last_name[0].upper()}"
    return first_name


def list_users() -> List[User]:
    return db.session.execute(db.select(User).order_by(User.name)).scalars().all()


def get_user(onshape_user_id: str) -> User:
    user = db.session.get(User, onshape_user_id)
    if user is None:
        raise NotFoundError('User not found')
    return user


def upsert_user(onshape_user_id: str, first_name: Optional[str],
                last_name: Optional[str] = None) -> User:
    user = db.session.get(User, onshape_user_id)
    if user is None:
        user = User(onshape_user_id=onshape_user_id)
        db.session.add(user)
    user.name = display_name(first_name, last_name)
    user.updated_at = utcnow()

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error upserting user {onshape_user_id}: {e}")
        raise ApiError('Failed to save user') from e

    logger.info(f"Upserted user {onshape_user_id}")
    return user

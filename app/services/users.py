import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.user import User, UserRole
from app.schemas.gamification import UserCreate
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Users(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: UserCreate) -> User:
        email = payload.email.strip().lower()
        if db.query(User).filter(func.lower(User.email) == email).first():
            raise ConflictError("A user with this email already exists")
        user = User(
            name=payload.name.strip(),
            email=email,
            role=payload.role,
            department=payload.department,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("A user with this email already exists")
        db.refresh(user)
        logger.info("Created user %s (%s)", user.id, user.role.value)
        return user

    @staticmethod
    def get(db: Session, user_id: str) -> User:
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def list(
        db: Session,
        role: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[User]:
        query = db.query(User)
        if role is not None:
            try:
                query = query.filter(User.role == UserRole(role))
            except ValueError:
                raise ValidationError(f"Invalid role: {role}")
        if is_active is None:
            query = query.filter(User.is_active.is_(True))
        else:
            query = query.filter(User.is_active == is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": User.created_at, "name": User.name, "score": User.score},
        )
        return apply_pagination(query, limit, offset).all()


users = Users()

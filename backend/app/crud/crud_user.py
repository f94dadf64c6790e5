from typing import Optional
from sqlalchemy.orm import Session

from app.core.security import get_password_hash, verify_password
from app.crud.base import CRUDBase
from app.models.user import User
from app.schemas.user import UserCreate


class CRUDUser(CRUDBase[User]):
    def get_by_email(self, db: Session, *, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.lower()).first()

    def create(self, db: Session, *, obj_in: UserCreate) -> User:
        db_obj = User(
            username=obj_in.username,
            email=obj_in.email.lower(),
            password_hash=get_password_hash(obj_in.password),
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def authenticate(
        self, db: Session, *, email: str, password: str
    ) -> Optional[User]:
        # Authenticate by email
        user = self.get_by_email(db, email=email)
        if not user:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    def set_totp_secret(self, db: Session, *, user: User, secret: Optional[str]) -> User:
        user.totp_secret = secret
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    def set_two_factor(self, db: Session, *, user: User, enabled: bool) -> User:
        user.two_factor_enabled = enabled
        if not enabled:
            user.totp_secret = None
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

user = CRUDUser(User)

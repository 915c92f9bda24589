"""Auth service: JWT login and the caller's own permission view."""

import logging
from typing import Dict, Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from estate_admin.core.exceptions import UnauthenticatedError, AccountDisabledError
from estate_admin.core.security import verify_password, create_access_token
from estate_admin.core.timeutils import utcnow
from estate_admin.models.user import User
from estate_admin.services.authorization import Principal, get_user_permissions
from estate_admin.services.menu_service import MenuService

logger = logging.getLogger("estate_admin.auth")


class AuthService:
    """Handles authentication."""

    @staticmethod
    def authenticate(db: Session, username: str, password: str) -> Dict[str, Any]:
        """Authenticate by username or email and return an access token.

        Raises:
            UnauthenticatedError: If credentials are invalid.
            AccountDisabledError: If the account is deactivated.
        """
        user = db.query(User).filter(
            or_(User.username == username, User.email == username)
        ).first()
        if not user or not verify_password(password, user.hashed_password):
            logger.info("Failed login for %s", username)
            raise UnauthenticatedError("Invalid username or password")

        if not user.is_active:
            raise AccountDisabledError("Account has been disabled")

        access_token = create_access_token({"sub": str(user.id), "role": user.role})

        user.last_login_at = utcnow()
        db.commit()
        db.refresh(user)

        return {
            "access_token": access_token,
            "token_type": "bearer",
            "user": user.to_dict(),
        }

    @staticmethod
    def permission_view(db: Session, principal: Principal) -> Dict[str, Any]:
        """Effective button identifiers and visible menu tree of the caller."""
        return {
            "role": principal.role,
            "isSuperAdmin": principal.is_super_admin,
            "permissions": get_user_permissions(db, principal.id),
            "menus": MenuService.menus_for_role(db, principal.role),
        }


auth_service = AuthService()

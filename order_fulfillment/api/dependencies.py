"""
Request dependencies: DB-backed services and the caller's resolved identity

Tokens are verified upstream; the gateway forwards the internal user ID and
role as ``X-User-Id`` and ``X-User-Role``.
"""
import enum
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from order_fulfillment.database import get_db
from order_fulfillment.services.checkout_service import CheckoutService
from order_fulfillment.services.transition_service import OrderTransitionService
from order_fulfillment.services.visibility_service import VisibilityService


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    RETAILER = "retailer"
    FARMER = "farmer"
    DISTRIBUTOR = "distributor"
    WAREHOUSE = "warehouse"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """Caller as resolved by the identity provider"""
    user_id: int
    role: Role


def get_identity(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Identity:
    """Dependency resolving the caller from gateway headers"""
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Missing caller identity"}
        )
    try:
        user_id = int(x_user_id)
        role = Role(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Invalid caller identity"}
        )
    if user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthenticated", "message": "Invalid caller identity"}
        )
    return Identity(user_id=user_id, role=role)


def require_roles(*roles: Role) -> Callable[..., Identity]:
    """Dependency factory admitting only the given roles"""
    allowed = frozenset(roles)

    def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        if identity.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "forbidden",
                    "message": f"Role {identity.role.value} cannot access this endpoint"
                }
            )
        return identity

    return dependency


def get_checkout_service(db: Session = Depends(get_db)) -> CheckoutService:
    """Dependency to get CheckoutService instance"""
    return CheckoutService(db)


def get_transition_service(db: Session = Depends(get_db)) -> OrderTransitionService:
    """Dependency to get OrderTransitionService instance"""
    return OrderTransitionService(db)


def get_visibility_service(db: Session = Depends(get_db)) -> VisibilityService:
    """Dependency to get VisibilityService instance"""
    return VisibilityService(db)

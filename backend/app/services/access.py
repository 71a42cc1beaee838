"""Role and ownership checks applied by the engine's mutating operations."""

import uuid

from app.errors import AuthorizationError
from app.schemas.auth import Principal


def require_role(principal: Principal, *roles: str) -> None:
    if principal.role not in roles:
        raise AuthorizationError(
            f"Operation requires role {' or '.join(roles)}, caller is {principal.role}",
            subject_id=principal.subject_id,
        )


def require_owner(principal: Principal, owner_id: uuid.UUID, entity: str) -> None:
    if principal.subject_id != owner_id:
        raise AuthorizationError(f"Caller does not own this {entity}", subject_id=principal.subject_id)

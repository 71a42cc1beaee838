import uuid

from pydantic import BaseModel

VALID_ROLES = ("shopper", "traveler", "vendor", "admin")


class Principal(BaseModel):
    """Authenticated subject as asserted by the external identity service."""

    subject_id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

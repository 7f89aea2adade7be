from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

STAFF_ROLES = {"admin", "inventory_manager", "sales_staff"}


class AuthUser(BaseModel):
    """
    Represents an authenticated user decoded from the access token.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "customer"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

from pydantic import BaseModel
from circulation.core.models import Role

class Operator(BaseModel):
    """The authenticated staff member behind a request."""
    operator_id: str
    role: Role = Role.OPERATOR

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

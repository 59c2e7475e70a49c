"""
Principal model.
"""
from pydantic import BaseModel, Field


class Principal(BaseModel):
    """The caller: a user acting inside an account."""
    user_id: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)

    def owns(self, account_id: str) -> bool:
        return self.account_id == account_id

from pydantic import BaseModel
from typing import Optional

from examprep.models.models import Tier


class CurrentUser(BaseModel):
    """Identity handed to every protected route."""
    user_id: int
    email: str
    name: Optional[str] = None
    tier: Tier

"""ORM models package.

Import all models here so that SQLAlchemy's metadata is fully populated
when Alembic runs autogenerate.
"""

from model_routing.models.model_pricing import ModelPricing
from model_routing.models.tier_assignment import TierAssignmentRecord
from model_routing.models.unresolved_model import UnresolvedModel
from model_routing.models.user_provider import UserProvider

__all__ = [
    "ModelPricing",
    "TierAssignmentRecord",
    "UnresolvedModel",
    "UserProvider",
]

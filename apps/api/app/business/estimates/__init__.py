from app.business.estimates.models import Estimate, EstimateLineItem, EstimateStatus
from app.business.estimates.schemas import (
    AcceptEstimateRequest,
    AcceptEstimateResult,
    EstimateCreate,
    EstimateRead,
    EstimateUpdate,
)

__all__ = [
    "Estimate",
    "EstimateLineItem",
    "EstimateStatus",
    "AcceptEstimateRequest",
    "AcceptEstimateResult",
    "EstimateCreate",
    "EstimateRead",
    "EstimateUpdate",
]

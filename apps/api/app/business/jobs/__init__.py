from app.business.jobs.models import Job, JobExpense, JobMilestone, JobStatus, MilestoneStatus
from app.business.jobs.schemas import (
    ExpenseCreate,
    ExpenseRead,
    ExpenseUpdate,
    JobCreate,
    JobRead,
    MilestoneCreate,
    MilestoneRead,
    MilestoneTemplate,
    MilestoneUpdate,
)

__all__ = [
    "Job",
    "JobExpense",
    "JobMilestone",
    "JobStatus",
    "MilestoneStatus",
    "ExpenseCreate",
    "ExpenseRead",
    "ExpenseUpdate",
    "JobCreate",
    "JobRead",
    "MilestoneCreate",
    "MilestoneRead",
    "MilestoneTemplate",
    "MilestoneUpdate",
]

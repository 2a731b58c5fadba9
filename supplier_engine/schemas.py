"""
Pydantic records passed between engine components.

Repository adapters convert ORM rows into these records so that the
scoring code never touches a live session.
"""

from enum import Enum
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================
# ENUMS
# ============================================

class UserRole(str, Enum):
    CUSTOMER = 'CUSTOMER'
    SUPPLIER = 'SUPPLIER'
    ADMIN = 'ADMIN'


class PremiumTier(str, Enum):
    NONE = 'NONE'
    BRONZE = 'BRONZE'
    SILVER = 'SILVER'
    GOLD = 'GOLD'


class ProjectStatus(str, Enum):
    PENDING = 'PENDING'
    PUBLIC = 'PUBLIC'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class QuoteStatus(str, Enum):
    PENDING = 'PENDING'
    ACCEPTED = 'ACCEPTED'
    REJECTED = 'REJECTED'
    WITHDRAWN = 'WITHDRAWN'


class MatchType(str, Enum):
    EXACT = 'exact'
    CATEGORY = 'category'
    CITY = 'city'


class ExclusionReason(str, Enum):
    INACTIVE = 'inactive'
    BLOCKED = 'blocked'
    LIMIT_REACHED = 'limit_reached'
    LOW_SCORE = 'low_score'


class JobStatus(str, Enum):
    WAITING = 'waiting'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    DEAD = 'dead'


# ============================================
# ENTITY RECORDS
# ============================================

class SupplierRecord(BaseModel):
    """Supplier as seen by the engine."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: Optional[str] = None
    role: UserRole = UserRole.SUPPLIER
    is_active: bool = True
    is_blocked: bool = False
    premium_level: PremiumTier = PremiumTier.NONE
    workshop_name: Optional[str] = None
    workshop_address: Optional[str] = None
    profile_image_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    last_login_at: Optional[datetime] = None

    @property
    def is_eligible(self) -> bool:
        """Active, not blocked and a supplier."""
        return self.is_active and not self.is_blocked and self.role == UserRole.SUPPLIER


class ProjectRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    category_id: str
    city_id: str
    title: str
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.PENDING
    category_title: Optional[str] = None
    city_title: Optional[str] = None


class QuoteRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    supplier_id: str
    price: float
    delivery_time_days: Optional[int] = None
    description: Optional[str] = None
    status: QuoteStatus = QuoteStatus.PENDING
    created_at: datetime


class ReviewRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rating: int
    response_time_hours: Optional[float] = None
    is_approved: bool = False
    is_deleted: bool = False
    created_at: datetime


class CompositeRating(BaseModel):
    """Composite trust score of one supplier."""
    model_config = ConfigDict(from_attributes=True)

    supplier_id: str
    premium_score: float = 0
    review_score: float = 0
    profile_score: float = 0
    response_score: float = 0
    activity_score: float = 0
    penalties: float = 0
    total_score: float = 0
    last_calculated_at: Optional[datetime] = None


# ============================================
# RESULTS
# ============================================

class ScoredCandidate(BaseModel):
    supplier_id: str
    score: float
    match_type: MatchType
    rating_bonus: float = 0
    recency_bonus: float = 0


class Exclusion(BaseModel):
    supplier_id: str
    reason: ExclusionReason
    score: float
    match_type: MatchType


class RankedQuote(BaseModel):
    quote: QuoteRecord
    score: float
    price_score: float
    rating_score: float
    delivery_score: float
    recency_score: float


class DistributionReport(BaseModel):
    project_id: str
    candidates: int = 0
    notified: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)


class QuoteStats(BaseModel):
    total: int = 0
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    average_price: float = 0
    min_price: float = 0
    max_price: float = 0


# ============================================
# JOBS
# ============================================

class DistributeProjectJob(BaseModel):
    """Payload of the `distribute-project` job."""
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias='projectId')

    @field_validator('project_id')
    @classmethod
    def validate_project_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("projectId must not be empty")
        return v


class JobRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    queue: str
    name: str
    payload: Dict[str, Any]
    status: JobStatus
    attempts: int
    max_attempts: int
    next_run_at: datetime
    last_error: Optional[str] = None
    created_at: datetime
    finished_at: Optional[datetime] = None

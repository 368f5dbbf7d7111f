from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from datetime import datetime, date as date_type
from typing import Optional, List


# Closed category set. Metrics stay free-form; COMMON_METRICS only feeds suggestions.
PROGRESS_CATEGORIES = ("strength", "cardio", "bodyweight", "weight_loss", "nutrition", "other")

COMMON_METRICS = {
    "strength": ["bench_press", "squat", "deadlift", "overhead_press", "weight_lifted", "reps", "sets"],
    "cardio": ["distance", "time", "speed", "calories", "heart_rate"],
    "bodyweight": ["pull_ups", "push_ups", "dips", "sit_ups", "planks", "reps", "time"],
    "weight_loss": ["weight", "body_fat_percentage", "waist", "chest", "arms", "legs"],
    "nutrition": ["calories", "protein", "carbs", "fats", "water"],
    "other": ["custom"],
}


def _normalize_category(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in PROGRESS_CATEGORIES:
        raise ValueError(f"category must be one of: {', '.join(PROGRESS_CATEGORIES)}")
    return normalized


def _require_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be empty")
    return stripped


# --- Auth ---

class UserRegister(BaseModel):
    """Schema for user registration."""
    email: EmailStr
    password: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class Goal(BaseModel):
    category: str
    metric: str
    start_value: float
    target_value: float
    unit: Optional[str] = None
    deadline: Optional[date_type] = None

    @field_validator("category")
    @classmethod
    def validate_category(cls, value):
        return _normalize_category(value)

    @field_validator("metric")
    @classmethod
    def validate_metric(cls, value):
        return _require_text(value)


class UserResponse(BaseModel):
    """Public user projection; never carries the password hash."""
    id: int
    email: str
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None
    goals: List[dict] = []
    is_active: bool
    email_verified: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("goals", mode="before")
    @classmethod
    def default_goals(cls, value):
        return value or []


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginResponse(TokenPairResponse):
    user: UserResponse


class UserUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    goals: Optional[List[Goal]] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, value):
        return _require_text(value)


class GoalProgressResponse(BaseModel):
    goal: Goal
    current_value: float
    progress_percent: float
    trend: str
    entry_count: int


# --- Progress ---

class ProgressCreate(BaseModel):
    category: str
    metric: str
    value: float
    unit: Optional[str] = None
    notes: Optional[str] = None
    date: date_type

    @field_validator("category")
    @classmethod
    def validate_category(cls, value):
        return _normalize_category(value)

    @field_validator("metric")
    @classmethod
    def validate_metric(cls, value):
        return _require_text(value)


class ProgressUpdate(BaseModel):
    category: Optional[str] = None
    metric: Optional[str] = None
    value: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    date: Optional[date_type] = None

    @field_validator("category")
    @classmethod
    def validate_category(cls, value):
        return _normalize_category(value)

    @field_validator("metric")
    @classmethod
    def validate_metric(cls, value):
        return _require_text(value)


class ProgressResponse(BaseModel):
    id: int
    user_id: int
    category: str
    metric: str
    value: float
    unit: Optional[str] = None
    notes: Optional[str] = None
    date: date_type
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class GroupProgressResponse(ProgressResponse):
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None


class CategoriesResponse(BaseModel):
    categories: List[str]
    common_metrics: dict


# --- Groups ---

class GroupCreate(BaseModel):
    # Optional here so a missing name gets the domain message, not a schema error
    name: Optional[str] = None
    description: Optional[str] = None


class GroupJoin(BaseModel):
    code: Optional[str] = None


class GroupResponse(BaseModel):
    id: int
    name: str
    code: str
    creator_id: Optional[int] = None
    description: Optional[str] = None
    member_count: int
    creator_first_name: Optional[str] = None
    creator_last_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class GroupMemberResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None
    joined_at: datetime


class GroupDetailResponse(GroupResponse):
    members: List[GroupMemberResponse]


class LeaveGroupResponse(MessageResponse):
    group_deleted: bool = False


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None
    total_entries: int
    total_value: float


class MetricLeader(BaseModel):
    category: str
    metric: str
    user_id: int
    first_name: str
    last_name: str
    value: float
    unit: Optional[str] = None
    date: date_type
    participants: int


# --- Friends ---

class FriendInvite(BaseModel):
    friend_email: EmailStr


class FriendInviteResponse(BaseModel):
    """A pending invitation as seen by the invitee."""
    id: int
    user_id: int
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None
    status: str
    created_at: datetime


class FriendProfile(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ComparisonSide(BaseModel):
    user: FriendProfile
    progress: List[ProgressResponse]
    total_entries: int
    average_value: float


class FriendComparisonResponse(BaseModel):
    current_user: ComparisonSide
    friend: ComparisonSide


# --- Notifications / Settings ---

class NotificationCreate(BaseModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: str = "info"


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SettingUpdate(BaseModel):
    value: Optional[str] = None


class SettingResponse(BaseModel):
    key: str
    value: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MetricsResponse(BaseModel):
    total_users: int
    total_progress: int
    active_users: int


class UserPublicResponse(BaseModel):
    """What other users may see."""
    id: int
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

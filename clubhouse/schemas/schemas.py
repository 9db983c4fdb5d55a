"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from clubhouse.models.poll import PollType
from clubhouse.models.event import AttendanceStatus


# ---- Auth ----
class LoginRequest(BaseModel):
    username: str = Field(..., min_length=2)
    password: str = Field(..., min_length=4)

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None

class RefreshRequest(BaseModel):
    refresh_token: str


# ---- User ----
class UserBrief(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = None
    rutbe: Optional[str] = None

    class Config:
        from_attributes = True

class UserOut(UserBrief):
    membership_status: str
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

class UserCreate(BaseModel):
    username: str = Field(..., min_length=2)
    password: str = Field(..., min_length=4)
    full_name: Optional[str] = None
    rutbe: Optional[str] = None

class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=2)
    password: Optional[str] = Field(None, min_length=4)
    # full_name and rutbe are only touched when present in the body
    full_name: Optional[str] = None
    rutbe: Optional[str] = None


# ---- Role group ----
class RoleBrief(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True

class RoleGroupCreate(BaseModel):
    name: str
    description: Optional[str] = None
    order: Optional[int] = None

class RoleGroupUpdate(BaseModel):
    name: str
    description: Optional[str] = None
    order: Optional[int] = None

class RoleGroupOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    order: int
    roles: List[RoleBrief] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Role (rank) ----
class RoleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    permissions: Optional[Dict[str, Any]] = None
    group_id: Optional[int] = None

class RoleUpdate(BaseModel):
    name: str
    description: Optional[str] = None
    permissions: Optional[Dict[str, Any]] = None
    # omitted keeps the current group, explicit null detaches the rank
    group_id: Optional[int] = None

class RoleGroupBrief(BaseModel):
    id: int
    name: str
    order: int

    class Config:
        from_attributes = True

class RoleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    permissions: Dict[str, Any] = {}
    group_id: Optional[int] = None
    group: Optional[RoleGroupBrief] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Scopes ----
class ScopeOut(BaseModel):
    group_id: Optional[int] = None  # None is the global channel
    name: str
    order: Optional[int] = None

class ScopesResponse(BaseModel):
    user_order: Optional[int] = None
    scopes: List[ScopeOut]


# ---- Message ----
class MessageCreate(BaseModel):
    content: Optional[str] = None
    type: str = "text"
    group_id: Optional[int] = None
    replied_to_id: Optional[int] = None

class MessageEdit(BaseModel):
    content: Optional[str] = None

class ForwardRequest(BaseModel):
    group_id: Optional[int] = None

class ReactionRequest(BaseModel):
    emoji: Optional[str] = None
    remove: bool = False

class StarRequest(BaseModel):
    star: bool

class PinRequest(BaseModel):
    pin: bool

class ReactionOut(BaseModel):
    user_id: int
    emoji: str

    class Config:
        from_attributes = True

class ReadReceiptOut(BaseModel):
    user_id: int
    read_at: datetime

    class Config:
        from_attributes = True

class MessageOut(BaseModel):
    id: int
    type: str
    content: Optional[str] = None
    group_id: Optional[int] = None
    sender_id: int
    sender: Optional[UserBrief] = None
    replied_to_id: Optional[int] = None
    forwarded_from_id: Optional[int] = None
    pinned: bool = False
    pinned_at: Optional[datetime] = None
    pinned_by: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    reactions: List[ReactionOut] = []
    read_receipts: List[ReadReceiptOut] = []
    is_starred: bool = False

    class Config:
        from_attributes = True

class StarResponse(BaseModel):
    message_id: int
    starred: bool


# ---- Poll ----
class PollCreate(BaseModel):
    title: str
    type: PollType
    description: Optional[str] = None
    options: Optional[List[str]] = None
    allow_custom_option: bool = False
    group_id: Optional[int] = None

class PollUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    allow_custom_option: Optional[bool] = None

class VoteRequest(BaseModel):
    option_id: Optional[int] = None
    new_option_text: Optional[str] = None

class PollOptionOut(BaseModel):
    id: int
    text: str
    created_by: Optional[int] = None
    votes: int = 0

    class Config:
        from_attributes = True

class PollOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    type: PollType
    allow_custom_option: bool
    group_id: Optional[int] = None
    created_by: int
    created_at: Optional[datetime] = None
    options: List[PollOptionOut] = []
    total_votes: int = 0
    my_option_id: Optional[int] = None

    class Config:
        from_attributes = True

class VoteOut(BaseModel):
    poll_id: int
    option_id: int
    user_id: int
    voted_at: datetime
    option: Optional[PollOptionOut] = None

    class Config:
        from_attributes = True


# ---- Event ----
class EventCreate(BaseModel):
    title: str
    event_date: datetime
    location: str
    description: Optional[str] = None

class EventOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    event_date: datetime
    created_by: int
    created_at: Optional[datetime] = None
    attending: int = 0
    not_attending: int = 0
    my_status: Optional[AttendanceStatus] = None

    class Config:
        from_attributes = True

class RsvpRequest(BaseModel):
    status: Optional[AttendanceStatus] = None

class RsvpOut(BaseModel):
    event_id: int
    user_id: int
    status: AttendanceStatus
    updated_at: datetime

    class Config:
        from_attributes = True


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    actor_username: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None

class PaginatedResponse(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[Any] = []

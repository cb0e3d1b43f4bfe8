from enum import Enum


class PersonKind(Enum):
    GUEST = "guest"
    RECIPROCATING_MEMBER = "reciprocating_member"


class Standing(Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BANNED = "banned"


class VisitStatus(Enum):
    APPROVED = "approved"
    UNAPPROVED = "unapproved"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"
    BANNED = "banned"


class VisitPurpose(Enum):
    CASUAL = "casual_visit"
    GOLF_TOURNAMENT = "golf_tournament"


class VisitState(Enum):
    SCHEDULED = "scheduled"
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"
    UNAPPROVED = "unapproved"
    SUSPENDED = "suspended"
    BANNED = "banned"


class LimitKind(Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"
    HOST_DAILY = "host_daily"


class NotificationEvent(Enum):
    REGISTERED = "registered"
    STATUS_CHANGED = "status_changed"
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    CANCELLED = "cancelled"
    STANDING_CHANGED = "standing_changed"
    HOST_LIMIT_REACHED = "host_limit_reached"

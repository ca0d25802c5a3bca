"""Import all models so SQLModel.metadata picks them up."""

from mysre.models.analytics_event import (
    AnalyticsEvent,
    AnalyticsEventCreate,
    AnalyticsEventRead,
    UserActivitySummary,
)
from mysre.models.article import Article, ArticleCreate, ArticleRead, ArticleUpdate
from mysre.models.assignment import Assignment, AssignmentSubmission, SubmissionStatus
from mysre.models.billing_record import BillingRecord, BillingRecordRead, PaymentStatus
from mysre.models.brainstorming_session import (
    BrainstormingSession,
    BrainstormingSessionCreate,
    BrainstormingSessionRead,
    BrainstormingSessionUpdate,
)
from mysre.models.usage_event import UsageEvent, UsageEventRead
from mysre.models.user import (
    User,
    UserBillingRead,
    UserCreate,
    UserGroup,
    UserRead,
    UserRole,
    UserSummary,
    UserUpdate,
)
from mysre.models.writer_session import (
    WriterSession,
    WriterSessionCreate,
    WriterSessionRead,
    WriterSessionUpdate,
)

__all__ = [
    "AnalyticsEvent",
    "AnalyticsEventCreate",
    "AnalyticsEventRead",
    "Article",
    "ArticleCreate",
    "ArticleRead",
    "ArticleUpdate",
    "Assignment",
    "AssignmentSubmission",
    "BillingRecord",
    "BillingRecordRead",
    "BrainstormingSession",
    "BrainstormingSessionCreate",
    "BrainstormingSessionRead",
    "BrainstormingSessionUpdate",
    "PaymentStatus",
    "SubmissionStatus",
    "UsageEvent",
    "UsageEventRead",
    "User",
    "UserActivitySummary",
    "UserBillingRead",
    "UserCreate",
    "UserGroup",
    "UserRead",
    "UserRole",
    "UserSummary",
    "UserUpdate",
    "WriterSession",
    "WriterSessionCreate",
    "WriterSessionRead",
    "WriterSessionUpdate",
]

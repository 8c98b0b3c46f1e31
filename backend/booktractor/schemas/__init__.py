from .base import CamelModel
from .booking import (
    ApprovePayload,
    BadgeView,
    Booking,
    BookingCreate,
    BookingCreateResult,
    BookingMessage,
    BookingStatusChange,
    BookingView,
    CancelPayload,
    MessagePayload,
    ReasonPayload,
)
from .machine import (
    AvailabilityJson,
    CatalogSearch,
    InstanceGenerate,
    InstanceUpdate,
    Machine,
    MachineCreate,
    MachineDetailView,
    MachineInstance,
    MachineSpecs,
    MachineUpdate,
)
from .availability import AvailabilityQuery, AvailabilityResult
from .dashboard import (
    ClientOverview,
    OwnerDashboard,
    OwnerDashboardStats,
    RevenuePoint,
    StatusMixEntry,
    UtilizationEntry,
)
from .user import (
    AccountDelete,
    AuthResult,
    EmailSignIn,
    Profile,
    ProfileUpdate,
    RegisterRequest,
    Session,
    SessionInfo,
    SessionUser,
    SocialSignIn,
)

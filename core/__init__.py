"""DayGrid core library — data model, aggregation and sync.

Public API re-exports for convenient imports:
    from core import day_key, compute_pending, Tracker, ...
"""

# Workspace & config
from core.workspace import (
    workspace_root,
    Config,
    load_config,
    get_user_timezone,
    now_local,
    configure_logging,
    config_path,
    store_path,
    cache_root,
    GUEST_NAMESPACE,
)

# File I/O
from core.fileio import (
    load_json,
    read_json,
    read_yaml,
    write_json_atomic,
)

# Keys
from core.keys import (
    day_key,
    week_key,
    month_key,
    week_start,
    parse_day_key,
    parse_month_key,
    shift_day,
    shift_week,
    shift_month,
    week_days,
)

# Models
from core.models import (
    TaskEntry,
    DayRecord,
    GoalRecord,
    WeekRecord,
    MonthRecord,
    DailyPending,
    WeeklyPending,
    MonthlyPending,
    PendingSummary,
    User,
    AccessInfo,
    AccessGrant,
)

# Errors
from core.errors import (
    DayGridError,
    AuthError,
    AccessNotProvisionedError,
    InvalidAccessKeyError,
    InvalidCredentialsError,
    EmailAlreadyInUseError,
    WeakPasswordError,
    InvalidEmailError,
    StoreError,
    NotCurrentPeriodError,
)

# Aggregation
from core.pending import (
    compute_pending,
    ensure_current,
    mark_task_done,
    mark_goal_done,
)

# Persistence
from core.store import (
    DocumentStore,
    RemoteStore,
    Subscription,
    SnapshotStream,
    email_key,
)
from core.cache import LocalCache, namespace_for

# Auth & session
from core.auth import AuthService
from core.tracker import Tracker

"""Service layer exports."""

from .guards import AuthGuard, EmailVerificationGuard, GuardDecision, can_access
from .navigation import HistoryNavigator, Navigator
from .notices import Notice, OneShotNotices
from .profiles import ProfileRepository
from .session import AuthResult, SessionController, SessionPhase, SessionState
from .token_cipher import TokenCipherService
from .token_ledger import TokenLedger, TokenStatus
from .token_monitor import ExpirationCheck, RefreshResult, TokenLifecycleMonitor
from .user_admin import UserAdminError, UserAdminService
from .verification_email import EmailResult, VerificationMailer

__all__ = [
    "AuthGuard",
    "AuthResult",
    "EmailResult",
    "EmailVerificationGuard",
    "ExpirationCheck",
    "GuardDecision",
    "HistoryNavigator",
    "Navigator",
    "Notice",
    "OneShotNotices",
    "ProfileRepository",
    "RefreshResult",
    "SessionController",
    "SessionPhase",
    "SessionState",
    "TokenCipherService",
    "TokenLedger",
    "TokenLifecycleMonitor",
    "TokenStatus",
    "UserAdminError",
    "UserAdminService",
    "VerificationMailer",
    "can_access",
]

"""
Factory functions providing shared clients and services, both as FastAPI
dependencies and for building a client-side session.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from account_portal.clients import (
    BrevoEmailClient,
    DocumentStore,
    FirebaseAuthClient,
    FirestoreDocumentStore,
    GoogleCredentialsProvider,
    IdentityToolkitAdminClient,
    LocalStorage,
    SQLiteDocumentStore,
    SQLiteLocalStorage,
)
from account_portal.core.config import get_settings
from account_portal.services import (
    HistoryNavigator,
    Navigator,
    OneShotNotices,
    ProfileRepository,
    SessionController,
    TokenCipherService,
    TokenLedger,
    TokenLifecycleMonitor,
    UserAdminService,
    VerificationMailer,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_credentials_provider() -> GoogleCredentialsProvider:
    """Provide service-account credentials for admin REST calls."""
    return GoogleCredentialsProvider(_settings().identity)


@lru_cache()
def get_identity_admin_client() -> IdentityToolkitAdminClient:
    """Create a singleton admin client for the identity provider."""
    return IdentityToolkitAdminClient(_settings().identity, get_credentials_provider())


@lru_cache()
def get_document_store() -> DocumentStore:
    """Provide the configured profile document store."""
    settings = _settings()
    if settings.store.backend == "firestore":
        return FirestoreDocumentStore(settings.identity, get_credentials_provider())
    return SQLiteDocumentStore(settings.store.sqlite_path)


def get_profile_repository() -> ProfileRepository:
    return ProfileRepository(get_document_store(), _settings().store.profile_collection)


@lru_cache()
def get_email_client() -> BrevoEmailClient:
    return BrevoEmailClient(_settings().email)


def get_verification_mailer() -> VerificationMailer:
    return VerificationMailer(get_email_client())


def get_user_admin_service() -> UserAdminService:
    """Build the administrative user service."""
    return UserAdminService(
        identity=get_identity_admin_client(),
        profiles=get_profile_repository(),
        mailer=get_verification_mailer(),
    )


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for the token ledger."""
    return TokenCipherService(secret=_settings().ledger_secret())


def build_session_controller(
    *,
    auth: Optional[FirebaseAuthClient] = None,
    storage: Optional[LocalStorage] = None,
    navigator: Optional[Navigator] = None,
) -> SessionController:
    """Assemble ledger, monitor and controller for one client session."""
    settings = _settings()
    session = settings.session
    auth = auth or FirebaseAuthClient(settings.identity)
    storage = storage or SQLiteLocalStorage(session.local_storage_path)
    notices = OneShotNotices(storage)
    ledger = TokenLedger(
        storage,
        get_token_cipher_service(),
        ttl=timedelta(seconds=session.token_ttl_seconds),
        refresh_threshold=timedelta(seconds=session.refresh_threshold_seconds),
    )
    monitor = TokenLifecycleMonitor(
        ledger,
        auth,
        notices,
        navigator or HistoryNavigator(),
        expiration_check_interval=timedelta(seconds=session.expiration_check_seconds),
        refresh_check_interval=timedelta(seconds=session.refresh_check_seconds),
    )
    return SessionController(auth, get_profile_repository(), monitor, notices)


__all__ = [
    "build_session_controller",
    "get_credentials_provider",
    "get_document_store",
    "get_email_client",
    "get_identity_admin_client",
    "get_profile_repository",
    "get_token_cipher_service",
    "get_user_admin_service",
    "get_verification_mailer",
]

"""Expose constructed client wrappers."""

from .brevo import BrevoEmailClient
from .firebase_auth import FirebaseAuthClient, OAuthSignIn
from .firestore import FirestoreDocumentStore
from .google_credentials import GoogleCredentialsProvider
from .identity_toolkit import AdminUserRecord, IdentityToolkitAdminClient
from .local_storage import InMemoryLocalStorage, LocalStorage, SQLiteLocalStorage
from .sqlite_store import DocumentStore, SQLiteDocumentStore

__all__ = [
    "AdminUserRecord",
    "BrevoEmailClient",
    "DocumentStore",
    "FirebaseAuthClient",
    "FirestoreDocumentStore",
    "GoogleCredentialsProvider",
    "IdentityToolkitAdminClient",
    "InMemoryLocalStorage",
    "LocalStorage",
    "OAuthSignIn",
    "SQLiteDocumentStore",
    "SQLiteLocalStorage",
]

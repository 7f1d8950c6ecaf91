"""Offline client SDK: local store, drafts and sync against the fieldsync API."""
from fieldsync.offline.api import AuthApi, FormLoader, FormsApi, LoadedForm, SubmissionsApi, download_form
from fieldsync.offline.cache import OfflineCache
from fieldsync.offline.config import ClientSettings
from fieldsync.offline.drafts import DraftManager, DraftState, SubmitOutcome
from fieldsync.offline.gateway import AuthRetryCycle, RemoteGateway
from fieldsync.offline.kv_store import InMemoryKeyValueStore, KeyValueStore, SqlKeyValueStore
from fieldsync.offline.models import DownloadedForm, Draft, Location
from fieldsync.offline.sync import SubmissionSync
from fieldsync.offline.tokens import TokenStore

__all__ = [
    "AuthApi",
    "AuthRetryCycle",
    "ClientSettings",
    "DownloadedForm",
    "Draft",
    "DraftManager",
    "DraftState",
    "FormLoader",
    "FormsApi",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LoadedForm",
    "Location",
    "OfflineCache",
    "RemoteGateway",
    "SqlKeyValueStore",
    "SubmissionSync",
    "SubmissionsApi",
    "SubmitOutcome",
    "TokenStore",
    "download_form",
]

from roster.bootstrap.bootstrapper import (
    BACKEND_PREFERENCE_KEY,
    BackendKind,
    BootstrapResult,
    bootstrap_storage,
    select_backend,
)
from roster.bootstrap.notifier import LogNotifier, Notifier
from roster.bootstrap.race import Outcome, race_with_timeout

__all__ = [
    "BACKEND_PREFERENCE_KEY",
    "BackendKind",
    "BootstrapResult",
    "LogNotifier",
    "Notifier",
    "Outcome",
    "bootstrap_storage",
    "race_with_timeout",
    "select_backend",
]

"""
External collaborators.

Narrow contracts the engine depends on (persistence, authorization,
notifications, content suggestions) with in-process implementations.
The SQL adapter lives in ``campus.collaborators.sql_persistence``.
"""

from campus.collaborators.persistence import MemoryPersistence, PersistenceGateway
from campus.collaborators.authorization import AuthorizationGateway, Role, RosterAuthorization
from campus.collaborators.notifications import (
    LoggingNotifier,
    NotificationKind,
    Notifier,
    RecordingNotifier,
    notify_safely,
)

__all__ = [
    'MemoryPersistence',
    'PersistenceGateway',
    'AuthorizationGateway',
    'Role',
    'RosterAuthorization',
    'LoggingNotifier',
    'NotificationKind',
    'Notifier',
    'RecordingNotifier',
    'notify_safely',
]

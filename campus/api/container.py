"""
Service Container

Holds the collaborators and services one application instance works with.
The API reads it from ``app.state``; tests build their own.
"""

from dataclasses import dataclass
from typing import Optional

from campus.assessments.drafts import DraftReviewer
from campus.assessments.service import AttemptService
from campus.collaborators.authorization import AuthorizationGateway, RosterAuthorization
from campus.collaborators.notifications import LoggingNotifier, Notifier
from campus.collaborators.persistence import MemoryPersistence, PersistenceGateway
from campus.collaborators.suggestions import ContentSuggester
from campus.gradebook.service import GradebookService


@dataclass
class Container:
    persistence: PersistenceGateway
    authorization: AuthorizationGateway
    notifier: Optional[Notifier]
    attempts: AttemptService
    gradebook: GradebookService
    reviewer: Optional[DraftReviewer] = None


def build_container(
    persistence: Optional[PersistenceGateway] = None,
    authorization: Optional[AuthorizationGateway] = None,
    notifier: Optional[Notifier] = None,
    suggester: Optional[ContentSuggester] = None,
    **attempt_options
) -> Container:
    """
    Wire the services over the given collaborators.

    Args:
        persistence: Storage; defaults to MemoryPersistence
        authorization: Defaults to roster roles read through persistence
        notifier: Defaults to LoggingNotifier
        suggester: Enables draft review when given
        **attempt_options: Passed to AttemptService (timer_factory, clock, ...)

    Returns:
        The wired container
    """
    persistence = persistence or MemoryPersistence()
    authorization = authorization or RosterAuthorization(persistence)
    notifier = notifier or LoggingNotifier()

    attempts = AttemptService(persistence, authorization, notifier, **attempt_options)
    gradebook = GradebookService(persistence, authorization)
    reviewer = DraftReviewer(suggester, attempts) if suggester is not None else None

    return Container(
        persistence=persistence,
        authorization=authorization,
        notifier=notifier,
        attempts=attempts,
        gradebook=gradebook,
        reviewer=reviewer,
    )

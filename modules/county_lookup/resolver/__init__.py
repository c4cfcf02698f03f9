"""Containment resolution: candidate filtering, weak-match fallback and events."""

from .resolution_models import MatchStatus, Resolution, LookupResult, ResolutionStats
from .observers import (
    ResolutionObserver,
    NullObserver,
    LoggingObserver,
    StatsObserver,
    CompositeObserver,
)
from .containment_resolver import ContainmentResolver, CandidateIndex

__all__ = [
    # Result models
    'MatchStatus',
    'Resolution',
    'LookupResult',
    'ResolutionStats',
    # Observers
    'ResolutionObserver',
    'NullObserver',
    'LoggingObserver',
    'StatsObserver',
    'CompositeObserver',
    # Resolver
    'ContainmentResolver',
    'CandidateIndex',
]

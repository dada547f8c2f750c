"""
Services package - Business logic layer
"""
from cleanup_trust.services.geo_matcher import geo_matcher
from cleanup_trust.services.time_window import time_window_guard
from cleanup_trust.services.evidence_dedup import evidence_deduplicator
from cleanup_trust.services.location_service import location_service
from cleanup_trust.services.session_tracker import session_tracker
from cleanup_trust.services.similarity_service import similarity_service
from cleanup_trust.services.points_ledger import points_ledger
from cleanup_trust.services.notification_service import notification_service
from cleanup_trust.services.guardian_service import guardian_service
from cleanup_trust.services.trust_evaluator import trust_evaluator
from cleanup_trust.services.consensus_service import consensus_service

__all__ = [
    "geo_matcher",
    "time_window_guard",
    "evidence_deduplicator",
    "location_service",
    "session_tracker",
    "similarity_service",
    "points_ledger",
    "notification_service",
    "guardian_service",
    "trust_evaluator",
    "consensus_service"
]

"""
Database Module
Supabase-backed persistence for canonical products and store matches
"""

from src.database.match_store import MatchStore, validate_matches

__all__ = [
    'MatchStore',
    'validate_matches',
]

"""
Shared Supabase client for the Supabase-backed repositories.

Only built when STORAGE_BACKEND=supabase; the in-memory repositories never
touch it.
"""
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from supabase import Client, create_client

from adaptive_learning_tutor.exceptions import RepositoryError

load_dotenv()

logger = logging.getLogger(__name__)

_supabase_client: Optional[Client] = None


def get_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    """
    Return the process-wide client, creating it on first use.

    Credentials default to SUPABASE_URL and SUPABASE_SERVICE_KEY. The service
    key is needed because sessions and profiles are written for the learner.
    """
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_SERVICE_KEY")
    if not url or not key:
        raise RepositoryError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set to use the supabase backend")

    _supabase_client = create_client(url, key)
    logger.info(f"✅ [Supabase] Client created for {url}")
    return _supabase_client


def reset_supabase_client():
    global _supabase_client
    _supabase_client = None

from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import logging

from quiz_engine.database import db, get_supabase_client
from quiz_engine.exceptions import StoreUnavailableError
from quiz_engine.services.attempt_store import PROFILES

logger = logging.getLogger(__name__)

security = HTTPBearer()

def verify_supabase_token(token: str):
    """Resolve a Supabase access token to its auth user, or None"""
    try:
        response = get_supabase_client().auth.get_user(token)
        if response and response.user:
            return response.user
        return None
    except Exception as e:
        logger.error(f"Supabase token verification failed: {e}")
        return None

def load_profile_flags(user_id: str) -> dict:
    """Admin flag and display name from the profiles table"""
    try:
        rows = db.select(PROFILES, "is_admin,full_name,username", {"id": user_id})
    except StoreUnavailableError:
        return {}
    return rows[0] if rows else {}

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Current learner from the bearer token"""
    user = verify_supabase_token(credentials.credentials)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials"
        )
    profile = load_profile_flags(user.id)
    return {
        "id": user.id,
        "email": user.email,
        "full_name": profile.get("full_name"),
        "is_admin": bool(profile.get("is_admin")),
    }

def is_admin_user(user: Optional[dict]) -> bool:
    return bool(user and user.get("is_admin"))

async def require_admin(current_user: dict = Depends(get_current_user)):
    """Require admin privileges"""
    if not is_admin_user(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user

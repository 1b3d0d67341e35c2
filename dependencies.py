from fastapi import Header, HTTPException, Depends, Request
import firebase_admin
from firebase_admin import auth
import logging
from sqlalchemy.orm import Session
from database import get_db
import crud
import subscriptions

logger = logging.getLogger(__name__)

# Initialize Firebase Admin SDK
# Use Application Default Credentials (ADC) which works automatically on Cloud Run
try:
    firebase_admin.get_app()
except ValueError:
    firebase_admin.initialize_app()


def get_current_user(request: Request, x_firebase_token: str = Header(None, alias="X-Firebase-Token"), db: Session = Depends(get_db)):
    """
    Validates the Firebase ID token and returns the local copy of the user,
    creating it on first sight.
    """
    if not x_firebase_token:
        logger.warning("Missing X-Firebase-Token header")
        raise HTTPException(status_code=401, detail="Unauthorized: Missing User Identity")

    try:
        decoded_token = auth.verify_id_token(x_firebase_token, check_revoked=True)
    except auth.RevokedIdTokenError:
        logger.warning("Firebase token revoked")
        raise HTTPException(status_code=401, detail="Unauthorized: Token Revoked")
    except auth.ExpiredIdTokenError:
        logger.warning("Firebase token expired")
        raise HTTPException(status_code=401, detail="Unauthorized: Token Expired")
    except Exception as e:
        logger.error(f"Firebase token validation error: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid Token")

    uid = decoded_token.get("uid")
    email = decoded_token.get("email")
    if not uid or not email:
        raise HTTPException(status_code=401, detail="Unauthorized: Token missing email")

    return crud.ensure_user(db, uid, email, decoded_token.get("name"))


def get_optional_user_id(x_firebase_token: str = Header(None, alias="X-Firebase-Token")):
    """Best-effort identity for endpoints that also accept anonymous callers."""
    if not x_firebase_token:
        return None
    try:
        return auth.verify_id_token(x_firebase_token).get("uid")
    except Exception:
        logger.info("Ignoring invalid token on anonymous endpoint")
        return None


def get_is_premium(user=Depends(get_current_user), db: Session = Depends(get_db)) -> bool:
    return subscriptions.resolve_premium(db, user)

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import subscriptions
from database import get_db
from dependencies import get_current_user
from schemas import UserProfile

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/ensure-profile", response_model=UserProfile)
def ensure_profile(user=Depends(get_current_user), db: Session = Depends(get_db)):
    # get_current_user has already upserted the row; refresh the cached tier too
    subscriptions.resolve_premium(db, user)
    return user

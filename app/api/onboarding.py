from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_lifecycle
from app.schemas.knowledge import DocumentRead
from app.schemas.onboarding import (
    OnboardingModulesRead,
    OnboardingProgressRead,
    OnboardingProgressRequest,
)
from app.services.kb_lifecycle import DocumentLifecycle
from app.services.onboarding import onboarding

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


@router.get("/modules", response_model=OnboardingModulesRead)
def list_modules(user_id: str, db: Session = Depends(get_db)):
    return onboarding.modules_for(db, user_id)


@router.put("/progress", response_model=OnboardingProgressRead)
def update_progress(
    payload: OnboardingProgressRequest,
    db: Session = Depends(get_db),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
):
    return lifecycle.complete_onboarding_module(
        db, payload.user_id, payload.module_id
    )


@router.get("/recommendations", response_model=list[DocumentRead])
def recommendations(user_id: str, db: Session = Depends(get_db)):
    return onboarding.recommendations(db, user_id)

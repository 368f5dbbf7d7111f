"""
Global settings and dashboard metrics.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.database import get_db
from core.exceptions import NotFoundError, ValidationError
from models import Setting
from schemas import MetricsResponse, SettingResponse, SettingUpdate
from services.settings_service import dashboard_metrics

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=List[SettingResponse])
def list_settings(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return db.query(Setting).order_by(Setting.key).all()


@router.get("/metrics", response_model=MetricsResponse)
def get_metrics(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return dashboard_metrics(db)


@router.put("/{key}", response_model=SettingResponse)
def update_setting(
    key: str,
    update: SettingUpdate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    if update.value is None or not update.value.strip():
        raise ValidationError("Setting value is required", field="value")

    setting = db.query(Setting).filter(Setting.key == key).first()
    if not setting:
        raise NotFoundError("Setting not found")

    setting.value = update.value.strip()
    db.commit()
    db.refresh(setting)
    return setting

from sqlalchemy.orm import Session
from sqlalchemy import select, delete, update
from app.db.models import DeviceRegistration
from uuid import UUID
from datetime import datetime

def upsert_device(db: Session, user_id: UUID, *, push_token: str, platform: str, device_id: str | None,
                  last_active: datetime) -> tuple[DeviceRegistration, bool]:
    q = select(DeviceRegistration).where(DeviceRegistration.push_token == push_token)
    d = db.execute(q).scalar_one_or_none()
    created = d is None
    if created:
        d = DeviceRegistration(push_token=push_token)
        db.add(d)
    # A token moves with the device, not the account
    d.user_id = user_id
    d.platform = platform
    d.device_id = device_id
    d.last_active = last_active
    db.commit(); db.refresh(d)
    return d, created

def delete_device(db: Session, user_id: UUID, push_token: str) -> bool:
    res = db.execute(
        delete(DeviceRegistration)
        .where(DeviceRegistration.user_id == user_id, DeviceRegistration.push_token == push_token)
    )
    db.commit()
    return bool(res.rowcount)

def list_devices(db: Session, user_id: UUID) -> list[DeviceRegistration]:
    q = select(DeviceRegistration).where(DeviceRegistration.user_id == user_id)
    return list(db.execute(q).scalars())

def list_tokens(db: Session, user_ids: list[UUID]) -> dict[UUID, list[str]]:
    if not user_ids:
        return {}
    q = select(DeviceRegistration.user_id, DeviceRegistration.push_token).where(
        DeviceRegistration.user_id.in_(user_ids)
    )
    out: dict[UUID, list[str]] = {}
    for uid, token in db.execute(q):
        out.setdefault(uid, []).append(token)
    return out

def set_cooldown(db: Session, user_id: UUID, cooldown: bool, last_check_in: datetime | None = None) -> int:
    values: dict = {"check_in_cooldown": cooldown}
    if last_check_in is not None:
        values["last_check_in"] = last_check_in
    res = db.execute(
        update(DeviceRegistration).where(DeviceRegistration.user_id == user_id).values(**values)
    )
    db.commit()
    return res.rowcount or 0

def mark_notified(db: Session, user_id: UUID, when: datetime) -> int:
    res = db.execute(
        update(DeviceRegistration).where(DeviceRegistration.user_id == user_id).values(last_notification=when)
    )
    db.commit()
    return res.rowcount or 0

def users_in_cooldown(db: Session) -> list[UUID]:
    q = select(DeviceRegistration.user_id).where(DeviceRegistration.check_in_cooldown.is_(True)).distinct()
    return list(db.execute(q).scalars())

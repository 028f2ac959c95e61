from uuid import UUID
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.errors import AuthRequiredError
from app.core.security import get_current_user, require_admin
from app.services.container import ServiceContainer

def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services

def _user_uuid(user: dict) -> UUID:
    try:
        return UUID(str(user["user_id"]))
    except (KeyError, ValueError) as exc:
        raise AuthRequiredError("Token user ID is not a valid identifier") from exc

def Authed(db: Session = Depends(get_db), user=Depends(get_current_user),
           services: ServiceContainer = Depends(get_services)):
    return {"db": db, "user_id": _user_uuid(user), "role": user.get("role"), "services": services}

def AdminAuthed(db: Session = Depends(get_db), user=Depends(require_admin),
                services: ServiceContainer = Depends(get_services)):
    return {"db": db, "user_id": _user_uuid(user), "role": user.get("role"), "services": services}

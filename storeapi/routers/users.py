from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storeapi.core.deps import get_current_user, get_db, require_roles
from storeapi.core.errors import PhoneTaken, UserNotFound, ValidationError
from storeapi.core.utils_phone import is_valid_phone, normalize_phone
from storeapi.logger import get_logger
from storeapi.models.auth_models import ROLES, User
from storeapi.models.auth_schemas import ProfileUpdate, RoleUpdate
from storeapi.routers.auth import user_payload
from storeapi.services.user_store import UserStore

logger = get_logger(__name__)

profile_router = APIRouter(tags=["Profile"])
admin_router = APIRouter(tags=["User management"], dependencies=[Depends(require_roles("admin"))])


# ----------------- PROFILE -----------------
@profile_router.get("")
def get_profile(user: User = Depends(get_current_user)):
    return {"success": True, "data": user_payload(user)}


@profile_router.put("")
def update_profile(body: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True)

    if "name" in changes:
        if not changes["name"] or not changes["name"].strip():
            raise ValidationError("Name is required")
        user.name = changes["name"].strip()

    if "phone_number" in changes:
        phone = normalize_phone(changes["phone_number"])
        if phone is not None and not is_valid_phone(phone):
            raise ValidationError("Invalid phone number")
        user.phone_number = phone

    try:
        UserStore(db).save(user)
    except IntegrityError:
        raise PhoneTaken()

    logger.info("Profile updated for user %s", user.id)
    return {"success": True, "data": user_payload(user)}


# ----------------- ADMIN -----------------
@admin_router.get("/users")
def list_users(skip: int = 0, limit: int = 50, db: Session = Depends(get_db)):
    users = UserStore(db).list_users(max(skip, 0), min(max(limit, 1), 100))
    return {"success": True, "data": [user_payload(u) for u in users]}


@admin_router.get("/users/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db)):
    user = UserStore(db).get(user_id)
    if not user:
        raise UserNotFound()
    return {"success": True, "data": user_payload(user)}


@admin_router.put("/users/{user_id}/role")
def update_role(user_id: str, body: RoleUpdate, db: Session = Depends(get_db)):
    if body.role not in ROLES:
        raise ValidationError(f"Invalid role: {body.role}")

    store = UserStore(db)
    user = store.get(user_id)
    if not user:
        raise UserNotFound()

    user.role = body.role
    store.save(user)
    logger.info("Role of user %s set to %s", user.id, body.role)
    return {"success": True, "data": user_payload(user)}


@admin_router.delete("/users/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db)):
    store = UserStore(db)
    user = store.get(user_id)
    if not user:
        raise UserNotFound()

    store.delete(user)
    logger.info("User deleted: %s", user_id)
    return {"success": True, "message": "User deleted"}

# farmlink/routers/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm

from farmlink.core.security import create_access_token, get_current_user, hash_password, verify_password
from farmlink.deps import get_repo
from farmlink.repos.base import utcnow
from farmlink.schemas import ProfileUpdate, RegisterIn, TokenOut
from farmlink.services.views import public_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _token_for(user: dict) -> dict:
    token = create_access_token({"sub": user["_id"], "role": user["role"]})
    return {"access_token": token, "token_type": "bearer", "role": user["role"], "user_id": user["_id"]}


@router.post("/register", status_code=201, response_model=TokenOut)
async def register(body: RegisterIn, repo=Depends(get_repo)):
    doc = body.model_dump(exclude={"password"})
    doc["password_hash"] = hash_password(body.password)
    doc["created_at"] = utcnow()
    if body.role != "farmer":
        doc.pop("farm_location", None)
    if body.role != "transporter":
        doc.pop("base_location", None)
        doc.pop("service_districts", None)
    user = await repo.create_user(doc)
    logger.info("Registered %s %s", user["role"], user["email"])
    return _token_for(user)


@router.post("/token", response_model=TokenOut)
async def login(form: OAuth2PasswordRequestForm = Depends(), repo=Depends(get_repo)):
    user = await repo.find_user_by_email(form.username)
    if not user or not verify_password(form.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _token_for(user)


@router.get("/me")
async def me(user=Depends(get_current_user)):
    return public_user(user)


@router.patch("/me")
async def update_me(body: ProfileUpdate, user=Depends(get_current_user), repo=Depends(get_repo)):
    fields = body.model_dump(exclude_unset=True)
    if user["role"] != "farmer":
        fields.pop("farm_location", None)
    if user["role"] != "transporter":
        fields.pop("base_location", None)
        fields.pop("service_districts", None)
    updated = await repo.update_user(user["_id"], fields) if fields else user
    return public_user(updated)

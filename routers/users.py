import logging
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel

import AuthAndUser as auth
import sendgridemail
from config import Settings, get_settings
from domain.user import User, UserInDB, new_user_id, validate_forget_password, validate_login, validate_password, validate_signup
from errors import AuthError, NotFoundError, ServerError, TokenError, ValidationError
from repositories.users import UserRepository, get_user_repository
from services.mail_queue import MailQueue, get_mail_queue

logger = logging.getLogger('uvicorn.error')

router = APIRouter(prefix="/api/v1/users", tags=["users"])


class MessageResponse(BaseModel):
    status: str = "success"
    message: str


class UserData(BaseModel):
    data: User


class AuthResponse(BaseModel):
    status: str = "success"
    token: str
    data: UserData


def create_token_response(user: UserInDB, settings: Settings) -> AuthResponse:
    token = auth.create_access_token(user.id, settings)
    return AuthResponse(token=token, data=UserData(data=user.public()))


@router.post("/signup", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: Annotated[Any, Body()] = None,
    users: UserRepository = Depends(get_user_repository),
    mail: MailQueue = Depends(get_mail_queue),
    settings: Settings = Depends(get_settings),
):
    result = validate_signup(payload)
    if not result.ok:
        raise ValidationError(result.message, details=result.details())
    new_user = result.value

    if await users.find_by_email(new_user.email) is not None:
        raise ValidationError(f"User with email: {new_user.email} already exists. Please log in.")
    if await users.find_by_username(new_user.username) is not None:
        raise ValidationError(f"User with username: {new_user.username} already exists. Please log in.")

    user = await users.create(UserInDB(
        id=new_user_id(),
        username=new_user.username,
        email=new_user.email,
        role=new_user.role,
        verified=False,
        hashed_password=auth.get_password_hash(new_user.password),
        email_verify_key=auth.generate_email_verify_key(),
        created_at=datetime.now(timezone.utc),
    ))

    mail.enqueue(sendgridemail.verification_email(user.email, user.email_verify_key, settings))

    return MessageResponse(message=f"Sent an email to {user.email}")


@router.api_route("/verifyEmail/{key}", methods=["GET", "POST"], response_model=AuthResponse)
async def verify_email(
    key: str,
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings),
):
    user = await users.find_by_verify_key(key)
    if user is None:
        logger.warning("Email verification attempted with an unknown key")
        raise NotFoundError("Invalid or already used verification key.")

    await users.update(user.id, {"verified": True, "email_verify_key": None})
    user = user.model_copy(update={"verified": True, "email_verify_key": None})
    logger.info(f"User '{user.username}' verified their email")
    return create_token_response(user, settings)


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: Annotated[Any, Body()] = None,
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings),
):
    result = validate_login(payload)
    if not result.ok:
        raise ValidationError(result.message, details=result.details())
    credentials = result.value

    user = await users.find_by_email(credentials.email)
    if user is None or not auth.verify_password(credentials.password, user.hashed_password):
        raise AuthError("Incorrect email or password!")

    return create_token_response(user, settings)


@router.get("/me", response_model=User)
async def read_users_me(current_user: Annotated[User, Depends(auth.get_current_user)]):
    return current_user


@router.post("/forgetPassword", response_model=MessageResponse)
async def forget_password(
    payload: Annotated[Any, Body()] = None,
    users: UserRepository = Depends(get_user_repository),
    mail: MailQueue = Depends(get_mail_queue),
    settings: Settings = Depends(get_settings),
):
    result = validate_forget_password(payload)
    if not result.ok:
        raise ValidationError(result.message, details=result.details())

    user = await users.find_by_email(result.value.email)
    if user is None:
        raise NotFoundError("There is no user with email address.")

    token, token_hash, expires = auth.generate_password_reset_token(settings)
    await users.update(user.id, {"password_reset_token": token_hash, "password_reset_expires": expires})

    reset_url = sendgridemail.reset_password_url(token, settings)
    try:
        await mail.send_now(sendgridemail.password_reset_email(user.email, reset_url, settings))
    except sendgridemail.EmailDeliveryError as e:
        logger.error(f"Password reset mail for user {user.id} failed: {e}")
        await users.update(user.id, {"password_reset_token": None, "password_reset_expires": None})
        raise ServerError("There was an error sending the email. Try again later!", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return MessageResponse(message="Token sent to email!")


@router.patch("/resetPassword/{token}", response_model=AuthResponse, name="reset_password")
async def reset_password(
    token: str,
    payload: Annotated[Any, Body()] = None,
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings),
):
    user = await users.find_by_reset_token(auth.hash_reset_token(token), datetime.now(timezone.utc))
    if user is None:
        raise TokenError("Invalid or expired token!")

    if not isinstance(payload, dict) or not payload.get("password"):
        raise ValidationError("Please provide a new password!")
    result = validate_password(payload)
    if not result.ok:
        raise ValidationError(result.message, details=result.details())

    hashed_password = auth.get_password_hash(result.value.password)
    await users.update(user.id, {
        "password_reset_token": None,
        "password_reset_expires": None,
        "hashed_password": hashed_password,
    })
    user = user.model_copy(update={
        "password_reset_token": None,
        "password_reset_expires": None,
        "hashed_password": hashed_password,
    })
    logger.info(f"User '{user.username}' reset their password")
    return create_token_response(user, settings)

from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from account_service.core.auth import get_request_token
from account_service.core.deps import get_account_manager
from account_service.schemas.user import (
    AccountResult,
    DeleteSubmit,
    EditSubmit,
    ForgotPasswordSubmit,
    LoginSubmit,
    RegisterSubmit,
    ResetPasswordSubmit,
    VerifyCodeSubmit,
)
from account_service.services.accounts import AccountLifecycleManager

router = APIRouter()


def _respond(result: AccountResult) -> Response:
    """HTTP status is the result status; null fields are left out of the body."""
    if result.status == status.HTTP_204_NO_CONTENT:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return JSONResponse(status_code=result.status, content=result.model_dump(exclude_none=True))


@router.post("/user/login", response_model=AccountResult)
def user_login(data: LoginSubmit, accounts: AccountLifecycleManager = Depends(get_account_manager)):
    """Login with email + password; returns a 24h session token."""
    return _respond(accounts.login(data.email, data.password))


@router.post("/user/register", response_model=AccountResult, status_code=status.HTTP_201_CREATED)
def user_register(data: RegisterSubmit, accounts: AccountLifecycleManager = Depends(get_account_manager)):
    """Register a new account. No token is issued; log in afterwards."""
    return _respond(accounts.register(data.username, data.email, data.password))


@router.post("/user/forgot-password", response_model=AccountResult)
def user_forgot_password(
    data: ForgotPasswordSubmit, accounts: AccountLifecycleManager = Depends(get_account_manager)
):
    """Email a 6-digit verification code, replacing any earlier one."""
    return _respond(accounts.forgot_password(data.email))


@router.post("/user/verifyCode", response_model=AccountResult)
def user_verify_code(data: VerifyCodeSubmit, accounts: AccountLifecycleManager = Depends(get_account_manager)):
    """Exchange a live verification code for a short-lived reset token."""
    return _respond(accounts.verify_code(data.email, data.verificationcode))


@router.post("/user/reset-password", response_model=AccountResult)
def user_reset_password(
    data: ResetPasswordSubmit,
    token: Optional[str] = Depends(get_request_token),
    accounts: AccountLifecycleManager = Depends(get_account_manager),
):
    """Set a new password using the token from verifyCode."""
    return _respond(accounts.reset_password(token, data.password))


@router.put("/user/edit", response_model=AccountResult)
def user_edit(
    data: EditSubmit,
    token: Optional[str] = Depends(get_request_token),
    accounts: AccountLifecycleManager = Depends(get_account_manager),
):
    """Edit the profile of the account the token was issued for."""
    return _respond(
        accounts.edit(
            token,
            data.id,
            data.username,
            data.email,
            profile_photo=data.profilephoto,
            phone_token=data.phonetoken,
            phone_number=data.phonenumber,
        )
    )


@router.delete("/user/delete", status_code=status.HTTP_204_NO_CONTENT)
def user_delete(
    data: DeleteSubmit,
    token: Optional[str] = Depends(get_request_token),
    accounts: AccountLifecycleManager = Depends(get_account_manager),
):
    """Delete the account the token was issued for; the body id must match it."""
    return _respond(accounts.delete(token, data.id))

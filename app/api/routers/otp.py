from __future__ import annotations
from fastapi import APIRouter, Depends

from ...context import AppContext, get_context
from ...domain.schemas.api import ApiOut, SendOtpIn, VerifyOtpIn
from ...services import otp as otp_service

router = APIRouter(prefix="/api", tags=["otp"])


@router.post("/send-otp", response_model=ApiOut)
async def send_otp(payload: SendOtpIn, ctx: AppContext = Depends(get_context)):
    await otp_service.request_code(ctx, email=payload.email, full_name=payload.full_name, uid=payload.uid)
    return ApiOut(message="OTP sent successfully")


@router.post("/verify-otp", response_model=ApiOut)
async def verify_otp(payload: VerifyOtpIn, ctx: AppContext = Depends(get_context)):
    await otp_service.verify_code(ctx, email=payload.email, code=payload.otp, uid=payload.uid)
    return ApiOut(message="Email verified successfully")

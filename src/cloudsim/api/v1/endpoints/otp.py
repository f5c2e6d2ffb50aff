# src/cloudsim/api/v1/endpoints/otp.py
"""One-time passcode endpoints gating the admin surface."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from cloudsim.api.v1.dependencies import ClientDep, SessionDep
from cloudsim.core.settings import settings
from cloudsim.schemas.otp import (
    GenerateOtpRequest,
    GenerateOtpResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from cloudsim.services.delivery import OtpDelivery, get_otp_delivery
from cloudsim.services.otp import OtpService
from cloudsim.services.throttle import VerificationThrottle, get_verification_throttle

router = APIRouter(tags=["otp"])


def get_otp_delivery_dep() -> OtpDelivery:
    return get_otp_delivery()


def get_verification_throttle_dep() -> VerificationThrottle:
    return get_verification_throttle()


def get_otp_service_dep(
    db: SessionDep,
    delivery: Annotated[OtpDelivery, Depends(get_otp_delivery_dep)],
    throttle: Annotated[VerificationThrottle, Depends(get_verification_throttle_dep)],
) -> OtpService:
    return OtpService(db, delivery=delivery, throttle=throttle)


OtpServiceDep = Annotated[OtpService, Depends(get_otp_service_dep)]


@router.post(
    "/generate-otp",
    response_model=GenerateOtpResponse,
    response_model_exclude_none=True,
)
async def generate_otp(
    payload: GenerateOtpRequest,
    otp_service: OtpServiceDep,
    client: ClientDep,
) -> GenerateOtpResponse:
    """Issue a passcode, superseding any unused one for the same user.

    The code is delivered out of band; it is echoed back only when
    ``OTP_EXPOSE_CODE`` is enabled for local testing.
    """
    issued = otp_service.issue(
        payload.subject,
        payload.purpose,
        client=client,
        delivery_target=payload.email,
    )
    return GenerateOtpResponse(
        success=True,
        message="OTP generated successfully",
        otp_for_testing=issued.code if settings.otp_expose_code else None,
    )


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(
    payload: VerifyOtpRequest,
    otp_service: OtpServiceDep,
    client: ClientDep,
) -> VerifyOtpResponse:
    """Verify a passcode and return a second-factor session token."""
    verified = otp_service.verify(
        payload.subject,
        payload.code,
        payload.purpose,
        client=client,
    )
    return VerifyOtpResponse(
        success=True,
        message="OTP verified successfully",
        session_token=verified.session_token,
        expires_at=verified.expires_at,
    )

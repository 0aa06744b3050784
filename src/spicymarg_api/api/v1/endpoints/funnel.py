"""Guest-facing funnel endpoints: signup, voucher, phone verification and offers."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from spicymarg_api.api.dependencies.security import require_bartender_access_code
from spicymarg_api.api.dependencies.services import get_funnel_service
from spicymarg_api.api.errors import to_http_exception
from spicymarg_api.services.funnel.errors import FunnelError
from spicymarg_api.services.funnel.offers import Offer
from spicymarg_api.services.funnel.redemption import RedemptionResult
from spicymarg_api.services.funnel.service import FunnelService
from spicymarg_api.services.funnel.tokens import encode_token


router = APIRouter(prefix="/funnel", tags=["funnel"])


class SignupRequest(BaseModel):
    email: str = Field(..., max_length=320, description="Guest email address")
    dateOfBirth: date = Field(..., description="Used once for the age gate")


class SignupResponse(BaseModel):
    guestId: UUID
    isNewSignup: bool
    voucherToken: str


class OfferCopy(BaseModel):
    offer: Offer
    visitNumber: int
    title: str
    subtitle: str


class VoucherStatusResponse(BaseModel):
    guestId: UUID
    email: str
    stage: int
    claimable: bool
    offer: OfferCopy


class OtpRequest(BaseModel):
    guestId: UUID
    phone: str = Field(..., max_length=32)


class OtpRequestResponse(BaseModel):
    guestId: UUID
    phone: str
    expiresAt: datetime


class OtpVerifyRequest(BaseModel):
    guestId: UUID
    code: str = Field(..., max_length=12)
    fullName: str = Field(..., max_length=200)


class OtpVerifyResponse(BaseModel):
    guestId: UUID
    email: str
    fullName: str
    stage: int


class OfferStatusResponse(OfferCopy):
    guestId: UUID
    displayName: str
    status: str
    eligible: bool
    message: str
    currentStage: int


class VisitConfirmRequest(BaseModel):
    guestId: UUID
    visitNumber: int = Field(..., ge=1, le=3)


class VisitConfirmResponse(BaseModel):
    guestId: UUID
    fullName: Optional[str]
    email: str
    newStage: int
    visitNumber: int
    nextOffer: Optional[Offer]


def _offer_copy(offer: Offer) -> OfferCopy:
    return OfferCopy(
        offer=offer,
        visitNumber=offer.visit_number,
        title=offer.definition.title,
        subtitle=offer.definition.subtitle,
    )


def _visit_response(result: RedemptionResult) -> VisitConfirmResponse:
    return VisitConfirmResponse(
        guestId=result.guest_id,
        fullName=result.full_name,
        email=result.email,
        newStage=result.new_stage,
        visitNumber=result.visit_number,
        nextOffer=result.offer.next_offer,
    )


@router.post("/signup", response_model=SignupResponse)
async def signup(
    payload: SignupRequest,
    service: FunnelService = Depends(get_funnel_service),
) -> SignupResponse:
    try:
        result = await service.signup(payload.email, payload.dateOfBirth)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    return SignupResponse(
        guestId=result.guest_id,
        isNewSignup=result.is_new_signup,
        voucherToken=encode_token(result.guest_id, result.email),
    )


@router.get("/vouchers/{token}", response_model=VoucherStatusResponse)
async def get_voucher(
    token: str,
    service: FunnelService = Depends(get_funnel_service),
) -> VoucherStatusResponse:
    try:
        status = await service.voucher_status(token)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    guest = status.guest
    return VoucherStatusResponse(
        guestId=guest.id,
        email=guest.email,
        stage=guest.stage,
        claimable=status.claimable,
        offer=_offer_copy(Offer.SPICY_MARGARITA),
    )


@router.post("/otp/request", response_model=OtpRequestResponse)
async def request_otp(
    payload: OtpRequest,
    service: FunnelService = Depends(get_funnel_service),
) -> OtpRequestResponse:
    try:
        issue = await service.request_code(payload.guestId, payload.phone)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    return OtpRequestResponse(guestId=issue.guest_id, phone=issue.phone, expiresAt=issue.expires_at)


@router.post("/otp/verify", response_model=OtpVerifyResponse)
async def verify_otp(
    payload: OtpVerifyRequest,
    service: FunnelService = Depends(get_funnel_service),
) -> OtpVerifyResponse:
    try:
        result = await service.verify_code(payload.guestId, payload.code, payload.fullName)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    return OtpVerifyResponse(
        guestId=result.guest_id,
        email=result.email,
        fullName=result.full_name,
        stage=result.new_stage,
    )


@router.get("/offers/{offer}/{token}", response_model=OfferStatusResponse)
async def get_offer(
    offer: Offer,
    token: str,
    service: FunnelService = Depends(get_funnel_service),
) -> OfferStatusResponse:
    """Show whether the confirm link in ``token`` may redeem ``offer`` right now."""

    try:
        view = await service.view_offer(offer, token)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    decision = view.decision
    return OfferStatusResponse(
        **_offer_copy(offer).model_dump(),
        guestId=view.guest.id,
        displayName=view.display_name,
        status=decision.status.value,
        eligible=decision.is_eligible,
        message=decision.message,
        currentStage=decision.current_stage,
    )


@router.post(
    "/offers/{offer}/{token}/confirm",
    response_model=VisitConfirmResponse,
    dependencies=[Depends(require_bartender_access_code)],
)
async def confirm_offer(
    offer: Offer,
    token: str,
    service: FunnelService = Depends(get_funnel_service),
) -> VisitConfirmResponse:
    try:
        result = await service.confirm_offer(offer, token)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    return _visit_response(result)


@router.post(
    "/visits/confirm",
    response_model=VisitConfirmResponse,
    dependencies=[Depends(require_bartender_access_code)],
)
async def confirm_visit(
    payload: VisitConfirmRequest,
    service: FunnelService = Depends(get_funnel_service),
) -> VisitConfirmResponse:
    try:
        result = await service.confirm_visit(payload.guestId, payload.visitNumber)
    except FunnelError as exc:
        raise to_http_exception(exc) from exc
    return _visit_response(result)

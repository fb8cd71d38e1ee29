from fastapi import APIRouter, Depends

from ..otp_utils import OTPService, get_otp_service
from ..password_reset import PasswordResetCoordinator, get_reset_coordinator
from ..schemas import IssueOtpIn, IssueOtpOut, MessageOut, ResetPasswordIn, VerifyOtpIn, VerifyOtpOut


router = APIRouter(tags=["otp"])


@router.post("/issue-otp", response_model=IssueOtpOut)
def issue_otp(payload: IssueOtpIn, service: OTPService = Depends(get_otp_service)):
    result = service.issue(payload.phone, payload.purpose)
    return IssueOtpOut(message="OTP sent successfully", phone=result.phone)


@router.post("/verify-otp", response_model=VerifyOtpOut)
def verify_otp(payload: VerifyOtpIn, service: OTPService = Depends(get_otp_service)):
    session_id = service.verify(payload.phone, payload.otp_code)
    return VerifyOtpOut(message="OTP verified successfully", session_id=session_id)


@router.post("/reset-password", response_model=MessageOut)
def reset_password(payload: ResetPasswordIn, coordinator: PasswordResetCoordinator = Depends(get_reset_coordinator)):
    coordinator.reset(payload.phone, payload.new_password, payload.session_id)
    return MessageOut(success=True, message="Password reset successfully")

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_db, require_admin
from ..models import Notification
from ..otp_utils import OTPService, get_otp_service


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/notifications")
def list_notifications(
    limit: int = 100,
    status: str | None = None,
    order_id: str | None = None,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin),
):
    limit = max(1, min(500, limit))
    q = db.query(Notification)
    if status:
        q = q.filter(Notification.status == status)
    if order_id:
        q = q.filter(Notification.order_id == order_id)
    rows = q.order_by(Notification.sent_at.desc()).limit(limit).all()
    out = []
    for n in rows:
        out.append({
            "id": n.id,
            "phone": n.phone,
            "message": n.message,
            "order_id": n.order_id,
            "user_id": n.user_id,
            "status": n.status,
            "provider_response": n.provider_response,
            "sent_at": n.sent_at.isoformat() + "Z",
        })
    return {"items": out}


@router.post("/otp/purge")
def purge_otp_sessions(service: OTPService = Depends(get_otp_service), _: None = Depends(require_admin)):
    return {"deleted": service.purge_stale()}

from fastapi import APIRouter, Depends

from ..order_notifications import OrderNotifier, SqlOrderLookup
from ..schemas import BalanceOut, OrderNotificationIn, OrderNotificationOut, SendSmsIn, SendSmsOut
from ..sms_provider import NotificationDispatcher, get_dispatcher


router = APIRouter(tags=["sms"])


@router.post("/send-sms", response_model=SendSmsOut)
def send_sms(payload: SendSmsIn, dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    result = dispatcher.send(payload.phone, payload.message, order_id=payload.order_id, user_id=payload.user_id)
    if result.status == "disabled":
        message = "SMS sending is disabled"
    elif result.success:
        message = "SMS sent successfully"
    else:
        message = "SMS sending failed"
    return SendSmsOut(
        success=result.success,
        message=message,
        status=result.status,
        notification_id=result.notification_id,
        response=result.provider_response,
    )


@router.post("/send-order-notification", response_model=OrderNotificationOut)
def send_order_notification(payload: OrderNotificationIn, dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    notifier = OrderNotifier(dispatcher, SqlOrderLookup(dispatcher.db))
    results = notifier.notify(payload.order_id, payload.order_type, payload.notification_type)
    return {"success": True, "results": results}


@router.api_route("/sms-balance", methods=["GET", "POST"], response_model=BalanceOut)
def sms_balance(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    return dispatcher.balance()

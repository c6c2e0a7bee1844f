from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

import checkout
from database import get_db
from security import get_current_user
from utils import envelope, oid, paginate, serialize

router = APIRouter(prefix="/api/orders", tags=["orders"], dependencies=[Depends(get_current_user)])


class PaymentRequest(BaseModel):
    order_id: str
    payment_method_id: str


def user_summary(db, user_id: str):
    user = db["user"].find_one({"_id": oid(user_id)}, {"first_name": 1, "last_name": 1, "email": 1})
    return serialize(user)


@router.post("", status_code=201)
def create_order(payload: checkout.CreateOrderRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    order = checkout.create_order(db, user, payload)
    return envelope({"order": order}, "Order created successfully")


@router.get("/my-orders")
def my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    orders, pagination = paginate(
        db["order"], {"user_id": str(user["_id"])}, page, limit, sort=[("created_at", -1)]
    )
    return envelope({"orders": [serialize(o) for o in orders], "pagination": pagination})


@router.post("/payment")
def process_payment(payload: PaymentRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    order = checkout.process_payment(db, user, payload.order_id, payload.payment_method_id)
    return envelope({"order": order}, "Payment successful")


@router.delete("/clear-history")
def clear_history(user: dict = Depends(get_current_user), db=Depends(get_db)):
    deleted = checkout.clear_history(db, user)
    return envelope({"deleted_count": deleted}, f"{deleted} orders cleared from history")


@router.get("/{order_id}")
def get_order(order_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    order = serialize(checkout.get_order_for(db, order_id, user))
    order["user"] = user_summary(db, order["user_id"])
    return envelope({"order": order})

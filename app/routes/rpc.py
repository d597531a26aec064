from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.routes.orders import delete_order_and_notify
from app.schemas.pedido import DeleteOrderIn
from app.services.auth import get_current_user

router = APIRouter(prefix="/rpc", tags=["RPC"])


@router.post("/delete_order")
def delete_order(payload: DeleteOrderIn, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """Server-side procedure: remove an order together with its items."""
    removed = delete_order_and_notify(db, payload.order_id_to_delete)
    return {"ok": True, "order_id": payload.order_id_to_delete, "items_removed": len(removed["items"])}

from fastapi import APIRouter, HTTPException
from sqlalchemy import text

from app.db import session as db_session

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
@router.get("/")
def health():
    try:
        with db_session.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"status": "ok", "db_queries_total": db_session.get_global_db_queries_total()}

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from app.db.session import get_db
from app.models.categoria import Categoria as CategoriaModel
from app.schemas.categoria import CategoriaCreate, CategoriaRead
from app.services.auth import get_current_user
from app.utils.pubsub import publish, to_record

router = APIRouter(prefix="/categorias", tags=["Categorias"])


@router.get("", response_model=List[CategoriaRead])
@router.get("/", response_model=List[CategoriaRead])
def list_categorias(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        return db.query(CategoriaModel).order_by(CategoriaModel.nome.asc()).all()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("", response_model=CategoriaRead)
@router.post("/", response_model=CategoriaRead)
def create_categoria(payload: CategoriaCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    try:
        cat = CategoriaModel(nome=payload.nome.strip())
        db.add(cat)
        db.commit()
        db.refresh(cat)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Categoria já existe")
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("categorias", "INSERT", cat)
    return cat


@router.put("/{categoria_id}", response_model=CategoriaRead)
def update_categoria(categoria_id: int, payload: CategoriaCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    cat = db.query(CategoriaModel).filter(CategoriaModel.id == categoria_id).first()
    if not cat:
        raise HTTPException(status_code=404, detail="Categoria não encontrada")
    try:
        cat.nome = payload.nome.strip()
        db.add(cat)
        db.commit()
        db.refresh(cat)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Categoria já existe")
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("categorias", "UPDATE", cat)
    return cat


@router.delete("/{categoria_id}")
def delete_categoria(categoria_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    cat = db.query(CategoriaModel).filter(CategoriaModel.id == categoria_id).first()
    if not cat:
        raise HTTPException(status_code=404, detail="Categoria não encontrada")
    record = to_record(cat)
    try:
        db.delete(cat)
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("categorias", "DELETE", record)
    return {"detail": "Categoria removida com sucesso"}

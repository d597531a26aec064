from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional

from app.db.session import get_db
from app.models.categoria import Categoria as CategoriaModel
from app.models.pedido_item import PedidoItem as PedidoItemModel
from app.models.product import Produto as ProdutoModel
from app.schemas.product import ProdutoCreate, ProdutoUpdate, ProdutoRead
from app.services.auth import get_current_user
from app.utils.pubsub import publish, to_record

router = APIRouter(prefix="/products", tags=["Products"])


def _get_or_404(db: Session, product_id: int) -> ProdutoModel:
    prod = db.query(ProdutoModel).filter(ProdutoModel.id == product_id).first()
    if not prod:
        raise HTTPException(status_code=404, detail="Produto não encontrado")
    return prod


def _check_categoria(db: Session, categoria_id: Optional[int]):
    if categoria_id is not None and not db.query(CategoriaModel).filter(CategoriaModel.id == categoria_id).first():
        raise HTTPException(status_code=404, detail="Categoria não encontrada")


@router.post("", response_model=ProdutoRead)
@router.post("/", response_model=ProdutoRead)
def create_product(payload: ProdutoCreate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    _check_categoria(db, payload.categoria_id)
    try:
        prod = ProdutoModel(**payload.model_dump())
        db.add(prod)
        db.commit()
        db.refresh(prod)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("produtos", "INSERT", prod)
    return prod


@router.get("", response_model=List[ProdutoRead])
@router.get("/", response_model=List[ProdutoRead])
def list_products(
    search: Optional[str] = None,
    categoria_id: Optional[int] = None,
    ativo: Optional[bool] = None,
    limit: int = 500,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    try:
        q = db.query(ProdutoModel)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(ProdutoModel.nome.ilike(like), ProdutoModel.sku.ilike(like)))
        if categoria_id is not None:
            q = q.filter(ProdutoModel.categoria_id == categoria_id)
        if ativo is not None:
            q = q.filter(ProdutoModel.ativo.is_(ativo))
        return q.order_by(ProdutoModel.criado_em.desc(), ProdutoModel.id.desc()).limit(limit).all()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{product_id}", response_model=ProdutoRead)
def get_product(product_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return _get_or_404(db, product_id)


@router.put("/{product_id}", response_model=ProdutoRead)
def update_product(product_id: int, payload: ProdutoUpdate, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    prod = _get_or_404(db, product_id)
    data = payload.model_dump(exclude_unset=True)
    if "categoria_id" in data:
        _check_categoria(db, data["categoria_id"])
    for field in ("nome", "preco", "estoque", "ativo"):
        # required columns cannot be cleared
        if field in data and data[field] is None:
            data.pop(field)
    try:
        for field, value in data.items():
            setattr(prod, field, value)
        db.add(prod)
        db.commit()
        db.refresh(prod)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("produtos", "UPDATE", prod)
    return prod


@router.patch("/{product_id}/toggle", response_model=ProdutoRead)
def toggle_product(product_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    prod = _get_or_404(db, product_id)
    try:
        prod.ativo = not bool(prod.ativo)
        db.add(prod)
        db.commit()
        db.refresh(prod)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    publish("produtos", "UPDATE", prod)
    return prod


@router.delete("/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    prod = _get_or_404(db, product_id)
    record = to_record(prod)
    itens = (
        db.query(PedidoItemModel.id, PedidoItemModel.pedido_id)
        .filter(PedidoItemModel.produto_id == product_id)
        .all()
    )
    try:
        db.query(PedidoItemModel).filter(PedidoItemModel.produto_id == product_id).update(
            {PedidoItemModel.produto_id: None}, synchronize_session=False
        )
        db.delete(prod)
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=str(e))
    for item_id, pedido_id in itens:
        publish("pedido_items", "UPDATE", {"id": item_id, "pedido_id": pedido_id, "produto_id": None})
    publish("produtos", "DELETE", record)
    return {"detail": "Produto removido com sucesso"}

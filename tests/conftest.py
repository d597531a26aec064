import os

# must be set before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.db import session as db_session
from app.models.user import User, RoleEnum
from app.services import auth as auth_service
from app.utils import pubsub


@pytest.fixture(autouse=True)
def _database():
    db_session.create_db()
    pubsub._subscribers.clear()
    yield
    pubsub._subscribers.clear()
    db_session.Base.metadata.drop_all(bind=db_session.engine)


@pytest.fixture
def db():
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, email, papel=RoleEnum.admin, password="segredo123", nome="Operador"):
    user = User(email=email, nome=nome, senha_hash=auth_service.get_password_hash(password), papel=papel)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db):
    return _make_user(db, "admin@esfiharia.com.br", nome="Admin")


@pytest.fixture
def make_user(db):
    """Factory for extra users with a given role."""
    def factory(email, papel=RoleEnum.atendente, password="segredo123", nome="Operador"):
        return _make_user(db, email, papel=papel, password=password, nome=nome)
    return factory


@pytest.fixture
def admin_token(admin_user):
    return auth_service.create_access_token({"sub": admin_user.email})


@pytest.fixture
def anon_client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def client(admin_token):
    with TestClient(app) as c:
        c.headers.update({"Authorization": f"Bearer {admin_token}"})
        yield c


@pytest.fixture
def produtos(client):
    """Two products: esfiha at 10.00 and refrigerante at 5.00."""
    esfiha = client.post("/products", json={"nome": "Esfiha de carne", "preco": 10, "preco_custo": 4}).json()
    refri = client.post("/products", json={"nome": "Refrigerante lata", "preco": 5, "sku": "REF-350"}).json()
    return esfiha, refri


@pytest.fixture
def pedido_25(client, produtos):
    """Order with 2 x 10.00 + 1 x 5.00 = 25.00."""
    esfiha, refri = produtos
    resp = client.post("/orders", json={
        "cliente_nome": "Balcão",
        "items": [
            {"produto_id": esfiha["id"], "quantidade": 2},
            {"produto_id": refri["id"], "quantidade": 1},
        ],
    })
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.fixture
def caixa_aberto(client):
    resp = client.post("/caixa/abrir", json={"valor_inicial": 100})
    assert resp.status_code == 200, resp.text
    return resp.json()

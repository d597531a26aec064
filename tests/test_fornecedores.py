import pytest


@pytest.fixture
def fornecedor(client):
    resp = client.post("/fornecedores", json={
        "nome": "Moinho Paulista Ltda",
        "nome_fantasia": "Farinhas Paulista",
        "cnpj": "12.345.678/0001-90",
        "condicoes_pagamento": "28 dias",
    })
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_crud_de_fornecedores(client, fornecedor):
    assert fornecedor["usuario_id"] is not None
    client.post("/fornecedores", json={"nome": "Distribuidora de Bebidas"})

    assert [f["nome"] for f in client.get("/fornecedores").json()] == ["Distribuidora de Bebidas", "Moinho Paulista Ltda"]
    assert [f["id"] for f in client.get("/fornecedores", params={"search": "farinhas"}).json()] == [fornecedor["id"]]

    payload = dict(fornecedor, telefone="11 3333-4444")
    atualizado = client.put(f"/fornecedores/{fornecedor['id']}", json=payload).json()
    assert atualizado["telefone"] == "11 3333-4444"

    assert client.delete(f"/fornecedores/{fornecedor['id']}").status_code == 200
    assert client.get(f"/fornecedores/{fornecedor['id']}").status_code == 404


def test_despesas_de_fornecedor(client, fornecedor):
    nova = client.post("/fornecedores/despesas", json={
        "fornecedor_id": fornecedor["id"],
        "descricao": "Farinha de trigo 25kg x 10",
        "valor": 890.5,
        "data_emissao": "2026-10-01",
        "data_vencimento": "2026-10-29",
    })
    assert nova.status_code == 200
    despesa = nova.json()
    assert despesa["status"] == "pendente"
    assert despesa["data_pagamento"] is None
    assert despesa["fornecedor_nome"] == "Moinho Paulista Ltda"

    pendentes = client.get("/fornecedores/despesas", params={"status": "pendente"}).json()
    assert [d["id"] for d in pendentes] == [despesa["id"]]

    paga = client.post(f"/fornecedores/despesas/{despesa['id']}/pagar").json()
    assert paga["status"] == "pago"
    assert paga["data_pagamento"] is not None
    assert client.get("/fornecedores/despesas", params={"status": "pendente"}).json() == []

    reaberta = client.put(f"/fornecedores/despesas/{despesa['id']}", json={"status": "pendente", "valor": 900}).json()
    assert reaberta["status"] == "pendente"
    assert reaberta["data_pagamento"] is None
    assert reaberta["valor"] == 900

    assert client.delete(f"/fornecedores/despesas/{despesa['id']}").status_code == 200
    assert client.get("/fornecedores/despesas").json() == []


def test_despesa_validacoes(client, fornecedor):
    base = {"fornecedor_id": fornecedor["id"], "descricao": "Queijo", "valor": 100, "data_emissao": "2026-10-01"}
    assert client.post("/fornecedores/despesas", json=dict(base, valor=0)).status_code == 422
    assert client.post("/fornecedores/despesas", json=dict(base, status="atrasado")).status_code == 400
    assert client.post("/fornecedores/despesas", json=dict(base, fornecedor_id=999)).status_code == 404
    assert client.post("/fornecedores/despesas/999/pagar").status_code == 404


def test_excluir_fornecedor_remove_despesas(client, fornecedor):
    client.post("/fornecedores/despesas", json={
        "fornecedor_id": fornecedor["id"], "descricao": "Óleo", "valor": 50, "data_emissao": "2026-10-02",
    })
    client.delete(f"/fornecedores/{fornecedor['id']}")
    assert client.get("/fornecedores/despesas").json() == []


def test_excluir_fornecedor_preserva_lancamentos(client, fornecedor):
    conta = client.post("/financeiro/lancamentos", json={
        "tipo": "pagar", "descricao": "Farinha", "valor": 80, "fornecedor_id": fornecedor["id"],
    }).json()
    assert client.delete(f"/fornecedores/{fornecedor['id']}").status_code == 200
    client.post("/fornecedores", json={"nome": "Moinho Novo"})

    lancamentos = client.get("/financeiro/lancamentos").json()
    assert [l["id"] for l in lancamentos] == [conta["id"]]
    assert lancamentos[0]["fornecedor_id"] is None

import pytest


@pytest.fixture
def cliente(client):
    resp = client.post("/clients", json={"nome": "Maria Souza", "telefone": "11 99999-0000", "email": "maria@exemplo.com"})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _pedido_fiado(client, cliente, produtos):
    esfiha, refri = produtos
    pedido = client.post("/orders", json={
        "cliente_id": cliente["id"],
        "items": [
            {"produto_id": esfiha["id"], "quantidade": 2},
            {"produto_id": refri["id"], "quantidade": 1},
        ],
    }).json()
    resp = client.post(f"/orders/{pedido['id']}/pagar", json={"forma_pagamento": "fiado"})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_crud_de_clientes(client, cliente):
    assert cliente["saldo_fiado"] == 0

    atualizado = client.put(f"/clients/{cliente['id']}", json={"nome": "Maria S. Lima", "telefone": "11 98888-1111"}).json()
    assert atualizado["nome"] == "Maria S. Lima"
    assert atualizado["email"] is None

    client.post("/clients", json={"nome": "João"})
    assert len(client.get("/clients").json()) == 2
    assert [c["nome"] for c in client.get("/clients", params={"search": "lima"}).json()] == ["Maria S. Lima"]

    assert client.delete(f"/clients/{cliente['id']}").status_code == 200
    assert client.get(f"/clients/{cliente['id']}").status_code == 404


def test_cliente_com_email_invalido(client):
    assert client.post("/clients", json={"nome": "X", "email": "nao-e-email"}).status_code == 422
    assert client.post("/clients", json={"nome": ""}).status_code == 422


def test_pedido_herda_nome_do_cliente(client, cliente, produtos):
    pedido = client.post("/orders", json={
        "cliente_id": cliente["id"],
        "items": [{"produto_id": produtos[0]["id"], "quantidade": 1}],
    }).json()
    assert pedido["cliente_nome"] == "Maria Souza"
    assert pedido["cliente_telefone"] == "11 99999-0000"


def test_pagamento_fiado_soma_ao_saldo_sem_caixa(client, cliente, produtos):
    body = _pedido_fiado(client, cliente, produtos)
    assert body["movimentacao_id"] is None
    assert body["pedido"]["status"] == "pago"
    assert client.get(f"/clients/{cliente['id']}").json()["saldo_fiado"] == 25

    resumo = client.get(f"/clients/{cliente['id']}/fiado").json()
    assert resumo["saldo_fiado"] == 25
    assert resumo["total_pedidos"] == 25
    assert len(resumo["pedidos"]) == 1


def test_fiado_exige_cliente(client, pedido_25):
    resp = client.post(f"/orders/{pedido_25['id']}/pagar", json={"forma_pagamento": "fiado"})
    assert resp.status_code == 400
    assert client.get(f"/orders/{pedido_25['id']}").json()["status"] == "aberto"


def test_quitar_fiado_gera_entrada_no_caixa(client, cliente, produtos, caixa_aberto):
    _pedido_fiado(client, cliente, produtos)

    resp = client.post(f"/clients/{cliente['id']}/fiado/quitar", json={"valor": 10, "forma_pagamento": "pix"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["saldo_fiado"] == 15
    assert body["cliente"]["saldo_fiado"] == 15

    movs = client.get("/caixa/movimentacoes").json()
    assert len(movs) == 1
    assert movs[0]["id"] == body["movimentacao_id"]
    assert movs[0]["tipo"] == "entrada"
    assert movs[0]["valor"] == 10
    assert movs[0]["categoria"] == "fiado"


def test_quitar_fiado_validacoes(client, cliente, produtos, caixa_aberto):
    _pedido_fiado(client, cliente, produtos)
    url = f"/clients/{cliente['id']}/fiado/quitar"

    assert client.post(url, json={"valor": 100}).status_code == 400
    assert client.post(url, json={"valor": 0}).status_code == 400
    assert client.post(url, json={"valor": 5, "forma_pagamento": "fiado"}).status_code == 400
    assert client.post("/clients/999/fiado/quitar", json={"valor": 5}).status_code == 404
    assert client.get(f"/clients/{cliente['id']}").json()["saldo_fiado"] == 25


def test_quitar_fiado_sem_caixa_aberto(client, cliente, produtos):
    _pedido_fiado(client, cliente, produtos)
    resp = client.post(f"/clients/{cliente['id']}/fiado/quitar", json={"valor": 5})
    assert resp.status_code == 409
    assert client.get(f"/clients/{cliente['id']}").json()["saldo_fiado"] == 25


def test_excluir_cliente_desvincula_pedidos(client, cliente, produtos):
    pago = _pedido_fiado(client, cliente, produtos)["pedido"]
    assert client.delete(f"/clients/{cliente['id']}").status_code == 200

    # SQLite hands the freed id to the next customer
    novo = client.post("/clients", json={"nome": "João Pereira"}).json()
    resumo = client.get(f"/clients/{novo['id']}/fiado").json()
    assert resumo["saldo_fiado"] == 0
    assert resumo["pedidos"] == []
    assert client.get("/orders", params={"cliente_id": novo["id"]}).json() == []

    pedido = client.get(f"/orders/{pago['id']}").json()
    assert pedido["cliente_id"] is None
    assert pedido["cliente_nome"] == "Maria Souza"


def test_excluir_pedido_fiado_estorna_saldo(client, cliente, produtos):
    primeiro = _pedido_fiado(client, cliente, produtos)["pedido"]
    _pedido_fiado(client, cliente, produtos)
    assert client.get(f"/clients/{cliente['id']}").json()["saldo_fiado"] == 50

    assert client.delete(f"/orders/{primeiro['id']}").status_code == 200
    assert client.get(f"/clients/{cliente['id']}").json()["saldo_fiado"] == 25
    assert len(client.get(f"/clients/{cliente['id']}/fiado").json()["pedidos"]) == 1


def test_estorno_de_fiado_nao_deixa_saldo_negativo(client, cliente, produtos, caixa_aberto):
    pago = _pedido_fiado(client, cliente, produtos)["pedido"]
    client.post(f"/clients/{cliente['id']}/fiado/quitar", json={"valor": 10, "forma_pagamento": "pix"})

    assert client.post("/rpc/delete_order", json={"order_id_to_delete": pago["id"]}).status_code == 200
    assert client.get(f"/clients/{cliente['id']}").json()["saldo_fiado"] == 0


def test_excluir_pedido_pago_no_caixa_nao_mexe_no_fiado(client, cliente, produtos, caixa_aberto):
    _pedido_fiado(client, cliente, produtos)
    avista = client.post("/orders", json={
        "cliente_id": cliente["id"],
        "items": [{"produto_id": produtos[1]["id"], "quantidade": 2}],
    }).json()
    client.post(f"/orders/{avista['id']}/pagar", json={"forma_pagamento": "pix"})

    client.delete(f"/orders/{avista['id']}")
    assert client.get(f"/clients/{cliente['id']}").json()["saldo_fiado"] == 25

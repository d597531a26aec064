import pytest

from app.core.timezone_utils import today_in_brazil
from app.services import auth as auth_service


def test_metas_padrao_e_orcamento(client):
    metas = client.get("/financeiro/metas").json()
    assert metas["faturamento_mensal"] == 15000
    assert metas["despesas_mensais"] == 8000
    assert metas["margem_lucro"] == pytest.approx(0.30)

    orc = client.get("/financeiro/orcamento").json()
    assert orc["lucro_projetado"] == 4500
    assert orc["realizado"] == {"faturamento": 0, "despesas": 0, "lucro": 0}
    assert orc["atingimento_faturamento"] == 0


def test_atualizar_metas(client):
    resp = client.put("/financeiro/metas", json={"faturamento_mensal": 20000, "margem_lucro": 0.25})
    assert resp.status_code == 200
    assert resp.json()["despesas_mensais"] == 8000
    assert client.get("/financeiro/orcamento").json()["lucro_projetado"] == 5000
    assert client.put("/financeiro/metas", json={"margem_lucro": 1.5}).status_code == 422


def test_metas_restritas_a_admin_e_gerente(client, make_user):
    atendente = make_user("caixa@esfiharia.com.br")
    token = auth_service.create_access_token({"sub": atendente.email})
    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/financeiro/metas", headers=headers).status_code == 200
    assert client.put("/financeiro/metas", json={"faturamento_mensal": 1}, headers=headers).status_code == 403
    assert client.put("/financeiro/balanco-manual", json={"equipamentos": 1}, headers=headers).status_code == 403


def test_balanco_manual_padrao(client):
    manual = client.get("/financeiro/balanco-manual").json()
    assert manual["equipamentos"] == 8000
    assert manual["emprestimos"] == 3000
    atualizado = client.put("/financeiro/balanco-manual", json={"emprestimos": 2500}).json()
    assert atualizado["equipamentos"] == 8000
    assert atualizado["emprestimos"] == 2500


def test_balanco_patrimonial(client):
    client.post("/products", json={"nome": "Queijo", "preco": 0, "preco_custo": 2.5, "estoque": 10})
    client.post("/products", json={"nome": "Sem custo", "preco": 3, "estoque": 100})
    client.post("/caixa/abrir", json={"valor_inicial": 100})
    conta = client.post("/financeiro/lancamentos", json={"tipo": "pagar", "descricao": "Farinha", "valor": 500}).json()
    client.post("/financeiro/lancamentos", json={"tipo": "receber", "valor": 70})

    bal = client.get("/financeiro/balanco").json()
    assert bal["ativos"] == {"caixa": 100, "estoque": 25, "equipamentos": 8000, "total": 8125}
    assert bal["passivos"] == {"fornecedores": 500, "emprestimos": 3000, "total": 3500}
    assert bal["patrimonio_liquido"] == 4625

    pago = client.post(f"/financeiro/lancamentos/{conta['id']}/pagar").json()
    assert pago["pago"] is True
    assert client.get("/financeiro/balanco").json()["passivos"]["fornecedores"] == 0


def test_lancamento_tipo_invalido(client):
    assert client.post("/financeiro/lancamentos", json={"tipo": "doar", "valor": 10}).status_code == 400
    assert client.post("/financeiro/lancamentos", json={"tipo": "pagar", "valor": 0}).status_code == 422
    assert client.post("/financeiro/lancamentos", json={"tipo": "pagar", "valor": 5, "fornecedor_id": 77}).status_code == 404


def test_dre(client, pedido_25, produtos, caixa_aberto):
    client.post(f"/orders/{pedido_25['id']}/pagar", json={"forma_pagamento": "pix"})
    # unpaid orders are not revenue
    client.post("/orders", json={"items": [{"produto_id": produtos[0]["id"], "quantidade": 5}]})
    client.post("/financeiro/custos-variaveis", json={"nome": "Carne moída", "valor": 10, "data": today_in_brazil().isoformat()})
    client.post("/financeiro/custos-variaveis", json={"nome": "Antigo", "valor": 999, "data": "2001-01-01"})
    client.post("/financeiro/custos-fixos", json={"nome": "Aluguel", "valor": 100})

    dre = client.get("/financeiro/dre").json()
    assert dre["receitas"] == 25
    assert dre["custo_mercadorias"] == 10
    assert dre["lucro_bruto"] == 15
    assert dre["despesas_operacionais"] == 100
    assert dre["lucro_liquido"] == -85
    assert dre["margem_liquida"] == pytest.approx(-3.4)
    assert client.get("/financeiro/dre", params={"dias": 0}).status_code == 400


def test_analise_diaria(client):
    client.post("/caixa/abrir", json={"valor_inicial": 50})
    client.post("/caixa/movimentacoes", json={"tipo": "entrada", "valor": 30})
    client.post("/caixa/movimentacoes", json={"tipo": "saida", "valor": 10})

    analise = client.get("/financeiro/analise-diaria").json()
    assert analise["data"] == today_in_brazil().isoformat()
    assert analise["receita"] == 30
    assert analise["despesas"] == 10
    assert analise["lucro"] == 20
    assert analise["saldo"] == 50
    assert analise["movimentacoes"] == 2


def test_custos_crud(client):
    fixo = client.post("/financeiro/custos-fixos", json={"nome": "Energia", "valor": 450}).json()
    assert fixo["frequencia"] == "Mensal"
    editado = client.put(f"/financeiro/custos-fixos/{fixo['id']}", json={"nome": "Energia", "valor": 480, "frequencia": "Mensal"}).json()
    assert editado["valor"] == 480
    assert client.delete(f"/financeiro/custos-fixos/{fixo['id']}").status_code == 200
    assert client.get("/financeiro/custos-fixos").json() == []

    assert client.post("/financeiro/custos-variaveis", json={"nome": "X", "valor": -1, "data": "2026-10-01"}).status_code == 422
    assert client.delete("/financeiro/custos-variaveis/1").status_code == 404

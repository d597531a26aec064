def test_sem_caixa_aberto_retorna_null(client):
    resp = client.get("/caixa/atual")
    assert resp.status_code == 200
    assert resp.json() is None
    assert client.get("/caixa/resumo").json() is None
    assert client.get("/caixa/movimentacoes").json() == []


def test_abrir_movimentar_e_fechar(client):
    caixa = client.post("/caixa/abrir", json={"valor_inicial": 100}).json()
    assert caixa["valor_inicial"] == 100
    assert caixa["fechado_em"] is None

    r1 = client.post("/caixa/movimentacoes", json={"tipo": "entrada", "valor": 50, "observacao": "troco extra"})
    r2 = client.post("/caixa/movimentacoes", json={"tipo": "saída", "valor": 20, "observacao": "gás"})
    assert r1.status_code == 200 and r2.status_code == 200
    assert r2.json()["tipo"] == "saida"

    resumo = client.get(f"/caixa/{caixa['id']}/resumo").json()
    assert resumo == {"caixa_id": caixa["id"], "inicial": 100, "entradas": 50, "saidas": 20, "saldo": 130}

    movs = client.get("/caixa/movimentacoes").json()
    assert [m["valor"] for m in movs] == [20, 50]

    fechado = client.post("/caixa/fechar", json={}).json()
    assert fechado["fechado_em"] is not None
    assert fechado["valor_fechamento"] == 130
    assert fechado["valor_contado"] is None
    assert client.get("/caixa/atual").json() is None


def test_fechar_com_valor_contado_registra_diferenca(client):
    client.post("/caixa/abrir", json={"valor_inicial": 100})
    client.post("/caixa/movimentacoes", json={"tipo": "entrada", "valor": 30})
    fechado = client.post("/caixa/fechar", json={"valor_contado": 125}).json()
    assert fechado["valor_fechamento"] == 130
    assert fechado["valor_contado"] == 125
    assert fechado["diferenca"] == -5


def test_reabrir_e_fechar_sem_movimento_sem_diferenca(client):
    client.post("/caixa/abrir", json={"valor_inicial": 100})
    client.post("/caixa/fechar", json={})

    segundo = client.post("/caixa/abrir", json={"valor_inicial": 130})
    assert segundo.status_code == 200
    fechado = client.post("/caixa/fechar", json={"valor_contado": 130}).json()
    assert fechado["id"] == segundo.json()["id"]
    assert fechado["valor_fechamento"] == 130
    assert fechado["diferenca"] == 0

    historico = client.get("/caixa/historico").json()
    assert len(historico) == 2
    assert historico[0]["id"] == fechado["id"]


def test_segundo_caixa_aberto_conflita(client, caixa_aberto):
    resp = client.post("/caixa/abrir", json={"valor_inicial": 10})
    assert resp.status_code == 409
    assert len(client.get("/caixa/historico").json()) == 1


def test_valor_inicial_negativo_rejeitado(client):
    resp = client.post("/caixa/abrir", json={"valor_inicial": -1})
    assert resp.status_code == 400
    assert client.get("/caixa/atual").json() is None


def test_valor_inicial_nao_numerico_rejeitado(client):
    resp = client.post("/caixa/abrir", json={"valor_inicial": "cem"})
    assert resp.status_code == 422


def test_movimentacao_com_valor_invalido(client, caixa_aberto):
    assert client.post("/caixa/movimentacoes", json={"tipo": "entrada", "valor": 0}).status_code == 400
    assert client.post("/caixa/movimentacoes", json={"tipo": "saida", "valor": -5}).status_code == 400
    assert client.post("/caixa/movimentacoes", json={"tipo": "entrada", "valor": "x"}).status_code == 422
    assert client.get("/caixa/movimentacoes").json() == []


def test_movimentacao_com_tipo_invalido(client, caixa_aberto):
    resp = client.post("/caixa/movimentacoes", json={"tipo": "sangria", "valor": 10})
    assert resp.status_code == 400


def test_movimentacao_sem_caixa_aberto(client):
    resp = client.post("/caixa/movimentacoes", json={"tipo": "entrada", "valor": 10})
    assert resp.status_code == 409


def test_movimentacao_em_caixa_fechado(client, caixa_aberto):
    client.post("/caixa/fechar", json={})
    resp = client.post("/caixa/movimentacoes", json={"tipo": "entrada", "valor": 10, "caixa_id": caixa_aberto["id"]})
    assert resp.status_code == 409


def test_fechar_caixa_ja_fechado(client, caixa_aberto):
    assert client.post("/caixa/fechar", json={"caixa_id": caixa_aberto["id"]}).status_code == 200
    assert client.post("/caixa/fechar", json={"caixa_id": caixa_aberto["id"]}).status_code == 409
    assert client.post("/caixa/fechar", json={}).status_code == 409


def test_excluir_movimentacao(client, caixa_aberto):
    mov = client.post("/caixa/movimentacoes", json={"tipo": "saida", "valor": 15}).json()
    resp = client.delete(f"/caixa/movimentacoes/{mov['id']}")
    assert resp.status_code == 200
    assert client.get("/caixa/resumo").json()["saldo"] == 100
    assert client.delete(f"/caixa/movimentacoes/{mov['id']}").status_code == 404


def test_movimentacoes_por_data(client, caixa_aberto):
    from app.core.timezone_utils import today_in_brazil

    client.post("/caixa/movimentacoes", json={"tipo": "entrada", "valor": 12})
    hoje = client.get("/caixa/movimentacoes", params={"data": today_in_brazil().isoformat()}).json()
    assert len(hoje) == 1
    assert client.get("/caixa/movimentacoes", params={"data": "2001-01-01"}).json() == []
    assert client.get("/caixa/movimentacoes", params={"data": "ontem"}).status_code == 400


def test_detalhe_do_caixa_inclui_movimentacoes(client, caixa_aberto):
    client.post("/caixa/movimentacoes", json={"tipo": "entrada", "valor": 1})
    detalhe = client.get(f"/caixa/{caixa_aberto['id']}").json()
    assert len(detalhe["movimentacoes"]) == 1
    assert client.get("/caixa/9999").status_code == 404


def test_caixa_exige_autenticacao(anon_client):
    assert anon_client.get("/caixa/atual").status_code == 401

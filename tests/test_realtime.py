import asyncio
from decimal import Decimal

import pytest
from fastapi import HTTPException
from starlette.websockets import WebSocketDisconnect

from app.routes.realtime import _resolve_feed, _stop_task
from app.utils import pubsub


def test_parse_filter():
    assert pubsub.parse_filter(None) == {}
    assert pubsub.parse_filter("cliente_id=eq.5") == {"cliente_id": "5"}
    assert pubsub.parse_filter("status.eq.aberto, mesa=eq.7") == {"status": "aberto", "mesa": "7"}
    with pytest.raises(ValueError):
        pubsub.parse_filter("total>10")


def test_publish_respeita_tabela_e_filtro():
    async def scenario():
        todos = pubsub.subscribe("pedidos")
        so_o_dois = pubsub.subscribe("pedidos", {"id": "2"})
        outra_tabela = pubsub.subscribe("produtos")

        pubsub.publish("pedidos", "INSERT", {"id": 1, "total": Decimal("10.50")})
        pubsub.publish("pedidos", "UPDATE", {"id": 2, "status": "pronto"})

        primeiro = await asyncio.wait_for(todos.queue.get(), 1)
        segundo = await asyncio.wait_for(todos.queue.get(), 1)
        filtrado = await asyncio.wait_for(so_o_dois.queue.get(), 1)
        return primeiro, segundo, filtrado, so_o_dois.queue.qsize(), outra_tabela.queue.qsize()

    primeiro, segundo, filtrado, restantes, outros = asyncio.run(scenario())
    assert primeiro == {"type": "pedidos", "action": "INSERT", "record": {"id": 1, "total": 10.5}}
    assert segundo["action"] == "UPDATE"
    assert filtrado["record"] == {"id": 2, "status": "pronto"}
    assert restantes == 0
    assert outros == 0
    assert pubsub.get_status() == {"subscribers": 3, "by_table": {"pedidos": 2, "produtos": 1}}


def test_unsubscribe():
    async def scenario():
        sub = pubsub.subscribe("caixas")
        pubsub.unsubscribe(sub)
        pubsub.unsubscribe(sub)
        pubsub.publish("caixas", "INSERT", {"id": 1})
        await asyncio.sleep(0)
        return sub.queue.qsize()

    assert asyncio.run(scenario()) == 0
    assert pubsub.get_status()["subscribers"] == 0


def test_feed_de_auth_restrito_ao_proprio_usuario():
    atendente = {"email": "balcao@esfiharia.com.br", "papel": "atendente"}
    admin = {"email": "dono@esfiharia.com.br", "papel": "admin"}
    assert _resolve_feed("auth", "user_email=eq.outro@x.com", atendente) == {"user_email": "balcao@esfiharia.com.br"}
    assert _resolve_feed("auth", None, admin) == {}
    with pytest.raises(HTTPException) as exc:
        _resolve_feed("tabela_secreta", None, admin)
    assert exc.value.status_code == 404
    with pytest.raises(HTTPException) as exc:
        _resolve_feed("pedidos", "lixo", admin)
    assert exc.value.status_code == 400


def test_websocket_recebe_mudancas(client, admin_token):
    with client.websocket_connect(f"/realtime/categorias/ws?token={admin_token}") as ws:
        ack = ws.receive_json()
        assert ack["type"] == "system"
        assert ack["action"] == "SUBSCRIBED"
        assert ack["record"]["table"] == "categorias"

        criada = client.post("/categorias", json={"nome": "Esfihas abertas"}).json()
        evento = ws.receive_json()
        assert evento["type"] == "categorias"
        assert evento["action"] == "INSERT"
        assert evento["record"] == {"id": criada["id"], "nome": "Esfihas abertas"}


def test_websocket_com_filtro(client, admin_token, pedido_25):
    url = f"/realtime/pedidos/ws?token={admin_token}&filter=id=eq.{pedido_25['id']}"
    with client.websocket_connect(url) as ws:
        ws.receive_json()
        client.patch(f"/orders/{pedido_25['id']}/status", json={"status": "pronto"})
        evento = ws.receive_json()
        assert evento["action"] == "UPDATE"
        assert evento["record"]["status"] == "pronto"


def test_websocket_sem_token_e_recusado(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/realtime/pedidos/ws"):
            pass
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/realtime/pedidos/ws?token=invalido"):
            pass


def test_stream_exige_token_e_feed_conhecido(anon_client, admin_token):
    assert anon_client.get("/realtime/pedidos/stream").status_code == 401
    assert anon_client.get(f"/realtime/nada/stream?token={admin_token}").status_code == 404


def test_status_publico(anon_client):
    assert anon_client.get("/realtime/status").json() == {"subscribers": 0, "by_table": {}}


def test_stop_task_recolhe_falha_do_envio():
    async def scenario():
        async def envio_quebrado():
            raise RuntimeError("socket fechado")

        async def envio_parado():
            await asyncio.Event().wait()

        quebrado = asyncio.create_task(envio_quebrado())
        parado = asyncio.create_task(envio_parado())
        await asyncio.sleep(0)
        return await _stop_task(quebrado), await _stop_task(parado), parado.cancelled()

    falha, cancelado, foi_cancelado = asyncio.run(scenario())
    assert isinstance(falha, RuntimeError)
    assert isinstance(cancelado, asyncio.CancelledError)
    assert foi_cancelado


def test_websocket_troca_de_itens_publica_remocoes(client, admin_token, pedido_25, produtos):
    _, refri = produtos
    antigos = sorted(it["id"] for it in pedido_25["items"])
    url = f"/realtime/pedido_items/ws?token={admin_token}&filter=pedido_id=eq.{pedido_25['id']}"
    with client.websocket_connect(url) as ws:
        ws.receive_json()
        client.put(f"/orders/{pedido_25['id']}", json={"items": [{"produto_id": refri["id"], "quantidade": 3}]})
        eventos = [ws.receive_json() for _ in range(3)]

    assert [e["action"] for e in eventos] == ["DELETE", "DELETE", "INSERT"]
    assert sorted(e["record"]["id"] for e in eventos[:2]) == antigos
    assert eventos[2]["record"]["produto_id"] == refri["id"]


def test_websocket_excluir_pedido_pago_atualiza_movimentacao(client, admin_token, pedido_25, caixa_aberto):
    pago = client.post(f"/orders/{pedido_25['id']}/pagar", json={"forma_pagamento": "pix"}).json()
    with client.websocket_connect(f"/realtime/caixa_movimentacoes/ws?token={admin_token}") as ws:
        ws.receive_json()
        client.delete(f"/orders/{pedido_25['id']}")
        evento = ws.receive_json()

    assert evento["action"] == "UPDATE"
    assert evento["record"]["id"] == pago["movimentacao_id"]
    assert evento["record"]["pedido_id"] is None

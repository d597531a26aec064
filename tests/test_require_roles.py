import pytest
from fastapi import HTTPException

from app.models.user import RoleEnum
from app.services.auth import require_roles


class DummyUser:
    def __init__(self, papel):
        self.papel = papel


@pytest.mark.parametrize("papel", [RoleEnum.gerente, "admin", RoleEnum.admin])
def test_papel_permitido(papel):
    checker = require_roles("admin", "gerente")
    user = DummyUser(papel)
    assert checker(current_user=user) is user


@pytest.mark.parametrize("papel", [RoleEnum.atendente, "outro", None])
def test_papel_negado(papel):
    checker = require_roles("admin", "gerente")
    with pytest.raises(HTTPException) as exc:
        checker(current_user=DummyUser(papel))
    assert exc.value.status_code == 403

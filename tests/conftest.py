"""
Fixtures do pytest para a tesouraria

Provides:
- app Flask em modo testing (SQLite em memória, tabelas recriadas por teste)
- cliente HTTP de teste
- operadores (admin, editor, viewer)
- fábricas de contas bancárias e contas a pagar/receber
"""
from datetime import date, timedelta

import pytest

from tesouraria.app import create_app
from tesouraria.models import db as _db
from tesouraria.services.autorizacao import Operador
from tesouraria.services.conta_bancaria_service import ContaBancariaService
from tesouraria.services.obrigacao_service import ObrigacaoService


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


# ============================================================================
# OPERADORES
# ============================================================================

@pytest.fixture
def admin():
    return Operador(id='admin-1', papel='admin')


@pytest.fixture
def editor():
    return Operador(id='editor-1', papel='editor')


@pytest.fixture
def viewer():
    return Operador(id='viewer-1', papel='viewer')


# ============================================================================
# FÁBRICAS
# ============================================================================

@pytest.fixture
def criar_conta(app, admin):
    def _criar(nome='Conta Principal', saldo_inicial='1000.00', tipo='banco'):
        return ContaBancariaService.criar(
            {'nome': nome, 'tipo': tipo, 'saldo_inicial': saldo_inicial}, admin
        )
    return _criar


@pytest.fixture
def criar_obrigacao(app, admin):
    def _criar(tipo='pagar', valor_nominal='1000.00', data_vencimento=None, **extra):
        dados = {
            'descricao': extra.pop('descricao', 'Aluguel do galpão'),
            'valor_nominal': valor_nominal,
            'data_vencimento': data_vencimento or date.today() + timedelta(days=10),
        }
        dados.update(extra)
        return ObrigacaoService.criar(tipo, dados, admin)[0]
    return _criar

from decimal import Decimal

import pytest

from tesouraria.models import MovimentoCredito
from tesouraria.services.credito_service import CreditoService
from tesouraria.services.erros import (ExcedeValorNominalError, MovimentoInicialDuplicadoError,
                                       PermissaoNegadaError, SaldoCreditoInsuficienteError,
                                       ValidacaoError)


@pytest.fixture
def credito(app, admin):
    return CreditoService.criar({
        'credor_id': 'emp-10',
        'credor_tipo': 'empresa',
        'origem': 'Consórcio imobiliário',
        'valor_nominal': '10000.00',
        'data_inicio': '2024-01-01',
    }, admin)


def test_criar_registra_movimento_inicial(credito):
    assert credito.codigo == 'CRED-0001'
    assert credito.saldo_atual == Decimal('10000.00')

    movimentos = CreditoService.movimentos(credito.id)
    assert len(movimentos) == 1
    assert movimentos[0].tipo == 'inicial'
    assert movimentos[0].saldo_apos == Decimal('10000.00')


def test_saldo_inicial_menor_que_nominal(app, admin):
    credito = CreditoService.criar({
        'credor_id': 'p-1', 'credor_tipo': 'pessoa', 'origem': 'Carta de crédito',
        'valor_nominal': '5000.00', 'saldo_inicial': '2000.00'
    }, admin)
    assert credito.saldo_atual == Decimal('2000.00')


def test_saldo_inicial_fora_dos_limites(app, admin):
    with pytest.raises(ValidacaoError) as exc:
        CreditoService.criar({
            'credor_id': 'p-1', 'credor_tipo': 'pessoa', 'origem': 'Carta de crédito',
            'valor_nominal': '5000.00', 'saldo_inicial': '5000.01'
        }, admin)
    assert 'saldo_inicial' in exc.value.field_errors


def test_deducao_estorno_e_ajuste(credito, editor):
    CreditoService.aplicar_movimento(credito.id, 'deducao', '2500.00', 'Lance', editor)
    movimento = CreditoService.aplicar_movimento(credito.id, 'estorno', '500.00', None, editor)
    assert movimento.saldo_apos == Decimal('8000.00')
    assert movimento.descricao == 'Estorno'

    movimento = CreditoService.aplicar_movimento(credito.id, 'ajuste', '0', 'Zerado', editor)
    assert movimento.saldo_apos == Decimal('0.00')
    assert CreditoService.obter(credito.id).saldo_atual == Decimal('0.00')


def test_deducao_acima_do_saldo(credito, admin):
    with pytest.raises(SaldoCreditoInsuficienteError):
        CreditoService.aplicar_movimento(credito.id, 'deducao', '10000.01', 'Excesso', admin)

    assert CreditoService.obter(credito.id).saldo_atual == Decimal('10000.00')
    assert MovimentoCredito.query.count() == 1


def test_estorno_acima_do_nominal(credito, admin):
    CreditoService.aplicar_movimento(credito.id, 'deducao', '100.00', 'Uso', admin)
    with pytest.raises(ExcedeValorNominalError):
        CreditoService.aplicar_movimento(credito.id, 'estorno', '100.01', 'Excesso', admin)
    with pytest.raises(ExcedeValorNominalError):
        CreditoService.aplicar_movimento(credito.id, 'ajuste', '10000.01', 'Excesso', admin)


def test_inicial_apenas_uma_vez(credito, admin):
    with pytest.raises(MovimentoInicialDuplicadoError):
        CreditoService.aplicar_movimento(credito.id, 'inicial', '1.00', None, admin)


def test_tipo_e_valor_invalidos(credito, admin):
    with pytest.raises(ValidacaoError):
        CreditoService.aplicar_movimento(credito.id, 'saque', '1.00', None, admin)
    with pytest.raises(ValidacaoError):
        CreditoService.aplicar_movimento(credito.id, 'deducao', '0', None, admin)


def test_viewer_nao_movimenta(credito, viewer):
    with pytest.raises(PermissaoNegadaError):
        CreditoService.aplicar_movimento(credito.id, 'deducao', '1.00', None, viewer)


def test_atualizar_nao_altera_saldo(credito, admin):
    with pytest.raises(ValidacaoError):
        CreditoService.atualizar(credito.id, {'saldo_atual': '1.00'}, admin)

    atualizado = CreditoService.atualizar(credito.id, {'status': 'comprometido', 'taxa_juros': 'INCC'}, admin)
    assert atualizado.status == 'comprometido'
    assert atualizado.taxa_juros == 'INCC'


def test_reconstruir_saldo_pela_trilha(db, credito, admin):
    CreditoService.aplicar_movimento(credito.id, 'deducao', '1000.00', 'Uso', admin)
    credito = CreditoService.obter(credito.id)
    credito.saldo_atual = Decimal('1.00')
    db.session.commit()

    resultado = CreditoService.reconstruir_saldo(credito.id, admin)

    assert resultado['saldo_reconstruido'] == 9000.0
    assert resultado['diferenca'] == 8999.0
    assert CreditoService.obter(credito.id).saldo_atual == Decimal('9000.00')


def test_listar_por_status(credito, admin):
    CreditoService.criar({
        'credor_id': 'p-2', 'credor_tipo': 'pessoa', 'origem': 'Outro', 'valor_nominal': '1.00'
    }, admin)
    CreditoService.atualizar(credito.id, {'status': 'vendido'}, admin)

    assert [c.id for c in CreditoService.listar({'status': 'vendido'})] == [credito.id]
    assert len(CreditoService.listar()) == 2


def test_listar_por_texto_livre(credito, admin):
    outro = CreditoService.criar({
        'credor_id': 'p-3', 'credor_tipo': 'pessoa', 'origem': 'Carta de crédito',
        'valor_nominal': '1.00', 'observacoes': 'Grupo 1234 cota 56'
    }, admin)

    assert [c.id for c in CreditoService.listar({'busca': 'imobiliário'})] == [credito.id]
    assert [c.id for c in CreditoService.listar({'busca': 'COTA 56'})] == [outro.id]
    assert CreditoService.listar({'busca': 'inexistente'}) == []

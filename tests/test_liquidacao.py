from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text

from tesouraria.models import ContaBancaria, ContaPagar, MovimentoCaixa, PagamentoContaPagar
from tesouraria.services.conta_bancaria_service import ContaBancariaService
from tesouraria.services.erros import (ConflitoConcorrenciaError, ContaBancariaInativaError,
                                       DiaFechadoError, NaoEncontradoError,
                                       ObrigacaoNaoLiquidavelError, PermissaoNegadaError,
                                       SaldoInsuficienteError, ValidacaoError,
                                       ValorExcedeRestanteError)
from tesouraria.services.fechamento_caixa_service import FechamentoCaixaService
from tesouraria.services.liquidacao_service import LiquidacaoService
from tesouraria.services.obrigacao_service import ObrigacaoService


def contexto(conta, **extra):
    dados = {'conta_bancaria_id': conta.id, 'forma_pagamento': 'PIX'}
    dados.update(extra)
    return dados


def test_pagamentos_parciais_ate_quitar(criar_conta, criar_obrigacao, editor):
    conta = criar_conta(saldo_inicial='5000.00')
    obrigacao = criar_obrigacao(valor_nominal='1000.00')

    LiquidacaoService.liquidar_uma('pagar', obrigacao.id,
                                   contexto(conta, valor_pagamento='400.00'), editor)
    obrigacao = ObrigacaoService.obter('pagar', obrigacao.id)
    assert obrigacao.valor_restante == Decimal('600.00')
    assert obrigacao.status == 'parcialmente_pago'

    LiquidacaoService.liquidar_uma('pagar', obrigacao.id,
                                   contexto(conta, valor_pagamento='600.00'), editor)
    obrigacao = ObrigacaoService.obter('pagar', obrigacao.id)
    assert obrigacao.valor_restante == Decimal('0.00')
    assert obrigacao.status == 'quitado'

    with pytest.raises(ValorExcedeRestanteError):
        LiquidacaoService.liquidar_uma('pagar', obrigacao.id,
                                       contexto(conta, valor_pagamento='0.01'), editor)

    assert ContaBancariaService.obter(conta.id).saldo_atual == Decimal('4000.00')
    assert MovimentoCaixa.query.count() == 2


def test_conservacao_entre_caixa_saldo_e_contas(criar_conta, criar_obrigacao, admin):
    conta = criar_conta(saldo_inicial='1000.00')
    receber = criar_obrigacao(tipo='receber', valor_nominal='700.00')
    pagar_a = criar_obrigacao(valor_nominal='300.00')
    pagar_b = criar_obrigacao(valor_nominal='150.00')

    LiquidacaoService.liquidar('receber', [{'obrigacao_id': receber.id, 'valor_pagamento': '700.00'}],
                               contexto(conta), admin)
    resultado = LiquidacaoService.liquidar('pagar', [
        {'obrigacao_id': pagar_a.id, 'valor_pagamento': '300.00'},
        {'obrigacao_id': pagar_b.id, 'valor_pagamento': '100.00'},
    ], contexto(conta), admin)

    assert resultado['processados'] == 2
    assert [m['tipo'] for m in resultado['movimentos']] == ['saida', 'saida']
    assert resultado['movimentos'][0]['descricao'] == 'Pagamento: Aluguel do galpão'

    conta = ContaBancariaService.obter(conta.id)
    assert conta.saldo_atual == Decimal('1000.00') + Decimal('700.00') - Decimal('400.00')
    assert ContaBancariaService.calcular_saldo(conta) == conta.saldo_atual


def test_lote_atomico_com_linha_invalida(db, criar_conta, criar_obrigacao, admin):
    conta = criar_conta(saldo_inicial='1000.00')
    obrigacoes = [criar_obrigacao(valor_nominal='100.00') for _ in range(3)]

    with pytest.raises(ValorExcedeRestanteError) as exc:
        LiquidacaoService.liquidar('pagar', [
            {'obrigacao_id': obrigacoes[0].id, 'valor_pagamento': '50.00'},
            {'obrigacao_id': obrigacoes[1].id, 'valor_pagamento': '150.00'},
            {'obrigacao_id': obrigacoes[2].id, 'valor_pagamento': '100.00'},
        ], contexto(conta), admin)

    assert exc.value.detalhes['linha'] == 1
    assert exc.value.detalhes['obrigacao_id'] == obrigacoes[1].id
    for obrigacao in obrigacoes:
        atual = db.session.get(ContaPagar, obrigacao.id)
        assert atual.valor_pago == Decimal('0.00')
        assert atual.status == 'em_aberto'
    assert MovimentoCaixa.query.count() == 0
    assert PagamentoContaPagar.query.count() == 0
    assert db.session.get(ContaBancaria, conta.id).saldo_atual == Decimal('1000.00')


def test_mesma_conta_em_duas_linhas_valida_acumulado(criar_conta, criar_obrigacao, admin):
    conta = criar_conta()
    obrigacao = criar_obrigacao(valor_nominal='100.00')
    linhas = [
        {'obrigacao_id': obrigacao.id, 'valor_pagamento': '60.00'},
        {'obrigacao_id': obrigacao.id, 'valor_pagamento': '50.00'},
    ]

    with pytest.raises(ValorExcedeRestanteError) as exc:
        LiquidacaoService.liquidar('pagar', linhas, contexto(conta), admin)
    assert exc.value.detalhes['linha'] == 1

    linhas[1]['valor_pagamento'] = '40.00'
    LiquidacaoService.liquidar('pagar', linhas, contexto(conta), admin)
    assert ObrigacaoService.obter('pagar', obrigacao.id).status == 'quitado'


def test_conta_vencida_aceita_pagamento(criar_conta, criar_obrigacao, admin):
    conta = criar_conta()
    obrigacao = criar_obrigacao(valor_nominal='100.00', data_vencimento=date.today() - timedelta(days=2))

    LiquidacaoService.liquidar_uma('pagar', obrigacao.id, contexto(conta, valor_pagamento='30.00'), admin)

    assert ObrigacaoService.obter('pagar', obrigacao.id).status == 'vencido'


def test_conta_cancelada_nao_aceita_pagamento(criar_conta, criar_obrigacao, admin):
    conta = criar_conta()
    obrigacao = criar_obrigacao()
    ObrigacaoService.cancelar('pagar', obrigacao.id, admin)

    with pytest.raises(ObrigacaoNaoLiquidavelError):
        LiquidacaoService.liquidar_uma('pagar', obrigacao.id, contexto(conta, valor_pagamento='1.00'), admin)


def test_conta_bancaria_inativa(criar_conta, criar_obrigacao, admin):
    conta = criar_conta()
    obrigacao = criar_obrigacao()
    ContaBancariaService.inativar(conta.id, admin)

    with pytest.raises(ContaBancariaInativaError):
        LiquidacaoService.liquidar_uma('pagar', obrigacao.id, contexto(conta, valor_pagamento='1.00'), admin)


def test_obrigacao_inexistente_informa_linha(criar_conta, admin):
    conta = criar_conta()
    with pytest.raises(NaoEncontradoError) as exc:
        LiquidacaoService.liquidar('pagar', [{'obrigacao_id': 999, 'valor_pagamento': '1.00'}],
                                   contexto(conta), admin)
    assert exc.value.detalhes['linha'] == 0


@pytest.mark.parametrize('valor', ['0', '-10.00', 'abc', None])
def test_valor_nao_positivo(criar_conta, criar_obrigacao, admin, valor):
    conta = criar_conta()
    obrigacao = criar_obrigacao()
    with pytest.raises(ValidacaoError):
        LiquidacaoService.liquidar_uma('pagar', obrigacao.id, contexto(conta, valor_pagamento=valor), admin)


def test_contexto_obrigatorio(criar_obrigacao, admin):
    obrigacao = criar_obrigacao()
    with pytest.raises(ValidacaoError) as exc:
        LiquidacaoService.liquidar('pagar', [{'obrigacao_id': obrigacao.id, 'valor_pagamento': '1'}], {}, admin)
    assert {'conta_bancaria_id', 'forma_pagamento'} <= set(exc.value.field_errors)


def test_viewer_nao_liquida(criar_conta, criar_obrigacao, viewer):
    conta = criar_conta()
    obrigacao = criar_obrigacao()
    with pytest.raises(PermissaoNegadaError):
        LiquidacaoService.liquidar_uma('pagar', obrigacao.id, contexto(conta, valor_pagamento='1.00'), viewer)


def test_saldo_insuficiente_quando_configurado(app, criar_conta, criar_obrigacao, admin):
    conta = criar_conta(saldo_inicial='100.00')
    obrigacao = criar_obrigacao(valor_nominal='500.00')
    recebivel = criar_obrigacao(tipo='receber', valor_nominal='500.00')
    app.config['EXIGIR_SALDO_SUFICIENTE'] = True

    with pytest.raises(SaldoInsuficienteError):
        LiquidacaoService.liquidar_uma('pagar', obrigacao.id, contexto(conta, valor_pagamento='100.01'), admin)

    LiquidacaoService.liquidar_uma('pagar', obrigacao.id, contexto(conta, valor_pagamento='100.00'), admin)
    LiquidacaoService.liquidar_uma('receber', recebivel.id, contexto(conta, valor_pagamento='500.00'), admin)
    assert ContaBancariaService.obter(conta.id).saldo_atual == Decimal('500.00')


def test_historico_registra_pagamento(criar_conta, criar_obrigacao, editor):
    conta = criar_conta()
    obrigacao = criar_obrigacao(vinculo='Matriz', centro_custo='ADM')

    resultado = LiquidacaoService.liquidar_uma(
        'pagar', obrigacao.id,
        contexto(conta, valor_pagamento='25.00', forma_pagamento='Boleto',
                 data_pagamento='2024-03-10', observacoes='Parcela negociada'),
        editor
    )

    pagamento = resultado['pagamentos'][0]
    movimento = resultado['movimentos'][0]
    assert pagamento['forma_pagamento'] == 'Boleto'
    assert pagamento['data_pagamento'] == '2024-03-10'
    assert pagamento['movimento_caixa_id'] == movimento['id']
    assert movimento['conta_pagar_id'] == obrigacao.id
    assert movimento['vinculo'] == 'Matriz'
    assert movimento['centro_custo'] == 'ADM'
    assert movimento['data_movimento'] == '2024-03-10'


def test_alteracao_concorrente_desfaz_o_lote(db, monkeypatch, criar_conta, criar_obrigacao, admin):
    conta = criar_conta(saldo_inicial='1000.00')
    obrigacao = criar_obrigacao(valor_nominal='100.00')
    validar_original = ObrigacaoService.validar_pagamento
    concorrente = []

    def validar_e_concorrer(conta_pagar, valor, hoje=None, ja_reservado=Decimal('0.00')):
        validar_original(conta_pagar, valor, hoje, ja_reservado)
        if not concorrente:
            # outra sessão paga a mesma conta entre a validação e a gravação
            db.session.execute(text(
                'UPDATE accounts_payable SET valor_pago = 80, versao = versao + 1 WHERE id = :id'
            ), {'id': conta_pagar.id})
            concorrente.append(conta_pagar.id)

    monkeypatch.setattr(ObrigacaoService, 'validar_pagamento', validar_e_concorrer)

    with pytest.raises(ConflitoConcorrenciaError):
        LiquidacaoService.liquidar_uma('pagar', obrigacao.id, contexto(conta, valor_pagamento='50.00'), admin)

    db.session.expire_all()
    assert MovimentoCaixa.query.count() == 0
    assert PagamentoContaPagar.query.count() == 0
    assert db.session.get(ContaBancaria, conta.id).saldo_atual == Decimal('1000.00')
    assert db.session.get(ContaPagar, obrigacao.id).valor_pago == Decimal('0.00')


def test_dia_fechado_recusado_antes_de_alterar_contas(app, monkeypatch, criar_conta, criar_obrigacao, admin):
    conta = criar_conta(saldo_inicial='1000.00')
    primeira = criar_obrigacao(valor_nominal='100.00')
    segunda = criar_obrigacao(valor_nominal='100.00')
    FechamentoCaixaService.fechar(date.today(), {conta.id: '1000.00'}, admin)
    app.config['BLOQUEAR_DIA_FECHADO'] = True

    aplicados = []
    monkeypatch.setattr(ObrigacaoService, 'aplicar_pagamento',
                        lambda obrigacao, valor, hoje=None: aplicados.append(obrigacao.id))

    with pytest.raises(DiaFechadoError):
        LiquidacaoService.liquidar('pagar', [
            {'obrigacao_id': primeira.id, 'valor_pagamento': '10.00'},
            {'obrigacao_id': segunda.id, 'valor_pagamento': '10.00'},
        ], contexto(conta), admin)

    assert aplicados == []
    assert MovimentoCaixa.query.count() == 0

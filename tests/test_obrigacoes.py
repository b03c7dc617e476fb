from datetime import date, timedelta
from decimal import Decimal

import pytest
from dateutil.relativedelta import relativedelta

from tesouraria.models import ContaPagar, ContaReceber
from tesouraria.services.caixa_service import CaixaService
from tesouraria.services.erros import (CancelamentoComPagamentoError, ExclusaoNaoPermitidaError,
                                       PermissaoNegadaError, ValidacaoError)
from tesouraria.services.liquidacao_service import LiquidacaoService
from tesouraria.services.obrigacao_service import ObrigacaoService

HOJE = date.today()


def pagar(conta, obrigacao, valor, operador, tipo='pagar'):
    return LiquidacaoService.liquidar(
        tipo, [{'obrigacao_id': obrigacao.id, 'valor_pagamento': valor}],
        {'conta_bancaria_id': conta.id, 'forma_pagamento': 'PIX'}, operador
    )


class TestCriacao:

    def test_codigo_sequencial_por_tipo(self, criar_obrigacao):
        ano = HOJE.strftime('%y')
        primeira = criar_obrigacao()
        segunda = criar_obrigacao()
        receber = criar_obrigacao(tipo='receber')

        assert primeira.codigo == f'CP-{ano}0001'
        assert segunda.codigo == f'CP-{ano}0002'
        assert receber.codigo == f'CR-{ano}0001'

    def test_nova_conta_em_aberto(self, criar_obrigacao):
        conta = criar_obrigacao(valor_nominal='250.00')

        assert conta.status == 'em_aberto'
        assert conta.valor_pago == Decimal('0.00')
        assert conta.valor_restante == Decimal('250.00')

    def test_conta_ja_vencida_nasce_vencida(self, criar_obrigacao):
        conta = criar_obrigacao(data_vencimento=HOJE - timedelta(days=3))
        assert conta.status == 'vencido'

    def test_parcelamento_mensal(self, app, admin):
        contas = ObrigacaoService.criar('receber', {
            'descricao': 'Venda de equipamento',
            'valor_nominal': '1000.00',
            'data_vencimento': HOJE,
            'total_parcelas': 3,
            'periodicidade': 'mensal',
        }, admin)

        assert [c.valor_nominal for c in contas] == [Decimal('333.33'), Decimal('333.33'), Decimal('333.34')]
        assert [c.data_vencimento for c in contas] == [HOJE + relativedelta(months=i) for i in range(3)]
        assert [c.parcela_atual for c in contas] == [1, 2, 3]
        assert len({c.grupo_parcelas for c in contas}) == 1
        assert contas[0].descricao == 'Venda de equipamento (1/3)'

    def test_validacao(self, app, admin):
        with pytest.raises(ValidacaoError) as exc:
            ObrigacaoService.criar('pagar', {
                'descricao': 'x', 'valor_nominal': '0', 'data_vencimento': 'amanhã',
                'periodicidade': 'diaria'
            }, admin)

        assert set(exc.value.field_errors) == {'descricao', 'valor_nominal', 'data_vencimento', 'periodicidade'}
        assert ContaPagar.query.count() == 0

    def test_tipo_invalido(self, app, admin):
        with pytest.raises(ValidacaoError):
            ObrigacaoService.criar('transferir', {}, admin)

    def test_viewer_nao_cria(self, app, viewer):
        with pytest.raises(PermissaoNegadaError):
            ObrigacaoService.criar('pagar', {}, viewer)


class TestAtualizacao:

    def test_nominal_nao_fica_abaixo_do_pago(self, criar_conta, criar_obrigacao, admin):
        conta = criar_conta()
        obrigacao = criar_obrigacao(valor_nominal='1000.00')
        pagar(conta, obrigacao, '400.00', admin)

        with pytest.raises(ValidacaoError) as exc:
            ObrigacaoService.atualizar('pagar', obrigacao.id, {'valor_nominal': '399.99'}, admin)
        assert 'valor_nominal' in exc.value.field_errors

        atualizada = ObrigacaoService.atualizar('pagar', obrigacao.id, {'valor_nominal': '400.00'}, admin)
        assert atualizada.status == 'quitado'
        assert atualizada.valor_restante == Decimal('0.00')

    def test_valores_pagos_nao_sao_editaveis(self, criar_obrigacao, admin):
        obrigacao = criar_obrigacao()
        with pytest.raises(ValidacaoError):
            ObrigacaoService.atualizar('pagar', obrigacao.id, {'valor_restante': '0'}, admin)

    def test_status_informado_deve_ser_o_derivado(self, criar_obrigacao, admin):
        obrigacao = criar_obrigacao()

        with pytest.raises(ValidacaoError):
            ObrigacaoService.atualizar('pagar', obrigacao.id, {'status': 'quitado'}, admin)

        atualizada = ObrigacaoService.atualizar('pagar', obrigacao.id,
                                                {'status': 'em_aberto', 'descricao': 'Aluguel de julho'}, admin)
        assert atualizada.descricao == 'Aluguel de julho'

    def test_mudar_vencimento_rederiva_status(self, criar_obrigacao, admin):
        obrigacao = criar_obrigacao()
        atualizada = ObrigacaoService.atualizar(
            'pagar', obrigacao.id, {'data_vencimento': (HOJE - timedelta(days=1)).isoformat()}, admin
        )
        assert atualizada.status == 'vencido'

    def test_status_cancelado_segue_regra_de_cancelamento(self, criar_obrigacao, admin):
        obrigacao = criar_obrigacao()
        atualizada = ObrigacaoService.atualizar('pagar', obrigacao.id, {'status': 'cancelado'}, admin)
        assert atualizada.status == 'cancelado'

    def test_cancelamento_recusado_nao_grava_edicao(self, db, criar_conta, criar_obrigacao, admin):
        conta = criar_conta()
        obrigacao = criar_obrigacao(valor_nominal='100.00', descricao='Original')
        pagar(conta, obrigacao, '10.00', admin)

        with pytest.raises(CancelamentoComPagamentoError):
            ObrigacaoService.atualizar('pagar', obrigacao.id,
                                       {'descricao': 'Alterada', 'status': 'cancelado'}, admin)

        db.session.expire_all()
        atual = db.session.get(ContaPagar, obrigacao.id)
        assert atual.descricao == 'Original'
        assert atual.status == 'parcialmente_pago'

    def test_edicao_e_cancelamento_juntos(self, criar_obrigacao, admin):
        obrigacao = criar_obrigacao()
        atualizada = ObrigacaoService.atualizar('pagar', obrigacao.id,
                                                {'observacoes': 'Contrato rescindido', 'status': 'cancelado'},
                                                admin)
        assert atualizada.status == 'cancelado'
        assert atualizada.observacoes == 'Contrato rescindido'


class TestCancelamentoEExclusao:

    def test_cancelar_sem_pagamentos(self, criar_obrigacao, editor):
        obrigacao = criar_obrigacao()
        cancelada = ObrigacaoService.cancelar('pagar', obrigacao.id, editor)
        assert cancelada.status == 'cancelado'

    def test_nao_cancela_com_pagamento(self, criar_conta, criar_obrigacao, admin):
        conta = criar_conta()
        obrigacao = criar_obrigacao()
        pagar(conta, obrigacao, '1.00', admin)

        with pytest.raises(CancelamentoComPagamentoError):
            ObrigacaoService.cancelar('pagar', obrigacao.id, admin)

    def test_historico_estornado_exige_admin(self, criar_conta, criar_obrigacao, admin, editor):
        conta = criar_conta()
        obrigacao = criar_obrigacao()
        resultado = pagar(conta, obrigacao, '100.00', admin)
        CaixaService.excluir(resultado['movimentos'][0]['id'], admin)

        with pytest.raises(PermissaoNegadaError):
            ObrigacaoService.cancelar('pagar', obrigacao.id, editor)

        assert ObrigacaoService.cancelar('pagar', obrigacao.id, admin).status == 'cancelado'

    def test_excluir_apenas_admin_e_sem_historico(self, criar_conta, criar_obrigacao, admin, editor):
        conta = criar_conta()
        livre = criar_obrigacao()
        paga = criar_obrigacao()
        pagar(conta, paga, '10.00', admin)

        with pytest.raises(PermissaoNegadaError):
            ObrigacaoService.excluir('pagar', livre.id, editor)
        with pytest.raises(ExclusaoNaoPermitidaError):
            ObrigacaoService.excluir('pagar', paga.id, admin)

        ObrigacaoService.excluir('pagar', livre.id, admin)
        assert ContaPagar.query.count() == 1


class TestReclassificacao:

    def test_vencidas_e_idempotente(self, criar_obrigacao):
        vencimento = HOJE + timedelta(days=5)
        obrigacao = criar_obrigacao(data_vencimento=vencimento)
        criar_obrigacao(tipo='receber', data_vencimento=vencimento + timedelta(days=10))

        depois = vencimento + timedelta(days=1)
        assert ObrigacaoService.reclassificar_vencidas(depois) == {'pagar': 1, 'receber': 0}
        assert ObrigacaoService.reclassificar_vencidas(depois) == {'pagar': 0, 'receber': 0}
        assert ContaPagar.query.filter_by(id=obrigacao.id).one().status == 'vencido'

    def test_nao_toca_quitadas_nem_canceladas(self, criar_conta, criar_obrigacao, admin):
        conta = criar_conta()
        quitada = criar_obrigacao(valor_nominal='50.00')
        pagar(conta, quitada, '50.00', admin)
        cancelada = criar_obrigacao()
        ObrigacaoService.cancelar('pagar', cancelada.id, admin)

        alteradas = ObrigacaoService.reclassificar_vencidas(HOJE + timedelta(days=365))

        assert alteradas['pagar'] == 0
        assert ContaPagar.query.filter_by(id=quitada.id).one().status == 'quitado'
        assert ContaPagar.query.filter_by(id=cancelada.id).one().status == 'cancelado'

    def test_leitura_reclassifica_apenas_o_proprio_tipo(self, criar_obrigacao):
        vencimento = HOJE + timedelta(days=5)
        pagar_id = criar_obrigacao(data_vencimento=vencimento).id
        receber_id = criar_obrigacao(tipo='receber', data_vencimento=vencimento).id
        depois = vencimento + timedelta(days=1)

        ObrigacaoService.listar('pagar', hoje=depois)
        ObrigacaoService.resumo('pagar', hoje=depois)

        assert ContaPagar.query.filter_by(id=pagar_id).one().status == 'vencido'
        assert ContaReceber.query.filter_by(id=receber_id).one().status == 'em_aberto'


class TestConsultas:

    def test_listar_exclui_canceladas(self, criar_obrigacao, admin):
        ativa = criar_obrigacao()
        cancelada = criar_obrigacao()
        ObrigacaoService.cancelar('pagar', cancelada.id, admin)

        assert [c.id for c in ObrigacaoService.listar('pagar')] == [ativa.id]
        assert [c.id for c in ObrigacaoService.listar('pagar', {'status': 'cancelado'})] == [cancelada.id]

    def test_listar_filtros(self, criar_obrigacao):
        criar_obrigacao(descricao='Energia elétrica', valor_nominal='300.00', vinculo='Matriz')
        criar_obrigacao(descricao='Internet', valor_nominal='120.00', vinculo='Filial')

        assert len(ObrigacaoService.listar('pagar', {'descricao': 'energia'})) == 1
        assert len(ObrigacaoService.listar('pagar', {'valor_min': '200'})) == 1
        assert len(ObrigacaoService.listar('pagar', {'vinculo': 'Filial'})) == 1

    def test_resumo(self, criar_conta, criar_obrigacao, admin):
        conta = criar_conta()
        criar_obrigacao(valor_nominal='100.00', data_vencimento=HOJE - timedelta(days=1))
        criar_obrigacao(valor_nominal='200.00', data_vencimento=HOJE)
        parcial = criar_obrigacao(valor_nominal='300.00')
        pagar(conta, parcial, '50.00', admin)

        resumo = ObrigacaoService.resumo('pagar')

        assert resumo['total_em_aberto'] == Decimal('550.00')
        assert resumo['total_vencido'] == Decimal('100.00')
        assert resumo['total_vencendo_hoje'] == Decimal('200.00')
        assert resumo['quantidade_em_aberto'] == 3

    def test_historico_de_pagamentos(self, criar_conta, criar_obrigacao, admin):
        conta = criar_conta()
        obrigacao = criar_obrigacao(tipo='receber')
        pagar(conta, obrigacao, '10.00', admin, tipo='receber')
        pagar(conta, obrigacao, '15.00', admin, tipo='receber')

        historico = ObrigacaoService.historico_pagamentos('receber', obrigacao.id)

        assert [p.valor_pago for p in historico] == [Decimal('10.00'), Decimal('15.00')]
        assert ContaReceber.query.filter_by(id=obrigacao.id).one().valor_pago == Decimal('25.00')

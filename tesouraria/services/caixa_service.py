"""
Serviço de Caixa - diário de movimentos realizados

Este serviço implementa:
1. Lançamento de entradas/saídas (manual ou pela liquidação de contas)
2. Exclusão de movimento com recálculo completo do saldo da conta
3. Acumulado do dia por conta (saldo_apos)
4. Consultas e resumo diário
"""
import logging

from flask import current_app

from tesouraria.models import (db, MovimentoCaixa, FechamentoCaixa,
                               PagamentoContaPagar, PagamentoContaReceber)
from tesouraria.services.autorizacao import exigir_admin, exigir_edicao
from tesouraria.services.conta_bancaria_service import ContaBancariaService
from tesouraria.services.erros import (ContaBancariaInativaError, DiaFechadoError,
                                       ValidacaoError)
from tesouraria.services.obrigacao_service import ObrigacaoService
from tesouraria.services.transacao import obter_ou_erro, unidade_de_trabalho
from tesouraria.services.valores import ZERO, dinheiro, para_data

logger = logging.getLogger(__name__)

class CaixaService:
    """
    Serviço do diário de caixa (movimentos de conta bancária)
    """

    # ========================================================================
    # LANÇAMENTOS
    # ========================================================================

    @staticmethod
    def registrar(dados, operador):
        """
        Registra um movimento manual e atualiza o saldo da conta

        Args:
            dados (dict):
                - conta_bancaria_id (int, obrigatório)
                - data_movimento (str YYYY-MM-DD, obrigatório)
                - tipo (str): entrada ou saida
                - descricao (str, mínimo 3 caracteres)
                - valor (> 0)
                - vinculo, centro_custo, observacoes (opcionais)
                - forma (str): Caixa (padrão) ou Permuta
            operador (Operador): admin ou editor

        Returns:
            MovimentoCaixa
        """
        exigir_edicao(operador, 'Sem permissão para criar transações')
        campos = CaixaService._validar(dados)

        with unidade_de_trabalho():
            conta = ContaBancariaService.obter(campos['conta_bancaria_id'], bloquear=True)
            movimento = CaixaService.lancar(
                conta=conta,
                data_movimento=campos['data_movimento'],
                tipo=campos['tipo'],
                descricao=campos['descricao'],
                valor=campos['valor'],
                vinculo=dados.get('vinculo'),
                centro_custo=dados.get('centro_custo'),
                forma=campos['forma'],
                observacoes=dados.get('observacoes'),
                criado_por=operador.id
            )

        logger.info('Movimento de caixa registrado: id=%s conta=%s %s R$%s',
                    movimento.id, movimento.conta_bancaria_id, movimento.tipo, movimento.valor)
        return movimento

    @staticmethod
    def lancar(conta, data_movimento, tipo, descricao, valor, vinculo=None, centro_custo=None,
               forma='Caixa', observacoes=None, conta_pagar=None, conta_receber=None,
               criado_por=None):
        """
        Insere o movimento e aplica o delta no saldo da conta (sem commit)

        Usado pelo registro manual e pela liquidação de contas
        """
        if not conta.ativa:
            raise ContaBancariaInativaError(
                f'Conta bancária "{conta.nome}" está inativa', conta_bancaria_id=conta.id
            )
        CaixaService.verificar_dia_aberto(data_movimento)

        valor = dinheiro(valor)
        valor_assinado = valor if tipo == 'entrada' else -valor
        acumulado = CaixaService._acumulado_do_dia(conta.id, data_movimento)

        movimento = MovimentoCaixa(
            conta_bancaria=conta,
            data_movimento=data_movimento,
            tipo=tipo,
            descricao=descricao,
            valor=valor,
            vinculo=vinculo,
            centro_custo=centro_custo,
            forma=forma or 'Caixa',
            observacoes=observacoes,
            conta_pagar=conta_pagar,
            conta_receber=conta_receber,
            saldo_apos=acumulado + valor_assinado,
            criado_por=criado_por
        )

        db.session.add(movimento)
        ContaBancariaService.aplicar_delta(conta, valor_assinado)
        db.session.flush()
        return movimento

    @staticmethod
    def excluir(movimento_id, operador):
        """
        Exclui um movimento e recalcula o saldo da conta do zero

        Se o movimento veio de uma liquidação, o pagamento é estornado na
        conta a pagar/receber correspondente.

        Args:
            movimento_id (int)
            operador (Operador): apenas admin

        Returns:
            dict: Dados do movimento excluído e novo saldo da conta
        """
        exigir_admin(operador, 'Apenas administradores podem excluir transações')

        with unidade_de_trabalho():
            movimento = obter_ou_erro(MovimentoCaixa, movimento_id, 'Movimentação')
            CaixaService.verificar_dia_aberto(movimento.data_movimento)

            conta = ContaBancariaService.obter(movimento.conta_bancaria_id, bloquear=True)
            data_movimento = movimento.data_movimento
            excluido = movimento.to_dict()

            obrigacao = movimento.obrigacao
            if obrigacao is not None:
                CaixaService._estornar_liquidacao(movimento, obrigacao)

            db.session.delete(movimento)
            db.session.flush()

            ContaBancariaService.recalcular(conta)
            CaixaService._recalcular_acumulado_do_dia(conta.id, data_movimento)

        logger.info('Movimento de caixa %s excluído por %s; saldo da conta %s: R$%s',
                    movimento_id, operador.id, conta.id, conta.saldo_atual)
        return {
            'movimento': excluido,
            'saldo_conta': float(conta.saldo_atual)
        }

    # ========================================================================
    # CONSULTAS
    # ========================================================================

    @staticmethod
    def listar(filtros=None):
        """
        Lista movimentos ordenados por data e ordem de inserção

        Filtros: data_inicio, data_fim, tipo, conta_bancaria_id, vinculo,
        forma, centro_custo
        """
        filtros = filtros or {}
        consulta = MovimentoCaixa.query

        if filtros.get('data_inicio'):
            consulta = consulta.filter(MovimentoCaixa.data_movimento >= para_data(filtros['data_inicio']))
        if filtros.get('data_fim'):
            consulta = consulta.filter(MovimentoCaixa.data_movimento <= para_data(filtros['data_fim']))
        if filtros.get('tipo'):
            consulta = consulta.filter(MovimentoCaixa.tipo == filtros['tipo'])
        if filtros.get('conta_bancaria_id'):
            consulta = consulta.filter(MovimentoCaixa.conta_bancaria_id == int(filtros['conta_bancaria_id']))
        if filtros.get('vinculo'):
            consulta = consulta.filter(MovimentoCaixa.vinculo == filtros['vinculo'])
        if filtros.get('forma'):
            consulta = consulta.filter(MovimentoCaixa.forma == filtros['forma'])
        if filtros.get('centro_custo'):
            consulta = consulta.filter(MovimentoCaixa.centro_custo == filtros['centro_custo'])

        return consulta.order_by(MovimentoCaixa.data_movimento, MovimentoCaixa.id).all()

    @staticmethod
    def resumo_dia(data, conta_bancaria_id=None):
        """
        Totais de entradas e saídas de um dia

        Returns:
            dict: data, total_entradas, total_saidas, saldo_liquido, quantidade
        """
        data = para_data(data)
        consulta = MovimentoCaixa.query.filter(MovimentoCaixa.data_movimento == data)
        if conta_bancaria_id:
            consulta = consulta.filter(MovimentoCaixa.conta_bancaria_id == int(conta_bancaria_id))

        entradas = ZERO
        saidas = ZERO
        movimentos = consulta.all()
        for movimento in movimentos:
            if movimento.tipo == 'entrada':
                entradas += dinheiro(movimento.valor)
            else:
                saidas += dinheiro(movimento.valor)

        return {
            'data': data.isoformat(),
            'total_entradas': entradas,
            'total_saidas': saidas,
            'saldo_liquido': entradas - saidas,
            'quantidade': len(movimentos)
        }

    @staticmethod
    def dia_fechado(data):
        return FechamentoCaixa.query.filter_by(data_fechamento=para_data(data)).first() is not None

    @staticmethod
    def verificar_dia_aberto(data):
        if not current_app.config.get('BLOQUEAR_DIA_FECHADO'):
            return
        if CaixaService.dia_fechado(data):
            raise DiaFechadoError(
                f'O caixa do dia {data.strftime("%d/%m/%Y")} já foi fechado',
                data=data.isoformat()
            )

    # ========================================================================
    # AUXILIARES
    # ========================================================================

    @staticmethod
    def _estornar_liquidacao(movimento, obrigacao):
        """Desfaz na conta a pagar/receber o pagamento que gerou o movimento"""
        modelo_pagamento = (PagamentoContaPagar if movimento.conta_pagar_id
                            else PagamentoContaReceber)
        pagamentos = modelo_pagamento.query.filter_by(
            movimento_caixa_id=movimento.id, status='efetivado'
        ).all()

        for pagamento in pagamentos:
            pagamento.status = 'estornado'
            pagamento.movimento_caixa_id = None

        ObrigacaoService.estornar_pagamento(obrigacao, movimento.valor)
        logger.info('Pagamento de R$%s estornado na conta %s (movimento %s excluído)',
                    movimento.valor, obrigacao.codigo, movimento.id)

    @staticmethod
    def _acumulado_do_dia(conta_id, data):
        acumulado = ZERO
        movimentos = db.session.query(MovimentoCaixa.tipo, MovimentoCaixa.valor).filter(
            MovimentoCaixa.conta_bancaria_id == conta_id,
            MovimentoCaixa.data_movimento == data
        ).all()
        for tipo, valor in movimentos:
            acumulado += dinheiro(valor) if tipo == 'entrada' else -dinheiro(valor)
        return acumulado

    @staticmethod
    def _recalcular_acumulado_do_dia(conta_id, data):
        acumulado = ZERO
        movimentos = MovimentoCaixa.query.filter(
            MovimentoCaixa.conta_bancaria_id == conta_id,
            MovimentoCaixa.data_movimento == data
        ).order_by(MovimentoCaixa.id).all()
        for movimento in movimentos:
            acumulado += movimento.valor_assinado
            movimento.saldo_apos = acumulado

    @staticmethod
    def _validar(dados):
        erros = {}
        campos = {}

        try:
            campos['conta_bancaria_id'] = int(dados.get('conta_bancaria_id'))
        except (TypeError, ValueError):
            erros['conta_bancaria_id'] = ['Conta bancária é obrigatória']

        try:
            campos['data_movimento'] = para_data(dados.get('data_movimento'))
        except ValueError as e:
            erros['data_movimento'] = [str(e)]

        if dados.get('tipo') not in MovimentoCaixa.TIPOS:
            erros['tipo'] = ['Tipo deve ser entrada ou saida']
        else:
            campos['tipo'] = dados['tipo']

        descricao = (dados.get('descricao') or '').strip()
        if len(descricao) < 3:
            erros['descricao'] = ['Descrição deve ter no mínimo 3 caracteres']
        campos['descricao'] = descricao

        try:
            campos['valor'] = dinheiro(dados.get('valor'))
            if campos['valor'] <= ZERO:
                erros['valor'] = ['Valor deve ser maior que zero']
        except ValueError as e:
            erros['valor'] = [str(e)]

        forma = dados.get('forma') or 'Caixa'
        if forma not in MovimentoCaixa.FORMAS:
            erros['forma'] = ['Forma deve ser Caixa ou Permuta']
        campos['forma'] = forma

        if dados.get('conta_pagar_id') or dados.get('conta_receber_id'):
            erros['obrigacao'] = ['Movimentos vinculados a contas são criados apenas pela liquidação']

        if erros:
            raise ValidacaoError(field_errors=erros)
        return campos

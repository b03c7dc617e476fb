"""
Serviço de Liquidação - baixa de contas a pagar/receber

Aplica N pagamentos em uma única transação:
1. Valida TODAS as linhas (status, valor restante acumulado, conta bancária)
2. Só então aplica cada linha: pagamento na conta, movimento no caixa,
   delta no saldo bancário e registro no histórico de pagamentos

Qualquer erro desfaz o lote inteiro.
"""
import logging
from datetime import date

from flask import current_app

from tesouraria.models import db, PagamentoContaPagar, PagamentoContaReceber
from tesouraria.services.autorizacao import exigir_edicao
from tesouraria.services.caixa_service import CaixaService
from tesouraria.services.conta_bancaria_service import ContaBancariaService
from tesouraria.services.erros import (ContaBancariaInativaError, SaldoInsuficienteError,
                                       TesourariaError, ValidacaoError)
from tesouraria.services.obrigacao_service import ObrigacaoService
from tesouraria.services.transacao import obter_ou_erro, unidade_de_trabalho
from tesouraria.services.valores import ZERO, dinheiro, para_data

logger = logging.getLogger(__name__)

MODELOS_PAGAMENTO = {
    'pagar': PagamentoContaPagar,
    'receber': PagamentoContaReceber,
}

PREFIXOS_DESCRICAO = {
    'pagar': 'Pagamento',
    'receber': 'Recebimento',
}


class LiquidacaoService:
    """
    Motor de liquidação (pagamento em lote)
    """

    @staticmethod
    def liquidar(tipo, pagamentos, contexto, operador, hoje=None):
        """
        Liquida um lote de contas de forma atômica

        Args:
            tipo (str): 'pagar' ou 'receber'
            pagamentos (list): [{'obrigacao_id': int, 'valor_pagamento': valor}, ...]
            contexto (dict):
                - data_pagamento (YYYY-MM-DD, padrão hoje)
                - forma_pagamento (str, obrigatório): PIX, Boleto, Permuta...
                - conta_bancaria_id (int, obrigatório)
                - observacoes (str, opcional)
            operador (Operador): admin ou editor
            hoje (date, opcional): Data de referência para o status

        Returns:
            dict: {'processados': N, 'movimentos': [...], 'pagamentos': [...]}

        Raises:
            TesourariaError: Com 'linha' e 'obrigacao_id' nos detalhes quando
                a falha é de uma linha específica
        """
        exigir_edicao(operador, 'Sem permissão para liquidar contas')
        modelo = ObrigacaoService.modelo(tipo)
        modelo_pagamento = MODELOS_PAGAMENTO[tipo]
        hoje = hoje or date.today()
        campos = LiquidacaoService._validar_contexto(contexto, hoje)

        if not isinstance(pagamentos, list) or not pagamentos:
            raise ValidacaoError('Informe ao menos um pagamento',
                                 field_errors={'pagamentos': ['Lista vazia']})

        with unidade_de_trabalho():
            conta = ContaBancariaService.obter(campos['conta_bancaria_id'], bloquear=True)
            if not conta.ativa:
                raise ContaBancariaInativaError(
                    f'Conta bancária "{conta.nome}" está inativa', conta_bancaria_id=conta.id
                )
            CaixaService.verificar_dia_aberto(campos['data_pagamento'])

            # 1ª fase: validar todas as linhas
            linhas = []
            reservado = {}
            for indice, linha in enumerate(pagamentos):
                obrigacao_id = linha.get('obrigacao_id') if isinstance(linha, dict) else None
                try:
                    if obrigacao_id is None:
                        raise ValidacaoError(field_errors={'obrigacao_id': ['Conta é obrigatória']})
                    try:
                        valor = dinheiro(linha.get('valor_pagamento'))
                    except ValueError as e:
                        raise ValidacaoError(field_errors={'valor_pagamento': [str(e)]})

                    obrigacao = obter_ou_erro(modelo, obrigacao_id, 'Conta', bloquear=True)
                    ObrigacaoService.validar_pagamento(obrigacao, valor, hoje,
                                                       ja_reservado=reservado.get(obrigacao.id, ZERO))
                except TesourariaError as e:
                    e.detalhes.setdefault('linha', indice)
                    e.detalhes.setdefault('obrigacao_id', obrigacao_id)
                    logger.warning('Lote de contas a %s rejeitado na linha %s: %s',
                                   tipo, indice, e.mensagem)
                    raise

                reservado[obrigacao.id] = reservado.get(obrigacao.id, ZERO) + valor
                linhas.append((obrigacao, valor))

            total = sum((valor for _, valor in linhas), ZERO)
            if tipo == 'pagar' and current_app.config.get('EXIGIR_SALDO_SUFICIENTE'):
                saldo = dinheiro(conta.saldo_atual)
                if total > saldo:
                    raise SaldoInsuficienteError(
                        f'Saldo insuficiente na conta "{conta.nome}". '
                        f'Disponível: R$ {saldo}, necessário: R$ {total}',
                        conta_bancaria_id=conta.id,
                        saldo_disponivel=str(saldo),
                        valor_necessario=str(total)
                    )

            # 2ª fase: aplicar
            movimentos = []
            registros = []
            for obrigacao, valor in linhas:
                ObrigacaoService.aplicar_pagamento(obrigacao, valor, hoje)

                movimento = CaixaService.lancar(
                    conta=conta,
                    data_movimento=campos['data_pagamento'],
                    tipo=modelo.TIPO_MOVIMENTO,
                    descricao=f'{PREFIXOS_DESCRICAO[tipo]}: {obrigacao.descricao}',
                    valor=valor,
                    vinculo=obrigacao.vinculo,
                    centro_custo=obrigacao.centro_custo,
                    forma='Permuta' if campos['forma_pagamento'] == 'Permuta' else 'Caixa',
                    observacoes=campos['observacoes'],
                    conta_pagar=obrigacao if tipo == 'pagar' else None,
                    conta_receber=obrigacao if tipo == 'receber' else None,
                    criado_por=operador.id
                )

                registro = modelo_pagamento(
                    obrigacao=obrigacao,
                    movimento_caixa=movimento,
                    data_pagamento=campos['data_pagamento'],
                    valor_pago=valor,
                    forma_pagamento=campos['forma_pagamento'],
                    observacoes=campos['observacoes'],
                    status='efetivado',
                    criado_por=operador.id
                )
                db.session.add(registro)
                movimentos.append(movimento)
                registros.append(registro)

            db.session.flush()

        logger.info('Lote de contas a %s liquidado: %s linha(s), total R$%s, conta bancária %s, operador %s',
                    tipo, len(linhas), total, conta.id, operador.id)

        return {
            'processados': len(linhas),
            'movimentos': [movimento.to_dict() for movimento in movimentos],
            'pagamentos': [registro.to_dict() for registro in registros]
        }

    @staticmethod
    def liquidar_uma(tipo, obrigacao_id, dados, operador, hoje=None):
        """Liquidação de uma única conta (lote de uma linha)"""
        return LiquidacaoService.liquidar(
            tipo,
            [{'obrigacao_id': obrigacao_id, 'valor_pagamento': dados.get('valor_pagamento')}],
            dados,
            operador,
            hoje=hoje
        )

    @staticmethod
    def _validar_contexto(contexto, hoje):
        contexto = contexto or {}
        erros = {}
        campos = {'observacoes': contexto.get('observacoes')}

        try:
            campos['conta_bancaria_id'] = int(contexto.get('conta_bancaria_id'))
        except (TypeError, ValueError):
            erros['conta_bancaria_id'] = ['Conta bancária é obrigatória']

        forma = (contexto.get('forma_pagamento') or '').strip()
        if not forma:
            erros['forma_pagamento'] = ['Forma de pagamento é obrigatória']
        campos['forma_pagamento'] = forma

        try:
            campos['data_pagamento'] = para_data(contexto.get('data_pagamento') or hoje)
        except ValueError as e:
            erros['data_pagamento'] = [str(e)]

        if erros:
            raise ValidacaoError(field_errors=erros)
        return campos

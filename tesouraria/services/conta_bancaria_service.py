"""
Serviço de Contas Bancárias - saldo oficial por conta

Este serviço implementa:
1. CRUD de contas bancárias (inativação em vez de exclusão)
2. Aplicação de deltas de saldo (usado pelo caixa e pela liquidação)
3. Recálculo completo do saldo a partir dos movimentos
4. Verificação de integridade de todas as contas
"""
import logging
from datetime import datetime

from tesouraria.models import db, ContaBancaria, MovimentoCaixa
from tesouraria.services.autorizacao import exigir_edicao
from tesouraria.services.erros import ValidacaoError
from tesouraria.services.transacao import obter_ou_erro, unidade_de_trabalho
from tesouraria.services.valores import ZERO, dinheiro, para_data

logger = logging.getLogger(__name__)


class ContaBancariaService:
    """
    Serviço para gerenciamento de contas bancárias e seus saldos
    """

    # ========================================================================
    # CONSULTAS
    # ========================================================================

    @staticmethod
    def listar(status=None):
        """
        Lista contas bancárias ordenadas por nome

        Args:
            status (str, opcional): 'ativo' (padrão), 'inativo' ou 'todos'
        """
        consulta = ContaBancaria.query
        status = (status or 'ativo').lower()
        if status != 'todos':
            consulta = consulta.filter(ContaBancaria.status == status)
        return consulta.order_by(ContaBancaria.nome).all()

    @staticmethod
    def obter(conta_id, bloquear=False):
        return obter_ou_erro(ContaBancaria, conta_id, 'Conta bancária', bloquear=bloquear)

    # ========================================================================
    # CRUD
    # ========================================================================

    @staticmethod
    def criar(dados, operador):
        """
        Cria uma conta bancária

        Args:
            dados (dict):
                - nome (str, obrigatório, mínimo 3 caracteres)
                - tipo (str): banco, especie, poupanca, investimento
                - codigo (str, opcional)
                - saldo_inicial (opcional, padrão 0)
                - observacoes (str, opcional)
            operador (Operador): admin ou editor

        Returns:
            ContaBancaria
        """
        exigir_edicao(operador, 'Sem permissão para criar contas')
        ContaBancariaService._validar(dados, parcial=False)

        saldo_inicial = dinheiro(dados.get('saldo_inicial') or 0)

        with unidade_de_trabalho():
            conta = ContaBancaria(
                nome=dados['nome'].strip(),
                tipo=dados['tipo'],
                codigo=dados.get('codigo'),
                observacoes=dados.get('observacoes'),
                saldo_inicial=saldo_inicial,
                saldo_atual=saldo_inicial,  # Sem movimentos, saldo atual = inicial
                status='ativo',
                criado_por=operador.id
            )
            db.session.add(conta)

        logger.info('Conta bancária criada: id=%s nome=%s saldo_inicial=%s',
                    conta.id, conta.nome, saldo_inicial)
        return conta

    @staticmethod
    def atualizar(conta_id, dados, operador):
        """
        Atualiza uma conta bancária

        Alterar o saldo_inicial recalcula o saldo atual a partir dos movimentos.
        Alterar o status segue as regras de inativar()/reativar().
        """
        exigir_edicao(operador, 'Sem permissão para editar contas')
        ContaBancariaService._validar(dados, parcial=True)

        with unidade_de_trabalho():
            conta = ContaBancariaService.obter(conta_id, bloquear=True)

            if 'nome' in dados:
                conta.nome = dados['nome'].strip()
            if 'tipo' in dados:
                conta.tipo = dados['tipo']
            if 'codigo' in dados:
                conta.codigo = dados['codigo']
            if 'observacoes' in dados:
                conta.observacoes = dados['observacoes']
            if 'status' in dados:
                ContaBancariaService._definir_status(conta, dados['status'])

            if 'saldo_inicial' in dados:
                conta.saldo_inicial = dinheiro(dados['saldo_inicial'] or 0)
                ContaBancariaService.recalcular(conta)

            conta.data_atualizacao = datetime.utcnow()

        return conta

    @staticmethod
    def inativar(conta_id, operador):
        """
        Inativa a conta (nunca é removida do banco)

        Não exige saldo zero; a conta deixa de aparecer para novos lançamentos
        """
        exigir_edicao(operador, 'Sem permissão para inativar contas')
        with unidade_de_trabalho():
            conta = ContaBancariaService.obter(conta_id, bloquear=True)
            ContaBancariaService._definir_status(conta, 'inativo')
        return conta

    @staticmethod
    def reativar(conta_id, operador):
        exigir_edicao(operador, 'Sem permissão para reativar contas')
        with unidade_de_trabalho():
            conta = ContaBancariaService.obter(conta_id, bloquear=True)
            ContaBancariaService._definir_status(conta, 'ativo')
        return conta

    # ========================================================================
    # SALDO
    # ========================================================================

    @staticmethod
    def aplicar_delta(conta, valor_assinado):
        """
        Soma um valor (positivo ou negativo) ao saldo atual

        Deve ser chamado dentro da mesma transação que grava o movimento
        """
        conta.saldo_atual = dinheiro(conta.saldo_atual or 0) + dinheiro(valor_assinado)
        conta.data_atualizacao = datetime.utcnow()
        return conta.saldo_atual

    @staticmethod
    def calcular_saldo(conta, ate=None):
        """
        saldo_inicial + entradas - saídas, opcionalmente até uma data (inclusive)

        A soma é feita em Decimal, movimento a movimento
        """
        consulta = db.session.query(MovimentoCaixa.tipo, MovimentoCaixa.valor).filter(
            MovimentoCaixa.conta_bancaria_id == conta.id
        )
        if ate is not None:
            consulta = consulta.filter(MovimentoCaixa.data_movimento <= para_data(ate))

        saldo = dinheiro(conta.saldo_inicial or 0)
        for tipo, valor in consulta.all():
            if tipo == 'entrada':
                saldo += dinheiro(valor)
            else:
                saldo -= dinheiro(valor)
        return saldo

    @staticmethod
    def recalcular(conta):
        """
        Recalcula o saldo a partir de todos os movimentos (sem commit)

        Returns:
            Decimal: Diferença entre o saldo recalculado e o anterior
        """
        db.session.flush()
        anterior = dinheiro(conta.saldo_atual or 0)
        conta.saldo_atual = ContaBancariaService.calcular_saldo(conta)
        return conta.saldo_atual - anterior

    @staticmethod
    def recalcular_saldo(conta_id):
        """
        Recálculo completo do saldo de uma conta (verificação de integridade)

        Returns:
            dict: saldo_anterior, saldo_recalculado, diferenca
        """
        with unidade_de_trabalho():
            conta = ContaBancariaService.obter(conta_id, bloquear=True)
            anterior = dinheiro(conta.saldo_atual or 0)
            diferenca = ContaBancariaService.recalcular(conta)

        if diferenca != ZERO:
            logger.warning('Saldo da conta %s corrigido: %s -> %s',
                           conta_id, anterior, conta.saldo_atual)

        return {
            'conta_bancaria_id': conta.id,
            'saldo_anterior': float(anterior),
            'saldo_recalculado': float(conta.saldo_atual),
            'diferenca': float(diferenca)
        }

    @staticmethod
    def verificar_integridade():
        """
        Recalcula todas as contas e corrige as que divergirem

        Returns:
            list[dict]: Contas com divergência (antes da correção)
        """
        divergencias = []
        with unidade_de_trabalho():
            for conta in ContaBancaria.query.order_by(ContaBancaria.id).with_for_update().all():
                anterior = dinheiro(conta.saldo_atual or 0)
                diferenca = ContaBancariaService.recalcular(conta)
                if diferenca != ZERO:
                    divergencias.append({
                        'conta_bancaria_id': conta.id,
                        'nome': conta.nome,
                        'saldo_anterior': float(anterior),
                        'saldo_recalculado': float(conta.saldo_atual),
                        'diferenca': float(diferenca)
                    })

        for item in divergencias:
            logger.warning('Divergência de saldo corrigida: %s', item)
        return divergencias

    # ========================================================================
    # AUXILIARES
    # ========================================================================

    @staticmethod
    def _definir_status(conta, status):
        status = (status or '').lower()
        if status not in ('ativo', 'inativo'):
            raise ValidacaoError(field_errors={'status': ['Status deve ser ativo ou inativo']})

        if status == 'inativo' and conta.status != 'inativo':
            if dinheiro(conta.saldo_atual or 0) != ZERO:
                logger.warning('Conta %s inativada com saldo %s', conta.id, conta.saldo_atual)
            else:
                logger.info('Conta %s inativada', conta.id)
        conta.status = status
        conta.data_atualizacao = datetime.utcnow()

    @staticmethod
    def _validar(dados, parcial):
        erros = {}

        if not parcial or 'nome' in dados:
            nome = (dados.get('nome') or '').strip()
            if len(nome) < 3:
                erros['nome'] = ['Nome deve ter no mínimo 3 caracteres']

        if not parcial or 'tipo' in dados:
            if dados.get('tipo') not in ContaBancaria.TIPOS:
                erros['tipo'] = [f'Tipo inválido. Use um dos seguintes: {", ".join(ContaBancaria.TIPOS)}']

        if 'saldo_inicial' in dados and dados['saldo_inicial'] is not None:
            try:
                dinheiro(dados['saldo_inicial'])
            except ValueError as e:
                erros['saldo_inicial'] = [str(e)]

        if erros:
            raise ValidacaoError(field_errors=erros)

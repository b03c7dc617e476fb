"""
Serviço de Contas a Pagar e a Receber - lógica de negócio

Este serviço implementa:
1. Cadastro de obrigações (com geração de parcelas)
2. Derivação de status (em_aberto, parcialmente_pago, vencido, quitado)
3. Aplicação e estorno de pagamentos (chamados pela liquidação e pelo caixa)
4. Cancelamento, correções administrativas e reclassificação de vencidas
5. Consultas, histórico de pagamentos e resumos

Contas a pagar e a receber têm a mesma estrutura; o parâmetro `tipo`
('pagar' ou 'receber') escolhe a tabela.
"""
import logging
import uuid
from datetime import date

from dateutil.relativedelta import relativedelta
from sqlalchemy import or_

from tesouraria.models import db, ContaPagar, ContaReceber
from tesouraria.services.autorizacao import exigir_admin, exigir_edicao
from tesouraria.services.erros import (CancelamentoComPagamentoError, ExclusaoNaoPermitidaError,
                                       ObrigacaoNaoLiquidavelError, ValidacaoError,
                                       ValorExcedeRestanteError)
from tesouraria.services.transacao import obter_ou_erro, unidade_de_trabalho
from tesouraria.services.valores import (ZERO, STATUS_CANCELADO, STATUS_EM_ABERTO,
                                         STATUS_LIQUIDAVEIS, STATUS_OBRIGACAO,
                                         STATUS_PARCIALMENTE_PAGO, STATUS_VENCIDO,
                                         dinheiro, dividir_em_parcelas, para_data)

logger = logging.getLogger(__name__)

MODELOS = {
    'pagar': ContaPagar,
    'receber': ContaReceber,
}

PERIODICIDADES = {
    'semanal': relativedelta(weeks=1),
    'mensal': relativedelta(months=1),
    'semestral': relativedelta(months=6),
    'anual': relativedelta(years=1),
}

# Campos que uma correção administrativa pode alterar diretamente
CAMPOS_EDITAVEIS = ('descricao', 'contraparte', 'contraparte_id', 'contrato_id',
                    'vinculo', 'centro_custo', 'observacoes')

class ObrigacaoService:
    """
    Serviço para gerenciamento de contas a pagar e a receber
    """

    @staticmethod
    def modelo(tipo):
        if tipo not in MODELOS:
            raise ValidacaoError(f'Tipo de conta inválido: {tipo}',
                                 field_errors={'tipo': ['Use pagar ou receber']})
        return MODELOS[tipo]

    # ========================================================================
    # CADASTRO
    # ========================================================================

    @staticmethod
    def criar(tipo, dados, operador, hoje=None):
        """
        Cria uma conta a pagar/receber (ou N parcelas)

        Args:
            tipo (str): 'pagar' ou 'receber'
            dados (dict):
                - descricao (str, mínimo 3 caracteres)
                - valor_nominal (> 0) - valor total, dividido entre as parcelas
                - data_vencimento (YYYY-MM-DD) - vencimento da 1ª parcela
                - contraparte, contraparte_id, contrato_id (opcionais)
                - vinculo, centro_custo, observacoes (opcionais)
                - total_parcelas (int, opcional, padrão 1)
                - periodicidade (str): semanal, mensal, semestral, anual
            operador (Operador): admin ou editor
            hoje (date, opcional): Data de referência para o status

        Returns:
            list: Obrigações criadas (uma por parcela)
        """
        exigir_edicao(operador, 'Sem permissão para criar contas')
        modelo = ObrigacaoService.modelo(tipo)
        hoje = hoje or date.today()
        campos = ObrigacaoService._validar_criacao(dados)

        total_parcelas = campos['total_parcelas']
        valores = dividir_em_parcelas(campos['valor_nominal'], total_parcelas)
        intervalo = PERIODICIDADES.get(campos['periodicidade'])
        grupo = str(uuid.uuid4()) if total_parcelas > 1 else None

        criadas = []
        with unidade_de_trabalho():
            codigos = ObrigacaoService._proximos_codigos(modelo, hoje, total_parcelas)

            for indice, valor in enumerate(valores):
                vencimento = campos['data_vencimento']
                if intervalo is not None:
                    vencimento = vencimento + intervalo * indice

                descricao = campos['descricao']
                if total_parcelas > 1:
                    descricao = f'{descricao} ({indice + 1}/{total_parcelas})'

                obrigacao = modelo(
                    codigo=codigos[indice],
                    descricao=descricao,
                    contraparte=dados.get('contraparte'),
                    contraparte_id=dados.get('contraparte_id'),
                    contrato_id=dados.get('contrato_id'),
                    valor_nominal=valor,
                    valor_pago=ZERO,
                    data_vencimento=vencimento,
                    data_cadastro=hoje,
                    vinculo=dados.get('vinculo'),
                    centro_custo=dados.get('centro_custo'),
                    observacoes=dados.get('observacoes'),
                    parcela_atual=indice + 1 if total_parcelas > 1 else None,
                    total_parcelas=total_parcelas if total_parcelas > 1 else None,
                    periodicidade=campos['periodicidade'] if total_parcelas > 1 else None,
                    grupo_parcelas=grupo,
                    status=STATUS_EM_ABERTO,
                    criado_por=operador.id
                )
                obrigacao.sincronizar_status(hoje)
                db.session.add(obrigacao)
                criadas.append(obrigacao)

        logger.info('Conta a %s criada: %s (%s parcela(s), total R$%s)',
                    tipo, ', '.join(o.codigo for o in criadas), total_parcelas, campos['valor_nominal'])
        return criadas

    @staticmethod
    def atualizar(tipo, obrigacao_id, dados, operador, hoje=None):
        """
        Correção administrativa de uma conta

        valor_pago e valor_restante nunca são editados diretamente. Um status
        informado só é aceito se for o status derivado dos valores (ou
        'cancelado', que segue as regras de cancelar() na mesma transação).
        """
        exigir_edicao(operador, 'Sem permissão para editar contas')
        modelo = ObrigacaoService.modelo(tipo)
        hoje = hoje or date.today()

        proibidos = [campo for campo in ('valor_pago', 'valor_restante') if campo in dados]
        if proibidos:
            raise ValidacaoError(
                'Valores pagos são alterados apenas por liquidação',
                field_errors={campo: ['Campo não pode ser editado diretamente'] for campo in proibidos}
            )

        cancelar = dados.get('status') == STATUS_CANCELADO
        outros = {k: v for k, v in dados.items() if k != 'status'}

        with unidade_de_trabalho():
            obrigacao = obter_ou_erro(modelo, obrigacao_id, 'Conta', bloquear=True)

            if obrigacao.cancelada:
                if cancelar and not outros:
                    return obrigacao
                raise ObrigacaoNaoLiquidavelError(obrigacao.id, obrigacao.status)

            ObrigacaoService._editar_campos(obrigacao, outros, hoje)

            if cancelar:
                ObrigacaoService._cancelar(obrigacao, operador, hoje)
            elif dados.get('status') and dados['status'] != obrigacao.status:
                raise ValidacaoError(
                    f'Status "{dados["status"]}" inconsistente com os valores da conta '
                    f'(status calculado: "{obrigacao.status}")',
                    field_errors={'status': ['Status é calculado a partir dos valores']}
                )

        if cancelar:
            logger.info('Conta %s cancelada por %s', obrigacao.codigo, operador.id)
        return obrigacao

    @staticmethod
    def cancelar(tipo, obrigacao_id, operador, hoje=None):
        """
        Cancela uma conta sem pagamentos

        Raises:
            CancelamentoComPagamentoError: Se valor_pago > 0
            PermissaoNegadaError: Conta com histórico (estornado) e operador não-admin
        """
        exigir_edicao(operador, 'Sem permissão para cancelar contas')
        modelo = ObrigacaoService.modelo(tipo)

        with unidade_de_trabalho():
            obrigacao = obter_ou_erro(modelo, obrigacao_id, 'Conta', bloquear=True)
            if obrigacao.cancelada:
                return obrigacao
            ObrigacaoService._cancelar(obrigacao, operador, hoje)

        logger.info('Conta %s cancelada por %s', obrigacao.codigo, operador.id)
        return obrigacao

    @staticmethod
    def excluir(tipo, obrigacao_id, operador):
        """
        Exclusão física - apenas admin e apenas sem histórico de pagamentos
        """
        exigir_admin(operador, 'Apenas administradores podem excluir contas')
        modelo = ObrigacaoService.modelo(tipo)

        with unidade_de_trabalho():
            obrigacao = obter_ou_erro(modelo, obrigacao_id, 'Conta', bloquear=True)
            if obrigacao.pagamentos.count() > 0:
                raise ExclusaoNaoPermitidaError(
                    f'Conta {obrigacao.codigo} possui histórico de pagamentos; use o cancelamento',
                    obrigacao_id=obrigacao.id
                )
            codigo = obrigacao.codigo
            db.session.delete(obrigacao)

        logger.info('Conta %s excluída por %s', codigo, operador.id)
        return {'codigo': codigo}

    # ========================================================================
    # PAGAMENTOS (chamados pela liquidação e pelo caixa, sem commit)
    # ========================================================================

    @staticmethod
    def validar_pagamento(obrigacao, valor, hoje=None, ja_reservado=ZERO):
        """
        Verifica se a conta aceita o pagamento

        Args:
            ja_reservado: Valor de outras linhas do mesmo lote para esta conta

        Raises:
            ObrigacaoNaoLiquidavelError: Conta cancelada
            ValorExcedeRestanteError: Valor acima do restante (inclusive conta quitada)
            ValidacaoError: Valor não positivo
        """
        obrigacao.sincronizar_status(hoje)

        valor = dinheiro(valor)
        if valor <= ZERO:
            raise ValidacaoError(field_errors={'valor_pagamento': ['Valor deve ser maior que zero']},
                                 obrigacao_id=obrigacao.id)

        if obrigacao.cancelada:
            raise ObrigacaoNaoLiquidavelError(obrigacao.id, obrigacao.status, codigo_conta=obrigacao.codigo)

        disponivel = dinheiro(obrigacao.valor_restante) - ja_reservado
        if valor > disponivel:
            raise ValorExcedeRestanteError(obrigacao.id, valor, disponivel, codigo_conta=obrigacao.codigo)

    @staticmethod
    def aplicar_pagamento(obrigacao, valor, hoje=None):
        """
        Soma o pagamento ao valor pago e re-deriva o status

        Não existe operação para definir o valor restante diretamente
        """
        ObrigacaoService.validar_pagamento(obrigacao, valor, hoje)
        obrigacao.valor_pago = dinheiro(obrigacao.valor_pago) + dinheiro(valor)
        obrigacao.sincronizar_status(hoje)
        return obrigacao

    @staticmethod
    def estornar_pagamento(obrigacao, valor, hoje=None):
        """Desfaz um pagamento (exclusão do movimento de caixa)"""
        novo_pago = dinheiro(obrigacao.valor_pago) - dinheiro(valor)
        if novo_pago < ZERO:
            raise ValueError(f'Estorno maior que o valor pago da conta {obrigacao.codigo}')
        obrigacao.valor_pago = novo_pago
        obrigacao.sincronizar_status(hoje)
        return obrigacao

    # ========================================================================
    # RECLASSIFICAÇÃO DE VENCIDAS
    # ========================================================================

    @staticmethod
    def reclassificar_vencidas(hoje=None, tipo=None):
        """
        Re-deriva o status das contas em aberto

        Idempotente; contas quitadas e canceladas não são tocadas

        Args:
            hoje (date, opcional): Data de referência
            tipo (str, opcional): 'pagar' ou 'receber'; sem tipo, ambas as tabelas

        Returns:
            dict: Quantidade de contas alteradas por tipo
        """
        hoje = hoje or date.today()
        tipos = [tipo] if tipo else list(MODELOS)
        alteradas = {}

        with unidade_de_trabalho():
            for nome in tipos:
                modelo = ObrigacaoService.modelo(nome)
                contas = modelo.query.filter(modelo.status.in_(STATUS_LIQUIDAVEIS)).all()
                alteradas[nome] = sum(1 for conta in contas if conta.sincronizar_status(hoje))

        if any(alteradas.values()):
            logger.info('Reclassificação de vencidas em %s: %s', hoje.isoformat(), alteradas)
        return alteradas

    # ========================================================================
    # CONSULTAS
    # ========================================================================

    @staticmethod
    def obter(tipo, obrigacao_id, hoje=None):
        modelo = ObrigacaoService.modelo(tipo)
        with unidade_de_trabalho():
            obrigacao = obter_ou_erro(modelo, obrigacao_id, 'Conta')
            obrigacao.sincronizar_status(hoje)
        return obrigacao

    @staticmethod
    def listar(tipo, filtros=None, hoje=None):
        """
        Lista contas com status já derivado

        Filtros: status, data_inicio, data_fim (vencimento), codigo,
        descricao (texto livre), valor_min, valor_max (sobre valor_restante),
        vinculo, centro_custo, contraparte_id
        """
        modelo = ObrigacaoService.modelo(tipo)
        filtros = filtros or {}
        ObrigacaoService.reclassificar_vencidas(hoje, tipo)

        consulta = modelo.query
        status = filtros.get('status')
        if status:
            if status not in STATUS_OBRIGACAO:
                raise ValidacaoError(field_errors={'status': [f'Status inválido: {status}']})
            consulta = consulta.filter(modelo.status == status)
        else:
            consulta = consulta.filter(modelo.status != STATUS_CANCELADO)

        if filtros.get('data_inicio'):
            consulta = consulta.filter(modelo.data_vencimento >= para_data(filtros['data_inicio']))
        if filtros.get('data_fim'):
            consulta = consulta.filter(modelo.data_vencimento <= para_data(filtros['data_fim']))
        if filtros.get('codigo'):
            consulta = consulta.filter(modelo.codigo.ilike(f"%{filtros['codigo']}%"))
        if filtros.get('descricao'):
            consulta = consulta.filter(or_(
                modelo.descricao.ilike(f"%{filtros['descricao']}%"),
                modelo.contraparte.ilike(f"%{filtros['descricao']}%")
            ))
        if filtros.get('valor_min') not in (None, ''):
            consulta = consulta.filter(modelo.valor_restante >= dinheiro(filtros['valor_min']))
        if filtros.get('valor_max') not in (None, ''):
            consulta = consulta.filter(modelo.valor_restante <= dinheiro(filtros['valor_max']))
        if filtros.get('vinculo'):
            consulta = consulta.filter(modelo.vinculo == filtros['vinculo'])
        if filtros.get('centro_custo'):
            consulta = consulta.filter(modelo.centro_custo == filtros['centro_custo'])
        if filtros.get('contraparte_id'):
            consulta = consulta.filter(modelo.contraparte_id == str(filtros['contraparte_id']))

        return consulta.order_by(modelo.data_vencimento, modelo.id).all()

    @staticmethod
    def historico_pagamentos(tipo, obrigacao_id):
        modelo = ObrigacaoService.modelo(tipo)
        obrigacao = obter_ou_erro(modelo, obrigacao_id, 'Conta')
        return obrigacao.pagamentos.all()

    @staticmethod
    def resumo(tipo, hoje=None):
        """
        Totais para os cards do painel

        Returns:
            dict: total_em_aberto, total_vencido, total_vencendo_hoje (Decimal)
        """
        modelo = ObrigacaoService.modelo(tipo)
        hoje = hoje or date.today()
        ObrigacaoService.reclassificar_vencidas(hoje, tipo)

        total_em_aberto = ZERO
        total_vencido = ZERO
        total_vencendo_hoje = ZERO
        quantidade = 0

        for conta in modelo.query.filter(modelo.status.in_(STATUS_LIQUIDAVEIS)).all():
            restante = dinheiro(conta.valor_restante)
            quantidade += 1
            total_em_aberto += restante
            if conta.status == STATUS_VENCIDO:
                total_vencido += restante
            if conta.data_vencimento == hoje and conta.status in (STATUS_EM_ABERTO, STATUS_PARCIALMENTE_PAGO):
                total_vencendo_hoje += restante

        return {
            'total_em_aberto': total_em_aberto,
            'total_vencido': total_vencido,
            'total_vencendo_hoje': total_vencendo_hoje,
            'quantidade_em_aberto': quantidade
        }

    # ========================================================================
    # AUXILIARES
    # ========================================================================

    @staticmethod
    def _proximos_codigos(modelo, hoje, quantidade):
        """
        Gera códigos sequenciais no formato CP-AANNNN / CR-AANNNN
        """
        prefixo = f'{modelo.PREFIXO_CODIGO}-{hoje.strftime("%y")}'
        codigos = [c for (c,) in db.session.query(modelo.codigo).filter(
            modelo.codigo.like(f'{prefixo}%')
        ).all()]

        ultimo = 0
        for codigo in codigos:
            sufixo = codigo[len(prefixo):]
            if sufixo.isdigit():
                ultimo = max(ultimo, int(sufixo))

        return [f'{prefixo}{numero:04d}' for numero in range(ultimo + 1, ultimo + 1 + quantidade)]

    @staticmethod
    def _validar_criacao(dados):
        erros = {}
        campos = {}

        descricao = (dados.get('descricao') or '').strip()
        if len(descricao) < 3:
            erros['descricao'] = ['Descrição deve ter no mínimo 3 caracteres']
        campos['descricao'] = descricao

        try:
            campos['valor_nominal'] = dinheiro(dados.get('valor_nominal'))
            if campos['valor_nominal'] <= ZERO:
                erros['valor_nominal'] = ['Valor deve ser maior que zero']
        except ValueError as e:
            erros['valor_nominal'] = [str(e)]

        try:
            campos['data_vencimento'] = para_data(dados.get('data_vencimento'))
        except ValueError as e:
            erros['data_vencimento'] = [str(e)]

        try:
            campos['total_parcelas'] = int(dados.get('total_parcelas') or 1)
            if campos['total_parcelas'] < 1:
                erros['total_parcelas'] = ['Quantidade de parcelas deve ser maior que zero']
        except (TypeError, ValueError):
            erros['total_parcelas'] = ['Quantidade de parcelas inválida']

        periodicidade = dados.get('periodicidade') or 'mensal'
        if periodicidade not in PERIODICIDADES:
            erros['periodicidade'] = [f'Use uma das seguintes: {", ".join(PERIODICIDADES)}']
        campos['periodicidade'] = periodicidade

        if 'valor_nominal' not in erros and 'total_parcelas' not in erros:
            if campos['valor_nominal'] < dinheiro('0.01') * campos['total_parcelas']:
                erros['total_parcelas'] = ['Valor insuficiente para a quantidade de parcelas']

        if erros:
            raise ValidacaoError(field_errors=erros)
        return campos

    @staticmethod
    def _editar_campos(obrigacao, dados, hoje):
        erros = {}

        for campo in CAMPOS_EDITAVEIS:
            if campo in dados:
                setattr(obrigacao, campo, dados[campo])

        if 'descricao' in dados and len((dados['descricao'] or '').strip()) < 3:
            erros['descricao'] = ['Descrição deve ter no mínimo 3 caracteres']

        if 'data_vencimento' in dados:
            try:
                obrigacao.data_vencimento = para_data(dados['data_vencimento'])
            except ValueError as e:
                erros['data_vencimento'] = [str(e)]

        if 'valor_nominal' in dados:
            try:
                nominal = dinheiro(dados['valor_nominal'])
                if nominal <= ZERO:
                    erros['valor_nominal'] = ['Valor deve ser maior que zero']
                elif nominal < dinheiro(obrigacao.valor_pago):
                    erros['valor_nominal'] = [
                        f'Valor nominal não pode ser menor que o valor já pago ({obrigacao.valor_pago})'
                    ]
                else:
                    obrigacao.valor_nominal = nominal
            except ValueError as e:
                erros['valor_nominal'] = [str(e)]

        if erros:
            raise ValidacaoError(field_errors=erros)

        obrigacao.sincronizar_status(hoje)

    @staticmethod
    def _cancelar(obrigacao, operador, hoje):
        if dinheiro(obrigacao.valor_pago) > ZERO:
            raise CancelamentoComPagamentoError(
                f'Conta {obrigacao.codigo} possui pagamentos (R$ {obrigacao.valor_pago}) '
                f'e não pode ser cancelada',
                obrigacao_id=obrigacao.id,
                valor_pago=str(obrigacao.valor_pago)
            )

        if obrigacao.pagamentos.count() > 0:
            exigir_admin(operador, 'Apenas administradores podem cancelar contas com histórico de pagamentos')

        obrigacao.status = STATUS_CANCELADO
        obrigacao.sincronizar_status(hoje)

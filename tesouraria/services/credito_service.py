"""
Serviço de Cartas de Crédito

Toda alteração de saldo passa por um MovimentoCredito (trilha de auditoria
somente inserção). O saldo fica sempre entre 0 e o valor nominal.
"""
import logging
from datetime import date

from sqlalchemy import or_

from tesouraria.models import db, Credito, MovimentoCredito
from tesouraria.services.autorizacao import exigir_edicao
from tesouraria.services.erros import (ExcedeValorNominalError, MovimentoInicialDuplicadoError,
                                       SaldoCreditoInsuficienteError, ValidacaoError)
from tesouraria.services.transacao import obter_ou_erro, unidade_de_trabalho
from tesouraria.services.valores import ZERO, dinheiro, para_data

logger = logging.getLogger(__name__)

TIPOS_PARTE = ('pessoa', 'empresa')

DESCRICOES_PADRAO = {
    'inicial': 'Saldo inicial',
    'deducao': 'Dedução',
    'estorno': 'Estorno',
    'ajuste': 'Ajuste de saldo',
}


class CreditoService:
    """
    Serviço para gerenciamento de cartas de crédito e seus movimentos
    """

    # ========================================================================
    # CADASTRO
    # ========================================================================

    @staticmethod
    def criar(dados, operador):
        """
        Cria uma carta de crédito e o movimento inicial

        Args:
            dados (dict):
                - credor_id, credor_tipo (pessoa/empresa) - obrigatórios
                - devedor_id, devedor_tipo (opcionais)
                - origem (str, obrigatório)
                - valor_nominal (> 0)
                - saldo_inicial (opcional, padrão = valor_nominal)
                - taxa_juros (str, apenas informativo)
                - data_inicio (padrão hoje), data_vencimento (opcional)
                - observacoes
            operador (Operador): admin ou editor

        Returns:
            Credito
        """
        exigir_edicao(operador, 'Sem permissão para criar créditos')
        campos = CreditoService._validar_criacao(dados)

        with unidade_de_trabalho():
            credito = Credito(
                codigo=CreditoService._proximo_codigo(),
                credor_id=str(dados['credor_id']),
                credor_tipo=dados['credor_tipo'],
                devedor_id=str(dados['devedor_id']) if dados.get('devedor_id') else None,
                devedor_tipo=dados.get('devedor_tipo'),
                origem=campos['origem'],
                valor_nominal=campos['valor_nominal'],
                saldo_atual=campos['saldo_inicial'],
                taxa_juros=dados.get('taxa_juros'),
                data_inicio=campos['data_inicio'],
                data_vencimento=campos['data_vencimento'],
                status='disponivel',
                observacoes=dados.get('observacoes'),
                criado_por=operador.id
            )
            db.session.add(credito)
            db.session.add(MovimentoCredito(
                credito=credito,
                tipo='inicial',
                descricao=DESCRICOES_PADRAO['inicial'],
                valor=campos['saldo_inicial'],
                saldo_apos=campos['saldo_inicial'],
                data_movimento=campos['data_inicio'],
                criado_por=operador.id
            ))

        logger.info('Crédito %s criado: nominal R$%s, saldo inicial R$%s',
                    credito.codigo, credito.valor_nominal, credito.saldo_atual)
        return credito

    @staticmethod
    def atualizar(credito_id, dados, operador):
        """
        Atualiza campos descritivos e status

        Valor nominal e saldo só mudam por movimentos
        """
        exigir_edicao(operador, 'Sem permissão para editar créditos')

        proibidos = [campo for campo in ('valor_nominal', 'saldo_atual') if campo in dados]
        if proibidos:
            raise ValidacaoError(
                'Saldo do crédito é alterado apenas por movimentos',
                field_errors={campo: ['Campo não pode ser editado diretamente'] for campo in proibidos}
            )

        erros = {}
        if 'status' in dados and dados['status'] not in Credito.STATUS:
            erros['status'] = [f'Use um dos seguintes: {", ".join(Credito.STATUS)}']
        if 'origem' in dados and not (dados['origem'] or '').strip():
            erros['origem'] = ['Origem é obrigatória']
        if dados.get('devedor_tipo') and dados['devedor_tipo'] not in TIPOS_PARTE:
            erros['devedor_tipo'] = ['Use pessoa ou empresa']
        if dados.get('data_vencimento'):
            try:
                para_data(dados['data_vencimento'])
            except ValueError as e:
                erros['data_vencimento'] = [str(e)]
        if erros:
            raise ValidacaoError(field_errors=erros)

        with unidade_de_trabalho():
            credito = CreditoService.obter(credito_id, bloquear=True)
            for campo in ('origem', 'devedor_id', 'devedor_tipo', 'taxa_juros', 'status', 'observacoes'):
                if campo in dados:
                    setattr(credito, campo, dados[campo])
            if 'data_vencimento' in dados:
                credito.data_vencimento = para_data(dados['data_vencimento']) if dados['data_vencimento'] else None

        return credito

    # ========================================================================
    # MOVIMENTOS
    # ========================================================================

    @staticmethod
    def aplicar_movimento(credito_id, tipo, valor, descricao, operador, data_movimento=None):
        """
        Registra um movimento e atualiza o saldo

        Args:
            tipo (str):
                - inicial: apenas como primeiro movimento
                - deducao: saldo -= valor
                - estorno: saldo += valor
                - ajuste: saldo = valor
            valor: > 0 (ajuste aceita 0)

        Returns:
            MovimentoCredito

        Raises:
            SaldoCreditoInsuficienteError: Saldo ficaria negativo
            ExcedeValorNominalError: Saldo ficaria acima do valor nominal
            MovimentoInicialDuplicadoError: 'inicial' em crédito com movimentos
        """
        exigir_edicao(operador, 'Sem permissão para movimentar créditos')

        if tipo not in MovimentoCredito.TIPOS:
            raise ValidacaoError(field_errors={'tipo': [f'Use um dos seguintes: {", ".join(MovimentoCredito.TIPOS)}']})
        try:
            valor = dinheiro(valor)
        except ValueError as e:
            raise ValidacaoError(field_errors={'valor': [str(e)]})
        if valor < ZERO or (valor == ZERO and tipo != 'ajuste'):
            raise ValidacaoError(field_errors={'valor': ['Valor deve ser maior que zero']})
        try:
            data_movimento = para_data(data_movimento) if data_movimento else date.today()
        except ValueError as e:
            raise ValidacaoError(field_errors={'data_movimento': [str(e)]})

        with unidade_de_trabalho():
            credito = CreditoService.obter(credito_id, bloquear=True)
            saldo = dinheiro(credito.saldo_atual)
            nominal = dinheiro(credito.valor_nominal)

            if tipo == 'inicial':
                if credito.movimentos.count() > 0:
                    raise MovimentoInicialDuplicadoError(
                        f'Crédito {credito.codigo} já possui movimento inicial', credito_id=credito.id
                    )
                novo_saldo = valor
            elif tipo == 'deducao':
                novo_saldo = saldo - valor
            elif tipo == 'estorno':
                novo_saldo = saldo + valor
            else:
                novo_saldo = valor

            if novo_saldo < ZERO:
                raise SaldoCreditoInsuficienteError(
                    f'Saldo insuficiente no crédito {credito.codigo}. '
                    f'Disponível: R$ {saldo}, solicitado: R$ {valor}',
                    credito_id=credito.id, saldo_atual=str(saldo), valor=str(valor)
                )
            if novo_saldo > nominal:
                raise ExcedeValorNominalError(
                    f'Saldo do crédito {credito.codigo} não pode exceder o valor nominal (R$ {nominal})',
                    credito_id=credito.id, valor_nominal=str(nominal), saldo_resultante=str(novo_saldo)
                )

            movimento = MovimentoCredito(
                credito=credito,
                tipo=tipo,
                descricao=(descricao or '').strip() or DESCRICOES_PADRAO[tipo],
                valor=valor,
                saldo_apos=novo_saldo,
                data_movimento=data_movimento,
                criado_por=operador.id
            )
            db.session.add(movimento)
            credito.saldo_atual = novo_saldo

        logger.info('Movimento de crédito %s (%s R$%s): saldo %s -> %s',
                    credito.codigo, tipo, valor, saldo, novo_saldo)
        return movimento

    @staticmethod
    def reconstruir_saldo(credito_id, operador):
        """
        Refaz o saldo a partir da trilha de movimentos

        Returns:
            dict: saldo_anterior, saldo_reconstruido, diferenca
        """
        exigir_edicao(operador, 'Sem permissão para recalcular créditos')

        with unidade_de_trabalho():
            credito = CreditoService.obter(credito_id, bloquear=True)
            anterior = dinheiro(credito.saldo_atual)

            saldo = ZERO
            for movimento in credito.movimentos.all():
                valor = dinheiro(movimento.valor)
                if movimento.tipo == 'deducao':
                    saldo -= valor
                elif movimento.tipo == 'estorno':
                    saldo += valor
                else:
                    saldo = valor

            credito.saldo_atual = saldo

        if saldo != anterior:
            logger.warning('Saldo do crédito %s corrigido: %s -> %s', credito.codigo, anterior, saldo)

        return {
            'credito_id': credito.id,
            'saldo_anterior': float(anterior),
            'saldo_reconstruido': float(saldo),
            'diferenca': float(saldo - anterior)
        }

    # ========================================================================
    # CONSULTAS
    # ========================================================================

    @staticmethod
    def obter(credito_id, bloquear=False):
        return obter_ou_erro(Credito, credito_id, 'Carta de crédito', bloquear=bloquear)

    @staticmethod
    def listar(filtros=None):
        """
        Filtros: status, credor_id, devedor_id, busca (texto livre em origem
        e observações)
        """
        filtros = filtros or {}
        consulta = Credito.query
        if filtros.get('status'):
            consulta = consulta.filter(Credito.status == filtros['status'])
        if filtros.get('credor_id'):
            consulta = consulta.filter(Credito.credor_id == str(filtros['credor_id']))
        if filtros.get('devedor_id'):
            consulta = consulta.filter(Credito.devedor_id == str(filtros['devedor_id']))
        if filtros.get('busca'):
            consulta = consulta.filter(or_(
                Credito.origem.ilike(f"%{filtros['busca']}%"),
                Credito.observacoes.ilike(f"%{filtros['busca']}%")
            ))
        return consulta.order_by(Credito.codigo).all()

    @staticmethod
    def movimentos(credito_id):
        return CreditoService.obter(credito_id).movimentos.all()

    # ========================================================================
    # AUXILIARES
    # ========================================================================

    @staticmethod
    def _proximo_codigo():
        ultimo = 0
        for (codigo,) in db.session.query(Credito.codigo).filter(Credito.codigo.like('CRED-%')).all():
            sufixo = codigo[len('CRED-'):]
            if sufixo.isdigit():
                ultimo = max(ultimo, int(sufixo))
        return f'CRED-{ultimo + 1:04d}'

    @staticmethod
    def _validar_criacao(dados):
        erros = {}
        campos = {}

        if not dados.get('credor_id'):
            erros['credor_id'] = ['Credor é obrigatório']
        if dados.get('credor_tipo') not in TIPOS_PARTE:
            erros['credor_tipo'] = ['Use pessoa ou empresa']
        if dados.get('devedor_tipo') and dados['devedor_tipo'] not in TIPOS_PARTE:
            erros['devedor_tipo'] = ['Use pessoa ou empresa']

        origem = (dados.get('origem') or '').strip()
        if not origem:
            erros['origem'] = ['Origem é obrigatória']
        campos['origem'] = origem

        try:
            campos['valor_nominal'] = dinheiro(dados.get('valor_nominal'))
            if campos['valor_nominal'] <= ZERO:
                erros['valor_nominal'] = ['Valor deve ser maior que zero']
        except ValueError as e:
            erros['valor_nominal'] = [str(e)]

        if 'valor_nominal' not in erros:
            try:
                saldo = dados.get('saldo_inicial')
                campos['saldo_inicial'] = dinheiro(saldo) if saldo is not None else campos['valor_nominal']
                if not ZERO <= campos['saldo_inicial'] <= campos['valor_nominal']:
                    erros['saldo_inicial'] = ['Saldo inicial deve estar entre 0 e o valor nominal']
            except ValueError as e:
                erros['saldo_inicial'] = [str(e)]

        try:
            campos['data_inicio'] = para_data(dados.get('data_inicio') or date.today())
        except ValueError as e:
            erros['data_inicio'] = [str(e)]

        try:
            vencimento = dados.get('data_vencimento')
            campos['data_vencimento'] = para_data(vencimento) if vencimento else None
        except ValueError as e:
            erros['data_vencimento'] = [str(e)]

        if erros:
            raise ValidacaoError(field_errors=erros)
        return campos

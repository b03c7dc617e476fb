"""
Serviço de Fechamento de Caixa

Conferência de fim de dia: o operador informa o saldo contado de cada conta
ativa e o sistema registra a diferença para o saldo calculado. Nunca ajusta
saldos.
"""
import logging

from sqlalchemy.exc import IntegrityError

from tesouraria.models import db, ContaBancaria, FechamentoCaixa, FechamentoCaixaConta, MovimentoCaixa
from tesouraria.services.autorizacao import exigir_edicao
from tesouraria.services.caixa_service import CaixaService
from tesouraria.services.conta_bancaria_service import ContaBancariaService
from tesouraria.services.erros import (DiaJaFechadoError, FechamentoIncompletoError,
                                       NaoEncontradoError, ValidacaoError)
from tesouraria.services.transacao import unidade_de_trabalho
from tesouraria.services.valores import ZERO, dinheiro, para_data

logger = logging.getLogger(__name__)


class FechamentoCaixaService:

    @staticmethod
    def dias_em_aberto():
        """Datas com movimentos e ainda sem fechamento, em ordem crescente"""
        fechados = db.select(FechamentoCaixa.data_fechamento)
        datas = db.session.query(MovimentoCaixa.data_movimento).filter(
            MovimentoCaixa.data_movimento.notin_(fechados)
        ).distinct().order_by(MovimentoCaixa.data_movimento).all()
        return [data for (data,) in datas]

    @staticmethod
    def fechar(data, saldos_informados, operador, observacoes=None):
        """
        Fecha o caixa de um dia

        Args:
            data: Data do fechamento (date ou YYYY-MM-DD)
            saldos_informados: {conta_bancaria_id: saldo} ou
                [{'conta_bancaria_id': id, 'saldo_informado': valor}, ...]
            operador (Operador): admin ou editor
            observacoes (str, opcional)

        Returns:
            FechamentoCaixa

        Raises:
            FechamentoIncompletoError: Falta saldo de alguma conta ativa
            DiaJaFechadoError: Data já fechada
        """
        exigir_edicao(operador, 'Sem permissão para fechar o caixa')
        try:
            data = para_data(data)
        except ValueError as e:
            raise ValidacaoError(field_errors={'data_fechamento': [str(e)]})
        informados = FechamentoCaixaService._normalizar_saldos(saldos_informados)

        try:
            with unidade_de_trabalho():
                if CaixaService.dia_fechado(data):
                    raise DiaJaFechadoError(
                        f'O caixa do dia {data.strftime("%d/%m/%Y")} já foi fechado',
                        data=data.isoformat()
                    )

                contas = ContaBancaria.query.filter_by(status='ativo').order_by(ContaBancaria.id).all()
                ids_ativos = {conta.id for conta in contas}

                faltantes = sorted(ids_ativos - set(informados))
                if faltantes:
                    raise FechamentoIncompletoError(
                        'Informe o saldo de todas as contas ativas',
                        contas_faltantes=faltantes
                    )

                desconhecidas = sorted(set(informados) - ids_ativos)
                if desconhecidas:
                    raise ValidacaoError(
                        'Saldos informados para contas inexistentes ou inativas',
                        field_errors={'saldos': [f'Conta {conta_id} não está ativa' for conta_id in desconhecidas]}
                    )

                resumo = CaixaService.resumo_dia(data)
                fechamento = FechamentoCaixa(
                    data_fechamento=data,
                    total_entradas=resumo['total_entradas'],
                    total_saidas=resumo['total_saidas'],
                    saldo_liquido=resumo['saldo_liquido'],
                    observacoes=observacoes,
                    fechado_por=operador.id
                )

                discrepancia_total = ZERO
                for conta in contas:
                    calculado = ContaBancariaService.calcular_saldo(conta, ate=data)
                    informado = informados[conta.id]
                    discrepancia = informado - calculado
                    discrepancia_total += discrepancia
                    fechamento.contas.append(FechamentoCaixaConta(
                        conta_bancaria=conta,
                        saldo_informado=informado,
                        saldo_calculado=calculado,
                        discrepancia=discrepancia
                    ))

                fechamento.discrepancia = discrepancia_total
                db.session.add(fechamento)
        except IntegrityError:
            raise DiaJaFechadoError(
                f'O caixa do dia {data.strftime("%d/%m/%Y")} já foi fechado',
                data=data.isoformat()
            )

        if discrepancia_total != ZERO:
            logger.warning('Fechamento de %s com diferença de R$%s', data.isoformat(), discrepancia_total)
        else:
            logger.info('Caixa de %s fechado sem diferenças', data.isoformat())
        return fechamento

    @staticmethod
    def listar():
        return FechamentoCaixa.query.order_by(FechamentoCaixa.data_fechamento.desc()).all()

    @staticmethod
    def obter(data):
        data = para_data(data)
        fechamento = FechamentoCaixa.query.filter_by(data_fechamento=data).first()
        if fechamento is None:
            raise NaoEncontradoError(f'Fechamento de {data.strftime("%d/%m/%Y")} não encontrado',
                                     data=data.isoformat())
        return fechamento

    @staticmethod
    def _normalizar_saldos(saldos_informados):
        if isinstance(saldos_informados, list):
            pares = [(item.get('conta_bancaria_id'), item.get('saldo_informado'))
                     for item in saldos_informados if isinstance(item, dict)]
        elif isinstance(saldos_informados, dict):
            pares = list(saldos_informados.items())
        else:
            raise ValidacaoError(field_errors={'saldos': ['Informe os saldos por conta']})

        informados = {}
        erros = []
        for conta_id, valor in pares:
            try:
                informados[int(conta_id)] = dinheiro(valor)
            except (TypeError, ValueError):
                erros.append(f'Saldo inválido para a conta {conta_id}')
        if erros:
            raise ValidacaoError(field_errors={'saldos': erros})
        return informados

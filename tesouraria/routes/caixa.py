"""
Rotas da API do Caixa (movimentos e fechamento diário)

Endpoints:
- GET    /api/caixa/movimentos            - Listar movimentos
- POST   /api/caixa/movimentos            - Registrar entrada/saída
- DELETE /api/caixa/movimentos/<id>       - Excluir movimento (admin)
- GET    /api/caixa/resumo?data=          - Totais do dia
- GET    /api/caixa/dias-em-aberto        - Dias com movimentos sem fechamento
- GET    /api/caixa/fechamentos           - Listar fechamentos
- POST   /api/caixa/fechamentos           - Fechar o caixa de um dia
- GET    /api/caixa/fechamentos/<data>    - Detalhe de um fechamento
"""
from datetime import date

from flask import Blueprint, request, jsonify

from tesouraria.routes.utils import dados_requisicao, obter_operador, para_json, resposta_erro
from tesouraria.services.caixa_service import CaixaService
from tesouraria.services.erros import TesourariaError, ValidacaoError
from tesouraria.services.fechamento_caixa_service import FechamentoCaixaService

caixa_bp = Blueprint('caixa', __name__)


# ============================================================================
# MOVIMENTOS
# ============================================================================

@caixa_bp.route('/movimentos', methods=['GET'])
def listar_movimentos():
    """
    Lista movimentos de caixa

    Query params:
        data_inicio, data_fim (YYYY-MM-DD), tipo, conta_bancaria_id,
        vinculo, forma, centro_custo
    """
    try:
        movimentos = CaixaService.listar(request.args.to_dict())
        return jsonify({
            'success': True,
            'data': [movimento.to_dict() for movimento in movimentos],
            'total': len(movimentos)
        }), 200
    except ValueError as e:
        return resposta_erro(ValidacaoError(str(e)))


@caixa_bp.route('/movimentos', methods=['POST'])
def registrar_movimento():
    """
    Registra uma entrada ou saída

    Body params:
        conta_bancaria_id: int (obrigatório)
        data_movimento: YYYY-MM-DD (obrigatório)
        tipo: entrada ou saida
        descricao: str
        valor: número > 0
        vinculo, centro_custo, observacoes: opcionais
        forma: Caixa (padrão) ou Permuta
    """
    try:
        movimento = CaixaService.registrar(dados_requisicao(), obter_operador())
        return jsonify({
            'success': True,
            'message': 'Movimento registrado com sucesso',
            'data': movimento.to_dict()
        }), 201
    except TesourariaError as e:
        return resposta_erro(e)


@caixa_bp.route('/movimentos/<int:id>', methods=['DELETE'])
def excluir_movimento(id):
    """Exclui o movimento e recalcula o saldo da conta"""
    try:
        resultado = CaixaService.excluir(id, obter_operador())
        return jsonify({
            'success': True,
            'message': 'Movimento excluído com sucesso',
            'data': resultado
        }), 200
    except TesourariaError as e:
        return resposta_erro(e)


@caixa_bp.route('/resumo', methods=['GET'])
def resumo_dia():
    try:
        resumo = CaixaService.resumo_dia(
            request.args.get('data') or date.today(),
            request.args.get('conta_bancaria_id')
        )
        return jsonify({'success': True, 'data': para_json(resumo)}), 200
    except ValueError as e:
        return resposta_erro(ValidacaoError(str(e)))


# ============================================================================
# FECHAMENTO DE CAIXA
# ============================================================================

@caixa_bp.route('/dias-em-aberto', methods=['GET'])
def dias_em_aberto():
    dias = FechamentoCaixaService.dias_em_aberto()
    return jsonify({
        'success': True,
        'data': [dia.isoformat() for dia in dias],
        'total': len(dias)
    }), 200


@caixa_bp.route('/fechamentos', methods=['GET'])
def listar_fechamentos():
    fechamentos = FechamentoCaixaService.listar()
    return jsonify({
        'success': True,
        'data': [fechamento.to_dict() for fechamento in fechamentos],
        'total': len(fechamentos)
    }), 200


@caixa_bp.route('/fechamentos', methods=['POST'])
def fechar_caixa():
    """
    Fecha o caixa de um dia

    Body params:
        data_fechamento: YYYY-MM-DD
        saldos: [{'conta_bancaria_id': int, 'saldo_informado': número}, ...]
        observacoes: str (opcional)
    """
    try:
        dados = dados_requisicao()
        fechamento = FechamentoCaixaService.fechar(
            dados.get('data_fechamento'),
            dados.get('saldos'),
            obter_operador(),
            observacoes=dados.get('observacoes')
        )
        return jsonify({
            'success': True,
            'message': 'Caixa fechado com sucesso',
            'data': fechamento.to_dict()
        }), 201
    except TesourariaError as e:
        return resposta_erro(e)


@caixa_bp.route('/fechamentos/<data>', methods=['GET'])
def obter_fechamento(data):
    try:
        fechamento = FechamentoCaixaService.obter(data)
        return jsonify({'success': True, 'data': fechamento.to_dict()}), 200
    except TesourariaError as e:
        return resposta_erro(e)
    except ValueError as e:
        return resposta_erro(ValidacaoError(str(e)))

"""
Rotas da API de Cartas de Crédito

Endpoints:
- GET  /api/creditos                      - Listar créditos
- POST /api/creditos                      - Criar crédito
- GET  /api/creditos/<id>                 - Buscar crédito
- PUT  /api/creditos/<id>                 - Atualizar campos descritivos/status
- GET  /api/creditos/<id>/movimentos      - Trilha de movimentos
- POST /api/creditos/<id>/movimentos      - Registrar movimento
- POST /api/creditos/<id>/reconstruir     - Refazer o saldo pela trilha
"""
from flask import Blueprint, request, jsonify

from tesouraria.routes.utils import dados_requisicao, obter_operador, resposta_erro
from tesouraria.services.credito_service import CreditoService
from tesouraria.services.erros import TesourariaError

creditos_bp = Blueprint('creditos', __name__)


@creditos_bp.route('', methods=['GET'])
def listar_creditos():
    """
    Query params:
        status, credor_id, devedor_id, busca (origem ou observações)
    """
    creditos = CreditoService.listar(request.args.to_dict())
    return jsonify({
        'success': True,
        'data': [credito.to_dict() for credito in creditos],
        'total': len(creditos)
    }), 200


@creditos_bp.route('', methods=['POST'])
def criar_credito():
    try:
        credito = CreditoService.criar(dados_requisicao(), obter_operador())
        return jsonify({
            'success': True,
            'message': 'Crédito criado com sucesso',
            'data': credito.to_dict()
        }), 201
    except TesourariaError as e:
        return resposta_erro(e)


@creditos_bp.route('/<int:id>', methods=['GET'])
def buscar_credito(id):
    try:
        credito = CreditoService.obter(id)
        return jsonify({'success': True, 'data': credito.to_dict()}), 200
    except TesourariaError as e:
        return resposta_erro(e)


@creditos_bp.route('/<int:id>', methods=['PUT'])
def atualizar_credito(id):
    try:
        credito = CreditoService.atualizar(id, dados_requisicao(), obter_operador())
        return jsonify({
            'success': True,
            'message': 'Crédito atualizado com sucesso',
            'data': credito.to_dict()
        }), 200
    except TesourariaError as e:
        return resposta_erro(e)


@creditos_bp.route('/<int:id>/movimentos', methods=['GET'])
def listar_movimentos(id):
    try:
        movimentos = CreditoService.movimentos(id)
        return jsonify({
            'success': True,
            'data': [movimento.to_dict() for movimento in movimentos],
            'total': len(movimentos)
        }), 200
    except TesourariaError as e:
        return resposta_erro(e)


@creditos_bp.route('/<int:id>/movimentos', methods=['POST'])
def registrar_movimento(id):
    """
    Body params:
        tipo: inicial, deducao, estorno ou ajuste
        valor: número
        descricao: str (opcional)
        data_movimento: YYYY-MM-DD (opcional, padrão hoje)
    """
    try:
        dados = dados_requisicao()
        movimento = CreditoService.aplicar_movimento(
            id,
            dados.get('tipo'),
            dados.get('valor'),
            dados.get('descricao'),
            obter_operador(),
            data_movimento=dados.get('data_movimento')
        )
        return jsonify({
            'success': True,
            'message': 'Movimento registrado com sucesso',
            'data': movimento.to_dict()
        }), 201
    except TesourariaError as e:
        return resposta_erro(e)


@creditos_bp.route('/<int:id>/reconstruir', methods=['POST'])
def reconstruir_saldo(id):
    try:
        resultado = CreditoService.reconstruir_saldo(id, obter_operador())
        return jsonify({'success': True, 'data': resultado}), 200
    except TesourariaError as e:
        return resposta_erro(e)

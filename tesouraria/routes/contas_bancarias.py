"""
Rotas da API para gerenciamento de Contas Bancárias

Endpoints:
- GET    /api/contas-bancarias                        - Listar contas
- GET    /api/contas-bancarias/<id>                   - Buscar uma conta
- POST   /api/contas-bancarias                        - Criar conta
- PUT    /api/contas-bancarias/<id>                   - Atualizar conta
- DELETE /api/contas-bancarias/<id>                   - Inativar conta (não remove do BD)
- PUT    /api/contas-bancarias/<id>/ativar            - Reativar conta
- POST   /api/contas-bancarias/<id>/recalcular        - Recalcular saldo
- POST   /api/contas-bancarias/verificar-integridade  - Recalcular todas as contas
"""
from flask import Blueprint, request, jsonify

from tesouraria.routes.utils import dados_requisicao, obter_operador, resposta_erro
from tesouraria.services.autorizacao import exigir_edicao
from tesouraria.services.conta_bancaria_service import ContaBancariaService
from tesouraria.services.erros import TesourariaError

contas_bancarias_bp = Blueprint('contas_bancarias', __name__)


@contas_bancarias_bp.route('', methods=['GET'])
def listar_contas():
    """
    Lista contas bancárias

    Query params:
        status: ativo (padrão), inativo ou todos
    """
    contas = ContaBancariaService.listar(request.args.get('status'))
    return jsonify({
        'success': True,
        'data': [conta.to_dict() for conta in contas],
        'total': len(contas)
    }), 200


@contas_bancarias_bp.route('/<int:id>', methods=['GET'])
def buscar_conta(id):
    try:
        conta = ContaBancariaService.obter(id)
        return jsonify({'success': True, 'data': conta.to_dict()}), 200
    except TesourariaError as e:
        return resposta_erro(e)


@contas_bancarias_bp.route('', methods=['POST'])
def criar_conta():
    """
    Cria uma nova conta bancária

    Body params:
        nome: str (obrigatório)
        tipo: banco, especie, poupanca ou investimento
        codigo: str (opcional)
        saldo_inicial: número (opcional, padrão 0)
        observacoes: str (opcional)
    """
    try:
        conta = ContaBancariaService.criar(dados_requisicao(), obter_operador())
        return jsonify({
            'success': True,
            'message': 'Conta criada com sucesso',
            'data': conta.to_dict()
        }), 201
    except TesourariaError as e:
        return resposta_erro(e)


@contas_bancarias_bp.route('/<int:id>', methods=['PUT'])
def atualizar_conta(id):
    try:
        conta = ContaBancariaService.atualizar(id, dados_requisicao(), obter_operador())
        return jsonify({
            'success': True,
            'message': 'Conta atualizada com sucesso',
            'data': conta.to_dict()
        }), 200
    except TesourariaError as e:
        return resposta_erro(e)


@contas_bancarias_bp.route('/<int:id>', methods=['DELETE'])
def inativar_conta(id):
    """Inativa a conta (soft delete)"""
    try:
        conta = ContaBancariaService.inativar(id, obter_operador())
        return jsonify({
            'success': True,
            'message': 'Conta inativada com sucesso',
            'data': conta.to_dict()
        }), 200
    except TesourariaError as e:
        return resposta_erro(e)


@contas_bancarias_bp.route('/<int:id>/ativar', methods=['PUT'])
def ativar_conta(id):
    try:
        conta = ContaBancariaService.reativar(id, obter_operador())
        return jsonify({
            'success': True,
            'message': 'Conta reativada com sucesso',
            'data': conta.to_dict()
        }), 200
    except TesourariaError as e:
        return resposta_erro(e)


@contas_bancarias_bp.route('/<int:id>/recalcular', methods=['POST'])
def recalcular_saldo(id):
    """Recalcula o saldo a partir de todos os movimentos"""
    try:
        exigir_edicao(obter_operador(), 'Sem permissão para recalcular saldos')
        resultado = ContaBancariaService.recalcular_saldo(id)
        return jsonify({'success': True, 'data': resultado}), 200
    except TesourariaError as e:
        return resposta_erro(e)


@contas_bancarias_bp.route('/verificar-integridade', methods=['POST'])
def verificar_integridade():
    try:
        exigir_edicao(obter_operador(), 'Sem permissão para recalcular saldos')
        divergencias = ContaBancariaService.verificar_integridade()
        return jsonify({
            'success': True,
            'message': f'{len(divergencias)} conta(s) corrigida(s)',
            'data': divergencias,
            'total': len(divergencias)
        }), 200
    except TesourariaError as e:
        return resposta_erro(e)

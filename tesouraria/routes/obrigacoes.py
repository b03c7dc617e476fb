"""
Rotas da API de Contas a Pagar e Contas a Receber

As duas têm o mesmo conjunto de endpoints; muda apenas o verbo da
liquidação individual (/pagar ou /receber).

Endpoints (prefixo /api/contas-pagar ou /api/contas-receber):
- GET    ''                         - Listar contas
- POST   ''                         - Criar conta (ou parcelas)
- GET    /<id>                      - Buscar conta
- PUT    /<id>                      - Correção administrativa
- DELETE /<id>                      - Excluir (admin, sem histórico)
- POST   /<id>/cancelar             - Cancelar
- GET    /<id>/pagamentos           - Histórico de pagamentos
- POST   /<id>/pagar | /<id>/receber - Liquidação individual
- POST   /lote                      - Liquidação em lote
- GET    /resumo                    - Totais em aberto, vencido e vencendo hoje
- POST   /reclassificar-vencidas    - Reclassificar contas vencidas
"""
from flask import Blueprint, request, jsonify

from tesouraria.routes.utils import dados_requisicao, obter_operador, para_json, resposta_erro
from tesouraria.services.autorizacao import exigir_edicao
from tesouraria.services.erros import TesourariaError, ValidacaoError
from tesouraria.services.liquidacao_service import LiquidacaoService
from tesouraria.services.obrigacao_service import ObrigacaoService


def criar_blueprint(tipo, nome, verbo):
    """
    Monta o blueprint de um tipo de conta

    Args:
        tipo: 'pagar' ou 'receber'
        nome: Nome do blueprint
        verbo: Rota da liquidação individual ('pagar' ou 'receber')
    """
    bp = Blueprint(nome, __name__)

    # ========================================================================
    # CONSULTAS
    # ========================================================================

    @bp.route('', methods=['GET'])
    def listar():
        """
        Query params:
            status, data_inicio, data_fim, codigo, descricao, valor_min,
            valor_max, vinculo, centro_custo, contraparte_id
        """
        try:
            contas = ObrigacaoService.listar(tipo, request.args.to_dict())
            return jsonify({
                'success': True,
                'data': [conta.to_dict() for conta in contas],
                'total': len(contas)
            }), 200
        except TesourariaError as e:
            return resposta_erro(e)
        except ValueError as e:
            return resposta_erro(ValidacaoError(str(e)))

    @bp.route('/<int:id>', methods=['GET'])
    def buscar(id):
        try:
            conta = ObrigacaoService.obter(tipo, id)
            return jsonify({'success': True, 'data': conta.to_dict()}), 200
        except TesourariaError as e:
            return resposta_erro(e)

    @bp.route('/<int:id>/pagamentos', methods=['GET'])
    def historico(id):
        try:
            pagamentos = ObrigacaoService.historico_pagamentos(tipo, id)
            return jsonify({
                'success': True,
                'data': [pagamento.to_dict() for pagamento in pagamentos],
                'total': len(pagamentos)
            }), 200
        except TesourariaError as e:
            return resposta_erro(e)

    @bp.route('/resumo', methods=['GET'])
    def resumo():
        resultado = ObrigacaoService.resumo(tipo)
        return jsonify({'success': True, 'data': para_json(resultado)}), 200

    # ========================================================================
    # CADASTRO
    # ========================================================================

    @bp.route('', methods=['POST'])
    def criar():
        """
        Body params:
            descricao, valor_nominal, data_vencimento (obrigatórios)
            contraparte, contraparte_id, contrato_id, vinculo, centro_custo,
            observacoes (opcionais)
            total_parcelas, periodicidade (parcelamento)
        """
        try:
            contas = ObrigacaoService.criar(tipo, dados_requisicao(), obter_operador())
            return jsonify({
                'success': True,
                'message': f'{len(contas)} conta(s) criada(s) com sucesso',
                'data': contas[0].to_dict() if len(contas) == 1 else [conta.to_dict() for conta in contas],
                'total': len(contas)
            }), 201
        except TesourariaError as e:
            return resposta_erro(e)

    @bp.route('/<int:id>', methods=['PUT'])
    def atualizar(id):
        try:
            conta = ObrigacaoService.atualizar(tipo, id, dados_requisicao(), obter_operador())
            return jsonify({
                'success': True,
                'message': 'Conta atualizada com sucesso',
                'data': conta.to_dict()
            }), 200
        except TesourariaError as e:
            return resposta_erro(e)

    @bp.route('/<int:id>', methods=['DELETE'])
    def excluir(id):
        try:
            resultado = ObrigacaoService.excluir(tipo, id, obter_operador())
            return jsonify({
                'success': True,
                'message': f'Conta {resultado["codigo"]} excluída com sucesso'
            }), 200
        except TesourariaError as e:
            return resposta_erro(e)

    @bp.route('/<int:id>/cancelar', methods=['POST'])
    def cancelar(id):
        try:
            conta = ObrigacaoService.cancelar(tipo, id, obter_operador())
            return jsonify({
                'success': True,
                'message': 'Conta cancelada com sucesso',
                'data': conta.to_dict()
            }), 200
        except TesourariaError as e:
            return resposta_erro(e)

    # ========================================================================
    # LIQUIDAÇÃO
    # ========================================================================

    @bp.route(f'/<int:id>/{verbo}', methods=['POST'])
    def liquidar_uma(id):
        """
        Body params:
            valor_pagamento, forma_pagamento, conta_bancaria_id (obrigatórios)
            data_pagamento (padrão hoje), observacoes
        """
        try:
            resultado = LiquidacaoService.liquidar_uma(tipo, id, dados_requisicao(), obter_operador())
            return jsonify({
                'success': True,
                'message': 'Pagamento registrado com sucesso',
                'data': resultado
            }), 200
        except TesourariaError as e:
            return resposta_erro(e)

    @bp.route('/lote', methods=['POST'])
    def liquidar_lote():
        """
        Body params:
            pagamentos: [{'obrigacao_id': int, 'valor_pagamento': número}, ...]
            forma_pagamento, conta_bancaria_id (obrigatórios)
            data_pagamento (padrão hoje), observacoes
        """
        try:
            dados = dados_requisicao()
            resultado = LiquidacaoService.liquidar(tipo, dados.get('pagamentos'), dados, obter_operador())
            return jsonify({
                'success': True,
                'message': f'{resultado["processados"]} pagamento(s) registrado(s) com sucesso',
                'data': resultado
            }), 200
        except TesourariaError as e:
            return resposta_erro(e)

    @bp.route('/reclassificar-vencidas', methods=['POST'])
    def reclassificar_vencidas():
        try:
            exigir_edicao(obter_operador(), 'Sem permissão para reclassificar contas')
            alteradas = ObrigacaoService.reclassificar_vencidas()
            return jsonify({
                'success': True,
                'message': f'{alteradas[tipo]} conta(s) reclassificada(s)',
                'data': alteradas
            }), 200
        except TesourariaError as e:
            return resposta_erro(e)

    return bp


contas_pagar_bp = criar_blueprint('pagar', 'contas_pagar', 'pagar')
contas_receber_bp = criar_blueprint('receber', 'contas_receber', 'receber')

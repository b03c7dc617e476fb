"""
Funções de apoio comuns às rotas
"""
import logging
from decimal import Decimal

from flask import jsonify, request

from tesouraria.services.autorizacao import PAPEL_VISUALIZADOR, Operador

logger = logging.getLogger(__name__)


def obter_operador():
    """
    Monta o Operador a partir dos cabeçalhos do proxy autenticador

    Headers:
        X-Usuario-Id: identificador do usuário
        X-Usuario-Papel: admin, editor ou viewer (padrão viewer)

    Returns:
        Operador ou None se não houver identificação
    """
    usuario_id = (request.headers.get('X-Usuario-Id') or '').strip()
    if not usuario_id:
        return None
    papel = (request.headers.get('X-Usuario-Papel') or PAPEL_VISUALIZADOR).strip().lower()
    return Operador(id=usuario_id, papel=papel)


def dados_requisicao():
    """Corpo JSON da requisição (dict vazio se ausente)"""
    return request.get_json(silent=True) or {}


def resposta_erro(erro):
    """Converte uma TesourariaError no envelope JSON de erro"""
    if erro.status_http >= 500:
        logger.error('%s: %s', erro.codigo, erro.mensagem)
    else:
        logger.info('%s %s rejeitado: %s (%s)', request.method, request.path, erro.mensagem, erro.codigo)
    return jsonify(erro.to_dict()), erro.status_http


def para_json(valores):
    """Decimal -> float para os dicionários de resumo"""
    return {chave: float(valor) if isinstance(valor, Decimal) else valor
            for chave, valor in valores.items()}

"""
Aplicação Flask - Tesouraria

Este arquivo inicializa a aplicação Flask e configura rotas, banco de dados,
logging, comandos de linha de comando e o agendador
"""
import logging
import os

import click
from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from tesouraria.config import get_config
from tesouraria.logging_config import configure_logging
from tesouraria.models import db
from tesouraria.services.erros import TesourariaError

logger = logging.getLogger(__name__)

# Carregar variáveis de ambiente
load_dotenv('.env.local')  # Para desenvolvimento

migrate = Migrate()


def create_app(config_name=None):
    """
    Factory para criar a aplicação Flask

    Args:
        config_name: Nome da configuração ('development', 'production', 'testing')

    Returns:
        app: Instância configurada do Flask
    """
    app = Flask(__name__)

    # Configuração baseada no ambiente
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app.config.from_object(get_config(config_name))

    configure_logging(app.config['LOG_LEVEL'], app.config['LOG_FORMAT'])

    # Inicializar extensões
    db.init_app(app)
    CORS(app)
    migrate.init_app(app, db)

    # Registrar blueprints (rotas)
    register_blueprints(app)

    # Registrar handlers de erro
    register_error_handlers(app)

    # Comandos: flask init-db, flask reclassificar-vencidas, flask verificar-saldos
    register_commands(app)

    @app.route('/health')
    def health():
        """Health check para monitoramento"""
        return jsonify({
            'status': 'ok',
            'environment': config_name
        })

    if app.config.get('AGENDADOR_ATIVO'):
        from tesouraria.scheduler import start_scheduler
        start_scheduler(app)

    logger.debug('Aplicação criada (ambiente %s)', config_name)
    return app


def register_blueprints(app):
    """
    Registra os blueprints (módulos de rotas)

    Args:
        app: Instância do Flask
    """
    # Importar blueprints aqui para evitar importação circular
    from tesouraria.routes.contas_bancarias import contas_bancarias_bp
    from tesouraria.routes.caixa import caixa_bp
    from tesouraria.routes.obrigacoes import contas_pagar_bp, contas_receber_bp
    from tesouraria.routes.creditos import creditos_bp

    # Registrar blueprints
    app.register_blueprint(contas_bancarias_bp, url_prefix='/api/contas-bancarias')
    app.register_blueprint(caixa_bp, url_prefix='/api/caixa')
    app.register_blueprint(contas_pagar_bp, url_prefix='/api/contas-pagar')
    app.register_blueprint(contas_receber_bp, url_prefix='/api/contas-receber')
    app.register_blueprint(creditos_bp, url_prefix='/api/creditos')


def register_error_handlers(app):
    """
    Registra handlers para tratamento de erros

    Args:
        app: Instância do Flask
    """

    @app.errorhandler(TesourariaError)
    def erro_tesouraria(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_http

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'Recurso não encontrado'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'success': False, 'error': 'Método não permitido'}), 405

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({'success': False, 'error': 'Requisição inválida'}), 400

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'success': False, 'error': 'Erro interno do servidor'}), 500

    @app.errorhandler(Exception)
    def unexpected_error(error):
        if isinstance(error, HTTPException):
            return jsonify({'success': False, 'error': error.description}), error.code
        db.session.rollback()
        logger.exception('Erro não tratado')
        return jsonify({'success': False, 'error': 'Erro interno do servidor'}), 500


def register_commands(app):

    @app.cli.command('init-db')
    def init_db():
        """Cria as tabelas do banco de dados"""
        db.create_all()
        click.echo('Tabelas criadas')

    @app.cli.command('reclassificar-vencidas')
    def reclassificar_vencidas():
        """Reclassifica contas em aberto com vencimento passado"""
        from tesouraria.services.obrigacao_service import ObrigacaoService
        alteradas = ObrigacaoService.reclassificar_vencidas()
        click.echo(f'Contas a pagar: {alteradas["pagar"]} | Contas a receber: {alteradas["receber"]}')

    @app.cli.command('verificar-saldos')
    def verificar_saldos():
        """Recalcula o saldo de todas as contas bancárias"""
        from tesouraria.services.conta_bancaria_service import ContaBancariaService
        divergencias = ContaBancariaService.verificar_integridade()
        if not divergencias:
            click.echo('Todos os saldos conferem')
        for item in divergencias:
            click.echo(f'{item["nome"]}: {item["saldo_anterior"]:.2f} -> {item["saldo_recalculado"]:.2f}')

"""
Agendador de Jobs Automáticos

Executa tarefas periódicas do sistema:
- Reclassificação diária de contas vencidas

Iniciado pelo create_app() quando AGENDADOR_ATIVO=True
"""
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

# Inicializar scheduler
scheduler = BackgroundScheduler()


def job_reclassificar_vencidas(app):
    """
    Job diário: contas em aberto com vencimento passado viram 'vencido'
    """
    from tesouraria.services.obrigacao_service import ObrigacaoService

    with app.app_context():
        try:
            alteradas = ObrigacaoService.reclassificar_vencidas()
            logger.info('Job de reclassificação concluído: %s', alteradas)
        except Exception:
            logger.exception('Erro no job de reclassificação de vencidas')


def start_scheduler(app):
    """
    Agenda os jobs e inicia o scheduler

    Args:
        app: Instância do Flask (os jobs rodam dentro do app context)
    """
    hora, minuto = app.config.get('HORARIO_RECLASSIFICACAO', (0, 5))

    scheduler.add_job(
        func=job_reclassificar_vencidas,
        args=[app],
        trigger=CronTrigger(hour=hora, minute=minuto),
        id='reclassificar_vencidas',
        name='Reclassificar contas vencidas',
        replace_existing=True
    )

    if not scheduler.running:
        scheduler.start()
        # Garantir que o scheduler pare ao encerrar a aplicação
        atexit.register(lambda: scheduler.shutdown(wait=False))
        logger.info('Scheduler iniciado; reclassificação diária às %02d:%02d', hora, minuto)

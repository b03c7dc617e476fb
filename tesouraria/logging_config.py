"""
Configuração de logging

- console: formato legível para desenvolvimento
- json: uma linha JSON por registro (agregadores de log em produção)
"""
import json
import logging
import logging.config
from datetime import datetime, timezone

_CAMPOS_PADRAO = set(logging.LogRecord('', 0, '', 0, '', (), None).__dict__) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """Formata o registro como JSON, incluindo campos passados em extra={}"""

    def format(self, record):
        dados = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for chave, valor in record.__dict__.items():
            if chave not in _CAMPOS_PADRAO and not chave.startswith('_'):
                dados[chave] = valor

        if record.exc_info:
            dados['exception'] = self.formatException(record.exc_info)

        return json.dumps(dados, default=str, ensure_ascii=False)


def get_logging_config(level='INFO', log_format='console'):
    """
    Monta o dicionário para logging.config.dictConfig

    Args:
        level: DEBUG, INFO, WARNING, ERROR
        log_format: 'console' ou 'json'
    """
    if log_format == 'json':
        formatters = {
            'json': {'()': 'tesouraria.logging_config.JsonFormatter'},
        }
        formatter = 'json'
    else:
        formatters = {
            'verbose': {
                'format': '[{asctime}] {levelname} {name} {message}',
                'style': '{',
            },
        }
        formatter = 'verbose'

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': formatters,
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': formatter,
                'stream': 'ext://sys.stdout',
            },
        },
        'loggers': {
            'tesouraria': {
                'handlers': ['console'],
                'level': level.upper(),
                'propagate': True,
            },
            'apscheduler': {
                'handlers': ['console'],
                'level': 'WARNING',
                'propagate': False,
            },
        },
    }


def configure_logging(level='INFO', log_format='console'):
    logging.config.dictConfig(get_logging_config(level, log_format))

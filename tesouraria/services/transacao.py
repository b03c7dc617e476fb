"""
Fronteira transacional dos serviços

Cada operação pública de serviço roda dentro de unidade_de_trabalho():
commit no sucesso, rollback em qualquer erro. Conflito de versão
(StaleDataError) vira ConflitoConcorrenciaError.
"""
import logging
from contextlib import contextmanager

from sqlalchemy.orm.exc import StaleDataError

from tesouraria.models import db
from tesouraria.services.erros import ConflitoConcorrenciaError, NaoEncontradoError

logger = logging.getLogger(__name__)


@contextmanager
def unidade_de_trabalho():
    try:
        yield db.session
        db.session.commit()
    except StaleDataError as e:
        db.session.rollback()
        logger.warning('Conflito de concorrência: %s', e)
        raise ConflitoConcorrenciaError() from e
    except Exception:
        db.session.rollback()
        raise


def obter_ou_erro(modelo, id, rotulo, bloquear=False):
    """
    Busca um registro pelo id

    Args:
        bloquear: Se True, usa SELECT ... FOR UPDATE (ignorado no SQLite)

    Raises:
        NaoEncontradoError
    """
    consulta = modelo.query.filter(modelo.id == id)
    if bloquear:
        consulta = consulta.with_for_update()

    registro = consulta.first()
    if registro is None:
        raise NaoEncontradoError(f'{rotulo} não encontrada', id=id)
    return registro

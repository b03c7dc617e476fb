"""
Identidade explícita do operador

Os serviços nunca consultam sessão ou usuário "atual": toda operação que
altera dados recebe um Operador(id, papel) como parâmetro.
"""
from dataclasses import dataclass

from tesouraria.services.erros import NaoAutenticadoError, PermissaoNegadaError

PAPEL_ADMIN = 'admin'
PAPEL_EDITOR = 'editor'
PAPEL_VISUALIZADOR = 'viewer'

PAPEIS = (PAPEL_ADMIN, PAPEL_EDITOR, PAPEL_VISUALIZADOR)
PAPEIS_EDICAO = (PAPEL_ADMIN, PAPEL_EDITOR)


@dataclass(frozen=True)
class Operador:
    id: str
    papel: str

    @property
    def pode_editar(self):
        return self.papel in PAPEIS_EDICAO

    @property
    def is_admin(self):
        return self.papel == PAPEL_ADMIN


def exigir_papel(operador, papeis, mensagem='Sem permissão para esta operação'):
    """
    Garante que o operador existe e tem um dos papéis exigidos

    Raises:
        NaoAutenticadoError: Sem operador
        PermissaoNegadaError: Papel insuficiente
    """
    if operador is None or not operador.id:
        raise NaoAutenticadoError()

    if operador.papel not in papeis:
        raise PermissaoNegadaError(mensagem, papel=operador.papel)

    return operador


def exigir_edicao(operador, mensagem='Sem permissão para alterar dados financeiros'):
    return exigir_papel(operador, PAPEIS_EDICAO, mensagem)


def exigir_admin(operador, mensagem='Apenas administradores podem executar esta operação'):
    return exigir_papel(operador, (PAPEL_ADMIN,), mensagem)

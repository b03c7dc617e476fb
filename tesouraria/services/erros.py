"""
Hierarquia de exceções da tesouraria

Toda exceção de negócio herda de TesourariaError e carrega:
- codigo: identificador estável, seguro para a API
- status_http: código HTTP usado pelas rotas
- detalhes: dados estruturados (ids, valores) para a interface

    TesourariaError
    +-- ValidacaoError                  400  dados inválidos (field_errors)
    +-- NaoAutenticadoError             401
    +-- PermissaoNegadaError            403
    +-- NaoEncontradoError              404
    +-- ConflitoConcorrenciaError       409  repetir a operação inteira
    +-- RegraVioladaError               422
        +-- ValorExcedeRestanteError
        +-- ObrigacaoNaoLiquidavelError
        +-- CancelamentoComPagamentoError
        +-- ExclusaoNaoPermitidaError
        +-- ContaBancariaInativaError
        +-- SaldoInsuficienteError
        +-- SaldoCreditoInsuficienteError
        +-- ExcedeValorNominalError
        +-- MovimentoInicialDuplicadoError
        +-- FechamentoIncompletoError
        +-- DiaJaFechadoError
        +-- DiaFechadoError
"""


class TesourariaError(Exception):
    codigo = 'ERRO_TESOURARIA'
    status_http = 400

    def __init__(self, mensagem, **detalhes):
        super().__init__(mensagem)
        self.mensagem = mensagem
        self.detalhes = detalhes

    def to_dict(self):
        resultado = {
            'success': False,
            'error': self.mensagem,
            'codigo': self.codigo,
        }
        if self.detalhes:
            resultado['detalhes'] = self.detalhes
        return resultado


class ValidacaoError(TesourariaError):
    codigo = 'VALIDACAO'
    status_http = 400

    def __init__(self, mensagem='Dados inválidos', field_errors=None, **detalhes):
        super().__init__(mensagem, **detalhes)
        self.field_errors = field_errors or {}

    def to_dict(self):
        resultado = super().to_dict()
        if self.field_errors:
            resultado['fieldErrors'] = self.field_errors
        return resultado


class NaoAutenticadoError(TesourariaError):
    codigo = 'NAO_AUTENTICADO'
    status_http = 401

    def __init__(self, mensagem='Usuário não autenticado', **detalhes):
        super().__init__(mensagem, **detalhes)


class PermissaoNegadaError(TesourariaError):
    codigo = 'PERMISSAO_NEGADA'
    status_http = 403


class NaoEncontradoError(TesourariaError):
    codigo = 'NAO_ENCONTRADO'
    status_http = 404


class ConflitoConcorrenciaError(TesourariaError):
    codigo = 'CONFLITO_CONCORRENCIA'
    status_http = 409

    def __init__(self, mensagem='Registro alterado por outra operação. Tente novamente', **detalhes):
        super().__init__(mensagem, **detalhes)


# ============================================================================
# VIOLAÇÕES DE REGRA (rejeitam a operação inteira)
# ============================================================================

class RegraVioladaError(TesourariaError):
    codigo = 'REGRA_VIOLADA'
    status_http = 422


class ValorExcedeRestanteError(RegraVioladaError):
    codigo = 'VALOR_EXCEDE_RESTANTE'

    def __init__(self, obrigacao_id, valor_pagamento, valor_restante, **detalhes):
        super().__init__(
            f'Valor de pagamento ({valor_pagamento}) não pode ser maior que o '
            f'valor restante ({valor_restante}) da conta {obrigacao_id}',
            obrigacao_id=obrigacao_id,
            valor_pagamento=str(valor_pagamento),
            valor_restante=str(valor_restante),
            **detalhes
        )
        self.obrigacao_id = obrigacao_id


class ObrigacaoNaoLiquidavelError(RegraVioladaError):
    codigo = 'OBRIGACAO_NAO_LIQUIDAVEL'

    def __init__(self, obrigacao_id, status, **detalhes):
        super().__init__(
            f'Conta {obrigacao_id} com status "{status}" não aceita pagamentos',
            obrigacao_id=obrigacao_id,
            status=status,
            **detalhes
        )
        self.obrigacao_id = obrigacao_id


class CancelamentoComPagamentoError(RegraVioladaError):
    codigo = 'CANCELAMENTO_COM_PAGAMENTO'


class ExclusaoNaoPermitidaError(RegraVioladaError):
    codigo = 'EXCLUSAO_NAO_PERMITIDA'


class ContaBancariaInativaError(RegraVioladaError):
    codigo = 'CONTA_BANCARIA_INATIVA'


class SaldoInsuficienteError(RegraVioladaError):
    codigo = 'SALDO_INSUFICIENTE'


class SaldoCreditoInsuficienteError(RegraVioladaError):
    codigo = 'SALDO_CREDITO_INSUFICIENTE'


class ExcedeValorNominalError(RegraVioladaError):
    codigo = 'EXCEDE_VALOR_NOMINAL'


class MovimentoInicialDuplicadoError(RegraVioladaError):
    codigo = 'MOVIMENTO_INICIAL_DUPLICADO'


class FechamentoIncompletoError(RegraVioladaError):
    codigo = 'FECHAMENTO_INCOMPLETO'


class DiaJaFechadoError(RegraVioladaError):
    codigo = 'DIA_JA_FECHADO'


class DiaFechadoError(RegraVioladaError):
    codigo = 'DIA_FECHADO'

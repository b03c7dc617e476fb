"""
Modelos do banco de dados - Tesouraria

Tabelas organizadas em 4 módulos:
- Módulo 1: Contas bancárias e caixa (bank_accounts, cash_transactions)
- Módulo 2: Contas a pagar e a receber (+ histórico de pagamentos)
- Módulo 3: Cartas de crédito (credits, credit_movements)
- Módulo 4: Fechamento de caixa (cash_closings, cash_closing_accounts)
"""
from datetime import datetime, date
from flask_sqlalchemy import SQLAlchemy

from tesouraria.services.valores import (
    ZERO, STATUS_CANCELADO, STATUS_EM_ABERTO, STATUS_LIQUIDAVEIS,
    derivar_status, dinheiro, calcular_restante
)

db = SQLAlchemy()


def _data(valor):
    return valor.strftime('%Y-%m-%d') if valor else None


def _data_hora(valor):
    return valor.strftime('%Y-%m-%d %H:%M:%S') if valor else None


# ============================================================================
# MÓDULO 1: CONTAS BANCÁRIAS E CAIXA
# ============================================================================

class ContaBancaria(db.Model):
    """
    Conta bancária ou caixa físico

    saldo_atual = saldo_inicial + entradas - saídas (movimentos de caixa)
    """
    __tablename__ = 'bank_accounts'

    TIPOS = ('banco', 'especie', 'poupanca', 'investimento')

    id = db.Column(db.Integer, primary_key=True)
    nome = db.Column(db.String(100), nullable=False)
    tipo = db.Column(db.String(20), nullable=False)  # banco, especie, poupanca, investimento
    codigo = db.Column(db.String(50))  # Código do banco (opcional)
    observacoes = db.Column(db.Text)
    saldo_inicial = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    saldo_atual = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default='ativo')  # ativo ou inativo
    versao = db.Column(db.Integer, nullable=False)
    criado_por = db.Column(db.String(64))
    data_criacao = db.Column(db.DateTime, default=datetime.utcnow)
    data_atualizacao = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relacionamentos
    movimentos = db.relationship('MovimentoCaixa', back_populates='conta_bancaria', lazy='dynamic')

    __mapper_args__ = {'version_id_col': versao}

    @property
    def ativa(self):
        return self.status == 'ativo'

    def __repr__(self):
        return f'<ContaBancaria {self.nome} R${self.saldo_atual}>'

    def to_dict(self):
        return {
            'id': self.id,
            'nome': self.nome,
            'tipo': self.tipo,
            'codigo': self.codigo,
            'observacoes': self.observacoes,
            'saldo_inicial': float(self.saldo_inicial or 0),
            'saldo_atual': float(self.saldo_atual or 0),
            'status': self.status,
            'data_criacao': _data_hora(self.data_criacao),
            'data_atualizacao': _data_hora(self.data_atualizacao)
        }


class MovimentoCaixa(db.Model):
    """
    Entrada ou saída realizada em uma conta bancária

    saldo_apos é o acumulado do dia na conta (apoio à conferência diária),
    não o saldo da conta
    """
    __tablename__ = 'cash_transactions'

    TIPOS = ('entrada', 'saida')
    FORMAS = ('Caixa', 'Permuta')

    id = db.Column(db.Integer, primary_key=True)
    conta_bancaria_id = db.Column(db.Integer, db.ForeignKey('bank_accounts.id'), nullable=False)
    data_movimento = db.Column(db.Date, nullable=False)
    tipo = db.Column(db.String(10), nullable=False)  # entrada ou saida
    descricao = db.Column(db.String(200), nullable=False)
    valor = db.Column(db.Numeric(15, 2), nullable=False)
    vinculo = db.Column(db.String(100))
    centro_custo = db.Column(db.String(100))
    forma = db.Column(db.String(20), default='Caixa')  # Caixa ou Permuta
    observacoes = db.Column(db.Text)
    conta_pagar_id = db.Column(db.Integer, db.ForeignKey('accounts_payable.id'))
    conta_receber_id = db.Column(db.Integer, db.ForeignKey('accounts_receivable.id'))
    saldo_apos = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    criado_por = db.Column(db.String(64))
    criado_em = db.Column(db.DateTime, default=datetime.utcnow)

    # Relacionamentos
    conta_bancaria = db.relationship('ContaBancaria', back_populates='movimentos')
    conta_pagar = db.relationship('ContaPagar', foreign_keys=[conta_pagar_id])
    conta_receber = db.relationship('ContaReceber', foreign_keys=[conta_receber_id])

    # Índices
    __table_args__ = (
        db.Index('idx_movimento_caixa_conta', 'conta_bancaria_id'),
        db.Index('idx_movimento_caixa_data', 'data_movimento'),
    )

    @property
    def valor_assinado(self):
        """Valor com o sinal aplicado ao saldo da conta"""
        return self.valor if self.tipo == 'entrada' else -self.valor

    @property
    def obrigacao(self):
        return self.conta_pagar or self.conta_receber

    def __repr__(self):
        return f'<MovimentoCaixa {self.tipo} R${self.valor} {self.descricao}>'

    def to_dict(self):
        return {
            'id': self.id,
            'conta_bancaria_id': self.conta_bancaria_id,
            'conta_bancaria': {
                'id': self.conta_bancaria.id,
                'nome': self.conta_bancaria.nome,
                'tipo': self.conta_bancaria.tipo
            } if self.conta_bancaria else None,
            'data_movimento': _data(self.data_movimento),
            'tipo': self.tipo,
            'descricao': self.descricao,
            'valor': float(self.valor),
            'vinculo': self.vinculo,
            'centro_custo': self.centro_custo,
            'forma': self.forma,
            'observacoes': self.observacoes,
            'conta_pagar_id': self.conta_pagar_id,
            'conta_receber_id': self.conta_receber_id,
            'saldo_apos': float(self.saldo_apos or 0),
            'criado_em': _data_hora(self.criado_em)
        }


# ============================================================================
# MÓDULO 2: CONTAS A PAGAR E A RECEBER
# ============================================================================

class ObrigacaoMixin:
    """
    Colunas e regras comuns a contas a pagar e a receber

    valor_restante e status são persistidos para consulta, mas sempre
    recalculados por sincronizar_status()
    """
    TIPO = None
    TIPO_MOVIMENTO = None
    PREFIXO_CODIGO = None

    id = db.Column(db.Integer, primary_key=True)
    codigo = db.Column(db.String(20), unique=True, nullable=False)
    contraparte_id = db.Column(db.String(64))  # Pessoa/empresa (cadastro externo)
    contraparte = db.Column(db.String(200))
    contrato_id = db.Column(db.String(64))
    descricao = db.Column(db.String(200), nullable=False)
    valor_nominal = db.Column(db.Numeric(15, 2), nullable=False)
    valor_pago = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    valor_restante = db.Column(db.Numeric(15, 2), nullable=False)
    data_vencimento = db.Column(db.Date, nullable=False)
    data_cadastro = db.Column(db.Date, default=date.today)
    status = db.Column(db.String(20), nullable=False, default=STATUS_EM_ABERTO)
    vinculo = db.Column(db.String(100))
    centro_custo = db.Column(db.String(100))
    parcela_atual = db.Column(db.Integer)
    total_parcelas = db.Column(db.Integer)
    periodicidade = db.Column(db.String(20))  # semanal, mensal, semestral, anual
    grupo_parcelas = db.Column(db.String(36))  # UUID comum às parcelas
    observacoes = db.Column(db.Text)
    versao = db.Column(db.Integer, nullable=False)
    criado_por = db.Column(db.String(64))
    criado_em = db.Column(db.DateTime, default=datetime.utcnow)
    atualizado_em = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def cancelada(self):
        return self.status == STATUS_CANCELADO

    @property
    def liquidavel(self):
        return self.status in STATUS_LIQUIDAVEIS

    def status_derivado(self, hoje=None):
        return derivar_status(self.valor_nominal, self.valor_pago, self.data_vencimento,
                              hoje=hoje, cancelado=self.cancelada)

    def sincronizar_status(self, hoje=None):
        """
        Recalcula valor_restante e status a partir dos valores

        Returns:
            bool: True se algo mudou
        """
        restante = calcular_restante(self.valor_nominal, self.valor_pago)
        if restante < ZERO:
            raise ValueError(f'Conta {self.codigo}: valor pago excede o valor nominal')

        novo_status = self.status_derivado(hoje)
        mudou = (self.status != novo_status or
                 self.valor_restante is None or
                 dinheiro(self.valor_restante) != restante)

        self.valor_restante = restante
        self.status = novo_status
        return mudou

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.codigo} R${self.valor_restante} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'tipo': self.TIPO,
            'codigo': self.codigo,
            'contraparte_id': self.contraparte_id,
            'contraparte': self.contraparte,
            'contrato_id': self.contrato_id,
            'descricao': self.descricao,
            'valor_nominal': float(self.valor_nominal),
            'valor_pago': float(self.valor_pago or 0),
            'valor_restante': float(self.valor_restante or 0),
            'data_vencimento': _data(self.data_vencimento),
            'data_cadastro': _data(self.data_cadastro),
            'status': self.status,
            'vinculo': self.vinculo,
            'centro_custo': self.centro_custo,
            'parcela_atual': self.parcela_atual,
            'total_parcelas': self.total_parcelas,
            'periodicidade': self.periodicidade,
            'grupo_parcelas': self.grupo_parcelas,
            'observacoes': self.observacoes
        }


class ContaPagar(ObrigacaoMixin, db.Model):
    """
    Conta a pagar - liquidação gera SAÍDA no caixa
    """
    __tablename__ = 'accounts_payable'

    TIPO = 'pagar'
    TIPO_MOVIMENTO = 'saida'
    PREFIXO_CODIGO = 'CP'

    pagamentos = db.relationship('PagamentoContaPagar', back_populates='obrigacao',
                                 lazy='dynamic', order_by='PagamentoContaPagar.id')

    __mapper_args__ = {'version_id_col': ObrigacaoMixin.versao}

    __table_args__ = (
        db.Index('idx_conta_pagar_vencimento', 'data_vencimento'),
        db.Index('idx_conta_pagar_status', 'status'),
    )


class ContaReceber(ObrigacaoMixin, db.Model):
    """
    Conta a receber - liquidação gera ENTRADA no caixa
    """
    __tablename__ = 'accounts_receivable'

    TIPO = 'receber'
    TIPO_MOVIMENTO = 'entrada'
    PREFIXO_CODIGO = 'CR'

    pagamentos = db.relationship('PagamentoContaReceber', back_populates='obrigacao',
                                 lazy='dynamic', order_by='PagamentoContaReceber.id')

    __mapper_args__ = {'version_id_col': ObrigacaoMixin.versao}

    __table_args__ = (
        db.Index('idx_conta_receber_vencimento', 'data_vencimento'),
        db.Index('idx_conta_receber_status', 'status'),
    )


class PagamentoMixin:
    """
    Uma linha de liquidação aplicada a uma obrigação

    status 'estornado' quando o movimento de caixa correspondente é excluído
    """
    id = db.Column(db.Integer, primary_key=True)
    data_pagamento = db.Column(db.Date, nullable=False)
    valor_pago = db.Column(db.Numeric(15, 2), nullable=False)
    forma_pagamento = db.Column(db.String(50), nullable=False)
    observacoes = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='efetivado')  # efetivado ou estornado
    criado_por = db.Column(db.String(64))
    criado_em = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'obrigacao_id': self.obrigacao_id,
            'movimento_caixa_id': self.movimento_caixa_id,
            'data_pagamento': _data(self.data_pagamento),
            'valor_pago': float(self.valor_pago),
            'forma_pagamento': self.forma_pagamento,
            'observacoes': self.observacoes,
            'status': self.status,
            'criado_por': self.criado_por,
            'criado_em': _data_hora(self.criado_em)
        }


class PagamentoContaPagar(PagamentoMixin, db.Model):
    __tablename__ = 'payable_payments'

    obrigacao_id = db.Column('conta_pagar_id', db.Integer,
                             db.ForeignKey('accounts_payable.id'), nullable=False)
    movimento_caixa_id = db.Column(db.Integer, db.ForeignKey('cash_transactions.id'))

    obrigacao = db.relationship('ContaPagar', back_populates='pagamentos')
    movimento_caixa = db.relationship('MovimentoCaixa')


class PagamentoContaReceber(PagamentoMixin, db.Model):
    __tablename__ = 'receivable_payments'

    obrigacao_id = db.Column('conta_receber_id', db.Integer,
                             db.ForeignKey('accounts_receivable.id'), nullable=False)
    movimento_caixa_id = db.Column(db.Integer, db.ForeignKey('cash_transactions.id'))

    obrigacao = db.relationship('ContaReceber', back_populates='pagamentos')
    movimento_caixa = db.relationship('MovimentoCaixa')


# ============================================================================
# MÓDULO 3: CARTAS DE CRÉDITO
# ============================================================================

class Credito(db.Model):
    """
    Carta de crédito - saldo sempre entre 0 e o valor nominal
    """
    __tablename__ = 'credits'

    STATUS = ('disponivel', 'comprometido', 'vendido')

    id = db.Column(db.Integer, primary_key=True)
    codigo = db.Column(db.String(20), unique=True, nullable=False)
    credor_id = db.Column(db.String(64), nullable=False)
    credor_tipo = db.Column(db.String(10), nullable=False)  # pessoa ou empresa
    devedor_id = db.Column(db.String(64))
    devedor_tipo = db.Column(db.String(10))
    origem = db.Column(db.String(200), nullable=False)
    valor_nominal = db.Column(db.Numeric(15, 2), nullable=False)
    saldo_atual = db.Column(db.Numeric(15, 2), nullable=False)
    taxa_juros = db.Column(db.String(50))  # Apenas informativo
    data_inicio = db.Column(db.Date, nullable=False)
    data_vencimento = db.Column(db.Date)
    status = db.Column(db.String(20), nullable=False, default='disponivel')
    observacoes = db.Column(db.Text)
    versao = db.Column(db.Integer, nullable=False)
    criado_por = db.Column(db.String(64))
    criado_em = db.Column(db.DateTime, default=datetime.utcnow)
    atualizado_em = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relacionamentos
    movimentos = db.relationship('MovimentoCredito', back_populates='credito', lazy='dynamic',
                                 order_by='MovimentoCredito.id')

    __mapper_args__ = {'version_id_col': versao}

    def __repr__(self):
        return f'<Credito {self.codigo} R${self.saldo_atual}/{self.valor_nominal}>'

    def to_dict(self):
        return {
            'id': self.id,
            'codigo': self.codigo,
            'credor_id': self.credor_id,
            'credor_tipo': self.credor_tipo,
            'devedor_id': self.devedor_id,
            'devedor_tipo': self.devedor_tipo,
            'origem': self.origem,
            'valor_nominal': float(self.valor_nominal),
            'saldo_atual': float(self.saldo_atual),
            'taxa_juros': self.taxa_juros,
            'data_inicio': _data(self.data_inicio),
            'data_vencimento': _data(self.data_vencimento),
            'status': self.status,
            'observacoes': self.observacoes
        }


class MovimentoCredito(db.Model):
    """
    Trilha de auditoria de uma carta de crédito (somente inserção)
    """
    __tablename__ = 'credit_movements'

    TIPOS = ('inicial', 'deducao', 'estorno', 'ajuste')

    id = db.Column(db.Integer, primary_key=True)
    credito_id = db.Column(db.Integer, db.ForeignKey('credits.id'), nullable=False)
    tipo = db.Column(db.String(10), nullable=False)
    descricao = db.Column(db.String(200), nullable=False)
    valor = db.Column(db.Numeric(15, 2), nullable=False)
    saldo_apos = db.Column(db.Numeric(15, 2), nullable=False)
    data_movimento = db.Column(db.Date, nullable=False, default=date.today)
    criado_por = db.Column(db.String(64))
    criado_em = db.Column(db.DateTime, default=datetime.utcnow)

    credito = db.relationship('Credito', back_populates='movimentos')

    __table_args__ = (
        db.Index('idx_movimento_credito', 'credito_id'),
    )

    def __repr__(self):
        return f'<MovimentoCredito {self.tipo} R${self.valor} saldo R${self.saldo_apos}>'

    def to_dict(self):
        return {
            'id': self.id,
            'credito_id': self.credito_id,
            'tipo': self.tipo,
            'descricao': self.descricao,
            'valor': float(self.valor),
            'saldo_apos': float(self.saldo_apos),
            'data_movimento': _data(self.data_movimento),
            'criado_por': self.criado_por,
            'criado_em': _data_hora(self.criado_em)
        }


# ============================================================================
# MÓDULO 4: FECHAMENTO DE CAIXA
# ============================================================================

class FechamentoCaixa(db.Model):
    """
    Conferência de fim de dia: saldo informado x saldo calculado

    Não ajusta saldos - é apenas registro de auditoria
    """
    __tablename__ = 'cash_closings'

    id = db.Column(db.Integer, primary_key=True)
    data_fechamento = db.Column(db.Date, nullable=False, unique=True)
    total_entradas = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    total_saidas = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    saldo_liquido = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    discrepancia = db.Column(db.Numeric(15, 2), nullable=False, default=0)
    observacoes = db.Column(db.Text)
    fechado_por = db.Column(db.String(64))
    fechado_em = db.Column(db.DateTime, default=datetime.utcnow)

    contas = db.relationship('FechamentoCaixaConta', back_populates='fechamento',
                             cascade='all, delete-orphan', order_by='FechamentoCaixaConta.conta_bancaria_id')

    def __repr__(self):
        return f'<FechamentoCaixa {self.data_fechamento} diferença R${self.discrepancia}>'

    def to_dict(self):
        return {
            'id': self.id,
            'data_fechamento': _data(self.data_fechamento),
            'total_entradas': float(self.total_entradas),
            'total_saidas': float(self.total_saidas),
            'saldo_liquido': float(self.saldo_liquido),
            'discrepancia': float(self.discrepancia),
            'contas': [conta.to_dict() for conta in self.contas],
            'observacoes': self.observacoes,
            'fechado_por': self.fechado_por,
            'fechado_em': _data_hora(self.fechado_em)
        }


class FechamentoCaixaConta(db.Model):
    __tablename__ = 'cash_closing_accounts'

    id = db.Column(db.Integer, primary_key=True)
    fechamento_id = db.Column(db.Integer, db.ForeignKey('cash_closings.id'), nullable=False)
    conta_bancaria_id = db.Column(db.Integer, db.ForeignKey('bank_accounts.id'), nullable=False)
    saldo_informado = db.Column(db.Numeric(15, 2), nullable=False)
    saldo_calculado = db.Column(db.Numeric(15, 2), nullable=False)
    discrepancia = db.Column(db.Numeric(15, 2), nullable=False)

    fechamento = db.relationship('FechamentoCaixa', back_populates='contas')
    conta_bancaria = db.relationship('ContaBancaria')

    def to_dict(self):
        return {
            'conta_bancaria_id': self.conta_bancaria_id,
            'nome': self.conta_bancaria.nome if self.conta_bancaria else None,
            'saldo_informado': float(self.saldo_informado),
            'saldo_calculado': float(self.saldo_calculado),
            'discrepancia': float(self.discrepancia)
        }

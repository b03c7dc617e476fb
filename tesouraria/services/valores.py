"""
Valores monetários e derivação de status das obrigações

Regras:
- Dinheiro é sempre Decimal com 2 casas (ROUND_HALF_UP), nunca float
- O status de uma conta a pagar/receber é função pura de
  (valor_nominal, valor_pago, data_vencimento, hoje); nunca é editado livremente
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP

CENTAVO = Decimal('0.01')
ZERO = Decimal('0.00')

# Status das contas a pagar/receber
STATUS_EM_ABERTO = 'em_aberto'
STATUS_PARCIALMENTE_PAGO = 'parcialmente_pago'
STATUS_VENCIDO = 'vencido'
STATUS_QUITADO = 'quitado'
STATUS_CANCELADO = 'cancelado'

STATUS_OBRIGACAO = (
    STATUS_EM_ABERTO,
    STATUS_PARCIALMENTE_PAGO,
    STATUS_VENCIDO,
    STATUS_QUITADO,
    STATUS_CANCELADO,
)

# Status que ainda aceitam pagamento
STATUS_LIQUIDAVEIS = (STATUS_EM_ABERTO, STATUS_PARCIALMENTE_PAGO, STATUS_VENCIDO)


def dinheiro(valor):
    """
    Converte um valor qualquer para Decimal com 2 casas

    Args:
        valor: int, str, Decimal ou float (float passa por str para evitar
               o erro de representação binária)

    Returns:
        Decimal quantizado em centavos

    Raises:
        ValueError: Se o valor não for numérico
    """
    if valor is None or isinstance(valor, bool):
        raise ValueError('Valor monetário inválido')

    if isinstance(valor, Decimal):
        decimal = valor
    else:
        try:
            decimal = Decimal(str(valor).strip())
        except InvalidOperation:
            raise ValueError(f'Valor monetário inválido: {valor}')

    if not decimal.is_finite():
        raise ValueError(f'Valor monetário inválido: {valor}')

    return decimal.quantize(CENTAVO, rounding=ROUND_HALF_UP)


def para_data(valor):
    """Aceita date, datetime ou string ISO (YYYY-MM-DD)"""
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    if isinstance(valor, str):
        try:
            return datetime.strptime(valor.strip(), '%Y-%m-%d').date()
        except ValueError:
            raise ValueError(f'Data inválida: {valor}. Use o formato YYYY-MM-DD')
    raise ValueError('Data inválida')


def calcular_restante(valor_nominal, valor_pago):
    return dinheiro(valor_nominal) - dinheiro(valor_pago or 0)


def derivar_status(valor_nominal, valor_pago, data_vencimento, hoje=None, cancelado=False):
    """
    Deriva o status de uma obrigação a partir dos seus valores

    Ordem de precedência:
    1. cancelado (terminal)
    2. quitado - valor restante igual a zero
    3. vencido - ainda há saldo e o vencimento já passou
       (mesmo que parcialmente paga)
    4. parcialmente_pago - 0 < pago < nominal
    5. em_aberto

    Returns:
        str: Um dos STATUS_OBRIGACAO
    """
    if cancelado:
        return STATUS_CANCELADO

    hoje = hoje or date.today()
    restante = calcular_restante(valor_nominal, valor_pago)

    if restante <= ZERO:
        return STATUS_QUITADO

    if data_vencimento is not None and data_vencimento < hoje:
        return STATUS_VENCIDO

    if dinheiro(valor_pago or 0) > ZERO:
        return STATUS_PARCIALMENTE_PAGO

    return STATUS_EM_ABERTO


def dividir_em_parcelas(valor_total, quantidade):
    """
    Divide um valor em N parcelas em centavos; a diferença de arredondamento
    vai para a última parcela, de forma que a soma é sempre igual ao total
    """
    total = dinheiro(valor_total)
    if quantidade < 1:
        raise ValueError('Quantidade de parcelas deve ser maior que zero')

    base = (total / quantidade).quantize(CENTAVO, rounding=ROUND_DOWN)
    parcelas = [base] * (quantidade - 1)
    parcelas.append(total - base * (quantidade - 1))
    return parcelas

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from tesouraria.services.valores import (
    STATUS_CANCELADO, STATUS_EM_ABERTO, STATUS_PARCIALMENTE_PAGO, STATUS_QUITADO, STATUS_VENCIDO,
    calcular_restante, derivar_status, dinheiro, dividir_em_parcelas, para_data
)

HOJE = date(2024, 6, 15)


class TestDinheiro:

    def test_quantiza_em_centavos_half_up(self):
        assert dinheiro('10.005') == Decimal('10.01')
        assert dinheiro('10.004') == Decimal('10.00')

    def test_float_passa_por_str(self):
        assert dinheiro(0.1) + dinheiro(0.2) == Decimal('0.30')

    @pytest.mark.parametrize('valor', [None, True, 'abc', 'NaN', 'Infinity'])
    def test_rejeita_valores_invalidos(self, valor):
        with pytest.raises(ValueError):
            dinheiro(valor)


def test_para_data_aceita_formatos():
    assert para_data('2024-06-15') == HOJE
    assert para_data(datetime(2024, 6, 15, 13, 30)) == HOJE
    assert para_data(HOJE) == HOJE
    with pytest.raises(ValueError):
        para_data('15/06/2024')


@pytest.mark.parametrize('valor', ['2024-06-15lixo', '2024-06-15 12:00', '2024-06', ''])
def test_para_data_rejeita_texto_alem_da_data(valor):
    with pytest.raises(ValueError):
        para_data(valor)


def test_para_data_ignora_espacos():
    assert para_data('  2024-06-15 ') == HOJE


def test_restante_nunca_usa_float():
    assert calcular_restante('1000.00', '400.10') == Decimal('599.90')


class TestDerivarStatus:

    def test_em_aberto(self):
        assert derivar_status('100', '0', HOJE + timedelta(days=1), hoje=HOJE) == STATUS_EM_ABERTO

    def test_vence_hoje_nao_esta_vencida(self):
        assert derivar_status('100', '0', HOJE, hoje=HOJE) == STATUS_EM_ABERTO

    def test_parcialmente_pago(self):
        assert derivar_status('100', '40', HOJE, hoje=HOJE) == STATUS_PARCIALMENTE_PAGO

    def test_vencido_prevalece_sobre_parcial(self):
        assert derivar_status('100', '40', HOJE - timedelta(days=1), hoje=HOJE) == STATUS_VENCIDO

    def test_quitado_mesmo_vencido(self):
        assert derivar_status('100', '100', HOJE - timedelta(days=30), hoje=HOJE) == STATUS_QUITADO

    def test_cancelado_e_terminal(self):
        assert derivar_status('100', '0', HOJE - timedelta(days=1), hoje=HOJE,
                              cancelado=True) == STATUS_CANCELADO


class TestDividirEmParcelas:

    def test_resto_vai_para_a_ultima(self):
        assert dividir_em_parcelas('100.00', 3) == [Decimal('33.33'), Decimal('33.33'), Decimal('33.34')]

    def test_soma_igual_ao_total(self):
        parcelas = dividir_em_parcelas('0.13', 8)
        assert sum(parcelas) == Decimal('0.13')
        assert all(parcela > 0 for parcela in parcelas)

    def test_quantidade_invalida(self):
        with pytest.raises(ValueError):
            dividir_em_parcelas('10', 0)

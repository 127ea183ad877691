"""Tests for the pt-BR text parsers (dates, money, keywords)."""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from ledger_assistant.models.records import RecurrenceRule, ServiceKey
from ledger_assistant.parsing import (
    asks_monthly,
    asks_outstanding,
    detect_installments,
    detect_paid,
    detect_payment_method,
    detect_recurrence,
    detect_service_key,
    extract_title,
    fold_preserving_length,
    format_money,
    is_creation_command,
    mentions_expenses,
    mentions_receipts,
    mentions_revenue,
    month_window,
    normalize_text,
    parse_date,
    parse_money,
    parse_month_key,
    pick_context_month,
)


TODAY = date(2025, 6, 1)


class TestParseDate:
    """Tests for dd/mm[/yy[yy]] parsing."""

    def test_day_month_uses_current_year(self):
        """Test that a bare dd/mm takes today's year."""
        assert parse_date("despesas 23/12", today=TODAY) == date(2025, 12, 23)

    def test_two_digit_year(self):
        """Test two-digit years are 2000+yy."""
        assert parse_date("23/12/25") == date(2025, 12, 23)

    def test_four_digit_year(self):
        """Test four-digit years."""
        assert parse_date("recebimentos de 01/02/2024") == date(2024, 2, 1)

    def test_day_out_of_range(self):
        """Test that day 32 is rejected."""
        assert parse_date("32/01", today=TODAY) is None

    def test_month_out_of_range(self):
        """Test that month 13 is rejected."""
        assert parse_date("10/13", today=TODAY) is None

    def test_impossible_calendar_date(self):
        """Test that 31/02 is not a date."""
        assert parse_date("31/02", today=TODAY) is None

    def test_no_date(self):
        """Test text without a date."""
        assert parse_date("quanto entrou hoje?") is None
        assert parse_date("") is None


class TestMonthKeys:
    """Tests for yyyy-mm handling."""

    def test_parse_month_key(self):
        """Test month keys are found in free text."""
        assert parse_month_key("resumo do mês 2025-12 por favor") == "2025-12"
        assert parse_month_key("resumo 2025-13") is None
        assert parse_month_key("sem mês") is None

    def test_pick_context_month_shape_only(self):
        """Test context months are accepted by shape; the month is checked later."""
        assert pick_context_month("2025-12") == "2025-12"
        assert pick_context_month("2025-13") == "2025-13"
        assert pick_context_month("dez/2025") is None
        assert pick_context_month(None) is None

    def test_month_window(self):
        """Test the half-open window of a month."""
        window = month_window("2025-12")
        assert window.start_date == date(2025, 12, 1)
        assert window.end_date == date(2026, 1, 1)
        assert window.start_ts == datetime(2025, 12, 1, tzinfo=timezone.utc)
        assert window.contains_date(date(2025, 12, 31))
        assert not window.contains_date(date(2026, 1, 1))

    def test_month_window_invalid(self):
        """Test that an invalid month has no window."""
        assert month_window("2025-13") is None
        assert month_window("2025-00") is None
        assert month_window("") is None


class TestMoney:
    """Tests for BRL amounts."""

    @pytest.mark.parametrize("text,expected", [
        ("R$ 1.500,00", Decimal("1500.00")),
        ("r$1500", Decimal("1500.00")),
        ("valor 1.234.567,8", Decimal("1234567.80")),
        ("Aluguel 450", Decimal("450.00")),
        ("-R$ 10,00", Decimal("-10.00")),
    ])
    def test_parse_money(self, text, expected):
        """Test pt-BR amount formats."""
        assert parse_money(text) == expected

    def test_prefixed_amount_wins(self):
        """Test that an R$ amount beats an earlier bare number."""
        assert parse_money("cadastre 3 banners R$ 90,00") == Decimal("90.00")

    def test_date_is_not_money(self):
        """Test that a date is never read as an amount."""
        assert parse_money("despesas 23/12") is None

    def test_no_amount(self):
        """Test text without numbers."""
        assert parse_money("cadastre Duo Medic") is None
        assert parse_money("") is None

    def test_amount_beyond_precision(self):
        """Test a number too long for two-place Decimal is not an amount."""
        assert parse_money("R$ " + "9" * 30) is None
        assert parse_money("9" * 26) == Decimal("9" * 26)

    def test_format_money(self):
        """Test pt-BR currency formatting."""
        assert format_money(Decimal("1234.56")) == "R$ 1.234,56"
        assert format_money(Decimal("0")) == "R$ 0,00"
        assert format_money(Decimal("570.00")) == "R$ 570,00"

    @pytest.mark.parametrize("value", ["0.01", "12.30", "999.99", "1000.00", "1234567.89"])
    def test_format_then_parse_is_identity(self, value):
        """Test that formatting then parsing returns the same amount."""
        amount = Decimal(value)
        assert parse_money(format_money(amount)) == amount


class TestKeywords:
    """Tests for keyword detectors."""

    def test_normalize_text(self):
        """Test accents and case are folded."""
        assert normalize_text("  Não PAGOU ") == "nao pagou"

    def test_fold_preserving_length(self):
        """Test that folding keeps positions aligned."""
        text = "Cadastre Gestão"
        assert len(fold_preserving_length(text)) == len(text)

    @pytest.mark.parametrize("text,expected", [
        ("cadastre post redes sociais", ServiceKey.GESTAO_MIDIAS),
        ("Melhores do Ano 2025", ServiceKey.MELHORES_DO_ANO),
        ("prêmio excelência", ServiceKey.PREMIO_EXCELENCIA),
        ("carro de som sábado", ServiceKey.CARRO_DE_SOM),
        ("anúncio revista factus", ServiceKey.REVISTA_FACTUS),
        ("Factus Saúde", ServiceKey.REVISTA_SAUDE),
        ("qualquer outra coisa", ServiceKey.SERVICOS_VARIADOS),
    ])
    def test_detect_service_key(self, text, expected):
        """Test service family detection."""
        assert detect_service_key(text) == expected

    def test_detect_paid(self):
        """Test that a negation wins over a paid keyword."""
        assert detect_paid("já pago") is True
        assert detect_paid("quitado") is True
        assert detect_paid("não pagou ainda") is False
        assert detect_paid("pago? não, está em aberto") is False
        assert detect_paid("cadastre X 100") is False

    def test_detect_recurrence(self):
        """Test recurrence rules."""
        assert detect_recurrence("mensal") == RecurrenceRule.MENSAL
        assert detect_recurrence("toda semana") == RecurrenceRule.SEMANAL
        assert detect_recurrence("anualmente") == RecurrenceRule.ANUAL
        assert detect_recurrence("uma vez") is None

    def test_detect_payment_method_and_installments(self):
        """Test payment method and installment detection."""
        assert detect_payment_method("pagou no PIX") == "pix"
        assert detect_payment_method("no cartão em 3x") == "cartao"
        assert detect_payment_method("sem método") is None
        assert detect_installments("no cartão em 3x") == 3
        assert detect_installments("1x") is None

    def test_families(self):
        """Test query family keywords."""
        assert mentions_expenses("Despesas 23/12")
        assert mentions_receipts("recebimentos de ontem")
        assert mentions_revenue("faturamento")
        assert not mentions_expenses("receitas")

    def test_outstanding_and_monthly(self):
        """Test outstanding and monthly keywords."""
        assert asks_outstanding("quem falta pagar?")
        assert asks_outstanding("pendências")
        assert asks_monthly("resumo do mês")
        assert not asks_monthly("resumo")


class TestCreationCommand:
    """Tests for creation command parsing."""

    def test_is_creation_command(self):
        """Test creation verbs at the start of a message."""
        assert is_creation_command("Cadastre Duo Medic R$ 300")
        assert is_creation_command("lançar aluguel 100")
        assert not is_creation_command("como cadastro algo?")

    def test_extract_title_stops_at_money(self):
        """Test the title ends before the amount."""
        assert extract_title("Cadastre Duo Medic R$ 300 mensal") == "Duo Medic"

    def test_extract_title_stops_at_keyword(self):
        """Test the title ends before a reserved keyword."""
        assert extract_title("cadastre Banner Loja valor 200") == "Banner Loja"
        assert extract_title("registre Gestão Clínica mensal 500") == "Gestão Clínica"

    def test_extract_title_stops_at_date(self):
        """Test the title ends before a date."""
        assert extract_title("cadastre Evento 23/12 R$ 100") == "Evento"

    def test_extract_title_missing(self):
        """Test a bare verb has no title."""
        assert extract_title("cadastre") is None
        assert extract_title("cadastre R$ 300") is None

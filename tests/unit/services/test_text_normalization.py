"""
Test per parsing date, classificazione stato e rilevamento occorrenze
"""
from datetime import datetime

import pytest

from freight_tracking.models.order import OrderStatusEnum
from freight_tracking.services.tracking.text_normalization import (
    classify_status,
    detect_occurrence,
    normalize_document_number,
    normalize_for_match,
    only_digits,
    parse_locale_date,
)


class TestParseLocaleDate:

    def test_br_date_with_two_digit_year_and_time(self):
        assert parse_locale_date("05/03/24 14:30") == datetime(2024, 3, 5, 14, 30)

    def test_br_date_with_four_digit_year(self):
        assert parse_locale_date("31/12/2023") == datetime(2023, 12, 31)

    def test_invalid_calendar_date_returns_none(self):
        assert parse_locale_date("31/02/24") is None

    def test_iso_date(self):
        assert parse_locale_date("2024-03-05") == datetime(2024, 3, 5)

    def test_iso_with_timezone_is_converted_to_naive_utc(self):
        assert parse_locale_date("2024-03-05T10:00:00-03:00") == datetime(2024, 3, 5, 13, 0)

    @pytest.mark.parametrize("value", [None, "", "   ", "amanhã", "2024-13-45", "5/3/24"])
    def test_garbage_returns_none(self, value):
        assert parse_locale_date(value) is None


class TestNormalization:

    def test_normalize_strips_accents_and_uppercases(self):
        assert normalize_for_match("Situação em trânsito") == "SITUACAO EM TRANSITO"

    def test_only_digits(self):
        assert only_digits("11.222.333/0001-81") == "11222333000181"

    def test_document_number_drops_leading_zeros(self):
        assert normalize_document_number("000.009.089") == "9089"
        assert normalize_document_number("0000") == "0"
        assert normalize_document_number(None) == ""


class TestDetectOccurrence:

    def test_no_occurrence_is_excluded(self):
        assert detect_occurrence("SEM OCORRENCIA") is False

    def test_failed_delivery_attempt(self):
        assert detect_occurrence("TENTATIVA DE ENTREGA NAO REALIZADA") is True

    def test_accents_do_not_matter(self):
        assert detect_occurrence("Destinatário ausente") is True

    def test_delivery_occurrence_is_not_a_problem(self):
        assert detect_occurrence("Ocorrência de entrega registrada") is False

    def test_bare_occurrence_is_a_problem(self):
        assert detect_occurrence("Ocorrência registrada na unidade") is True

    def test_normal_progress(self):
        assert detect_occurrence("Em trânsito para a unidade de destino") is False


class TestClassifyStatus:

    def test_cancelled_wins_over_in_transit(self):
        assert classify_status("Mercadoria CANCELADA - estava em transito") == OrderStatusEnum.CANCELLED

    def test_delivered_wins_over_everything(self):
        assert classify_status("Entrega realizada após devolução parcial") == OrderStatusEnum.DELIVERED

    @pytest.mark.parametrize("text", [
        "Saiu para entrega",
        "Em trânsito",
        "Coletado",
        "Chegada na unidade de Curitiba",
        "Conhecimento emitido",
    ])
    def test_in_transit_keywords(self, text):
        assert classify_status(text) == OrderStatusEnum.IN_TRANSIT

    def test_returned(self):
        assert classify_status("Mercadoria devolvida ao remetente") == OrderStatusEnum.CANCELLED

    def test_unknown_text(self):
        assert classify_status("Documento digitalizado") is None
        assert classify_status(None) is None

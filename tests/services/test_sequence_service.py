"""SequenceService: monotonic counters and document numbers."""

from datetime import date

from procurement_kernel.services.sequence_service import SequenceService


class TestSequenceService:
    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("test-seq") == 1

    def test_values_increase(self, session):
        service = SequenceService(session)
        values = [service.next_value("test-seq") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]
        assert service.current_value("test-seq") == 5

    def test_counters_are_independent(self, session):
        service = SequenceService(session)
        service.next_value("a")
        service.next_value("a")
        assert service.next_value("b") == 1

    def test_unknown_counter(self, session):
        assert SequenceService(session).current_value("never-used") is None

    def test_document_number(self, session):
        service = SequenceService(session)
        assert service.next_document_number("PO", date(2024, 1, 15)) == "PO202401150001"
        assert service.next_document_number("PO", date(2024, 1, 15)) == "PO202401150002"
        assert service.next_document_number("PR", date(2024, 1, 15)) == "PR202401150001"

    def test_custom_width(self, session):
        service = SequenceService(session, width=6)
        assert service.next_document_number("PO", date(2024, 1, 15)) == "PO20240115000001"

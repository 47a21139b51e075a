"""
Unit tests for database operations
"""
import pytest
from unittest.mock import MagicMock

from quiz_engine import database as database_module
from quiz_engine.database import Database
from quiz_engine.exceptions import StoreUnavailableError


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def database(client):
    return Database(client=client)


class TestDatabase:
    """Test cases for Database class"""

    def test_insert_record_success(self, database, client):
        """Test successful record insertion"""
        mock_data = {"id": "attempt-1", "status": "in_progress"}
        client.table.return_value.insert.return_value.execute.return_value.data = [mock_data]

        result = database.insert("quiz_attempts", {"status": "in_progress"})

        assert result == mock_data
        client.table.assert_called_with("quiz_attempts")

    def test_insert_nothing_returned(self, database, client):
        client.table.return_value.insert.return_value.execute.return_value.data = []
        assert database.insert("quiz_attempts", {"status": "in_progress"}) is None

    def test_insert_record_failure(self, database, client):
        """Test record insertion failure"""
        client.table.return_value.insert.return_value.execute.side_effect = Exception("Database error")

        with pytest.raises(StoreUnavailableError) as exc_info:
            database.insert("quiz_attempts", {"status": "in_progress"})

        assert exc_info.value.operation == "insert"
        assert exc_info.value.table == "quiz_attempts"

    def test_select_with_filters(self, database, client):
        """Test select with filters"""
        mock_data = [{"id": "quiz-1", "title": "Midterm"}]
        query = client.table.return_value.select.return_value
        query.eq.return_value.execute.return_value.data = mock_data

        result = database.select("quizzes", filters={"id": "quiz-1"})

        assert result == mock_data
        query.eq.assert_called_once_with("id", "quiz-1")

    def test_select_null_filter(self, database, client):
        query = client.table.return_value.select.return_value
        query.is_.return_value.execute.return_value.data = []

        database.select("quiz_answers", filters={"selected_option_id": None})

        query.is_.assert_called_once_with("selected_option_id", "null")
        query.eq.assert_not_called()

    def test_select_membership_filter(self, database, client):
        query = client.table.return_value.select.return_value
        query.in_.return_value.execute.return_value.data = [{"id": "o1"}]

        result = database.select("quiz_options", in_filters={"question_id": ("q1", "q2")})

        assert result == [{"id": "o1"}]
        query.in_.assert_called_once_with("question_id", ["q1", "q2"])

    def test_select_no_results(self, database, client):
        """Test select with no results"""
        client.table.return_value.select.return_value.eq.return_value.execute.return_value.data = None

        assert database.select("quizzes", filters={"id": "missing"}) == []

    def test_select_with_order_and_limit(self, database, client):
        query = client.table.return_value.select.return_value
        ordered = query.order.return_value
        ordered.limit.return_value.execute.return_value.data = [{"id": "q1"}]

        result = database.select("quiz_questions", order_by="question_number", descending=True, limit=1)

        assert result == [{"id": "q1"}]
        query.order.assert_called_once_with("question_number", desc=True)
        ordered.limit.assert_called_once_with(1)

    def test_select_failure(self, database, client):
        client.table.return_value.select.side_effect = Exception("connection reset")

        with pytest.raises(StoreUnavailableError):
            database.select("quizzes")

    def test_update_record_success(self, database, client):
        """Test successful record update"""
        query = client.table.return_value.update.return_value
        query.eq.return_value.eq.return_value.execute.return_value.data = [{"id": "a1", "status": "submitted"}]

        result = database.update("quiz_attempts", {"status": "submitted"},
                                 {"id": "a1", "status": "in_progress"})

        assert result == {"id": "a1", "status": "submitted"}
        query.eq.assert_called_once_with("id", "a1")
        query.eq.return_value.eq.assert_called_once_with("status", "in_progress")

    def test_update_nothing_matched(self, database, client):
        client.table.return_value.update.return_value.eq.return_value.execute.return_value.data = []

        assert database.update("quiz_attempts", {"status": "submitted"}, {"id": "a1"}) is None

    def test_upsert_uses_conflict_columns(self, database, client):
        row = {"attempt_id": "a1", "question_id": "q1", "selected_option_id": "o1"}
        client.table.return_value.upsert.return_value.execute.return_value.data = [row]

        result = database.upsert("quiz_answers", row, on_conflict="attempt_id,question_id")

        assert result == row
        client.table.return_value.upsert.assert_called_once_with(row, on_conflict="attempt_id,question_id")

    def test_upsert_failure(self, database, client):
        client.table.return_value.upsert.return_value.execute.side_effect = Exception("timeout")

        with pytest.raises(StoreUnavailableError) as exc_info:
            database.upsert("quiz_answers", {}, on_conflict="attempt_id,question_id")

        assert "timeout" in str(exc_info.value)

    def test_delete_record_success(self, database, client):
        """Test successful record deletion"""
        client.table.return_value.delete.return_value.eq.return_value.eq.return_value.execute.return_value.data = [
            {"id": "ans-1"}
        ]

        result = database.delete("quiz_answers", {"attempt_id": "a1", "question_id": "q1"})

        assert result == [{"id": "ans-1"}]


class TestConnection:

    def test_connection_ok(self, database, client):
        client.table.return_value.select.return_value.limit.return_value.execute.return_value.data = []
        assert database_module.test_supabase_connection(database) is True

    def test_connection_failure(self, database, client):
        client.table.side_effect = Exception("unreachable")
        assert database_module.test_supabase_connection(database) is False

from dbgateway.common.errors import ErrorCode
from dbgateway.execution.executor import StatementExecutor
from tests.helpers import (
    CheckoutCounter,
    FailingEngine,
    FakeEngine,
    FakeResult,
    make_format_paramstyle_engine,
    make_handle,
)


def test_select_returns_row_mappings(users_engine):
    # Arrange
    executor = StatementExecutor()
    handle = make_handle("main", users_engine)

    # Act
    outcome = executor.execute(handle, "SELECT id, name FROM users ORDER BY id")

    # Assert
    assert outcome.success is True
    assert outcome.data == [{"id": 1, "name": "alice"}, {"id": 2, "name": "bob"}]
    assert outcome.error is None
    assert outcome.metrics["execution_time_ms"] >= 0


def test_select_with_no_rows_returns_empty_list(empty_engine):
    outcome = StatementExecutor().execute(make_handle("main", empty_engine), "SELECT * FROM users")

    assert outcome.success is True
    assert outcome.data == []
    assert outcome.is_empty


def test_update_returns_affected_row_count_and_commits(users_engine):
    # Validates the write path because the count is the only payload a write produces.
    # Arrange
    executor = StatementExecutor()
    handle = make_handle("main", users_engine)

    # Act
    outcome = executor.execute(handle, "UPDATE users SET name = 'zed'")
    check = executor.execute(handle, "SELECT DISTINCT name FROM users")

    # Assert
    assert outcome.success is True
    assert outcome.data == 2
    assert check.data == [{"name": "zed"}]


def test_driver_error_is_passed_through_verbatim(users_engine):
    outcome = StatementExecutor().execute(make_handle("main", users_engine), "SELEC 1")

    assert outcome.success is False
    assert outcome.error == 'near "SELEC": syntax error'
    assert outcome.error_code == ErrorCode.DB_EXECUTION_ERROR
    assert outcome.to_response() == {"error": 'near "SELEC": syntax error'}


def test_connection_failure_is_captured():
    outcome = StatementExecutor().execute(make_handle("pg", FailingEngine("connection refused")), "SELECT 1")

    assert outcome.success is False
    assert outcome.error == "connection refused"
    assert outcome.error_code == ErrorCode.DB_EXECUTION_ERROR


def test_colon_names_inside_literals_are_not_bind_parameters(users_engine):
    outcome = StatementExecutor().execute(make_handle("main", users_engine), "SELECT ':name' AS v")

    assert outcome.success is True
    assert outcome.data == [{"v": ":name"}]


def test_binary_values_are_base64_encoded(users_engine):
    outcome = StatementExecutor().execute(make_handle("main", users_engine), "SELECT X'68656c6c6f' AS b")

    assert outcome.data == [{"b": "aGVsbG8="}]


def test_unconvertible_value_is_a_normalization_failure():
    # Validates the distinct error code because "the database complained" and
    # "the answer could not be converted" need different handling.
    # Arrange
    engine = FakeEngine(FakeResult(["id", "blob"], [(1, object())]))

    # Act
    outcome = StatementExecutor().execute(make_handle("fake", engine), "SELECT id, blob FROM t")

    # Assert
    assert outcome.success is False
    assert outcome.error_code == ErrorCode.NORMALIZATION_ERROR
    assert "Column 'blob'" in outcome.error
    assert engine.open_connections == 0
    assert engine.result.closed is True


def test_connection_is_released_on_success_and_failure(users_engine):
    # Validates connection hygiene because a leaked checkout per failed call exhausts the pool.
    # Arrange
    counter = CheckoutCounter(users_engine)
    executor = StatementExecutor()
    handle = make_handle("main", users_engine)

    # Act
    for sql in ["SELECT 1", "SELEC broken", "UPDATE users SET name = name", "SELECT * FROM missing_table"]:
        executor.execute(handle, sql)

    # Assert
    assert counter.checkouts == 4
    assert counter.checkins == counter.checkouts


def test_statement_is_sent_untouched():
    engine = FakeEngine(FakeResult([], [], rowcount=3))
    sql = "UPDATE t SET v = :keep  -- comment"

    outcome = StatementExecutor().execute(make_handle("fake", engine), sql)

    assert engine.statements == [sql]
    assert outcome.data == 3
    assert engine.commits == 1
    assert engine.execution_options == {"no_parameters": True}


def test_percent_literals_survive_format_paramstyle_drivers():
    # Validates that a driver interpolating %-sequences never sees an args collection.
    # Arrange
    engine = make_format_paramstyle_engine()
    handle = make_handle("mysqlish", engine)

    # Act
    try:
        like = StatementExecutor().execute(handle, "SELECT 'abc' LIKE 'a%' AS m")
        fmt = StatementExecutor().execute(handle, "SELECT '100%' AS pct, 'x%sy' AS raw")
    finally:
        engine.dispose()

    # Assert
    assert like.success, like.error
    assert like.data == [{"m": 1}]
    assert fmt.data == [{"pct": "100%", "raw": "x%sy"}]


def test_error_codes_name_only_failures_that_carry_one():
    # Admission, lookup and deadline outcomes are plain envelopes without a code.
    assert set(ErrorCode) == {
        ErrorCode.DB_EXECUTION_ERROR,
        ErrorCode.NORMALIZATION_ERROR,
        ErrorCode.EXTENSION_NOT_FOUND,
        ErrorCode.EXTENSION_EXECUTION_FAILED,
        ErrorCode.INVALID_EXTENSION_RESULT,
    }

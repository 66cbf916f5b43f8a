from postwhale.state.error_history import ErrorHistory


def test_add_and_list_in_order():
    history = ErrorHistory()
    history.add("first")
    history.add("second")
    assert [e.message for e in history.entries()] == ["first", "second"]
    assert history.latest().message == "second"


def test_bounded_to_max_errors():
    history = ErrorHistory(max_errors=3)
    for i in range(5):
        history.add(f"error {i}")
    assert len(history) == 3
    assert [e.message for e in history.entries()] == ["error 2", "error 3", "error 4"]


def test_remove_and_clear():
    history = ErrorHistory()
    first = history.add("first")
    history.add("second")
    assert history.remove(first.id) is True
    assert history.remove(first.id) is False
    assert [e.message for e in history.entries()] == ["second"]
    history.clear()
    assert history.entries() == []
    assert history.latest() is None


def test_ids_are_unique():
    history = ErrorHistory(max_errors=2)
    ids = {history.add("x").id for _ in range(10)}
    assert len(ids) == 10

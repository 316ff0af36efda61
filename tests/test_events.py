from crashscope.events import (
    Breadcrumb,
    Event,
    Level,
    Request,
    User,
)


def test_default_user_is_empty():
    assert User().is_empty() is True


def test_user_with_id_is_not_empty():
    assert User(id="1337").is_empty() is False


def test_user_with_only_data_is_not_empty():
    assert User(data={"foo": "bar"}).is_empty() is False


def test_level_values():
    assert Level("fatal") is Level.FATAL
    assert Level("info") is Level.INFO
    assert str(Level("debug")) == "debug"


def test_level_from_value_round_trip():
    for level in Level:
        assert Level(level.value) is level


def test_event_defaults_are_independent():
    first = Event()
    second = Event()
    first.breadcrumbs.append(Breadcrumb(message="test"))
    first.tags["a"] = "foo"
    assert second.breadcrumbs == []
    assert second.tags == {}
    assert second.request is None
    assert second.user.is_empty()


def test_event_ids_are_unique():
    ids = {Event().event_id for _ in range(5)}
    assert len(ids) == 5


def test_request_body_is_not_compared():
    first = Request(url="aye", body=object(), content_length=5)
    second = Request(url="aye")
    assert first == second
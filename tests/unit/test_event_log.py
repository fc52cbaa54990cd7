import pytest

from core.errors import MissingActorError
from persistence.events import EventLog, require_actor


@pytest.mark.parametrize("actor", [None, "", "   "])
def test_append_requires_actor(store, actor) -> None:
    log = EventLog(store)

    with pytest.raises(MissingActorError):
        log.append(actor, "comment")

    assert log.list_events() == []
    assert store.last_version() == 0


def test_require_actor_strips_and_carries_context() -> None:
    assert require_actor("  shifter@cern.ch ") == "shifter@cern.ch"
    with pytest.raises(MissingActorError) as excinfo:
        require_actor(None, run_number=1, dataset_name="online")
    assert excinfo.value.run_number == 1
    assert excinfo.value.dataset_name == "online"


def test_versions_strictly_increase(store) -> None:
    log = EventLog(store)

    versions = [log.append("a@cern.ch", f"change {index}").version for index in range(5)]

    assert versions == [1, 2, 3, 4, 5]
    stored = log.list_events()
    assert [event.version for event in stored] == versions
    assert stored[2].comment == "change 2"
    assert log.get(3).actor == "a@cern.ch"
    assert log.get(42) is None


def test_versions_within_one_unit_of_work(store) -> None:
    log = EventLog(store)

    with store.transaction() as uow:
        first = log.append("a@cern.ch", None, uow=uow)
        second = log.append("b@cern.ch", None, uow=uow)

    assert (first.version, second.version) == (1, 2)
    assert first.comment == ""


def test_rolled_back_versions_are_never_reused(store) -> None:
    log = EventLog(store)
    log.append("a@cern.ch", "kept")

    with pytest.raises(RuntimeError):
        with store.transaction() as uow:
            burned = log.append("a@cern.ch", "discarded", uow=uow)
            assert burned.version == 2
            raise RuntimeError("abort")

    assert log.get(2) is None
    assert store.last_version() == 2
    assert log.append("a@cern.ch", "next").version == 3


def test_list_events_pagination(store) -> None:
    log = EventLog(store)
    for _ in range(4):
        log.append("a@cern.ch", "")

    assert [event.version for event in log.list_events(after_version=1, limit=2)] == [2, 3]

from persistence.models import LumisectionSource
from services.notifications import ChangeNotifier


def test_subscribers_receive_changes_until_unsubscribed() -> None:
    notifier = ChangeNotifier()
    seen: list[tuple] = []
    unsubscribe = notifier.subscribe(lambda *args: seen.append(args))

    notifier.dataset_changed(1, "online", LumisectionSource.RR)
    unsubscribe()
    unsubscribe()
    notifier.dataset_changed(2, "online")

    assert seen == [(1, "online", LumisectionSource.RR)]


def test_failing_listener_does_not_block_others() -> None:
    notifier = ChangeNotifier()
    seen: list[tuple] = []

    def broken(*args) -> None:
        raise RuntimeError("cache down")

    notifier.subscribe(broken)
    notifier.subscribe(lambda *args: seen.append(args))

    notifier.dataset_changed(1, "online", LumisectionSource.OMS)

    assert seen == [(1, "online", LumisectionSource.OMS)]

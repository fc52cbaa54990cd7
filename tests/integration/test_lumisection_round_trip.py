from __future__ import annotations

from persistence.models import LumisectionSource
from services.changes import ChangeAuthor
from services.feed import FeedConsumer
from services.lumisections import LumisectionService
from services.runs import RunService


def _triplet(status: str, comment: str = "") -> dict[str, str]:
    return {"status": status, "comment": comment, "cause": ""}


def test_run_lifecycle_keeps_full_provenance(registry) -> None:
    runs = RunService(registry)
    lumisections = LumisectionService(registry)
    notified: list[tuple] = []
    registry.notifier.subscribe(lambda *args: notified.append(args))
    shifter = ChangeAuthor(actor="shifter@cern.ch", comment="run started")

    runs.new_run(
        {"run_number": 320500},
        {"state": "OPEN", "class": "Collisions18"},
        [{"beam1_present": False, "cms_active": True}] * 6,
        [{"dt-dt": _triplet("GOOD"), "csc-csc": _triplet("GOOD")}] * 6,
        shifter,
    )

    feed = FeedConsumer(lumisections, feed_name="OMS runs")
    feed.submit(
        {
            "run_number": 320500,
            "source": "oms",
            "lumisections": [{"beam1_present": True, "cms_active": True}] * 6,
        }
    )
    assert feed.drain().failures == []

    reviewer = ChangeAuthor(actor="reviewer@cern.ch", comment="csc chamber off")
    observed = [
        {"dt-dt": _triplet("GOOD"), "csc-csc": _triplet("GOOD")},
        {"dt-dt": _triplet("GOOD"), "csc-csc": _triplet("BAD", "chamber off")},
        {"dt-dt": _triplet("GOOD"), "csc-csc": _triplet("BAD", "chamber off")},
        {"dt-dt": _triplet("GOOD"), "csc-csc": _triplet("GOOD")},
        {"dt-dt": _triplet("BAD"), "csc-csc": _triplet("GOOD")},
        {"dt-dt": _triplet("BAD"), "csc-csc": _triplet("GOOD")},
    ]
    runs.edit_run(
        320500,
        oms_attributes={},
        rr_attributes={"state": "OPEN", "class": "Collisions18"},
        oms_lumisections=[{"beam1_present": True, "cms_active": True}] * 6,
        rr_lumisections=observed,
        author=reviewer,
    )

    assert lumisections.get_lumisections(320500, "online") == observed
    assert lumisections.get_lumisections(320500, "online", LumisectionSource.OMS) == [
        {"beam1_present": True, "cms_active": True}
    ] * 6
    ranges = lumisections.get_lumisection_ranges(320500, "online")
    assert [(item.start, item.end) for item in ranges] == [(1, 1), (2, 3), (4, 4), (5, 6)]

    history = lumisections.get_lumisection_history(320500, "online")
    assert [item["actor"] for item in history] == [
        "shifter@cern.ch",
        "reviewer@cern.ch",
        "reviewer@cern.ch",
    ]
    oms_history = lumisections.get_lumisection_history(320500, "online", LumisectionSource.OMS)
    assert [item["actor"] for item in oms_history] == ["shifter@cern.ch", "auto - OMS runs"]

    versions = [event.version for event in registry.events.list_events()]
    assert versions == list(range(1, len(versions) + 1))
    assert (320500, "online", LumisectionSource.OMS) in notified
    assert (320500, "online", LumisectionSource.RR) in notified

"""Round issue, role assignment and topic visibility tests."""

from __future__ import annotations

import asyncio
from collections import Counter
from pathlib import Path
import random
import sys

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from room_testkit import ROOM_ID, FakeClock, FixedOrderRng, FlakyStore  # noqa: E402

from insider_engine.errors import AuthorizationError  # noqa: E402
from insider_engine.errors import UpstreamError  # noqa: E402
from insider_engine.errors import ValidationError  # noqa: E402
from insider_engine.models import Role  # noqa: E402
from insider_engine.models import Round  # noqa: E402
from insider_engine.models import Table  # noqa: E402
from insider_engine.rounds import RoundEngine  # noqa: E402
from insider_engine.rounds import assign_roles  # noqa: E402
from insider_engine.rounds import visible_topic  # noqa: E402


def _engine(store: FlakyStore, rng: object) -> RoundEngine:
    return RoundEngine(store=store, clock=FakeClock(), rng=rng)  # type: ignore[arg-type]


def test_fixed_permutation_assigns_presenter_insider_common() -> None:
    """Input: members [A,B,C], permutation [B,C,A] -> Output: B presenter, C insider, A common."""
    store = FlakyStore()
    engine = _engine(store, FixedOrderRng(["B", "C", "A"]))

    async def scenario() -> tuple:
        issue = await engine.issue_round(room_id=ROOM_ID, requester_id="A", member_ids=["A", "B", "C"], topic="apple")
        roles = {user_id: await engine.role_of(issue.round_id, user_id) for user_id in ("A", "B", "C")}
        views = {
            user_id: await engine.load_view(room_id=ROOM_ID, user_id=user_id) for user_id in ("A", "B", "C")
        }
        return issue, roles, views

    issue, roles, views = asyncio.run(scenario())

    assert issue.role is Role.COMMON
    assert issue.topic is None
    assert roles == {"A": Role.COMMON, "B": Role.PRESENTER, "C": Role.INSIDER}
    assert views["A"].topic is None
    assert views["B"].topic == "apple"
    assert views["C"].topic == "apple"
    assert all(view.round_id == issue.round_id for view in views.values())


def test_requester_with_topic_role_receives_topic() -> None:
    store = FlakyStore()
    engine = _engine(store, FixedOrderRng(["A", "B"]))

    issue = asyncio.run(engine.issue_round(room_id=ROOM_ID, requester_id="A", member_ids=["A", "B"], topic=" pen "))

    assert issue.role is Role.PRESENTER
    assert issue.topic == "pen"


@pytest.mark.parametrize("seed", range(20))
def test_every_round_has_exactly_one_presenter_and_one_insider(seed: int) -> None:
    members = [f"u{i}" for i in range(2 + seed % 6)]

    roles = assign_roles(members, random.Random(seed))
    counts = Counter(roles.values())

    assert set(roles) == set(members)
    assert counts[Role.PRESENTER] == 1
    assert counts[Role.INSIDER] == 1
    assert counts[Role.COMMON] == len(members) - 2


def test_assignment_covers_every_seat_over_many_draws() -> None:
    rng = random.Random(7)
    seen_presenters = set()
    seen_insiders = set()
    for _ in range(200):
        roles = assign_roles(["A", "B", "C"], rng)
        seen_presenters.update(user for user, role in roles.items() if role is Role.PRESENTER)
        seen_insiders.update(user for user, role in roles.items() if role is Role.INSIDER)

    assert seen_presenters == {"A", "B", "C"}
    assert seen_insiders == {"A", "B", "C"}


def test_visible_topic_by_role() -> None:
    round_ = Round(id=1, room_id=ROOM_ID, topic="apple", created_by="A", created_at="")

    assert visible_topic(round_, Role.PRESENTER) == "apple"
    assert visible_topic(round_, Role.INSIDER) == "apple"
    assert visible_topic(round_, Role.COMMON) is None
    assert visible_topic(round_, None) is None


def test_non_member_view_has_round_but_no_role_or_topic() -> None:
    store = FlakyStore()
    engine = _engine(store, FixedOrderRng(["A", "B"]))

    async def scenario():
        await engine.issue_round(room_id=ROOM_ID, requester_id="A", member_ids=["A", "B"], topic="apple")
        return await engine.load_view(room_id=ROOM_ID, user_id="outsider")

    view = asyncio.run(scenario())

    assert view.has_round is True
    assert view.role is None
    assert view.topic is None


def test_single_member_room_is_rejected() -> None:
    """Input: one member -> Output: ValidationError and no round row."""
    store = FlakyStore()
    engine = _engine(store, random.Random(1))

    with pytest.raises(ValidationError):
        asyncio.run(engine.issue_round(room_id=ROOM_ID, requester_id="A", member_ids=["A"], topic="apple"))

    assert store.count("insert", Table.ROUNDS) == 0


def test_requester_outside_member_set_is_rejected() -> None:
    store = FlakyStore()
    engine = _engine(store, random.Random(1))

    with pytest.raises(AuthorizationError):
        asyncio.run(engine.issue_round(room_id=ROOM_ID, requester_id="Z", member_ids=["A", "B"], topic="apple"))

    assert store.count("insert", Table.ROUNDS) == 0


def test_blank_topic_is_rejected() -> None:
    store = FlakyStore()
    engine = _engine(store, random.Random(1))

    with pytest.raises(ValidationError):
        asyncio.run(engine.issue_round(room_id=ROOM_ID, requester_id="A", member_ids=["A", "B"], topic="   "))


def test_role_batch_failure_leaves_unresolved_roles() -> None:
    """Input: role insert fails after round insert -> Output: error surfaced, readers see no role."""
    store = FlakyStore()
    engine = _engine(store, FixedOrderRng(["A", "B"]))
    store.fail_next("insert", Table.ROUND_ROLES)

    with pytest.raises(UpstreamError):
        asyncio.run(engine.issue_round(room_id=ROOM_ID, requester_id="A", member_ids=["A", "B"], topic="apple"))

    view = asyncio.run(engine.load_view(room_id=ROOM_ID, user_id="A"))
    assert view.has_round is True
    assert view.role is None
    assert view.topic is None


def test_current_round_is_latest_issued() -> None:
    store = FlakyStore()
    engine = _engine(store, random.Random(3))

    async def scenario():
        first = await engine.issue_round(room_id=ROOM_ID, requester_id="A", member_ids=["A", "B"], topic="apple")
        second = await engine.issue_round(room_id=ROOM_ID, requester_id="B", member_ids=["A", "B"], topic="pen")
        current = await engine.current_round(ROOM_ID)
        other_room = await engine.current_round("room-2")
        return first, second, current, other_room

    first, second, current, other_room = asyncio.run(scenario())

    assert second.round_id > first.round_id
    assert current is not None and current.id == second.round_id
    assert current.topic == "pen"
    assert other_room is None


def test_load_view_ignores_round_from_another_room() -> None:
    store = FlakyStore()
    engine = _engine(store, FixedOrderRng(["A", "B"]))

    async def scenario():
        foreign = await engine.issue_round(room_id="room-2", requester_id="A", member_ids=["A", "B"], topic="apple")
        return await engine.load_view(room_id=ROOM_ID, user_id="A", round_id=foreign.round_id)

    view = asyncio.run(scenario())

    assert view.has_round is False


def test_load_view_degrades_on_read_failure() -> None:
    store = FlakyStore()
    engine = _engine(store, FixedOrderRng(["A", "B"]))
    asyncio.run(engine.issue_round(room_id=ROOM_ID, requester_id="A", member_ids=["A", "B"], topic="apple"))

    store.fail_next("select", Table.ROUNDS)
    assert asyncio.run(engine.load_view(room_id=ROOM_ID, user_id="A")).has_round is False

    store.fail_next("select", Table.ROUND_ROLES)
    view = asyncio.run(engine.load_view(room_id=ROOM_ID, user_id="A"))
    assert view.has_round is True
    assert view.role is None
    assert view.topic is None

from __future__ import annotations

from keybatch.domain import Ref, ResultNow, Session, SessionValue, Upgrade
from tests.helpers.library import MENTOR, SEQUEL, author_key, book_key


def test_session_tracks_added_keys() -> None:
    session = Session()
    value = SessionValue[str](result=ResultNow[str | None]("Ursula"))

    session.add(author_key(1), value)

    assert session.get(author_key(1)) is value
    assert session.get(author_key(2)) is None
    assert author_key(1) in session
    assert list(session.keys()) == [author_key(1)]
    assert len(session) == 1

    session.clear()

    assert len(session) == 0


def test_drain_upgrades_keeps_ineligible_ones_in_order() -> None:
    value = SessionValue[object](result=ResultNow[object | None](None))
    mentor = Upgrade(MENTOR, Ref.create(author_key(1)))
    first_sequel = Upgrade(SEQUEL, Ref.create(book_key(2, "messiah")))
    second_sequel = Upgrade(SEQUEL, Ref.create(book_key(2, "children")))
    for upgrade in (first_sequel, mentor, second_sequel):
        value.add_upgrade(upgrade)
    upgrades = value.upgrades

    drained = value.drain_upgrades(lambda upgrade: upgrade.property is MENTOR)

    assert drained == [mentor]
    assert value.upgrades == [first_sequel, second_sequel]
    assert value.upgrades is upgrades
    assert value.drain_upgrades(lambda _: False) == []

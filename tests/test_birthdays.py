from datetime import date

import pytest

from conftest import make_member
from models import BirthdayWish
from mailer import birthday_message
from services.birthdays import is_birthday, run_birthday_sweep

MARCH_14 = date(2026, 3, 14)


def _ledger(db, user_id=None):
    query = db.query(BirthdayWish)
    if user_id:
        query = query.filter(BirthdayWish.user_id == user_id)
    return query.all()


def test_birthday_member_gets_one_email(db, mailer):
    member = make_member(db, date_of_birth=date(1995, 3, 14))

    result = run_birthday_sweep(db, mailer, today=MARCH_14)

    assert result.message == "Birthday wishes processed"
    assert result.eligible == 1
    assert [s.user_id for s in result.sent] == [member.user_id]
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == member.email
    assert [(w.user_id, w.year) for w in _ledger(db)] == [(member.user_id, 2026)]


def test_second_sweep_same_day_sends_nothing(db, mailer):
    member = make_member(db, date_of_birth=date(1995, 3, 14))
    run_birthday_sweep(db, mailer, today=MARCH_14)

    again = run_birthday_sweep(db, mailer, today=MARCH_14)

    assert again.sent == []
    assert again.skipped == [member.user_id]
    assert len(mailer.sent) == 1
    assert len(_ledger(db)) == 1


def test_next_year_is_eligible_again(db, mailer):
    member = make_member(db, date_of_birth=date(1995, 3, 14))
    run_birthday_sweep(db, mailer, today=MARCH_14)
    run_birthday_sweep(db, mailer, today=date(2027, 3, 14))

    assert len(mailer.sent) == 2
    assert sorted(w.year for w in _ledger(db, member.user_id)) == [2026, 2027]


def test_no_birthdays_today(db, mailer):
    make_member(db, date_of_birth=date(1995, 3, 14))
    result = run_birthday_sweep(db, mailer, today=date(2026, 3, 15))

    assert result.message == "No birthdays today"
    assert result.eligible == 0
    assert mailer.sent == []
    assert _ledger(db) == []


def test_failed_send_is_retried_next_run(db, mailer):
    failing = make_member(db, email="bounce@example.com", date_of_birth=date(1990, 3, 14))
    ok = make_member(db, email="ok@example.com", full_name="Ravi Kumar", date_of_birth=date(1988, 3, 14))
    mailer.failing.add("bounce@example.com")

    first = run_birthday_sweep(db, mailer, today=MARCH_14)
    assert [f.user_id for f in first.failed] == [failing.user_id]
    assert [s.user_id for s in first.sent] == [ok.user_id]
    assert _ledger(db, failing.user_id) == []

    mailer.failing.clear()
    second = run_birthday_sweep(db, mailer, today=MARCH_14)
    assert [s.user_id for s in second.sent] == [failing.user_id]
    assert second.skipped == [ok.user_id]
    assert len(_ledger(db)) == 2
    assert [m["to"] for m in mailer.sent].count("ok@example.com") == 1


def test_existing_ledger_row_prevents_send(db, mailer):
    member = make_member(db, date_of_birth=date(1995, 3, 14))
    db.add(BirthdayWish(user_id=member.user_id, year=2026))
    db.commit()

    result = run_birthday_sweep(db, mailer, today=MARCH_14)
    assert result.skipped == [member.user_id]
    assert mailer.sent == []


def test_members_without_dob_are_ignored(db, mailer):
    member = make_member(db, date_of_birth=date(1995, 3, 14))
    from models import Profile
    db.get(Profile, member.user_id).date_of_birth = None
    db.commit()

    assert run_birthday_sweep(db, mailer, today=MARCH_14).eligible == 0


@pytest.mark.parametrize("dob,today,expected", [
    (date(1995, 3, 14), date(2026, 3, 14), True),
    (date(1995, 3, 14), date(2026, 3, 13), False),
    (date(1996, 2, 29), date(2026, 2, 28), True),
    (date(1996, 2, 29), date(2028, 2, 28), False),
    (date(1996, 2, 29), date(2028, 2, 29), True),
    (date(1996, 2, 28), date(2026, 2, 28), True),
])
def test_is_birthday(dob, today, expected):
    assert is_birthday(dob, today) is expected


def test_birthday_message_escapes_html():
    subject, html, text = birthday_message("<script>alert(1)</script> Rao", "2010 & <b>")

    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt; Rao" in html
    assert "Batch of 2010 &amp; &lt;b&gt;" in html
    assert "Dear <script>alert(1)</script> Rao," in text
    assert subject == "Happy Birthday, <script>alert(1)</script>!"

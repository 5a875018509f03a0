from __future__ import annotations

import asyncio
from datetime import date

import pytest

from busbooker.models import RegistrationDraft
from busbooker.services import registration as reg
from busbooker.services.registration import RegistrationWizardValidator
from busbooker.services.session import SessionTokenManager
from busbooker.utils.http import ApiError
from busbooker.utils.storage import StateStore

from stubs import USER, StubApi

TODAY = date(2025, 6, 1)


def _complete_draft(**changes) -> RegistrationDraft:
    values = dict(
        first_name="Awa",
        last_name="Koné",
        email="awa@example.ci",
        phone="",
        date_of_birth=date(1990, 5, 4),
        password="Secret#2025",
        confirm_password="Secret#2025",
        accept_terms=True,
    )
    values.update(changes)
    return RegistrationDraft(**values)


# ── Password strength ─────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "password, score",
    [
        ("", 0),
        ("abc", 1),
        ("abcdefgh", 2),
        ("Abcdefgh", 3),
        ("Abcdefg1", 4),
        ("Abcdef1!", 5),
        ("Ab1!", 4),
    ],
)
def test_password_strength(password, score):
    assert reg.password_strength(password) == score


def test_short_passwords_never_reach_five():
    assert reg.password_strength("aB3$xyz") == 4


def test_strength_is_monotonic_when_adding_a_class():
    base = "abcdefgh"
    assert reg.password_strength(base + "A") >= reg.password_strength(base)
    assert reg.password_strength(base + "A1") >= reg.password_strength(base + "A")


def test_strength_labels():
    assert [reg.strength_label(s) for s in range(6)] == [
        "Very weak", "Very weak", "Weak", "Medium", "Strong", "Very strong",
    ]


# ── Steps ─────────────────────────────────────────────────────────────────────

def test_step_one_names():
    errors = reg.validate(1, _complete_draft(first_name=" ", last_name="K"), TODAY)
    assert set(errors) == {"first_name", "last_name"}
    assert reg.can_advance(1, _complete_draft(), TODAY)


def test_step_two_requires_a_contact():
    draft = _complete_draft(email="", phone="")
    errors = reg.validate(2, draft, TODAY)
    assert "contact" in errors
    assert not reg.can_advance(2, draft, TODAY)


@pytest.mark.parametrize(
    "phone, valid",
    [
        ("0701020304", True),
        ("+225 07 01 02 03 04", True),
        ("(27) 22-33-44-55", True),
        ("0801020304", False),
        ("070102030", False),
        ("070102030405", False),
    ],
)
def test_phone_rule(phone, valid):
    assert reg.is_valid_phone(phone) is valid


def test_invalid_email_is_reported_even_with_phone():
    errors = reg.validate(2, _complete_draft(email="awa@example", phone="0701020304"), TODAY)
    assert set(errors) == {"email"}


@pytest.mark.parametrize(
    "birth, expected",
    [
        (date(2007, 6, 1), None),
        (date(2007, 6, 2), "date_of_birth"),
        (date(1905, 6, 1), None),
        (date(1904, 5, 31), "date_of_birth"),
        (None, "date_of_birth"),
    ],
)
def test_age_bounds(birth, expected):
    errors = reg.validate(2, _complete_draft(date_of_birth=birth), TODAY)
    assert (expected in errors) if expected else not errors


@pytest.mark.parametrize(
    "password, fragment",
    [
        ("", "required"),
        ("Ab1!", "at least 8"),
        ("MyPassword1!", '"password"'),
        ("abcdefghij", "too weak"),
    ],
)
def test_password_errors_in_priority_order(password, fragment):
    errors = reg.validate(3, _complete_draft(password=password, confirm_password=password), TODAY)
    assert fragment in errors["password"]


def test_step_three_confirmation_and_terms():
    errors = reg.validate(3, _complete_draft(confirm_password="Other#2025", accept_terms=False), TODAY)
    assert set(errors) == {"confirm_password", "accept_terms"}


def test_next_step_blocks_and_previous_step_floors():
    draft = _complete_draft(first_name="")
    blocked = reg.next_step(draft, TODAY)
    assert blocked.current_step == 1
    assert "first_name" in blocked.field_errors

    advanced = reg.next_step(_complete_draft(), TODAY)
    assert advanced.current_step == 2
    assert reg.previous_step(reg.previous_step(advanced)).current_step == 1


def test_update_field_refreshes_only_its_step():
    draft = _complete_draft(field_errors={"first_name": "stale", "email": "stale"})
    updated = reg.update_field(draft, "email", "awa@example.ci", TODAY)
    assert "email" not in updated.field_errors
    assert updated.field_errors["first_name"] == "stale"
    assert updated.email == "awa@example.ci"


def test_validate_profile_update():
    assert reg.validate_profile_update() == {}
    assert "confirm_password" in reg.validate_profile_update("Secret#2025", "Other")
    assert "password" in reg.validate_profile_update("short", "short")
    assert "date_of_birth" in reg.validate_profile_update(date_of_birth=date(2010, 1, 1), today=TODAY)


@pytest.mark.parametrize(
    "message, field",
    [
        ("Cet email est déjà utilisé", "email"),
        ("Ce numéro de téléphone existe déjà", "phone"),
        ("Erreur interne", "general"),
    ],
)
def test_server_message_field_mapping(message, field):
    assert reg.field_for_server_message(message) == field


# ── Submission ────────────────────────────────────────────────────────────────

def _wizard(api, tmp_path) -> RegistrationWizardValidator:
    return RegistrationWizardValidator(SessionTokenManager(api, StateStore(tmp_path / "state.json")))


def test_submit_blocks_on_any_error(tmp_path):
    api = StubApi()
    wizard = _wizard(api, tmp_path)
    wizard.draft = _complete_draft(accept_terms=False)

    result = asyncio.run(wizard.submit(TODAY))

    assert not result.success
    assert "accept_terms" in result.field_errors
    assert api.called("register") == []


def test_submit_registers_and_signs_in(tmp_path):
    api = StubApi(register={"success": True, "token": "tok-1", "user": USER})
    wizard = _wizard(api, tmp_path)
    wizard.draft = _complete_draft(phone="+225 07 01 02 03 04")

    result = asyncio.run(wizard.submit(TODAY))

    assert result.success
    assert wizard.session.is_authenticated
    sent = api.called("register")[0][0]
    assert sent["phone"] == "0701020304"
    assert sent["dateOfBirth"] == "1990-05-04"
    assert wizard.draft == RegistrationDraft()


def test_submit_maps_server_rejection_to_field(tmp_path):
    api = StubApi(register=ApiError(409, "Cet email est déjà utilisé"))
    wizard = _wizard(api, tmp_path)
    wizard.draft = _complete_draft()

    result = asyncio.run(wizard.submit(TODAY))

    assert not result.success
    assert result.field_errors == {"email": "Cet email est déjà utilisé"}
    assert wizard.draft.field_errors == {"email": "Cet email est déjà utilisé"}
    assert not wizard.session.is_authenticated

"""Three-step sign-up form: identity, contact, credentials.

Validation is pure: every function takes the draft (and today's date where
age matters) and returns field → message errors. Nothing here raises for
bad input; errors only block the step they belong to.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from datetime import date
from typing import Any

from busbooker.models import OperationResult, RegistrationDraft
from busbooker.services.session import SessionTokenManager

logger = logging.getLogger(__name__)

FIRST_STEP = 1
LAST_STEP = 3

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8
MIN_PASSWORD_STRENGTH = 3
MIN_AGE = 18
MAX_AGE = 120

EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")
PHONE_RE = re.compile(r"^(01|05|07|21|25|27)\d{8}$")
_PHONE_NOISE_RE = re.compile(r"[\s\-()]")
COUNTRY_PREFIX = "+225"

STEP_FIELDS = {
    1: ("first_name", "last_name"),
    2: ("email", "phone", "contact", "date_of_birth"),
    3: ("password", "confirm_password", "accept_terms"),
}

_STRENGTH_LABELS = {0: "Very weak", 1: "Very weak", 2: "Weak", 3: "Medium", 4: "Strong", 5: "Very strong"}


# ── Field rules ───────────────────────────────────────────────────────────────

def password_strength(password: str) -> int:
    """One point each for length ≥ 8, lowercase, uppercase, digit, symbol."""
    checks = (
        len(password) >= MIN_PASSWORD_LENGTH,
        re.search(r"[a-z]", password),
        re.search(r"[A-Z]", password),
        re.search(r"\d", password),
        re.search(r"[^a-zA-Z\d]", password),
    )
    return sum(1 for c in checks if c)


def strength_label(score: int) -> str:
    return _STRENGTH_LABELS.get(score, "")


def normalize_phone(phone: str) -> str:
    digits = _PHONE_NOISE_RE.sub("", phone or "")
    if digits.startswith(COUNTRY_PREFIX):
        digits = digits[len(COUNTRY_PREFIX):]
    return digits


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(normalize_phone(phone)))


def age_on(birth: date, today: date) -> int:
    """Completed years between *birth* and *today*."""
    years = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        years -= 1
    return years


def _name_error(value: str, label: str) -> str | None:
    value = (value or "").strip()
    if not value:
        return f"{label} is required."
    if len(value) < MIN_NAME_LENGTH:
        return f"{label} must be at least {MIN_NAME_LENGTH} characters."
    return None


def _birth_date_error(birth: date | None, today: date) -> str | None:
    if birth is None:
        return "Date of birth is required."
    age = age_on(birth, today)
    if age < MIN_AGE:
        return f"You must be at least {MIN_AGE} years old."
    if age > MAX_AGE:
        return "Invalid date of birth."
    return None


def _password_error(password: str) -> str | None:
    if not password:
        return "Password is required."
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    if "password" in password.lower():
        return 'Password must not contain "password".'
    if password_strength(password) < MIN_PASSWORD_STRENGTH:
        return "Password is too weak."
    return None


def _confirmation_error(password: str, confirmation: str) -> str | None:
    if not confirmation:
        return "Please confirm your password."
    if confirmation != password:
        return "Passwords do not match."
    return None


# ── Steps ─────────────────────────────────────────────────────────────────────

def validate(step: int, draft: RegistrationDraft, today: date) -> dict[str, str]:
    """Errors for the fields of *step*; empty means the step is complete."""
    candidates: dict[str, str | None] = {}
    if step == 1:
        candidates["first_name"] = _name_error(draft.first_name, "First name")
        candidates["last_name"] = _name_error(draft.last_name, "Last name")
    elif step == 2:
        email, phone = draft.email.strip(), draft.phone.strip()
        if not email and not phone:
            candidates["contact"] = "Please provide an email address or a phone number."
        if email and not is_valid_email(email):
            candidates["email"] = "Invalid email address."
        if phone and not is_valid_phone(phone):
            candidates["phone"] = "Invalid Ivorian phone number."
        candidates["date_of_birth"] = _birth_date_error(draft.date_of_birth, today)
    elif step == 3:
        candidates["password"] = _password_error(draft.password)
        candidates["confirm_password"] = _confirmation_error(draft.password, draft.confirm_password)
        if not draft.accept_terms:
            candidates["accept_terms"] = "Please accept the terms of service."
    else:
        raise ValueError(f"unknown registration step: {step}")
    return {k: v for k, v in candidates.items() if v}


def can_advance(step: int, draft: RegistrationDraft, today: date) -> bool:
    return not validate(step, draft, today)


def validate_all(draft: RegistrationDraft, today: date) -> dict[str, str]:
    errors: dict[str, str] = {}
    for step in range(FIRST_STEP, LAST_STEP + 1):
        errors.update(validate(step, draft, today))
    return errors


def update_field(
    draft: RegistrationDraft, field_name: str, value: Any, today: date
) -> RegistrationDraft:
    """Set one field and refresh the errors of the step it lives on."""
    updated = dataclasses.replace(draft, **{field_name: value})
    step = next((s for s, names in STEP_FIELDS.items() if field_name in names), updated.current_step)
    errors = {k: v for k, v in updated.field_errors.items() if k not in STEP_FIELDS[step]}
    errors.pop("general", None)
    errors.update(validate(step, updated, today))
    return dataclasses.replace(updated, field_errors=errors)


def next_step(draft: RegistrationDraft, today: date) -> RegistrationDraft:
    errors = validate(draft.current_step, draft, today)
    if errors:
        return dataclasses.replace(draft, field_errors={**draft.field_errors, **errors})
    return dataclasses.replace(draft, current_step=min(draft.current_step + 1, LAST_STEP))


def previous_step(draft: RegistrationDraft) -> RegistrationDraft:
    return dataclasses.replace(draft, current_step=max(draft.current_step - 1, FIRST_STEP))


def field_for_server_message(message: str) -> str:
    """Which form field a server rejection is about."""
    lowered = message.lower()
    if "email" in lowered:
        return "email"
    if "téléphone" in lowered or "phone" in lowered:
        return "phone"
    return "general"


# ── Profile edits ─────────────────────────────────────────────────────────────

def validate_profile_update(
    password: str = "",
    confirm_password: str = "",
    date_of_birth: date | None = None,
    today: date | None = None,
) -> dict[str, str]:
    """Checks run before a profile update; an empty password means unchanged."""
    errors: dict[str, str] = {}
    if password or confirm_password:
        if password != confirm_password:
            errors["confirm_password"] = "Passwords do not match."
        elif len(password) < MIN_PASSWORD_LENGTH:
            errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    if date_of_birth is not None and age_on(date_of_birth, today or date.today()) < MIN_AGE:
        errors["date_of_birth"] = f"You must be at least {MIN_AGE} years old."
    return errors


# ── Submission ────────────────────────────────────────────────────────────────

class RegistrationWizardValidator:

    def __init__(self, session: SessionTokenManager) -> None:
        self.session = session
        self.draft = RegistrationDraft()

    def update_field(self, field_name: str, value: Any, today: date | None = None) -> RegistrationDraft:
        self.draft = update_field(self.draft, field_name, value, today or date.today())
        return self.draft

    def next_step(self, today: date | None = None) -> RegistrationDraft:
        self.draft = next_step(self.draft, today or date.today())
        return self.draft

    def previous_step(self) -> RegistrationDraft:
        self.draft = previous_step(self.draft)
        return self.draft

    async def submit(self, today: date | None = None) -> OperationResult:
        """Re-validate every step, then register; any error blocks the whole submission."""
        draft = self.draft
        errors = validate_all(draft, today or date.today())
        if errors:
            self.draft = dataclasses.replace(draft, field_errors=errors)
            return OperationResult.failure("Please fix the errors before continuing.", errors)

        result = await self.session.register(
            draft.first_name.strip(),
            draft.last_name.strip(),
            draft.email.strip(),
            normalize_phone(draft.phone) if draft.phone.strip() else "",
            draft.date_of_birth.isoformat(),
            draft.password,
        )
        if result.success:
            self.draft = RegistrationDraft()
            return result

        field_errors = {field_for_server_message(result.message): result.message}
        logger.info("Registration rejected on %s", next(iter(field_errors)))
        self.draft = dataclasses.replace(draft, field_errors=field_errors)
        return OperationResult.failure(result.message, field_errors)

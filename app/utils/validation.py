import re
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any, Optional, Union

from pydantic import BaseModel

from app.core.exceptions import AppointmentValidationError, DateParseError
from app.schemas.appointment import NormalizedAppointment
from app.utils.dates import parse_date, parse_time

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PHONE_DIGITS = 9


def phone_digits(phone: Optional[str]) -> str:
    """Strip everything but digits from a phone number."""
    return re.sub(r"\D", "", phone or "")


def validate_phone_number(phone: Optional[str]) -> bool:
    """A phone is valid when it carries at least nine digits."""
    return len(phone_digits(phone)) >= MIN_PHONE_DIGITS


def validate_email_format(email: Optional[str]) -> bool:
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _catalog_ids(wash_types: Iterable[Any]) -> set[int]:
    ids = set()
    for entry in wash_types:
        if isinstance(entry, Mapping):
            if entry.get("is_active", True):
                ids.add(entry["id"])
        elif getattr(entry, "is_active", True) is not False:
            ids.add(entry.id)
    return ids


def collect_appointment_errors(
    data: Mapping[str, Any],
    wash_types: Iterable[Any],
    today: Optional[date] = None,
    require_future: bool = True,
) -> tuple[list[dict[str, str]], dict[str, Any]]:
    """Check every appointment field; return (errors, parsed values)."""
    errors: list[dict[str, str]] = []
    parsed: dict[str, Any] = {}

    def error(field: str, message: str) -> None:
        errors.append({"field": field, "message": message})

    if _is_blank(data.get("client_name")):
        error("client_name", "Client name is required")

    if not validate_phone_number(data.get("phone")):
        error("phone", f"Phone must contain at least {MIN_PHONE_DIGITS} digits")

    if not validate_email_format(data.get("email")):
        error("email", "Invalid email format")

    raw_date = data.get("date")
    if _is_blank(raw_date):
        error("date", "Date is required")
    else:
        try:
            parsed["date"] = parse_date(raw_date)
        except DateParseError as e:
            error("date", str(e))
        else:
            if require_future and parsed["date"] < (today or date.today()):
                error("date", "Date cannot be in the past")

    raw_time = data.get("time")
    if _is_blank(raw_time):
        error("time", "Time is required")
    else:
        try:
            parsed["time"] = parse_time(raw_time)
        except DateParseError as e:
            error("time", str(e))

    wash_type_id = data.get("wash_type_id")
    if wash_type_id is None or wash_type_id == "":
        error("wash_type_id", "Wash type is required")
    elif wash_type_id not in _catalog_ids(wash_types):
        error("wash_type_id", f"Unknown wash type {wash_type_id}")

    if _is_blank(data.get("vehicle_model")):
        error("vehicle_model", "Vehicle model is required")

    return errors, parsed


def validate_appointment(
    candidate: Union[BaseModel, Mapping[str, Any]],
    wash_types: Iterable[Any],
    today: Optional[date] = None,
    require_future: bool = True,
) -> NormalizedAppointment:
    """Validate a candidate appointment and return its normalized form.

    Raises AppointmentValidationError listing every invalid field. The check
    is pure: ``wash_types`` is the already-fetched catalog and ``today``
    defaults to the current date.
    """
    data = candidate.model_dump() if isinstance(candidate, BaseModel) else candidate

    errors, parsed = collect_appointment_errors(
        data, wash_types, today=today, require_future=require_future
    )
    if errors:
        raise AppointmentValidationError(errors)

    notes = data.get("notes")
    license_plate = data.get("license_plate")
    return NormalizedAppointment(
        client_name=data["client_name"].strip(),
        phone=data["phone"].strip(),
        email=data["email"].strip(),
        date=parsed["date"],
        time=parsed["time"],
        wash_type_id=data["wash_type_id"],
        vehicle_model=data["vehicle_model"].strip(),
        license_plate=license_plate.strip().upper() if license_plate else None,
        notes=notes.strip() if notes and notes.strip() else None,
    )

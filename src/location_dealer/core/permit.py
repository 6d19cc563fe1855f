"""Classify raw platform authorization signals into one actionable permit."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel


class RawStatus(StrEnum):
    """Authorization status exactly as the platform reports it."""

    NOT_DETERMINED = "not_determined"
    RESTRICTED = "restricted"
    DENIED = "denied"
    AUTHORIZED_ALWAYS = "authorized_always"
    AUTHORIZED_WHEN_IN_USE = "authorized_when_in_use"
    AUTHORIZED = "authorized"  # legacy macOS value

    @property
    def is_authorized(self) -> bool:
        return self in _AUTHORIZED


_AUTHORIZED = frozenset(
    {
        RawStatus.AUTHORIZED_ALWAYS,
        RawStatus.AUTHORIZED_WHEN_IN_USE,
        RawStatus.AUTHORIZED,
    }
)


class PermissionOutcome(StrEnum):
    NOT_DETERMINED = "not_determined"
    DENIED_FOR_ALL_AND_RESTRICTED = "denied_for_all_and_restricted"
    RESTRICTED = "restricted"
    DENIED_FOR_ALL_APPS = "denied_for_all_apps"
    DENIED_FOR_THE_APP = "denied_for_the_app"
    ALLOWED = "allowed"

    @property
    def is_denial(self) -> bool:
        return self not in (PermissionOutcome.NOT_DETERMINED, PermissionOutcome.ALLOWED)


def classify(service_enabled: bool, status: RawStatus) -> PermissionOutcome:
    """Map the service flag and raw status to a single permission outcome.

    The platform never reports NOT_DETERMINED with services disabled, but the
    check order below still gives a deterministic answer if it does.
    """
    if status == RawStatus.NOT_DETERMINED:
        return PermissionOutcome.NOT_DETERMINED

    if status == RawStatus.DENIED:
        if service_enabled:
            return PermissionOutcome.DENIED_FOR_THE_APP
        return PermissionOutcome.DENIED_FOR_ALL_APPS

    if status == RawStatus.RESTRICTED:
        if service_enabled:
            return PermissionOutcome.RESTRICTED
        return PermissionOutcome.DENIED_FOR_ALL_AND_RESTRICTED

    return PermissionOutcome.ALLOWED


# ---------------------------------------------------------------------------
# Guidance: what the user can do about each outcome
# ---------------------------------------------------------------------------


class SettingsTarget(StrEnum):
    NONE = "none"
    SYSTEM_RESTRICTIONS = "system_restrictions"
    SYSTEM_PRIVACY = "system_privacy"
    APP_SETTINGS = "app_settings"


class PermitGuidance(BaseModel):
    """How to render a permission outcome to the user."""

    outcome: PermissionOutcome
    summary: str
    settings_target: SettingsTarget
    actionable: bool


_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def _load_guidance() -> dict[PermissionOutcome, PermitGuidance]:
    with open(_DATA_DIR / "permits.yaml") as f:
        data = yaml.safe_load(f)
    return {
        PermissionOutcome(name): PermitGuidance(outcome=name, **entry)
        for name, entry in data["permits"].items()
    }


_GUIDANCE = _load_guidance()


def guidance_for(outcome: PermissionOutcome) -> PermitGuidance:
    """Return the guidance entry for *outcome*."""
    return _GUIDANCE[outcome]

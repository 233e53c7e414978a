from __future__ import annotations

from typing import Any

import pytest

from docgate.domain.models import Document
from docgate.domain.roles import Registered, SuperAdmin, TenantAdmin
from docgate.services.access import decide_access
from docgate.services.roles import PrincipalRoles


def _doc(
    access_level: str,
    *,
    owner_id: str | None = "o1",
    passcode: str | None = None,
    active: bool = True,
    metadata: dict[str, Any] | None = None,
) -> Document:
    # Transient rows are enough for the pure decision function.
    return Document(
        id="d1",
        slug="d1",
        title="Doc",
        owner_id=owner_id,
        access_level=access_level,
        passcode=passcode,
        active=active,
        metadata_json=metadata or {},
    )


def _principal(*roles: Any, grants: tuple[str, ...] = (), principal_id: str = "p1") -> PrincipalRoles:
    return PrincipalRoles(principal_id=principal_id, roles=tuple(roles), grant_owner_ids=frozenset(grants))


ANONYMOUS = None
PLAIN = _principal()
MEMBER = _principal(Registered("o1"))
GRANTED = _principal(grants=("o1",))
ADMIN = _principal(TenantAdmin("o1"))
OTHER_ADMIN = _principal(TenantAdmin("o2"))
SUPER = _principal(SuperAdmin())


def test_missing_document_is_denied() -> None:
    decision = decide_access(None, SUPER)
    assert not decision.allowed
    assert decision.reason == "not_found"


@pytest.mark.parametrize("principal", [ANONYMOUS, PLAIN, MEMBER, SUPER])
def test_public_allows_everyone(principal: PrincipalRoles | None) -> None:
    assert decide_access(_doc("public"), principal).allowed


def test_inactive_document_denied_outside_admin_context() -> None:
    document = _doc("public", active=False)
    assert not decide_access(document, SUPER).allowed
    assert decide_access(document, SUPER, admin_context=True).allowed


def test_passcode_rules() -> None:
    document = _doc("passcode", passcode="1234")
    assert decide_access(document, PLAIN, "1234").allowed
    assert not decide_access(document, PLAIN, "wrong").allowed
    assert not decide_access(document, PLAIN, None).allowed
    # Anonymous callers may use passcodes too.
    assert decide_access(document, ANONYMOUS, "1234").allowed


def test_passcode_comparison_is_case_sensitive() -> None:
    document = _doc("passcode", passcode="Secret")
    assert not decide_access(document, PLAIN, "secret").allowed
    assert decide_access(document, PLAIN, "Secret").allowed


@pytest.mark.parametrize("stored", [None, ""])
def test_passcode_level_without_passcode_allows(stored: str | None) -> None:
    assert decide_access(_doc("passcode", passcode=stored), ANONYMOUS).allowed


def test_passcode_is_checked_before_super_admin_bypass() -> None:
    document = _doc("passcode", passcode="1234")
    assert not decide_access(document, SUPER, "nope").allowed


def test_registered_requires_any_principal() -> None:
    document = _doc("registered")
    assert not decide_access(document, ANONYMOUS).allowed
    assert decide_access(document, PLAIN).allowed
    assert decide_access(document, OTHER_ADMIN).allowed


@pytest.mark.parametrize("access_level", ["registered", "owner_restricted", "owner_admin_only"])
def test_super_admin_reaches_every_active_non_passcode_document(access_level: str) -> None:
    assert decide_access(_doc(access_level), SUPER).allowed
    assert decide_access(_doc(access_level, owner_id=None), SUPER).allowed


def test_owner_restricted_membership() -> None:
    document = _doc("owner_restricted")
    assert decide_access(document, MEMBER).allowed
    assert decide_access(document, GRANTED).allowed
    assert decide_access(document, ADMIN).allowed
    assert not decide_access(document, OTHER_ADMIN).allowed
    assert not decide_access(document, PLAIN).allowed
    assert not decide_access(document, ANONYMOUS).allowed


def test_private_upload_only_for_uploader() -> None:
    document = _doc("owner_restricted", owner_id=None, metadata={"user_id": "p1"})
    assert decide_access(document, PLAIN).allowed
    stranger = _principal(TenantAdmin("o1"), principal_id="p2")
    decision = decide_access(document, stranger)
    assert not decision.allowed
    assert decision.reason == "not_uploader"


def test_private_upload_without_uploader_denies() -> None:
    document = _doc("owner_restricted", owner_id=None)
    assert not decide_access(document, PLAIN).allowed


def test_owner_admin_only() -> None:
    document = _doc("owner_admin_only")
    assert decide_access(document, ADMIN).allowed
    assert not decide_access(document, MEMBER).allowed
    assert not decide_access(document, GRANTED).allowed
    assert not decide_access(document, OTHER_ADMIN).allowed


def test_owner_admin_only_without_owner_denies_non_super_admins() -> None:
    document = _doc("owner_admin_only", owner_id=None, metadata={"user_id": "p1"})
    assert not decide_access(document, PLAIN).allowed
    assert not decide_access(document, ADMIN).allowed


def test_unknown_access_level_defaults_to_deny() -> None:
    decision = decide_access(_doc("secret"), PLAIN)
    assert not decision.allowed
    assert decision.reason == "default_deny"

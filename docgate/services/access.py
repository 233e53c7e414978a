from __future__ import annotations

from dataclasses import dataclass
import hmac
import logging
from typing import Iterable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from docgate.domain.models import (
    ACCESS_OWNER_ADMIN_ONLY,
    ACCESS_OWNER_RESTRICTED,
    ACCESS_PASSCODE,
    ACCESS_PUBLIC,
    ACCESS_REGISTERED,
    Document,
)
from docgate.persistence.repos import documents as documents_repo
from docgate.services.roles import PrincipalRoles, load_principal_roles, uploader_id


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessDecision:
    # Keep the deciding rule alongside the verdict for debugging and tests.
    allowed: bool
    reason: str


def _passcode_matches(stored: str, supplied: str | None) -> bool:
    # Exact, case-sensitive match in constant time.
    if supplied is None:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), supplied.encode("utf-8"))


def decide_access(
    document: Document | None,
    principal: PrincipalRoles | None,
    passcode: str | None = None,
    *,
    admin_context: bool = False,
) -> AccessDecision:
    # Rules are evaluated in a fixed order; the first matching rule decides.
    if document is None:
        return AccessDecision(False, "not_found")
    if not document.active and not admin_context:
        return AccessDecision(False, "inactive")

    level = document.access_level
    if level == ACCESS_PUBLIC:
        return AccessDecision(True, "public")
    if level == ACCESS_PASSCODE:
        if not document.passcode:
            return AccessDecision(True, "passcode_not_set")
        if _passcode_matches(document.passcode, passcode):
            return AccessDecision(True, "passcode_match")
        return AccessDecision(False, "passcode_mismatch")
    if level == ACCESS_REGISTERED:
        if principal is None:
            return AccessDecision(False, "anonymous")
        return AccessDecision(True, "registered")

    if principal is None:
        return AccessDecision(False, "anonymous")
    if principal.is_super_admin:
        return AccessDecision(True, "super_admin")

    if level == ACCESS_OWNER_RESTRICTED:
        if document.owner_id is None:
            if uploader_id(document) == principal.principal_id:
                return AccessDecision(True, "uploader")
            return AccessDecision(False, "not_uploader")
        if principal.is_tenant_member(document.owner_id):
            return AccessDecision(True, "tenant_member")
        return AccessDecision(False, "not_tenant_member")
    if level == ACCESS_OWNER_ADMIN_ONLY:
        if principal.is_tenant_admin(document.owner_id):
            return AccessDecision(True, "tenant_admin")
        return AccessDecision(False, "not_tenant_admin")

    return AccessDecision(False, "default_deny")


def _log_decision(principal_id: str | None, document_ref: str, decision: AccessDecision) -> None:
    if not decision.allowed:
        logger.debug(
            "access_denied principal_id=%s document=%s reason=%s",
            principal_id or "anonymous",
            document_ref,
            decision.reason,
        )


async def check_access(
    session: AsyncSession,
    principal_id: str | None,
    identifier: str,
    passcode: str | None = None,
    *,
    admin_context: bool = False,
) -> AccessDecision:
    # Accepts a slug or an id, resolved the same way as the batch checks.
    document = await documents_repo.resolve_document(session, identifier)
    principal = await load_principal_roles(session, principal_id)
    decision = decide_access(document, principal, passcode, admin_context=admin_context)
    _log_decision(principal_id, identifier, decision)
    return decision


async def can_access(
    session: AsyncSession,
    principal_id: str | None,
    identifier: str,
    passcode: str | None = None,
    *,
    admin_context: bool = False,
) -> bool:
    decision = await check_access(
        session, principal_id, identifier, passcode, admin_context=admin_context
    )
    return decision.allowed


async def can_access_by_slug(
    session: AsyncSession,
    principal_id: str | None,
    slug: str,
    passcode: str | None = None,
    *,
    admin_context: bool = False,
) -> bool:
    document = await documents_repo.get_document_by_slug(session, slug)
    principal = await load_principal_roles(session, principal_id)
    decision = decide_access(document, principal, passcode, admin_context=admin_context)
    _log_decision(principal_id, slug, decision)
    return decision.allowed


async def _decide_many(
    session: AsyncSession,
    principal_id: str | None,
    identifiers: Iterable[str],
    passcodes: Mapping[str, str] | None,
    admin_context: bool,
) -> dict[str, tuple[Document | None, AccessDecision]]:
    # One document query and one role snapshot for the whole batch; the verdict per
    # document comes from the same decide_access used by the single checks.
    wanted = list(dict.fromkeys(identifiers))
    if not wanted:
        return {}
    documents = await documents_repo.get_documents(session, document_ids=wanted, slugs=wanted)
    by_id = {document.id: document for document in documents}
    by_slug = {document.slug: document for document in documents}
    principal = await load_principal_roles(session, principal_id)
    supplied = passcodes or {}

    outcomes: dict[str, tuple[Document | None, AccessDecision]] = {}
    for identifier in wanted:
        document = by_slug.get(identifier) or by_id.get(identifier)
        decision = decide_access(
            document,
            principal,
            supplied.get(identifier),
            admin_context=admin_context,
        )
        _log_decision(principal_id, identifier, decision)
        outcomes[identifier] = (document, decision)
    return outcomes


async def can_access_many(
    session: AsyncSession,
    principal_id: str | None,
    identifiers: Iterable[str],
    *,
    passcodes: Mapping[str, str] | None = None,
    admin_context: bool = False,
) -> dict[str, bool]:
    outcomes = await _decide_many(session, principal_id, identifiers, passcodes, admin_context)
    return {identifier: decision.allowed for identifier, (_, decision) in outcomes.items()}


async def readable_document_ids(
    session: AsyncSession,
    principal_id: str | None,
    identifiers: Iterable[str],
    *,
    passcodes: Mapping[str, str] | None = None,
) -> tuple[list[str], list[str]]:
    """Split identifiers into readable document ids and the identifiers that were refused.

    Identifiers are resolved once, so a readable id never widens into a
    different document that happens to share it as a slug.
    """
    outcomes = await _decide_many(session, principal_id, identifiers, passcodes, False)
    readable: list[str] = []
    refused: list[str] = []
    for identifier, (document, decision) in outcomes.items():
        if decision.allowed and document is not None:
            if document.id not in readable:
                readable.append(document.id)
        else:
            refused.append(identifier)
    return readable, refused


async def accessible_documents(
    session: AsyncSession,
    principal_id: str | None,
    *,
    owner_id: str | None = None,
) -> list[Document]:
    # Listing view: passcode documents without a supplied passcode are filtered out.
    documents = await documents_repo.list_documents(session, owner_id=owner_id)
    principal = await load_principal_roles(session, principal_id)
    return [document for document in documents if decide_access(document, principal).allowed]

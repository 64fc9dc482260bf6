"""
Tests for RegistryService, the orchestrator of the document registry.

Tests cover:
- Id allocation and counting
- Owner implicit access
- Grant/revoke round trips
- Authorization gating and atomic failure
- Reverse index consistency over random operation sequences
- Event journal
- Rebuilding from persisted rows
"""

import random
import threading
from datetime import timedelta

import pytest

from cipherdocs.domains.registry import (
    AlreadyAuthorizedError, AuthorizationError, CollaboratorNotFoundError,
    DocumentNotFoundError, EventType, InvalidCollaboratorError, NameRequiredError,
    NotAuthorizedEditorError, NotDocumentOwnerError, RegistryService, ZERO_PRINCIPAL,
)
from tests.conftest import COLLABORATOR, KEY, OUTSIDER, OWNER, FakeClock


def snapshot(registry: RegistryService):
    """Everything observable about the registry state."""
    return (
        registry.documents(),
        registry.access_entries(),
        registry.index.snapshot(),
        registry.events.last_sequence,
    )


class TestScenarios:
    """End-to-end scenarios for owner and collaborator."""

    def test_create_document(self, registry):
        document_id = registry.create_document(OWNER, "Doc Alpha", KEY)

        assert document_id == 1
        assert registry.total_documents() == 1
        details = registry.get_document_details(1)
        assert details.name == "Doc Alpha"
        assert details.owner == OWNER
        assert details.encrypted_body == b""
        assert details.encrypted_key == KEY
        assert registry.has_access(1, OWNER)

        previews = registry.get_documents_for(OWNER)
        assert [(p.id, p.can_edit) for p in previews] == [(1, True)]

    def test_collaborator_edits_after_grant(self, registry, document_id):
        with pytest.raises(NotAuthorizedEditorError) as exc_info:
            registry.update_document_body(COLLABORATOR, document_id, b"\x12\x34")
        assert exc_info.value.document_id == document_id
        assert exc_info.value.caller == COLLABORATOR

        registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        assert registry.has_access(document_id, COLLABORATOR)

        registry.update_document_body(COLLABORATOR, document_id, b"\x12\x34")
        assert registry.get_document_details(document_id).encrypted_body == b"\x12\x34"

        previews = registry.get_documents_for(COLLABORATOR)
        assert len(previews) == 1
        assert previews[0].can_edit

    def test_revoke_blocks_further_edits(self, registry, document_id):
        registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        registry.update_document_body(COLLABORATOR, document_id, b"\x12\x34")

        registry.revoke_document_access(OWNER, document_id, COLLABORATOR)

        with pytest.raises(NotAuthorizedEditorError):
            registry.update_document_body(COLLABORATOR, document_id, b"\x99\x99")
        assert registry.get_collaborators(document_id) == []
        assert registry.get_document_details(document_id).encrypted_body == b"\x12\x34"


class TestIdentifiers:
    """Id monotonicity and counting."""

    def test_ids_are_sequential(self, registry):
        ids = [registry.create_document(OWNER, f"doc {i}", KEY) for i in range(10)]
        assert ids == list(range(1, 11))
        assert registry.total_documents() == 10

    def test_failed_create_consumes_no_id(self, registry):
        registry.create_document(OWNER, "first", KEY)
        before = snapshot(registry)

        with pytest.raises(NameRequiredError):
            registry.create_document(OWNER, "", KEY)

        assert snapshot(registry) == before
        assert registry.create_document(OWNER, "second", KEY) == 2

    def test_unknown_document(self, registry):
        for call in (
            lambda: registry.get_document_details(1),
            lambda: registry.get_collaborators(1),
            lambda: registry.has_access(1, OWNER),
            lambda: registry.update_document_body(OWNER, 1, b"\x01"),
            lambda: registry.grant_document_access(OWNER, 1, COLLABORATOR),
            lambda: registry.revoke_document_access(OWNER, 1, COLLABORATOR),
        ):
            with pytest.raises(DocumentNotFoundError):
                call()


class TestOwnerAccess:
    """Owner is implicitly authorized and never stored in the ACL."""

    def test_owner_has_access(self, registry, document_id):
        assert registry.has_access(document_id, OWNER)
        assert registry.get_collaborators(document_id) == []

    def test_granting_owner_fails(self, registry, document_id):
        with pytest.raises(AlreadyAuthorizedError):
            registry.grant_document_access(OWNER, document_id, OWNER)
        assert registry.get_collaborators(document_id) == []

    def test_revoking_owner_fails(self, registry, document_id):
        with pytest.raises(CollaboratorNotFoundError):
            registry.revoke_document_access(OWNER, document_id, OWNER)
        assert registry.has_access(document_id, OWNER)

    def test_owner_can_update(self, registry, document_id, clock):
        created = registry.get_document_details(document_id)
        updated = registry.update_document_body(OWNER, document_id, b"\xbe\xef")
        assert updated.encrypted_body == b"\xbe\xef"
        assert updated.updated_at > created.created_at
        assert updated.created_at == created.created_at

    def test_empty_body_write_is_allowed(self, registry, document_id):
        registry.update_document_body(OWNER, document_id, b"\x01")
        registry.update_document_body(OWNER, document_id, b"")
        assert registry.get_document_details(document_id).encrypted_body == b""


class TestGrantRevoke:
    """Grant/revoke round trips and their failures."""

    def test_round_trip(self, registry, document_id):
        registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        assert registry.get_collaborators(document_id) == [COLLABORATOR]

        registry.revoke_document_access(OWNER, document_id, COLLABORATOR)
        assert not registry.has_access(document_id, COLLABORATOR)
        assert registry.get_collaborators(document_id) == []
        assert registry.get_documents_for(COLLABORATOR) == []

        with pytest.raises(CollaboratorNotFoundError):
            registry.revoke_document_access(OWNER, document_id, COLLABORATOR)

    def test_duplicate_grant(self, registry, document_id):
        registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        before = snapshot(registry)
        with pytest.raises(AlreadyAuthorizedError):
            registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        assert snapshot(registry) == before

    @pytest.mark.parametrize("collaborator", ["", ZERO_PRINCIPAL])
    def test_invalid_collaborator(self, registry, document_id, collaborator):
        before = snapshot(registry)
        with pytest.raises(InvalidCollaboratorError):
            registry.grant_document_access(OWNER, document_id, collaborator)
        assert snapshot(registry) == before

    def test_only_owner_manages_access(self, registry, document_id):
        registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        before = snapshot(registry)

        with pytest.raises(NotDocumentOwnerError) as exc_info:
            registry.grant_document_access(COLLABORATOR, document_id, OUTSIDER)
        assert exc_info.value.caller == COLLABORATOR
        assert exc_info.value.document_id == document_id

        with pytest.raises(NotDocumentOwnerError):
            registry.revoke_document_access(COLLABORATOR, document_id, COLLABORATOR)

        assert snapshot(registry) == before

    def test_owner_check_precedes_collaborator_checks(self, registry, document_id):
        # an outsider learns nothing about the ACL contents
        with pytest.raises(NotDocumentOwnerError):
            registry.grant_document_access(OUTSIDER, document_id, ZERO_PRINCIPAL)
        with pytest.raises(NotDocumentOwnerError):
            registry.revoke_document_access(OUTSIDER, document_id, COLLABORATOR)

    def test_acl_changes_do_not_touch_updated_at(self, registry, document_id):
        before = registry.get_document_details(document_id).updated_at
        registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        registry.revoke_document_access(OWNER, document_id, COLLABORATOR)
        assert registry.get_document_details(document_id).updated_at == before

    def test_authorization_errors_are_permission_errors(self, registry, document_id):
        with pytest.raises(PermissionError):
            registry.update_document_body(OUTSIDER, document_id, b"\x01")
        with pytest.raises(AuthorizationError):
            registry.grant_document_access(OUTSIDER, document_id, COLLABORATOR)


class TestAuthorizationGating:
    """Unauthorized updates leave the document untouched."""

    def test_outsider_update_rejected(self, registry, document_id):
        registry.update_document_body(OWNER, document_id, b"\x01\x02")
        before = registry.get_document_details(document_id)
        last_event = registry.events.last_sequence

        with pytest.raises(NotAuthorizedEditorError):
            registry.update_document_body(OUTSIDER, document_id, b"\xff")

        after = registry.get_document_details(document_id)
        assert after.encrypted_body == before.encrypted_body
        assert after.updated_at == before.updated_at
        assert registry.events.last_sequence == last_event

    def test_details_are_copies(self, registry, document_id):
        details = registry.get_document_details(document_id)
        details.encrypted_body = b"\xde\xad"
        assert registry.get_document_details(document_id).encrypted_body == b""


class TestClock:
    """Timestamps never go backwards."""

    def test_clock_regression_is_clamped(self, clock):
        registry = RegistryService(clock=clock)
        document_id = registry.create_document(OWNER, "Doc", KEY)
        created_at = registry.get_document_details(document_id).created_at

        clock.rewind(timedelta(hours=1))
        registry.update_document_body(OWNER, document_id, b"\x01")

        document = registry.get_document_details(document_id)
        assert document.updated_at >= document.created_at == created_at


class TestDocumentsFor:
    """Listing documents visible to a principal."""

    def test_listing_is_sorted_and_joined(self, registry):
        registry.create_document(OWNER, "one", KEY)
        registry.create_document(COLLABORATOR, "two", KEY)
        registry.create_document(OWNER, "three", KEY)
        registry.grant_document_access(COLLABORATOR, 2, OWNER)

        previews = registry.get_documents_for(OWNER)
        assert [p.id for p in previews] == [1, 2, 3]
        assert [p.name for p in previews] == ["one", "two", "three"]
        assert [p.owner for p in previews] == [OWNER, COLLABORATOR, OWNER]
        assert all(p.can_edit for p in previews)

    def test_preview_reflects_updates(self, registry, document_id):
        registry.update_document_body(OWNER, document_id, b"\x01")
        preview = registry.get_documents_for(OWNER)[0]
        assert preview.updated_at == registry.get_document_details(document_id).updated_at

    def test_unknown_principal(self, registry, document_id):
        assert registry.get_documents_for(OUTSIDER) == []
        assert registry.get_documents_for(ZERO_PRINCIPAL) == []


class TestReverseIndexConsistency:
    """The reverse index always matches a scan of documents and ACL."""

    PRINCIPALS = [OWNER, COLLABORATOR, OUTSIDER, "0x4444444444444444444444444444444444444444"]

    def _expected(self, registry, principal):
        expected = set()
        for document in registry.documents():
            if document.owner == principal or registry.has_access(document.id, principal):
                expected.add(document.id)
        return expected

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_random_operations(self, seed):
        rng = random.Random(seed)
        registry = RegistryService(clock=FakeClock())

        for _ in range(300):
            caller = rng.choice(self.PRINCIPALS)
            other = rng.choice(self.PRINCIPALS)
            total = registry.total_documents()
            document_id = rng.randint(1, total + 1) if total else 1
            operation = rng.choice(["create", "update", "grant", "revoke"])

            try:
                if operation == "create":
                    registry.create_document(caller, f"doc-{rng.random()}", KEY)
                elif operation == "update":
                    registry.update_document_body(caller, document_id, rng.randbytes(4))
                elif operation == "grant":
                    registry.grant_document_access(caller, document_id, other)
                else:
                    registry.revoke_document_access(caller, document_id, other)
            except (
                DocumentNotFoundError, NotDocumentOwnerError, NotAuthorizedEditorError,
                AlreadyAuthorizedError, CollaboratorNotFoundError,
            ):
                pass

            assert registry.find_inconsistencies() == []

        for principal in self.PRINCIPALS:
            listed = {p.id for p in registry.get_documents_for(principal)}
            assert listed == self._expected(registry, principal)

    def test_detects_corrupted_index(self, registry, document_id):
        registry.index.add_grant(OUTSIDER, document_id)
        problems = registry.find_inconsistencies()
        assert len(problems) == 1
        assert OUTSIDER in problems[0]


class TestEvents:
    """Event journal of successful mutations."""

    def test_events_follow_mutations(self, registry, document_id):
        registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        registry.update_document_body(COLLABORATOR, document_id, b"\x01")
        registry.revoke_document_access(OWNER, document_id, COLLABORATOR)

        events = registry.events_since(0)
        assert [e.sequence for e in events] == [1, 2, 3, 4]
        assert [e.type for e in events] == [
            EventType.DOCUMENT_CREATED,
            EventType.ACCESS_GRANTED,
            EventType.DOCUMENT_UPDATED,
            EventType.ACCESS_REVOKED,
        ]
        assert events[2].actor == COLLABORATOR
        assert events[3].collaborator == COLLABORATOR
        # the revoked collaborator still hears about the revocation
        assert events[3].visible_to(COLLABORATOR)
        assert not events[3].visible_to(OUTSIDER)

    def test_created_event_carries_name(self, registry, document_id):
        created, = registry.events_since(0)
        assert created.type == EventType.DOCUMENT_CREATED
        assert created.name == "Doc Alpha"

        registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        assert registry.events_since(1)[0].name is None

    def test_events_since(self, registry, document_id):
        registry.update_document_body(OWNER, document_id, b"\x01")
        assert [e.sequence for e in registry.events_since(1)] == [2]
        assert registry.events_since(2) == []

    def test_log_is_bounded(self):
        registry = RegistryService(clock=FakeClock(), event_log_size=3)
        for i in range(5):
            registry.create_document(OWNER, f"doc {i}", KEY)
        assert [e.sequence for e in registry.events_since(0)] == [3, 4, 5]

    def test_listeners(self, registry):
        received = []
        registry.subscribe(received.append)
        registry.create_document(OWNER, "Doc", KEY)
        registry.unsubscribe(received.append)
        registry.create_document(OWNER, "Doc 2", KEY)
        assert [e.document_id for e in received] == [1]

    def test_failing_listener_does_not_undo_mutation(self, registry):
        def broken(event):
            raise RuntimeError("boom")

        registry.subscribe(broken)
        assert registry.create_document(OWNER, "Doc", KEY) == 1
        assert registry.total_documents() == 1


class TestRestore:
    """Rebuilding a registry from persisted rows."""

    def test_from_documents(self, registry, document_id):
        registry.create_document(COLLABORATOR, "theirs", KEY)
        registry.grant_document_access(OWNER, document_id, COLLABORATOR)
        registry.grant_document_access(OWNER, document_id, OUTSIDER)
        registry.update_document_body(OUTSIDER, document_id, b"\x42")

        restored = RegistryService.from_documents(registry.documents(), registry.access_entries())

        assert restored.documents() == registry.documents()
        assert restored.get_collaborators(document_id) == [COLLABORATOR, OUTSIDER]
        assert restored.find_inconsistencies() == []
        assert [p.id for p in restored.get_documents_for(COLLABORATOR)] == [1, 2]
        assert restored.create_document(OWNER, "next", KEY) == 3

    def test_restored_clock_does_not_go_backwards(self, registry, document_id):
        registry.update_document_body(OWNER, document_id, b"\x01")
        last = registry.get_document_details(document_id).updated_at

        early = FakeClock()
        restored = RegistryService.from_documents(
            registry.documents(), registry.access_entries(), clock=early
        )
        restored.update_document_body(OWNER, document_id, b"\x02")
        assert restored.get_document_details(document_id).updated_at >= last


class TestConcurrency:
    """Operations from many threads are serialized."""

    def test_parallel_creates(self):
        registry = RegistryService(clock=FakeClock())
        ids = []
        ids_lock = threading.Lock()

        def worker(principal):
            for i in range(50):
                document_id = registry.create_document(principal, f"doc {i}", KEY)
                with ids_lock:
                    ids.append(document_id)

        threads = [threading.Thread(target=worker, args=(p,)) for p in (OWNER, COLLABORATOR, OUTSIDER)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(ids) == list(range(1, 151))
        assert registry.total_documents() == 150
        assert registry.find_inconsistencies() == []

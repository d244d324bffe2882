import pytest

from app.models.knowledge import DocumentStatus
from app.models.user import UserRole
from app.services.kb_document import knowledge_documents
from app.services.permissions import (
    REVIEWER_ROLES,
    ROLE_CAPABILITIES,
    can_administer,
    can_govern,
    can_review,
    can_view_history,
    visibility_filter,
)


class TestRoleCapabilities:
    def test_every_role_has_a_row(self) -> None:
        assert set(ROLE_CAPABILITIES) == set(UserRole)

    def test_reviewer_roles(self) -> None:
        assert REVIEWER_ROLES == {
            UserRole.knowledge_governance_council,
            UserRole.admin,
            UserRole.senior_consultant,
            UserRole.it_infrastructure,
        }

    @pytest.mark.parametrize(
        "role", [UserRole.consultant, UserRole.new_hire, UserRole.project_manager]
    )
    def test_non_reviewers(self, role) -> None:
        assert not can_review(role)

    def test_governance(self) -> None:
        assert can_govern(UserRole.admin)
        assert can_govern(UserRole.knowledge_governance_council)
        assert not can_govern(UserRole.senior_consultant)

    def test_history_and_admin(self) -> None:
        assert can_view_history(UserRole.knowledge_champion)
        assert not can_view_history(UserRole.consultant)
        assert can_administer(UserRole.admin)
        assert not can_administer(UserRole.knowledge_governance_council)


class TestVisibilityFilter:
    def test_consultant_sees_approved_and_own(
        self, db_session, make_user, consultant
    ) -> None:
        other = make_user(UserRole.consultant)
        own = knowledge_documents.create(db_session, consultant.id, "Own pending")
        approved = knowledge_documents.create(
            db_session, other.id, "Someone approved", status=DocumentStatus.approved
        )
        knowledge_documents.create(db_session, other.id, "Someone pending")
        db_session.commit()

        docs = knowledge_documents.list(
            db_session,
            visibility_filter(consultant),
            None,
            None,
            None,
            None,
            "created_at",
            "asc",
            50,
            0,
        )
        assert {d.id for d in docs} == {own.id, approved.id}

    def test_reviewer_sees_everything(self, db_session, consultant, admin) -> None:
        assert visibility_filter(admin) is None
        knowledge_documents.create(db_session, consultant.id, "Pending one")
        db_session.commit()
        docs = knowledge_documents.list(
            db_session, None, None, None, None, None, "created_at", "asc", 50, 0
        )
        assert len(docs) == 1

import unittest
from datetime import date, datetime

from control_assurance.core.evidence_workflow import cancel, can_transition, close, create_request, review, submit
from control_assurance.errors import DomainError, ValidationError
from control_assurance.models import EvidenceRequestStatus, EvidenceScope, ReviewDecision

S = EvidenceRequestStatus
NOW = datetime(2026, 4, 1, 9, 30, 0)


def _open_request():
    return create_request(
        request_id="er-1",
        due_date=date(2026, 4, 15),
        scope=EvidenceScope(secondary_control_instance_id="sc-1"),
        notes="  quarterly access review export ",
        is_critical_scope=True,
        requested_by="auditor",
        requested_at=NOW,
    )


class CreateRequestTests(unittest.TestCase):
    def test_new_request_is_open(self):
        request = _open_request()
        self.assertIs(request.status, S.OPEN)
        self.assertEqual(request.notes, "quarterly access review export")
        self.assertTrue(request.is_critical_scope)
        self.assertEqual(request.to_dict()["secondary_control_instance_id"], "sc-1")

    def test_due_date_is_required(self):
        with self.assertRaises(ValidationError) as ctx:
            create_request(request_id="er-2", due_date=None, scope=EvidenceScope(risk_id="r-1"))
        self.assertEqual(ctx.exception.code, "due_date_required")

    def test_scope_must_name_exactly_one_target(self):
        for scope in (EvidenceScope(), EvidenceScope(pci_instance_id="p-1", risk_id="r-1")):
            with self.assertRaises(ValidationError) as ctx:
                create_request(request_id="er-3", due_date=date(2026, 5, 1), scope=scope)
            self.assertEqual(ctx.exception.code, "invalid_scope")


class LifecycleTests(unittest.TestCase):
    def test_submit_then_accept_then_close(self):
        request, submission = submit(_open_request(), submission_id="s-1", note="export attached", now=NOW)
        self.assertIs(request.status, S.SUBMITTED)
        self.assertTrue(request.is_pending_review)
        self.assertEqual(submission.submission_note, "export attached")

        request, reviewed = review(request, decision="accepted", reviewed_by="lead", now=NOW)
        self.assertIs(request.status, S.ACCEPTED)
        self.assertIs(reviewed.decision, ReviewDecision.ACCEPTED)
        self.assertFalse(request.is_pending_review)

        request = close(request)
        self.assertIs(request.status, S.CLOSED)

    def test_rejected_request_can_be_resubmitted(self):
        request, _ = submit(_open_request(), submission_id="s-1", note="first try")
        request, _ = review(request, decision=ReviewDecision.REJECTED, review_notes="wrong quarter")
        self.assertIs(request.status, S.REJECTED)
        self.assertTrue(request.is_overdue(date(2026, 4, 20)))

        request, _ = submit(request, submission_id="s-2", note="second try")
        self.assertIs(request.status, S.SUBMITTED)
        self.assertEqual(len(request.submissions), 2)
        self.assertIs(request.submissions[0].decision, ReviewDecision.REJECTED)
        self.assertIsNone(request.current_submission.decision)

    def test_empty_submission_note_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            submit(_open_request(), submission_id="s-1", note="   ")
        self.assertEqual(ctx.exception.code, "submission_note_required")

    def test_rejecting_requires_review_notes(self):
        request, _ = submit(_open_request(), submission_id="s-1", note="export")
        with self.assertRaises(ValidationError) as ctx:
            review(request, decision="rejected", review_notes="")
        self.assertEqual(ctx.exception.code, "review_notes_required")

    def test_review_needs_a_submitted_request(self):
        with self.assertRaises(ValidationError) as ctx:
            review(_open_request(), decision="accepted")
        self.assertEqual(ctx.exception.code, "invalid_transition")

    def test_unknown_decision_is_a_domain_error(self):
        request, _ = submit(_open_request(), submission_id="s-1", note="export")
        with self.assertRaises(DomainError):
            review(request, decision="maybe")

    def test_cancelled_request_is_terminal(self):
        request = cancel(_open_request())
        self.assertIs(request.status, S.CANCELLED)
        self.assertFalse(request.is_overdue(date(2027, 1, 1)))
        with self.assertRaises(ValidationError):
            submit(request, submission_id="s-1", note="late")
        with self.assertRaises(ValidationError):
            cancel(request)

    def test_submitted_request_cannot_be_cancelled_or_closed(self):
        request, _ = submit(_open_request(), submission_id="s-1", note="export")
        with self.assertRaises(ValidationError):
            cancel(request)
        with self.assertRaises(ValidationError):
            close(request)

    def test_transition_table(self):
        self.assertTrue(can_transition(S.OPEN, S.SUBMITTED))
        self.assertTrue(can_transition(S.REJECTED, S.CANCELLED))
        self.assertFalse(can_transition(S.OPEN, S.ACCEPTED))
        self.assertFalse(can_transition(S.CLOSED, S.OPEN))
        self.assertFalse(can_transition(S.ACCEPTED, S.REJECTED))


if __name__ == "__main__":
    unittest.main()

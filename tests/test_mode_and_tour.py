from unittest import TestCase

from app.backend.assist import fallback, mode, tour
from app.backend.assist.types import Identity, SnapshotRepositoryUnavailable, TourContext
from app.backend.services.snapshot_service import StaticSnapshotRepository


def _identity(persisted: bool = True) -> Identity:
	return Identity(id="u-1", name="Ada", email="ada@civis.local", role="USER", persisted=persisted)


class _OfflineRepository:
	def count_contacts(self):
		raise SnapshotRepositoryUnavailable("offline")


class ModeInferenceTests(TestCase):
	def test_inference_order(self) -> None:
		self.assertEqual(mode.infer_mode("Give me a tour of Civis"), "tour")
		self.assertEqual(mode.infer_mode("walk me through writing an email"), "tour")
		self.assertEqual(mode.infer_mode("Draft an email to our client"), "email")
		self.assertEqual(mode.infer_mode("Summarize this week"), "summary")
		self.assertEqual(mode.infer_mode("How do custom fields work?"), "qna")

	def test_normalize_mode(self) -> None:
		self.assertEqual(mode.normalize_mode(" Tour "), "tour")
		self.assertIsNone(mode.normalize_mode("poetry"))
		self.assertIsNone(mode.normalize_mode(3))

	def test_only_missing_or_qna_mode_is_implicit(self) -> None:
		self.assertTrue(mode.is_implicit(None))
		self.assertTrue(mode.is_implicit("qna"))
		self.assertFalse(mode.is_implicit("summary"))


class TourContextTests(TestCase):
	def test_role_and_phase_inference(self) -> None:
		self.assertEqual(tour.infer_role("I'm the new sales manager"), "sales lead")
		self.assertEqual(tour.infer_role("I run accounting"), "finance lead")
		self.assertEqual(tour.infer_role("I'm a new team lead"), "team lead")
		self.assertEqual(tour.infer_phase("guide me on step 3"), "step-3")
		self.assertEqual(tour.infer_phase("show me around"), "intro")

	def test_live_context_has_all_counts(self) -> None:
		context = tour.build_tour_context("guide me on step 2", _identity(), StaticSnapshotRepository())
		self.assertEqual(context.phase, "step-2")
		self.assertEqual(
			set(context.stats),
			{
				"contacts",
				"openDeals",
				"overdueInvoices",
				"pendingExpenses",
				"employees",
				"activePlaybooks",
				"activeAutomations",
				"activePortals",
			},
		)
		self.assertEqual(context.stats["contacts"], 240)

	def test_fallback_identity_gets_no_context(self) -> None:
		self.assertIsNone(tour.build_tour_context("tour", _identity(False), StaticSnapshotRepository()))

	def test_repository_failure_gets_no_context(self) -> None:
		with self.assertLogs("app.backend.assist.tour", level="WARNING"):
			self.assertIsNone(tour.build_tour_context("tour", _identity(), _OfflineRepository()))


class FallbackGeneratorTests(TestCase):
	def test_every_mode_is_non_empty(self) -> None:
		for chat_mode in ("qna", "summary", "email", "tour"):
			self.assertTrue(fallback.build_fallback_response(chat_mode, "", None, "Ada").strip(), chat_mode)

	def test_intro_tour_lists_all_steps_with_stats(self) -> None:
		text = fallback.build_tour_response(
			TourContext(role="finance lead", phase="intro", stats={"overdueInvoices": 5, "pendingExpenses": 7}),
			"Ada",
		)
		self.assertIn("Welcome to Civis, Ada!", text)
		self.assertIn("6) Client Portal", text)
		self.assertIn("5 overdue invoices", text)
		self.assertIn("start with step 3", text)

	def test_step_deep_dive(self) -> None:
		text = fallback.build_tour_response(TourContext(role="team lead", phase="step-4", stats={"employees": 18}))
		self.assertTrue(text.startswith("Step 4: HR"))
		self.assertIn("18 employees", text)
		self.assertIn("step 5", text)

	def test_out_of_range_step_shows_intro(self) -> None:
		text = fallback.build_tour_response(TourContext(role="team lead", phase="step-9"))
		self.assertIn("1) Overview", text)

	def test_summary_ends_with_followup_offer(self) -> None:
		text = fallback.build_fallback_response("summary", "recap", {"stats": {"contacts": 3}})
		self.assertIn("contacts: 3", text)
		self.assertTrue(text.endswith("Want me to generate follow-up tasks or draft an update email?"))

	def test_email_draft_uses_context(self) -> None:
		text = fallback.build_fallback_response(
			"email",
			"draft",
			{"recipient": "Tunde", "goal": "Confirm delivery", "tone": "friendly"},
			"Ada",
		)
		self.assertTrue(text.startswith("Subject: Quick update on Confirm delivery"))
		self.assertIn("Hi Tunde,", text)
		self.assertIn("Best,\nAda", text)

	def test_qna_uses_knowledge_base(self) -> None:
		text = fallback.build_fallback_response("qna", "How do I share a document on the client portal?")
		self.assertIn("Client portals", text)
		self.assertIn("guided tour", text)

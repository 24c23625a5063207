import random
from unittest import TestCase

from app.backend.assist.orchestrator import AssistOrchestrator, AssistOrchestratorHooks
from app.backend.assist.composer import HUMOR_LINES, compose_reply, should_add_humor
from app.backend.assist.types import (
	ChatMessage,
	ChatRequest,
	Identity,
	LockState,
	ProviderLowQuality,
	ProviderTimeout,
	SessionState,
)
from app.backend.services.provider_service import ProviderDescriptor
from app.backend.services.snapshot_service import StaticSnapshotRepository


_GOOD_REPLY = "Open the CRM board, filter by stage, and drag the deal to Won when it closes."


def _request(text: str, mode=None, history=None) -> ChatRequest:
	messages = list(history or [])
	messages.append(ChatMessage(role="user", content=text))
	return ChatRequest(messages=messages, mode=mode)


def _session(persisted: bool = True) -> SessionState:
	return SessionState(
		identity=Identity(id="u-1", name="Ada", email="ada@civis.local", role="USER", persisted=persisted),
		locks=LockState(),
		snapshots=StaticSnapshotRepository(is_demo=False),
		rng=random.Random(3),
	)


class _Harness:
	def __init__(self, *, descriptor=None, error=None, reply=_GOOD_REPLY, local_fast_path=False, humor=0.0):
		self.descriptor = descriptor
		self.error = error
		self.reply = reply
		self.invocations = []
		self.audits = []
		self.prompts = []
		self.hooks = AssistOrchestratorHooks(
			select_provider=lambda _request, _session: self.descriptor,
			invoke_provider=self._invoke,
			system_prompt=self._system_prompt,
			record_audit=lambda session, mode, provider: self.audits.append((session.identity.id, mode, provider)),
			local_fast_path=local_fast_path,
			humor_probability=humor,
		)

	def _system_prompt(self, mode, user_name, prompt):
		self.prompts.append((mode, user_name, prompt))
		return f"system for {mode}"

	def _invoke(self, descriptor, messages, mode):
		self.invocations.append((descriptor.name, messages, mode))
		if self.error is not None:
			raise self.error
		return self.reply

	def run(self, request, session=None):
		return AssistOrchestrator(self.hooks).run(request, session or _session())


def _descriptor(name: str = "openai") -> ProviderDescriptor:
	return ProviderDescriptor(name, "model", lambda _messages: _GOOD_REPLY)


class OrchestratorTests(TestCase):
	def test_resolver_hit_skips_provider(self) -> None:
		harness = _Harness(descriptor=_descriptor())
		reply = harness.run(_request("take me to crm"))
		self.assertEqual(reply.provider, "civis-nav-engine")
		self.assertEqual(reply.mode, "qna")
		self.assertEqual(reply.actions[0].route, "/dashboard/crm")
		self.assertEqual(harness.invocations, [])
		self.assertEqual(harness.audits, [("u-1", "qna", "civis-nav-engine")])

	def test_provider_reply_is_accepted(self) -> None:
		harness = _Harness(descriptor=_descriptor("anthropic"))
		reply = harness.run(_request("Explain how custom fields work in Civis"))
		self.assertEqual(reply.provider, "anthropic")
		self.assertEqual(reply.message, _GOOD_REPLY)
		self.assertEqual(reply.actions, [])
		_name, messages, mode = harness.invocations[0]
		self.assertEqual(mode, "qna")
		self.assertEqual(messages[0], {"role": "system", "content": "system for qna"})
		self.assertEqual(messages[-1]["content"], "Explain how custom fields work in Civis")

	def test_provider_error_falls_back(self) -> None:
		harness = _Harness(descriptor=_descriptor(), error=ProviderTimeout("openai", "timed out"))
		with self.assertLogs("app.backend.assist.orchestrator", level="WARNING"):
			reply = harness.run(_request("Explain how custom fields work in Civis"))
		self.assertEqual(reply.provider, "fallback")
		self.assertIn("custom fields", reply.message)

	def test_low_quality_reply_falls_back(self) -> None:
		harness = _Harness(descriptor=_descriptor(), error=ProviderLowQuality("openai", "generic non-answer"))
		with self.assertLogs("app.backend.assist.orchestrator", level="WARNING"):
			reply = harness.run(_request("Summarize this week", mode="summary"))
		self.assertEqual(reply.provider, "fallback")
		self.assertEqual(reply.mode, "summary")
		self.assertTrue(reply.message)

	def test_no_provider_uses_fallback(self) -> None:
		reply = _Harness().run(_request("Draft an email to the client about the proposal", mode="email"))
		self.assertEqual(reply.provider, "fallback")
		self.assertTrue(reply.message.startswith("Subject:"))

	def test_unmarked_email_request_reaches_email_drafting(self) -> None:
		harness = _Harness()
		reply = harness.run(_request("Draft an email to the client about the overdue invoice"))
		self.assertEqual(reply.mode, "email")
		self.assertEqual(reply.provider, "fallback")
		self.assertTrue(reply.message.startswith("Subject:"))
		self.assertEqual(harness.audits, [("u-1", "email", "fallback")])

	def test_unmarked_summary_request_reaches_summary(self) -> None:
		harness = _Harness(descriptor=_descriptor())
		reply = harness.run(_request("Summarize our deals this week"))
		self.assertEqual(reply.mode, "summary")
		self.assertEqual(harness.invocations[0][2], "summary")

	def test_accepted_tour_offer_is_labelled_as_tour(self) -> None:
		harness = _Harness(descriptor=_descriptor())
		prior = ChatMessage(role="assistant", content="Want a step-by-step guide? I can start the guided tour.")
		reply = harness.run(_request("yes", history=[prior]))
		self.assertEqual(reply.provider, "civis-tour-engine")
		self.assertEqual(reply.mode, "tour")
		self.assertEqual(harness.invocations, [])
		self.assertEqual(harness.audits, [("u-1", "tour", "civis-tour-engine")])

	def test_tour_never_calls_provider(self) -> None:
		harness = _Harness(descriptor=_descriptor())
		reply = harness.run(_request("Give me a tour", mode="tour"))
		self.assertEqual(reply.provider, "civis-tour-engine")
		self.assertEqual(reply.mode, "tour")
		self.assertIn("240 contacts", reply.message)
		self.assertEqual(harness.invocations, [])

	def test_inferred_tour_step_navigates_to_module(self) -> None:
		reply = _Harness(descriptor=_descriptor()).run(_request("guide me on step 3"))
		self.assertEqual(reply.provider, "civis-tour-engine")
		self.assertEqual(reply.actions[0].route, "/dashboard/accounting")

	def test_tour_with_fallback_identity_has_no_numbers(self) -> None:
		reply = _Harness().run(_request("show me around, I'm the new HR manager", mode="tour"), _session(persisted=False))
		self.assertIn("for a HR lead", reply.message)
		self.assertNotIn("right now", reply.message)

	def test_explicit_mode_skips_resolvers(self) -> None:
		reply = _Harness().run(_request("hi", mode="summary"))
		self.assertEqual(reply.mode, "summary")
		self.assertEqual(reply.provider, "fallback")

	def test_local_fast_path_answers_plain_qna(self) -> None:
		harness = _Harness(descriptor=_descriptor(), local_fast_path=True)
		reply = harness.run(_request("Explain how custom fields work in Civis"))
		self.assertEqual(reply.provider, "civis-local")
		self.assertEqual(harness.invocations, [])

	def test_local_fast_path_does_not_cover_email(self) -> None:
		harness = _Harness(descriptor=_descriptor(), local_fast_path=True)
		reply = harness.run(_request("Draft an email to the client about the proposal", mode="email"))
		self.assertEqual(reply.provider, "openai")

	def test_trace_records_steps(self) -> None:
		reply = _Harness().run(_request("Explain how custom fields work in Civis"))
		steps = [(event.step, event.status) for event in reply.trace]
		self.assertEqual(steps, [("resolver", "pass"), ("mode", "matched"), ("provider", "skipped")])
		payload = reply.as_dict(include_trace=True)
		self.assertEqual(len(payload["trace"]), 3)
		self.assertNotIn("trace", reply.as_dict())


class ComposerTests(TestCase):
	def test_humor_only_for_qna(self) -> None:
		rng = random.Random(0)
		self.assertFalse(should_add_humor("how many deals", "summary", rng, 1.0))
		self.assertTrue(should_add_humor("how many deals", "qna", rng, 1.0))
		self.assertFalse(should_add_humor("how many deals", "qna", rng, 0.0))

	def test_humor_never_on_sensitive_topics(self) -> None:
		rng = random.Random(0)
		for text in ("tell me a joke about payroll", "we had a security breach", "legal question"):
			self.assertFalse(should_add_humor(text, "qna", rng, 1.0), text)

	def test_levity_request_forces_humor(self) -> None:
		self.assertTrue(should_add_humor("make me laugh about invoices", "qna", random.Random(0), 0.0))

	def test_compose_appends_humor_line(self) -> None:
		reply = compose_reply(
			message="Base answer.",
			provider="fallback",
			mode="qna",
			prompt="tell me a joke",
			rng=random.Random(0),
			humor_probability=0.0,
			allow_humor=True,
		)
		base, _sep, line = reply.message.partition("\n\n")
		self.assertEqual(base, "Base answer.")
		self.assertIn(line, HUMOR_LINES)
		self.assertEqual(reply.actions, [])

	def test_resolver_replies_stay_untouched(self) -> None:
		reply = compose_reply(
			message="Taking you to CRM.",
			provider="civis-nav-engine",
			mode="qna",
			prompt="make me laugh",
			rng=random.Random(0),
			humor_probability=1.0,
		)
		self.assertEqual(reply.message, "Taking you to CRM.")

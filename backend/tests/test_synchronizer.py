from __future__ import annotations

import asyncio

import pytest

from careerai.config import Settings
from careerai.local_cache import USER_DATA_KEY
from careerai.state import CareerRecommendation, ChatMessage, SessionIdentity, SkillAnalysis
from careerai.synchronizer import RetryPolicy


RECOMMENDATIONS = [
    {"title": "Data Scientist", "match": 88, "skills": ["Python", "SQL"]},
    {"title": "Backend Developer", "match": 81, "skills": ["Python", "PostgreSQL"]},
]


def _cached_user_data(cache) -> dict:
    return cache.read_blob(USER_DATA_KEY) or {}


def test_latest_values_win_when_both_sinks_fail(make_synchronizer, failing_remote_store, failing_local_cache) -> None:
    async def scenario():
        sync = make_synchronizer(remote=failing_remote_store, cache=failing_local_cache)
        await sync.identify(SessionIdentity.authenticated("user-1", "asha@example.com"))

        first = await sync.submit_profile_answers({"name": "Asha", "age": 21})
        await sync.submit_profile_answers({"name": "Ravi", "age": 23})
        await sync.submit_recommendation_set(RECOMMENDATIONS)
        await sync.submit_recommendation_set(RECOMMENDATIONS[1:])
        await sync.submit_skill_analysis(SkillAnalysis(existing=["SQL"], missing=["Docker"]))
        last = await sync.submit_skill_analysis(SkillAnalysis(existing=["Python"], missing=["Go"]))
        return sync, first, last

    sync, first, last = asyncio.run(scenario())
    state = sync.state
    assert not first.durable
    assert not last.durable
    assert state.assessment_data.name == "Ravi"
    assert state.assessment_data.age == 23
    assert [item.title for item in state.recommendations] == ["Backend Developer"]
    assert state.skill_analysis.existing == ["Python"]
    assert state.skill_analysis.missing == ["Go"]
    assert state.error is not None
    assert state.error.code == "recommendations_sync_failed"


def test_chat_append_is_monotonic(make_synchronizer) -> None:
    async def scenario():
        sync = make_synchronizer()
        await sync.identify(SessionIdentity.anonymous("abc"))
        sync.append_chat_message({"sender": "assistant", "text": "Welcome!"})
        before = len(sync.state.chat_history)
        for index in range(5):
            sender = "user" if index % 2 == 0 else "assistant"
            sync.append_chat_message(ChatMessage(sender=sender, text=f"message {index}"))
        await sync.wait_for_pending()
        return sync, before

    sync, before = asyncio.run(scenario())
    assert len(sync.state.chat_history) == before + 5
    assert len(sync.snapshot().chat_history) == before + 5
    assert [entry.text for entry in sync.state.chat_history[1:]] == [f"message {index}" for index in range(5)]
    assert len({entry.id for entry in sync.state.chat_history}) == before + 5


def test_anonymous_identify_restores_cached_answers(make_synchronizer, local_cache) -> None:
    cached = {
        "name": "Asha",
        "age": 21,
        "careerInterests": ["Web Development", "DevOps", "Cloud Computing"],
        "completedAt": "2026-10-01T09:30:00Z",
        "id": "a1b2c3",
    }
    local_cache.write_blob(USER_DATA_KEY, {"assessmentData": cached})

    async def scenario():
        sync = make_synchronizer()
        await sync.identify(SessionIdentity.anonymous())
        return sync

    sync = asyncio.run(scenario())
    assert sync.state.assessment_data.as_payload() == cached
    assert sync.state.recommendations is None
    assert sync.state.skill_analysis is None
    assert sync.state.current_step == "recommendations"
    assert sync.state.is_loading is False


def test_authenticated_remote_failure_falls_back_to_local_cache(
    make_synchronizer, failing_remote_store, local_cache, telemetry_events
) -> None:
    async def scenario():
        sync = make_synchronizer(remote=failing_remote_store)
        await sync.identify(SessionIdentity.authenticated("user-7"))
        outcomes = [
            await sync.submit_profile_answers({"name": "Meera", "age": 22}),
            await sync.submit_recommendation_set(RECOMMENDATIONS),
            await sync.submit_skill_analysis({"existing": ["Python"], "missing": ["Docker"], "learningPath": []}),
        ]
        sync.append_chat_message({"sender": "user", "text": "How do I start?"})
        outcomes.append(await sync.append_chat_message({"sender": "assistant", "text": "Start with Python."}))
        return sync, outcomes

    sync, outcomes = asyncio.run(scenario())
    assert all(outcome.local_written for outcome in outcomes)
    assert not any(outcome.remote_ok for outcome in outcomes)

    blob = _cached_user_data(local_cache)
    assert blob["assessmentData"] == sync.state.assessment_data.as_payload()
    assert blob["recommendations"] == [item.as_payload() for item in sync.state.recommendations]
    assert blob["skillAnalysis"]["missing"] == ["Docker"]
    assert [entry["text"] for entry in blob["chatHistory"]] == ["How do I start?", "Start with Python."]

    assert failing_remote_store.calls_for("save_assessment")
    assert failing_remote_store.calls_for("save_recommendations")
    assert failing_remote_store.calls_for("save_chat_message")
    fallback_entities = {event.payload["entity"] for event in telemetry_events if event.name == "sync_local_fallback"}
    assert {"assessment", "recommendations"} <= fallback_entities


def test_anonymous_recommendations_written_to_both_sinks(make_synchronizer, remote_store, local_cache) -> None:
    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        await sync.identify(SessionIdentity.anonymous("anon-9"))
        await sync.submit_profile_answers({"name": "Kiran"})
        outcome = await sync.submit_recommendation_set(RECOMMENDATIONS)
        return sync, outcome

    sync, outcome = asyncio.run(scenario())
    assert outcome.remote_ok
    assert outcome.local_written
    saved = remote_store.calls_for("save_recommendations")
    assert len(saved) == 1
    assert saved[0][1] == "anon-9"
    assert saved[0][2]["assessment_id"] == "a-1"
    assert [item["title"] for item in saved[0][2]["items"]] == ["Data Scientist", "Backend Developer"]
    assert _cached_user_data(local_cache)["recommendations"] == saved[0][2]["items"]


def test_reset_clears_derived_entities_and_rotates_anonymous_identity(make_synchronizer, local_cache) -> None:
    async def scenario():
        sync = make_synchronizer()
        await sync.identify(SessionIdentity.anonymous("old-anon"))
        sync.submit_profile_answers({"name": "Asha"})
        sync.submit_recommendation_set(RECOMMENDATIONS)
        sync.submit_skill_analysis(SkillAnalysis(existing=["SQL"]))
        sync.append_chat_message({"sender": "user", "text": "hello"})
        await sync.wait_for_pending()
        return sync, sync.reset()

    sync, state = asyncio.run(scenario())
    assert state.identity is not None
    assert state.identity.is_anonymous
    assert state.identity.id != "old-anon"
    assert state.assessment_data is None
    assert state.recommendations is None
    assert state.skill_analysis is None
    assert state.chat_history == []
    assert state.current_step == "home"
    assert local_cache.read_blob(USER_DATA_KEY) is None


def test_reset_without_prior_data_does_not_raise(make_synchronizer) -> None:
    sync = make_synchronizer()
    state = sync.reset()
    assert state.identity is None
    assert state.chat_history == []


def test_reset_keeps_authenticated_identity(make_synchronizer) -> None:
    async def scenario():
        sync = make_synchronizer()
        await sync.identify(SessionIdentity.authenticated("user-3"))
        return sync.reset()

    state = asyncio.run(scenario())
    assert state.identity.id == "user-3"
    assert not state.identity.is_anonymous


def test_submit_profile_answers_example(make_synchronizer, local_cache) -> None:
    async def scenario():
        sync = make_synchronizer()
        await sync.identify(SessionIdentity.anonymous("abc"))
        await sync.submit_profile_answers({"name": "Asha", "age": 21})
        return sync

    sync = asyncio.run(scenario())
    payload = sync.state.assessment_data.as_payload()
    assert payload["name"] == "Asha"
    assert payload["age"] == 21
    assert isinstance(payload["id"], str) and payload["id"]
    assert payload["completedAt"]
    assert set(payload) == {"name", "age", "completedAt", "id"}
    assert _cached_user_data(local_cache)["assessmentData"] == payload
    assert sync.state.current_step == "recommendations"


def test_authenticated_identify_expands_chat_records(make_synchronizer, remote_store) -> None:
    remote_store.add_chat_record("user-5", "What is Supabase?", "A Postgres platform.", minutes_ago=10)
    remote_store.add_chat_record("user-5", "And React?", "A UI library.", minutes_ago=5)

    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        await sync.identify(SessionIdentity.authenticated("user-5"))
        return sync

    sync = asyncio.run(scenario())
    transcript = sync.state.chat_history
    assert len(transcript) == 4
    assert [entry.sender for entry in transcript] == ["user", "assistant", "user", "assistant"]
    assert [entry.text for entry in transcript] == [
        "What is Supabase?",
        "A Postgres platform.",
        "And React?",
        "A UI library.",
    ]
    assert transcript[1].id == "c-1-response"
    assert remote_store.calls_for("get_chat_history")[0][2] == 50


def test_authenticated_identify_adopts_latest_assessment_only(make_synchronizer, remote_store, local_cache) -> None:
    local_cache.write_blob(USER_DATA_KEY, {"recommendations": RECOMMENDATIONS})

    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        identity = SessionIdentity.authenticated("user-8")
        await remote_store.save_assessment(identity, {"name": "Older"})
        await remote_store.save_assessment(identity, {"name": "Newer"})
        await sync.identify(identity)
        return sync

    sync = asyncio.run(scenario())
    assert sync.state.assessment_data.name == "Newer"
    assert sync.state.recommendations is None
    assert sync.state.current_step == "recommendations"


def test_authenticated_hydration_failure_uses_local_cache(
    make_synchronizer, failing_remote_store, local_cache, telemetry_events
) -> None:
    local_cache.write_blob(USER_DATA_KEY, {"assessmentData": {"name": "Cached"}, "recommendations": RECOMMENDATIONS})

    async def scenario():
        sync = make_synchronizer(remote=failing_remote_store)
        await sync.identify(SessionIdentity.authenticated("user-2"))
        return sync

    sync = asyncio.run(scenario())
    assert sync.state.identity.id == "user-2"
    assert sync.state.assessment_data.name == "Cached"
    assert len(sync.state.recommendations) == 2
    assert sync.state.current_step == "skills"
    assert any(event.name == "sync_hydration_degraded" for event in telemetry_events)


def test_malformed_cache_degrades_to_empty_state(make_synchronizer, local_cache) -> None:
    local_cache.put_raw(USER_DATA_KEY, "{not json")

    async def scenario():
        sync = make_synchronizer()
        await sync.identify(SessionIdentity.anonymous())
        return sync

    sync = asyncio.run(scenario())
    assert sync.state.assessment_data is None
    assert sync.state.chat_history == []
    assert sync.state.current_step == "home"


def test_malformed_cached_field_is_skipped(make_synchronizer, local_cache) -> None:
    local_cache.write_blob(
        USER_DATA_KEY,
        {"assessmentData": {"name": "Asha"}, "recommendations": [{"match": 80}]},
    )

    async def scenario():
        sync = make_synchronizer()
        await sync.identify(SessionIdentity.anonymous())
        return sync

    sync = asyncio.run(scenario())
    assert sync.state.assessment_data.name == "Asha"
    assert sync.state.recommendations is None


def test_identify_keeps_previous_data_until_hydration_completes(make_synchronizer, remote_store) -> None:
    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        await sync.identify(SessionIdentity.anonymous("anon-1"))
        await sync.submit_profile_answers({"name": "Asha"})

        remote_store.gate = asyncio.Event()
        pending = asyncio.create_task(sync.identify(SessionIdentity.authenticated("user-1")))
        await asyncio.sleep(0)
        during = sync.state
        remote_store.gate.set()
        await pending
        return during, sync.state

    during, after = asyncio.run(scenario())
    assert during.is_loading is True
    assert during.identity.id == "anon-1"
    assert during.assessment_data.name == "Asha"
    assert after.identity.id == "user-1"
    assert after.assessment_data is None
    assert after.is_loading is False


def test_superseded_identify_is_discarded(make_synchronizer, remote_store) -> None:
    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        await sync.identify(SessionIdentity.anonymous("anon-1"))
        remote_store.gate = asyncio.Event()
        pending = asyncio.create_task(sync.identify(SessionIdentity.authenticated("user-1")))
        await asyncio.sleep(0)
        signed_out = sync.sign_out()
        remote_store.gate.set()
        await pending
        return signed_out, sync.state

    signed_out, final = asyncio.run(scenario())
    assert final.identity == signed_out.identity
    assert final.identity.is_anonymous
    assert final.identity.id != "anon-1"


def test_no_identity_writes_local_cache_only(make_synchronizer, remote_store, local_cache) -> None:
    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        return await sync.submit_recommendation_set(RECOMMENDATIONS)

    outcome = asyncio.run(scenario())
    assert outcome.identity_id is None
    assert outcome.local_written
    assert not outcome.remote_attempted
    assert remote_store.calls == []
    assert len(_cached_user_data(local_cache)["recommendations"]) == 2


def test_chat_pair_is_saved_only_after_user_message(make_synchronizer, remote_store) -> None:
    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        await sync.identify(SessionIdentity.authenticated("user-4"))
        greeting = await sync.append_chat_message({"sender": "assistant", "text": "Hi there"})
        await sync.append_chat_message({"sender": "user", "text": "Resume tips?"})
        reply = await sync.append_chat_message({"sender": "bot", "text": "Keep it short."})
        follow_up = await sync.append_chat_message({"sender": "assistant", "text": "Anything else?"})
        return greeting, reply, follow_up

    greeting, reply, follow_up = asyncio.run(scenario())
    saved = remote_store.calls_for("save_chat_message")
    assert saved == [("save_chat_message", "user-4", ("Resume tips?", "Keep it short."))]
    assert not greeting.remote_attempted
    assert reply.remote_ok
    assert not follow_up.remote_attempted


def test_chat_persistence_failure_is_not_surfaced(make_synchronizer, failing_remote_store, telemetry_events) -> None:
    async def scenario():
        sync = make_synchronizer(remote=failing_remote_store)
        await sync.identify(SessionIdentity.anonymous("anon-3"))
        sync.append_chat_message({"sender": "user", "text": "Hello"})
        outcome = await sync.append_chat_message({"sender": "assistant", "text": "Hi!"})
        return sync, outcome

    sync, outcome = asyncio.run(scenario())
    assert len(sync.state.chat_history) == 2
    assert sync.state.error is None
    assert outcome.remote_attempted and not outcome.remote_ok
    assert outcome.local_written
    assert any(event.name == "chat_record_failed" for event in telemetry_events)


def test_remote_write_retries_before_succeeding(make_synchronizer, remote_store) -> None:
    async def scenario():
        sync = make_synchronizer(
            remote=remote_store,
            retry=RetryPolicy(attempts=3, backoff_seconds=0, timeout_seconds=None),
        )
        await sync.identify(SessionIdentity.authenticated("user-6"))
        remote_store.fail_next = 1
        return sync, await sync.submit_profile_answers({"name": "Asha"})

    sync, outcome = asyncio.run(scenario())
    assert outcome.remote_ok
    assert outcome.attempts == 2
    assert not outcome.local_written
    assert len(remote_store.calls_for("save_assessment")) == 2
    assert sync.state.error is None


def test_remote_write_timeout_falls_back(make_synchronizer, remote_store, local_cache) -> None:
    async def scenario():
        sync = make_synchronizer(
            remote=remote_store,
            retry=RetryPolicy(attempts=1, backoff_seconds=0, timeout_seconds=0.05),
        )
        await sync.identify(SessionIdentity.authenticated("user-9"))
        remote_store.gate = asyncio.Event()
        return await sync.submit_profile_answers({"name": "Slow"})

    outcome = asyncio.run(scenario())
    assert not outcome.remote_ok
    assert outcome.local_written
    assert _cached_user_data(local_cache)["assessmentData"]["name"] == "Slow"


def test_remote_errors_can_stay_hidden(make_synchronizer, failing_remote_store) -> None:
    async def scenario():
        sync = make_synchronizer(remote=failing_remote_store, expose_remote_errors=False)
        await sync.identify(SessionIdentity.authenticated("user-10"))
        await sync.submit_profile_answers({"name": "Asha"})
        return sync

    sync = asyncio.run(scenario())
    assert sync.state.error is None


def test_subscribers_see_every_transition(make_synchronizer) -> None:
    seen = []
    sync = make_synchronizer()
    unsubscribe = sync.subscribe(lambda state: seen.append(state.current_step))
    sync.set_step("assessment")
    sync.set_step("home")
    unsubscribe()
    sync.set_step("skills")
    assert seen == ["assessment", "home"]


def test_mutations_outside_loop_update_memory_then_raise(make_synchronizer, local_cache) -> None:
    sync = make_synchronizer()
    with pytest.raises(RuntimeError):
        sync.submit_recommendation_set([CareerRecommendation(title="Data Scientist")])
    assert [item.title for item in sync.state.recommendations] == ["Data Scientist"]
    assert _cached_user_data(local_cache)["recommendations"][0]["title"] == "Data Scientist"


def test_anonymous_local_write_lands_before_submit_returns(make_synchronizer, remote_store, local_cache) -> None:
    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        await sync.identify(SessionIdentity.anonymous("anon-7"))
        task = sync.submit_profile_answers({"name": "Asha", "age": 21})
        cached = _cached_user_data(local_cache).get("assessmentData")
        await task
        return cached

    cached = asyncio.run(scenario())
    assert cached is not None
    assert cached["name"] == "Asha"


def test_reset_in_same_tick_is_not_undone_by_pending_writes(make_synchronizer, remote_store, local_cache) -> None:
    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        await sync.identify(SessionIdentity.anonymous("anon-8"))
        sync.submit_profile_answers({"name": "Asha", "age": 21})
        sync.append_chat_message({"sender": "user", "text": "hello"})
        sync.reset()
        await sync.wait_for_pending()
        return sync

    sync = asyncio.run(scenario())
    assert local_cache.read_blob(USER_DATA_KEY) is None
    assert sync.state.assessment_data is None


def test_fallback_started_before_reset_skips_local_write(make_synchronizer, remote_store, local_cache) -> None:
    async def scenario():
        sync = make_synchronizer(remote=remote_store)
        await sync.identify(SessionIdentity.authenticated("user-12"))
        remote_store.fail = True
        task = sync.submit_profile_answers({"name": "Asha"})
        sync.reset()
        return await task

    outcome = asyncio.run(scenario())
    assert outcome.remote_attempted
    assert not outcome.remote_ok
    assert not outcome.local_written
    assert local_cache.read_blob(USER_DATA_KEY) is None


def test_retry_policy_from_settings() -> None:
    settings = Settings(
        CAREERAI_REMOTE_RETRY_ATTEMPTS=0,
        CAREERAI_REMOTE_RETRY_BACKOFF_SECONDS=-1,
        CAREERAI_REMOTE_TIMEOUT_SECONDS=0,
    )
    policy = RetryPolicy.from_settings(settings)
    assert policy.attempts == 1
    assert policy.backoff_seconds == 0.0
    assert policy.timeout_seconds is None

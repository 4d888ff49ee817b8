"""Tests for the detect-language -> translate chain."""

from pagebrief.jobs.models import JobKind, JobPhase, JobRequest, record_patch
from pagebrief.jobs.pipeline import TranslationChain
from pagebrief.providers.base import Capability


def _attach(store, orchestrator):
    chain = TranslationChain(store, orchestrator)
    chain.attach()
    return chain


async def _run(orchestrator, kind, text="input text", **parameters):
    ack = orchestrator.submit(JobRequest(kind=kind, input_text=text, parameters=parameters))
    assert ack.accepted
    await orchestrator.join()
    return ack


async def test_detection_success_submits_translation_once(store, build_orchestrator, fake_provider):
    translator = fake_provider(Capability.TRANSLATOR, result="Résumé")
    orchestrator = build_orchestrator(
        summarize=fake_provider(Capability.SUMMARIZER, result="R"),
        detect_language=fake_provider(Capability.LANGUAGE_DETECTOR, result="fr"),
        translate=translator,
    )
    _attach(store, orchestrator)

    await _run(orchestrator, JobKind.SUMMARIZE)
    await _run(orchestrator, JobKind.DETECT_LANGUAGE, text="R")

    assert translator.inputs == ["R"]
    assert translator.configs == [{"target_language": "fr"}]
    assert translator.calls.count("availability") == 1
    record = orchestrator.get_status(JobKind.TRANSLATE)
    assert record.phase == JobPhase.SUCCEEDED
    assert record.final_result == "Résumé"
    assert record.input_echo == {"target_language": "fr"}


async def test_each_detection_run_chains_again(store, build_orchestrator, fake_provider):
    translator = fake_provider(Capability.TRANSLATOR, result="T")
    orchestrator = build_orchestrator(translate=translator)
    _attach(store, orchestrator)

    await _run(orchestrator, JobKind.SUMMARIZE)
    await _run(orchestrator, JobKind.DETECT_LANGUAGE)
    await _run(orchestrator, JobKind.DETECT_LANGUAGE)

    assert len(translator.inputs) == 2


async def test_failed_detection_does_not_chain(store, build_orchestrator, fake_provider):
    translator = fake_provider(Capability.TRANSLATOR, result="T")
    orchestrator = build_orchestrator(
        detect_language=fake_provider(Capability.LANGUAGE_DETECTOR, fail_at="invoke"),
        translate=translator,
    )
    _attach(store, orchestrator)

    await _run(orchestrator, JobKind.SUMMARIZE)
    await _run(orchestrator, JobKind.DETECT_LANGUAGE)

    assert orchestrator.get_status(JobKind.DETECT_LANGUAGE).phase == JobPhase.FAILED
    assert translator.calls == []
    assert "translate.phase" not in store.read_all()


async def test_no_summary_means_no_translation(store, build_orchestrator, fake_provider):
    translator = fake_provider(Capability.TRANSLATOR, result="T")
    orchestrator = build_orchestrator(translate=translator)
    _attach(store, orchestrator)

    await _run(orchestrator, JobKind.DETECT_LANGUAGE)

    assert translator.calls == []


async def test_failed_translation_is_not_retried(store, build_orchestrator, fake_provider):
    translator = fake_provider(Capability.TRANSLATOR, fail_at="invoke")
    orchestrator = build_orchestrator(translate=translator)
    _attach(store, orchestrator)

    await _run(orchestrator, JobKind.SUMMARIZE)
    await _run(orchestrator, JobKind.DETECT_LANGUAGE)

    assert translator.calls.count("invoke") == 1
    assert orchestrator.get_status(JobKind.TRANSLATE).error_kind == "invoke_failed"


async def test_ignores_succeeded_writes_that_are_not_a_transition(store, build_orchestrator, fake_provider):
    translator = fake_provider(Capability.TRANSLATOR, result="T")
    orchestrator = build_orchestrator(translate=translator)
    _attach(store, orchestrator)

    store.merge_patch(record_patch(JobKind.SUMMARIZE, phase=JobPhase.SUCCEEDED, final_result="S"))
    store.merge_patch(record_patch(
        JobKind.DETECT_LANGUAGE, phase=JobPhase.SUCCEEDED, final_result="de", run_id="restored",
    ))
    await orchestrator.join()

    assert translator.calls == []


async def test_detached_chain_stops_listening(store, build_orchestrator, fake_provider):
    translator = fake_provider(Capability.TRANSLATOR, result="T")
    orchestrator = build_orchestrator(translate=translator)
    chain = _attach(store, orchestrator)
    chain.detach()

    await _run(orchestrator, JobKind.SUMMARIZE)
    await _run(orchestrator, JobKind.DETECT_LANGUAGE)

    assert translator.calls == []
    assert store.subscriber_count == 0


async def test_repeat_success_of_the_same_detection_run_is_ignored(store, build_orchestrator, fake_provider):
    translator = fake_provider(Capability.TRANSLATOR, result="T")
    orchestrator = build_orchestrator(translate=translator)
    chain = _attach(store, orchestrator)

    await _run(orchestrator, JobKind.SUMMARIZE)
    first = await _run(orchestrator, JobKind.DETECT_LANGUAGE)
    store.merge_patch(record_patch(JobKind.DETECT_LANGUAGE, phase=JobPhase.RUNNING))
    store.merge_patch(record_patch(JobKind.DETECT_LANGUAGE, phase=JobPhase.SUCCEEDED))
    await orchestrator.join()

    assert len(translator.inputs) == 1
    assert chain._last_handled_run == first.run_id

    second = await _run(orchestrator, JobKind.DETECT_LANGUAGE)

    assert len(translator.inputs) == 2
    assert chain._last_handled_run == second.run_id

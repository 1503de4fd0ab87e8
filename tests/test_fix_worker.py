import json
import threading

import pytest

from editor.document import SourceDocument
from hints.fix_worker import FixOrchestrator, LoggingFixNotifier
from hints.variable_fix import RepairOutcome, RepairParseError, VariableFixAgent

SOURCE = """import java.util.List;

class Main {
    private Foo foo = Foo.create();
    private Bar bar = new Bar(Foo.create());
    private List<String> names;
}
"""

REPLY = json.dumps({"imports": ["com.acme.Foo"], "variableContent": "new Foo()"})


class BlockingModel:
    def __init__(self, owner):
        self.owner = owner

    def chat(self, messages, **kwargs):
        self.owner.started.set()
        assert self.owner.release.wait(timeout=5)
        return self.owner.response


class BlockingFactory:
    def __init__(self, response=REPLY, block=True):
        self.response = response
        self.started = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return BlockingModel(self)


class RecordingNotifier:
    def __init__(self):
        self.failures = []

    def failed(self, fix, error):
        self.failures.append((fix, error))


class RecordingLogger:
    def __init__(self):
        self.events = []

    def info(self, event, **fields):
        self.events.append(("info", event, fields))

    def warn(self, event, **fields):
        self.events.append(("warn", event, fields))

    def error(self, event, **fields):
        self.events.append(("error", event, fields))


@pytest.fixture
def orchestrator_for():
    created = []

    def make(factory, notifier=None, max_workers=2):
        orchestrator = FixOrchestrator(
            agent=VariableFixAgent(model_factory=factory),
            notifier=notifier or RecordingNotifier(),
            max_workers=max_workers,
        )
        created.append(orchestrator)
        return orchestrator

    yield make
    for orchestrator in created:
        orchestrator.shutdown(wait=True)


def test_offer_fixes_one_per_broken_declaration(orchestrator_for):
    orchestrator = orchestrator_for(BlockingFactory(block=False))
    fixes = orchestrator.offer_fixes(SourceDocument(SOURCE))
    assert [f.text() for f in fixes] == [
        "Fix variable 'foo' using AI",
        "Fix variable 'bar' using AI",
    ]
    assert fixes[1].compilation_error == "cannot find symbol: Bar"


def test_no_fixes_for_documents_that_do_not_resolve(orchestrator_for):
    orchestrator = orchestrator_for(BlockingFactory(block=False))
    assert orchestrator.offer_fixes(SourceDocument(SOURCE + "}")) == []


def test_invoke_applies_in_the_background(orchestrator_for):
    factory = BlockingFactory(block=False)
    orchestrator = orchestrator_for(factory)
    doc = SourceDocument(SOURCE)
    fix = orchestrator.offer_fixes(doc)[0]

    task = orchestrator.invoke(fix)
    assert task.result(timeout=5) is RepairOutcome.APPLIED
    assert task.done()
    assert "import com.acme.Foo;" in doc.text
    assert "private Foo foo = new Foo();" in doc.text
    assert orchestrator.pending() == []


def test_parse_failures_are_reported(orchestrator_for):
    notifier = RecordingNotifier()
    orchestrator = orchestrator_for(BlockingFactory(response="no json here", block=False), notifier)
    doc = SourceDocument(SOURCE)
    fix = orchestrator.offer_fixes(doc)[0]

    task = orchestrator.invoke(fix)
    with pytest.raises(RepairParseError):
        task.result(timeout=5)
    assert len(notifier.failures) == 1
    assert notifier.failures[0][0] == fix
    assert isinstance(notifier.failures[0][1], RepairParseError)
    assert doc.text == SOURCE


def test_silent_outcomes_are_not_reported(orchestrator_for):
    notifier = RecordingNotifier()
    orchestrator = orchestrator_for(BlockingFactory(response="", block=False), notifier)
    doc = SourceDocument(SOURCE)
    task = orchestrator.invoke(orchestrator.offer_fixes(doc)[0])
    assert task.result(timeout=5) is RepairOutcome.NOT_APPLICABLE
    assert notifier.failures == []


def test_document_change_cancels_pending_fixes(orchestrator_for):
    factory = BlockingFactory()
    orchestrator = orchestrator_for(factory)
    doc = SourceDocument(SOURCE)
    task = orchestrator.invoke(orchestrator.offer_fixes(doc)[0])
    assert factory.started.wait(timeout=5)

    edited = SOURCE.replace("Main", "Other")
    doc.replace_text(edited)
    assert task.cancelled()

    factory.release.set()
    assert task.result(timeout=5) is RepairOutcome.DISCARDED
    assert doc.text == edited


def test_dismiss_cancels_one_fix(orchestrator_for):
    factory = BlockingFactory()
    orchestrator = orchestrator_for(factory)
    doc = SourceDocument(SOURCE)
    fix = orchestrator.offer_fixes(doc)[0]
    task = orchestrator.invoke(fix)
    assert factory.started.wait(timeout=5)

    orchestrator.dismiss(fix)
    factory.release.set()
    assert task.result(timeout=5) is RepairOutcome.DISCARDED
    assert doc.text == SOURCE


def test_dismissed_before_start_never_calls_the_model(orchestrator_for):
    factory = BlockingFactory()
    orchestrator = orchestrator_for(factory, max_workers=1)
    doc = SourceDocument(SOURCE)
    first, second = orchestrator.offer_fixes(doc)

    running = orchestrator.invoke(first)
    assert factory.started.wait(timeout=5)
    queued = orchestrator.invoke(second)
    orchestrator.dismiss(second)
    factory.release.set()

    assert queued.result(timeout=5) is RepairOutcome.DISCARDED
    assert running.result(timeout=5) is RepairOutcome.APPLIED
    assert factory.calls == 1


def test_invoke_needs_a_known_document(orchestrator_for):
    orchestrator = orchestrator_for(BlockingFactory(block=False))
    other = orchestrator_for(BlockingFactory(block=False))
    fix = other.offer_fixes(SourceDocument(SOURCE))[0]
    with pytest.raises(ValueError):
        orchestrator.invoke(fix)


def test_reoffering_after_edits_keeps_bookkeeping_bounded(orchestrator_for):
    orchestrator = orchestrator_for(BlockingFactory(block=False))
    doc = SourceDocument(SOURCE)
    for i in range(50):
        assert len(orchestrator.offer_fixes(doc)) == 2
        doc.replace_text(SOURCE + "\n" * (i + 1))
    assert list(orchestrator._watched) == [doc.id]
    assert len(doc._listeners) == 1
    assert orchestrator._tasks == {}


def test_fix_from_an_old_offer_is_discarded(orchestrator_for):
    orchestrator = orchestrator_for(BlockingFactory(block=False))
    doc = SourceDocument(SOURCE)
    fix = orchestrator.offer_fixes(doc)[0]
    doc.replace_text(SOURCE + "\n")
    assert orchestrator.invoke(fix).result(timeout=5) is RepairOutcome.DISCARDED


class InlineExecutor:
    def submit(self, fn, *args):
        fn(*args)

    def shutdown(self, wait=True):
        pass


def test_task_is_registered_before_its_commit_is_announced():
    orchestrator = FixOrchestrator(
        agent=VariableFixAgent(model_factory=BlockingFactory(block=False)),
        notifier=RecordingNotifier(),
        executor=InlineExecutor(),
    )
    doc = SourceDocument(SOURCE)
    fix = orchestrator.offer_fixes(doc)[0]
    pending_at_change = []
    doc.add_change_listener(lambda d: pending_at_change.append([t.fix for t in orchestrator.pending()]))

    task = orchestrator.invoke(fix)
    assert pending_at_change == [[fix]]
    assert task.result(timeout=0) is RepairOutcome.APPLIED
    assert not task.cancelled()
    assert orchestrator.pending() == []
    orchestrator.shutdown()


def test_shutdown_detaches_from_documents():
    orchestrator = FixOrchestrator(agent=VariableFixAgent(model_factory=BlockingFactory(block=False)))
    doc = SourceDocument(SOURCE)
    orchestrator.offer_fixes(doc)
    orchestrator.shutdown()
    assert doc._listeners == []


def test_default_notifier_logs_fix_failed():
    logger = RecordingLogger()
    orchestrator = FixOrchestrator(agent=VariableFixAgent(model_factory=BlockingFactory(block=False)))
    try:
        fix = orchestrator.offer_fixes(SourceDocument(SOURCE))[0]
    finally:
        orchestrator.shutdown()

    LoggingFixNotifier(obs=logger).failed(fix, RepairParseError("Malformed JSON in model output"))
    level, event, fields = logger.events[0]
    assert (level, event) == ("error", "fix.failed")
    assert fields["title"] == "Fix variable 'foo' using AI"
    assert fields["error_type"] == "RepairParseError"

import threading

import pytest

from deep_rag.agent.agent import DeepThinkingAgent, compose_answer
from deep_rag.config import AgentConfig
from deep_rag.errors import NodeExecutionError, WorkflowTimeoutError
from deep_rag.ingest.embedder import HashingEmbedder
from deep_rag.obs.tracing import TraceStore
from deep_rag.retrieval.strategies import build_strategies
from deep_rag.retrieval.vector_store import InMemoryVectorStore
from deep_rag.types import RetrievedDocument
from deep_rag.workflow.state import ReasoningState

_CORPUS = {
    "policy-0": "Customer data must be encrypted at rest using AES-256.",
    "policy-1": "Encryption keys are rotated quarterly by the security team.",
    "handbook-0": "Employees receive a laptop and onboarding training.",
}


@pytest.fixture
def strategies():
    embedder = HashingEmbedder(dimension=64)
    store = InMemoryVectorStore()
    texts = list(_CORPUS.values())
    store.upsert(
        [
            RetrievedDocument(id=doc_id, content=text, embedding=vector, metadata={"doc_id": doc_id.split("-")[0]})
            for (doc_id, text), vector in zip(_CORPUS.items(), embedder.embed(texts))
        ]
    )
    return build_strategies(store, embedder)


def test_two_step_plan_runs_to_completion(generator, strategies) -> None:
    traces = TraceStore()
    agent = DeepThinkingAgent(generator, strategies, trace_store=traces)

    state = agent.run("How is customer data protected and how are keys managed?")

    assert len(state.past_steps) == 2
    assert state.is_complete()
    assert state.last_decision.reasoning == "All plan steps completed"
    assert generator.count("query planner") == 1
    assert generator.count("reflection") == 2
    assert generator.count("workflow control") == 1
    assert state.past_steps[0].retrieved_docs
    assert state.past_steps[0].retrieved_docs[0].id == "policy-0"

    record = traces.get(state.trace_id)
    assert record.answer == state.final_answer
    assert record.iterations == 2
    assert record.error is None
    names = [step.name for step in record.steps]
    assert names[0] == "planner"
    assert names.count("reflector") == 2
    assert record.steps[-1].next_node == "finish"


def test_max_iterations_bounds_the_run(generator, strategies) -> None:
    agent = DeepThinkingAgent(generator, strategies)

    state = agent.run("How is customer data protected?", max_iterations=1)

    assert len(state.past_steps) == 1
    assert not state.is_complete()
    assert state.trace_id == ""


def test_policy_can_finish_early(make_generator, strategies) -> None:
    agent = DeepThinkingAgent(make_generator(workflow_control="DECISION: finish\nCONFIDENCE: 0.9"), strategies)

    state = agent.run("How is customer data protected?")

    assert len(state.past_steps) == 1
    assert state.should_continue is False


def test_planner_failure_is_recorded_and_raised(make_generator, strategies) -> None:
    traces = TraceStore()
    agent = DeepThinkingAgent(make_generator(query_planner="no plan today"), strategies, trace_store=traces)

    with pytest.raises(NodeExecutionError) as excinfo:
        agent.run("Anything?")

    assert excinfo.value.node_name == "planner"
    [record] = traces.list_recent()
    assert record.error is not None
    assert [(step.name, step.failed) for step in record.steps] == [("planner", True)]


def test_cancelled_run(generator, strategies) -> None:
    cancel = threading.Event()
    cancel.set()
    agent = DeepThinkingAgent(generator, strategies, config=AgentConfig(timeout_seconds=30.0))

    with pytest.raises(WorkflowTimeoutError):
        agent.run("Anything?", cancel_event=cancel)

    assert generator.calls == []


def test_compose_answer() -> None:
    assert compose_answer(ReasoningState(original_question="q")) == "No findings were gathered for this question."

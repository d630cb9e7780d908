import threading

from engine.search_pipeline import SearchPipeline, has_enough_results
from engine.search_strategies import SearchStrategy
from engine.search_types import SearchContext, SearchTier


class _FixedStrategy(SearchStrategy):
    def __init__(self, name, text, *, tier=SearchTier.BASE, priority=0, error=None):
        self.name = name
        self.text = text
        self.tier = tier
        self.priority = priority
        self.error = error

    def can_execute(self, context, query_type):
        return True

    def get_query(self, context, query_type):
        if self.error:
            raise self.error
        return self.text


class _RecordingExecutor:
    def __init__(self, results=None, *, fail_on=None, on_call=None):
        self.results = results or {}
        self.fail_on = set(fail_on or ())
        self.on_call = on_call
        self.calls = []

    def __call__(self, query, stop_event):
        self.calls.append(query.search_text)
        if self.on_call:
            self.on_call(query)
        if query.search_text in self.fail_on:
            raise RuntimeError("boom")
        return self.results.get(query.search_text, [])


def _context(settings, artist="Pink Floyd", album="The Dark Side of the Moon", **kwargs):
    return SearchContext(artist=artist, album=album, settings=settings, **kwargs)


def test_has_enough_results() -> None:
    assert not has_enough_results(0, 0)
    assert has_enough_results(1, 0)
    assert not has_enough_results(4, 5)
    assert has_enough_results(5, 5)


def test_stops_once_minimum_reached(settings_factory) -> None:
    settings = settings_factory(use_fallback_search=True, minimum_results=5)
    execute = _RecordingExecutor({"Pink Floyd The Dark Side of the Moon": ["c"] * 6})
    result = SearchPipeline().run(_context(settings), execute)
    assert execute.calls == ["Pink Floyd The Dark Side of the Moon"]
    assert result.executed_queries == ["Pink Floyd The Dark Side of the Moon"]
    assert len(result.candidates) == 6
    assert result.stopped_early
    assert not result.cancelled


def test_falls_through_to_fallback_until_any_result(settings_factory) -> None:
    settings = settings_factory(use_fallback_search=True)
    execute = _RecordingExecutor({"Pin* Floy* The Dar* Sid* of the Moo*": ["hit"]})
    result = SearchPipeline().run(_context(settings), execute)
    assert execute.calls == [
        "Pink Floyd The Dark Side of the Moon",
        "Pin* Floy* The Dar* Sid* of the Moo*",
    ]
    assert result.candidates == ["hit"]
    assert result.stopped_early


def test_runs_everything_when_nothing_is_found(settings_factory) -> None:
    settings = settings_factory(use_fallback_search=True)
    execute = _RecordingExecutor()
    result = SearchPipeline().run(_context(settings), execute)
    assert execute.calls == [
        "Pink Floyd The Dark Side of the Moon",
        "Pin* Floy* The Dar* Sid* of the Moo*",
        "Pink Floyd The Dark Side",
        "Pink Floyd Dark Side Moon",
    ]
    assert result.candidates == []
    assert not result.stopped_early


def test_duplicate_queries_are_executed_once(settings) -> None:
    pipeline = SearchPipeline(
        [
            _FixedStrategy("first", "same text"),
            _FixedStrategy("second", "same text", priority=1),
            _FixedStrategy("third", "other text", priority=2),
        ]
    )
    execute = _RecordingExecutor()
    context = _context(settings)
    result = pipeline.run(context, execute)
    assert execute.calls == ["same text", "other text"]
    assert result.executed_queries == ["same text", "other text"]
    assert context.processed_searches == {"same text", "other text"}


def test_previously_processed_queries_are_skipped(settings) -> None:
    pipeline = SearchPipeline([_FixedStrategy("only", "seen before")])
    execute = _RecordingExecutor()
    result = pipeline.run(_context(settings, processed_searches={"seen before"}), execute)
    assert execute.calls == []
    assert result.executed_queries == []


def test_strategy_and_backend_failures_do_not_abort(settings) -> None:
    pipeline = SearchPipeline(
        [
            _FixedStrategy("broken", None, error=ValueError("bad template")),
            _FixedStrategy("backend", "fails", priority=1),
            _FixedStrategy("empty", "   ", priority=2),
            _FixedStrategy("good", "works", tier=SearchTier.FALLBACK),
        ]
    )
    execute = _RecordingExecutor({"works": ["found"]}, fail_on={"fails"})
    result = pipeline.run(_context(settings), execute)
    assert execute.calls == ["fails", "works"]
    assert result.executed_queries == ["fails", "works"]
    assert result.candidates == ["found"]


def test_strategies_sorted_by_tier_and_priority(settings) -> None:
    pipeline = SearchPipeline(
        [
            _FixedStrategy("fallback", "c", tier=SearchTier.FALLBACK),
            _FixedStrategy("special", "a", tier=SearchTier.SPECIAL, priority=5),
            _FixedStrategy("variation", "b", tier=SearchTier.VARIATION),
        ]
    )
    assert [strategy.name for strategy in pipeline.strategies] == ["special", "variation", "fallback"]


def test_cancellation_between_queries(settings) -> None:
    stop_event = threading.Event()
    pipeline = SearchPipeline([_FixedStrategy("first", "one"), _FixedStrategy("second", "two", priority=1)])
    execute = _RecordingExecutor(on_call=lambda query: stop_event.set())
    result = pipeline.run(_context(settings), execute, stop_event)
    assert execute.calls == ["one"]
    assert result.cancelled
    assert not result.stopped_early


def test_already_cancelled_runs_nothing(settings) -> None:
    stop_event = threading.Event()
    stop_event.set()
    execute = _RecordingExecutor()
    result = SearchPipeline().run(_context(settings), execute, stop_event)
    assert execute.calls == []
    assert result.cancelled


def test_units_are_lazy(settings) -> None:
    pipeline = SearchPipeline([_FixedStrategy("first", "one"), _FixedStrategy("second", "two", priority=1)])
    execute = _RecordingExecutor({"one": ["x"]})
    context = pipeline.prepare(_context(settings))
    units = pipeline.iter_units(context, execute)
    strategy, thunk = next(units)
    assert strategy.name == "first"
    assert execute.calls == []
    assert thunk() == ("one", ["x"])
    assert execute.calls == ["one"]


def test_disabled_strategies_are_not_yielded(settings) -> None:
    pipeline = SearchPipeline()
    context = pipeline.prepare(_context(settings))
    names = [strategy.name for strategy, _ in pipeline.iter_units(context, _RecordingExecutor())]
    assert names == ["Base Search"]


def test_last_unit_reaching_minimum_counts_as_early_stop(settings_factory) -> None:
    pipeline = SearchPipeline([_FixedStrategy("only", "one")])
    execute = _RecordingExecutor({"one": ["c"] * 6})
    result = pipeline.run(_context(settings_factory(minimum_results=5)), execute)
    assert execute.calls == ["one"]
    assert result.stopped_early


def test_last_unit_below_minimum_is_not_an_early_stop(settings_factory) -> None:
    pipeline = SearchPipeline([_FixedStrategy("only", "one")])
    result = pipeline.run(_context(settings_factory(minimum_results=5)), _RecordingExecutor({"one": ["c"] * 4}))
    assert not result.stopped_early

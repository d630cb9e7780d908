import logging
from dataclasses import dataclass, field

from engine.json_utils import safe_json_dumps
from engine.query_analysis import analyze_query, normalize_context
from engine.search_strategies import default_strategies
from engine.search_types import SearchQuery

logger = logging.getLogger(__name__)


def _log_event(level, message, **fields):
    payload = {"message": message, **fields}
    try:
        logger.log(level, safe_json_dumps(payload, sort_keys=True))
    except Exception as exc:
        logger.log(level, f"log_event_serialization_failed: {exc} message={message}")


@dataclass
class PipelineResult:
    candidates: list = field(default_factory=list)
    executed_queries: list = field(default_factory=list)
    stopped_early: bool = False
    cancelled: bool = False


def has_enough_results(count, minimum_results):
    if minimum_results <= 0:
        return count > 0
    return count >= minimum_results


class SearchPipeline:
    """Runs the ordered strategies for one request until enough candidates exist.

    ``execute`` receives a :class:`SearchQuery` and the stop event and
    returns a list of candidates (or None for nothing).
    """

    def __init__(self, strategies=None):
        self.strategies = sorted(
            default_strategies() if strategies is None else list(strategies),
            key=lambda strategy: strategy.sort_key,
        )
        logger.debug("Search pipeline loaded %d strategies", len(self.strategies))

    def prepare(self, context):
        query_type = analyze_query(context)
        prepared = normalize_context(context, query_type)
        _log_event(
            logging.DEBUG,
            "search_context_prepared",
            artist=prepared.artist,
            album=prepared.album,
            query_type=str(query_type),
            normalized_artist=prepared.normalized_artist,
            normalized_album=prepared.normalized_album,
        )
        return prepared

    def iter_units(self, context, execute, stop_event=None):
        """Yield ``(strategy, thunk)`` pairs; nothing runs until a thunk is called."""
        query_type = context.query_type
        for strategy in self.strategies:
            if not strategy.is_enabled(context.settings):
                continue
            if not strategy.can_execute(context, query_type):
                continue

            def _thunk(strategy=strategy):
                return self._execute_strategy(strategy, context, execute, stop_event)

            yield strategy, _thunk

    def _execute_strategy(self, strategy, context, execute, stop_event):
        try:
            text = strategy.get_query(context, context.query_type)
        except Exception:
            logger.exception("Strategy %s failed to build a query", strategy.name)
            return None, []
        if not text or not text.strip():
            logger.debug("[%s] produced no query", strategy.name)
            return None, []
        if text in context.processed_searches:
            logger.debug("[%s] skipping duplicate query '%s'", strategy.name, text)
            return None, []

        context.processed_searches.add(text)
        _log_event(
            logging.INFO,
            "search_query_issued",
            strategy=strategy.name,
            tier=strategy.tier.name,
            query=text,
        )
        try:
            results = execute(SearchQuery.from_context(context, text), stop_event)
        except Exception:
            logger.exception("[%s] search failed for '%s'", strategy.name, text)
            return text, []
        return text, list(results or [])

    def run(self, context, execute, stop_event=None):
        context = self.prepare(context)
        minimum = context.settings.minimum_results
        result = PipelineResult()
        current_tier = None
        for strategy, thunk in self.iter_units(context, execute, stop_event):
            if stop_event and stop_event.is_set():
                result.cancelled = True
                break
            if has_enough_results(len(result.candidates), minimum):
                result.stopped_early = True
                break
            if strategy.tier != current_tier:
                current_tier = strategy.tier
                _log_event(
                    logging.INFO,
                    "search_tier_started",
                    tier=current_tier.name,
                    candidates=len(result.candidates),
                )
            query, candidates = thunk()
            if query:
                result.executed_queries.append(query)
            result.candidates.extend(candidates)
        if not result.cancelled and stop_event and stop_event.is_set():
            result.cancelled = True
        if not result.cancelled and has_enough_results(len(result.candidates), minimum):
            result.stopped_early = True
        _log_event(
            logging.INFO,
            "search_pipeline_finished",
            queries=len(result.executed_queries),
            candidates=len(result.candidates),
            stopped_early=result.stopped_early,
            cancelled=result.cancelled,
        )
        return result

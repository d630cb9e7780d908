import logging
from dataclasses import dataclass, field

from config.settings import load_ignore_list, validate_settings
from engine.result_reconciler import ResultReconciler
from engine.search_executor import RemoteSearchExecutor
from engine.search_pipeline import SearchPipeline
from engine.search_templates import validate_templates
from engine.search_types import SearchContext

logger = logging.getLogger(__name__)


@dataclass
class AlbumSearchRequest:
    artist: str | None
    album: str | None
    year: str | None = None
    track_count: int = 0
    primary_type: str | None = None
    aliases: list = field(default_factory=list)
    tracks: list = field(default_factory=list)
    interactive: bool = False


@dataclass
class AlbumSearchResult:
    candidates: list
    executed_queries: list
    stopped_early: bool = False
    cancelled: bool = False

    def to_dict(self):
        return {
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "executed_queries": list(self.executed_queries),
            "stopped_early": self.stopped_early,
            "cancelled": self.cancelled,
        }


class AlbumSearchService:
    """Runs one album search end to end against a search backend."""

    def __init__(self, backend, settings, *, pipeline=None, executor=None):
        self.backend = backend
        self.settings = settings
        self.pipeline = pipeline or SearchPipeline()
        self.executor = executor or RemoteSearchExecutor(backend, settings)

    def validate(self):
        errors = validate_settings(self.settings)
        errors.extend(validate_templates(self.settings.search_templates, SearchContext))
        return errors

    def build_context(self, request):
        return SearchContext(
            artist=(request.artist or "").strip() or None,
            album=(request.album or "").strip() or None,
            year=str(request.year).strip() if request.year not in (None, "") else None,
            interactive=bool(request.interactive),
            track_count=max(0, int(request.track_count or 0)),
            primary_type=request.primary_type,
            aliases=tuple(alias for alias in request.aliases or () if alias),
            tracks=tuple(track for track in request.tracks or () if track),
            settings=self.settings,
            processed_searches=set(),
        )

    def _reconciler(self):
        ignored = load_ignore_list(self.settings.ignore_list_path)
        return ResultReconciler(self.settings, ignored_users=ignored)

    def search_album(self, request, stop_event=None):
        context = self.build_context(request)
        reconciler = self._reconciler()
        # One entry per (username, directory); the pipeline only sees new folders.
        best = {}

        def _execute(query, event):
            outcome = self.executor.run(query.search_text, interactive=query.interactive, stop_event=event)
            if outcome is None:
                return []
            fresh = []
            for candidate in reconciler.reconcile(
                outcome.responses,
                query,
                search_id=outcome.search_id,
                info_url=outcome.info_url,
            ):
                key = (candidate.username, candidate.directory)
                current = best.get(key)
                if current is None:
                    fresh.append(candidate)
                if current is None or candidate.score > current.score:
                    best[key] = candidate
            return fresh

        result = self.pipeline.run(context, _execute, stop_event=stop_event)
        ranked = sorted(best.values(), key=lambda item: (item.score, item.size), reverse=True)
        logger.info(
            "Album search '%s' / '%s' finished: %d candidates from %d queries",
            context.artist,
            context.album,
            len(ranked),
            len(result.executed_queries),
        )
        return AlbumSearchResult(
            candidates=ranked,
            executed_queries=result.executed_queries,
            stopped_early=result.stopped_early,
            cancelled=result.cancelled,
        )

from .runtime import get_runtime_info
from .search_executor import RemoteSearchExecutor, SearchOutcome, quadratic_delay
from .search_pipeline import PipelineResult, SearchPipeline
from .search_scoring import calculate_priority
from .search_service import AlbumSearchRequest, AlbumSearchResult, AlbumSearchService
from .search_types import (
    CandidateFolder,
    QueryType,
    ReleaseCandidate,
    RemoteFile,
    SearchContext,
    SearchQuery,
    SearchTier,
)

__all__ = [
    "AlbumSearchRequest",
    "AlbumSearchResult",
    "AlbumSearchService",
    "CandidateFolder",
    "PipelineResult",
    "QueryType",
    "ReleaseCandidate",
    "RemoteFile",
    "RemoteSearchExecutor",
    "SearchContext",
    "SearchOutcome",
    "SearchPipeline",
    "SearchQuery",
    "SearchTier",
    "calculate_priority",
    "get_runtime_info",
    "quadratic_delay",
]

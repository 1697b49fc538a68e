"""
Analysis Storage

Keeps completed brand analyses so they can be listed and reopened.

Records live in memory; when a storage path is configured each record
is also written as one JSON file and reloaded on startup.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models import AnalysisResult, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SavedAnalysis:
    """A stored analysis and its listing metadata."""
    analysis_id: str
    company_name: str
    url: str
    created_at: datetime
    analysis: Dict[str, Any]
    industry: Optional[str] = None
    visibility_score: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        """Listing view without the full analysis payload."""
        return {
            "id": self.analysis_id,
            "companyName": self.company_name,
            "url": self.url,
            "industry": self.industry,
            "visibilityScore": self.visibility_score,
            "createdAt": self.created_at.isoformat(),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data["analysis"] = self.analysis
        data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedAnalysis":
        return cls(
            analysis_id=data["id"],
            company_name=data.get("companyName", ""),
            url=data.get("url", ""),
            created_at=datetime.fromisoformat(data["createdAt"]),
            analysis=data.get("analysis") or {},
            industry=data.get("industry"),
            visibility_score=data.get("visibilityScore"),
            metadata=data.get("metadata") or {},
        )


class AnalysisStore:
    """
    Stores completed analyses.

    Usage:
        store = AnalysisStore(storage_path="/var/lib/brandmonitor/analyses")
        saved = store.save_result(result)
        store.list_analyses()
    """

    def __init__(self, storage_path: Optional[str] = None):
        """
        Initialize the store.

        Args:
            storage_path: Directory for JSON records. In-memory only when None.
        """
        self.storage_path = Path(storage_path) if storage_path else None
        self._analyses: Dict[str, SavedAnalysis] = {}

        if self.storage_path is not None:
            self.storage_path.mkdir(parents=True, exist_ok=True)
            self._load()

    def _get_path(self, analysis_id: str) -> Path:
        return self.storage_path / f"{analysis_id}.json"

    def _load(self):
        """Load stored analyses from disk."""
        for file_path in self.storage_path.glob("*.json"):
            try:
                with open(file_path, "r") as f:
                    saved = SavedAnalysis.from_dict(json.load(f))
                self._analyses[saved.analysis_id] = saved
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Failed to load analysis from {file_path}: {e}")

        logger.info(f"Loaded {len(self._analyses)} stored analyses")

    def _persist(self, saved: SavedAnalysis):
        if self.storage_path is None:
            return
        path = self._get_path(saved.analysis_id)
        try:
            with open(path, "w") as f:
                json.dump(saved.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save analysis {saved.analysis_id}: {e}")

    def save(
        self,
        company_name: str,
        url: str,
        analysis: Dict[str, Any],
        industry: Optional[str] = None,
        visibility_score: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SavedAnalysis:
        """
        Store an analysis payload.

        Returns:
            The stored record with its new id
        """
        saved = SavedAnalysis(
            analysis_id=f"analysis_{uuid.uuid4().hex[:16]}",
            company_name=company_name,
            url=url,
            created_at=utcnow(),
            analysis=analysis,
            industry=industry,
            visibility_score=visibility_score,
            metadata=metadata or {},
        )
        self._analyses[saved.analysis_id] = saved
        self._persist(saved)

        logger.info(f"Saved analysis {saved.analysis_id} for {company_name}")
        return saved

    def save_result(self, result: AnalysisResult) -> SavedAnalysis:
        """Store a completed pipeline result."""
        return self.save(
            company_name=result.company.name,
            url=result.company.url,
            analysis=result.to_dict(),
            industry=result.company.industry,
            visibility_score=result.visibility_score,
        )

    def get(self, analysis_id: str) -> Optional[SavedAnalysis]:
        return self._analyses.get(analysis_id)

    def list_analyses(self, limit: int = 100) -> List[SavedAnalysis]:
        """Stored analyses, newest first."""
        analyses = sorted(
            self._analyses.values(),
            key=lambda a: a.created_at,
            reverse=True,
        )
        return analyses[:limit]

    def delete(self, analysis_id: str) -> bool:
        """
        Delete an analysis.

        Returns:
            True if it existed
        """
        saved = self._analyses.pop(analysis_id, None)
        if saved is None:
            return False

        if self.storage_path is not None:
            path = self._get_path(analysis_id)
            if path.exists():
                path.unlink()

        logger.info(f"Deleted analysis {analysis_id}")
        return True

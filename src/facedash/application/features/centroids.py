from __future__ import annotations

from typing import Any, Callable, Sequence

from facedash.application.features.base import JobFlow
from facedash.application.features.interfaces import CentroidStarter
from facedash.application.jobs.registry import JobRegistry
from facedash.domain.jobs.entities import JobProgress
from facedash.domain.jobs.value_objects import JobHandle


class CentroidComputationFlow(JobFlow):
    """
    Compute match centroids for a person and collect the faces they match.
    The completed result carries ``suggestions``: dicts with at least
    ``faceInstanceId`` and ``score``.
    """

    def __init__(
        self,
        registry: JobRegistry,
        api: CentroidStarter,
        *,
        person_id: str,
        person_name: str,
        min_similarity: float = 0.65,
        max_results: int = 200,
        on_changed: Sequence[Callable[[JobFlow], None]] = (),
    ) -> None:
        super().__init__(registry, on_changed=on_changed)
        self._api = api
        self.person_id = person_id
        self.person_name = person_name
        self.min_similarity = min_similarity
        self.max_results = max_results
        self.suggestions: list[dict[str, Any]] = []

    async def _start_job(self) -> JobHandle:
        return await self._api.start_centroid_computation(
            self.person_id,
            person_name=self.person_name,
            min_similarity=self.min_similarity,
            max_results=self.max_results,
        )

    def _on_completed(self, job: JobProgress) -> None:
        raw = (job.result or {}).get("suggestions") or []
        items = [s for s in raw if isinstance(s, dict)]
        # highest score first, as the results dialog lists them
        self.suggestions = sorted(items, key=lambda s: float(s.get("score") or 0.0), reverse=True)

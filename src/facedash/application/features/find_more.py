from __future__ import annotations

from typing import Callable, Sequence

from facedash.application.features.base import JobFlow
from facedash.application.features.interfaces import FindMoreStarter
from facedash.application.jobs.registry import JobRegistry
from facedash.domain.jobs.value_objects import JobHandle


class FindMoreSuggestionsFlow(JobFlow):
    """Find more faces of a person, using its labelled faces as prototypes."""

    def __init__(
        self,
        registry: JobRegistry,
        api: FindMoreStarter,
        *,
        person_id: str,
        person_name: str,
        prototype_count: int = 50,
        max_suggestions: int = 100,
        min_confidence: float = 0.7,
        on_changed: Sequence[Callable[[JobFlow], None]] = (),
    ) -> None:
        super().__init__(registry, on_changed=on_changed)
        self._api = api
        self.person_id = person_id
        self.person_name = person_name
        self.prototype_count = prototype_count
        self.max_suggestions = max_suggestions
        self.min_confidence = min_confidence

    async def _start_job(self) -> JobHandle:
        return await self._api.start_find_more(
            self.person_id,
            person_name=self.person_name,
            prototype_count=self.prototype_count,
            max_suggestions=self.max_suggestions,
            min_confidence=self.min_confidence,
        )

    @property
    def suggestions_created(self) -> int:
        return int((self.result or {}).get("suggestionsCreated") or 0)

    @property
    def duplicates_skipped(self) -> int:
        return int((self.result or {}).get("duplicatesSkipped") or 0)

from __future__ import annotations

from typing import Optional, Protocol

from facedash.domain.jobs.value_objects import JobHandle


class FindMoreStarter(Protocol):
    async def start_find_more(
        self,
        person_id: str,
        *,
        person_name: str = "",
        prototype_count: int = 50,
        max_suggestions: int = 100,
        min_confidence: float = 0.7,
    ) -> JobHandle: ...


class CentroidStarter(Protocol):
    async def start_centroid_computation(
        self,
        person_id: str,
        *,
        person_name: str = "",
        min_similarity: float = 0.65,
        max_results: int = 200,
    ) -> JobHandle: ...


class FaceDetectionStarter(Protocol):
    async def start_face_detection(
        self,
        *,
        training_session_id: Optional[int] = None,
        min_confidence: float = 0.5,
        min_face_size: int = 20,
        batch_size: int = 16,
    ) -> JobHandle: ...

from __future__ import annotations

from typing import Callable, Optional, Sequence

from facedash.application.features.base import JobFlow
from facedash.application.features.interfaces import FaceDetectionStarter
from facedash.application.jobs.registry import JobRegistry
from facedash.domain.jobs.value_objects import JobHandle


class FaceDetectionFlow(JobFlow):
    def __init__(
        self,
        registry: JobRegistry,
        api: FaceDetectionStarter,
        *,
        training_session_id: Optional[int] = None,
        min_confidence: float = 0.5,
        min_face_size: int = 20,
        batch_size: int = 16,
        on_changed: Sequence[Callable[[JobFlow], None]] = (),
    ) -> None:
        super().__init__(registry, on_changed=on_changed)
        self._api = api
        self.training_session_id = training_session_id
        self.min_confidence = min_confidence
        self.min_face_size = min_face_size
        self.batch_size = batch_size

    async def _start_job(self) -> JobHandle:
        return await self._api.start_face_detection(
            training_session_id=self.training_session_id,
            min_confidence=self.min_confidence,
            min_face_size=self.min_face_size,
            batch_size=self.batch_size,
        )

    @property
    def session_id(self) -> Optional[str]:
        return self.handle.context_id if self.handle is not None else None

    @property
    def faces_detected(self) -> int:
        return int((self.result or {}).get("facesDetected") or 0)

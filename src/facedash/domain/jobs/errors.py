class InvalidJobRequest(ValueError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class FailedToStartJob(Exception):
    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason)

from abc import ABC, abstractmethod


class LogSink(ABC):
    """
    Append-only destination for frame messages and page-visit records.

    Lifecycle: `start()` once, any number of `send()` calls, then `close()`,
    which must flush everything already sent.
    """

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def send(self, record: dict) -> None:
        """Queue one JSON-serializable record for writing."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

from .base import LogSink
from .jsonl import JsonlLogSink
from .records import PageVisit, page_visit_record

__all__ = ["JsonlLogSink", "LogSink", "PageVisit", "page_visit_record"]

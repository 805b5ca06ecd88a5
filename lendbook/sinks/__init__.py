"""Output sinks for lending events and record exports."""

from lendbook.sinks.console import ConsoleSink
from lendbook.sinks.json_file import JsonFileSink
from lendbook.sinks.kafka import KafkaSink

__all__ = ["ConsoleSink", "JsonFileSink", "KafkaSink"]

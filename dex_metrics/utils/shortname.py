import logging


class ShortNameFilter(logging.Filter):
    """Adds ``record.shortname``: the logger name without the package prefix (``pipeline.handlers.totals``)."""

    def __init__(self, prefix: str = "dex_metrics."):
        super().__init__()
        self.prefix = prefix

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(self.prefix):
            name = name[len(self.prefix):]
        record.shortname = name
        return True

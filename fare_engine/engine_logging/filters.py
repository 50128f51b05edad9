import logging


class DefaultCorrelationFilter(logging.Filter):
    """Guarantees every record has a correlation_id.

    Records tagged with a trip but no explicit correlation id are correlated
    by trip; anything else gets "-" so format strings never fail.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = getattr(record, "trip_id", None) or "-"
        return True

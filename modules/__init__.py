"""Job processing modules for the print worker."""

__all__ = [
    "format_normalizer",
    "job_processor",
    "media_mapper",
    "protocol_encoder",
]

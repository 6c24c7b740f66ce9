"""
Utility package exports
"""

from app.utils.helpers import normalize_name, name_type_key, format_excluded_competencies, format_entity_context, encode_ndjson, decode_ndjson_line

__all__ = ["normalize_name", "name_type_key", "format_excluded_competencies", "format_entity_context", "encode_ndjson", "decode_ndjson_line"]

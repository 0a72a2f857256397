"""
JSON schemas for configuration validation.
"""

BINDER_SCHEMA = {
    "type": "object",
    "properties": {
        "package": {"type": ["string", "null"]},
        "strip_interface_prefix": {"type": "boolean"},
        "strip_async_suffix": {"type": "boolean"},
        "pascal_case": {"type": "boolean"},
        "marshaller": {"type": "string", "enum": ["json", "stable_json"]},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
    },
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "binder": BINDER_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
}

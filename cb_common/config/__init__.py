"""Configuration helpers shared across cloudbench packages."""

from cb_common.config.env import parse_bool_env, parse_int_env, parse_tags_env

__all__ = ["parse_bool_env", "parse_int_env", "parse_tags_env"]

"""Utility helpers."""

from postwhale.utils.helpers import (
    ensure_dir,
    get_data_path,
    safe_dict,
    safe_filename,
    safe_list,
    safe_parse_json,
)

__all__ = ["ensure_dir", "get_data_path", "safe_dict", "safe_filename", "safe_list", "safe_parse_json"]

from .config import Settings, load_settings
from .errors import (
    BuildError,
    CommandError,
    DeployError,
    InternalError,
    PreconditionFailed,
    ProbeError,
    SequencerError,
    StageError,
    error_kind,
    stage_error_from_exc,
)
from .fs import (
    atomic_dir_swap,
    atomic_write_text,
    copy_tree_writable,
    ensure_parent,
    make_tmp_dir_for,
    remove_tree,
    replace_dir_contents,
    safe_unlink,
)
from .hashing import sha256_file, sha256_tree
from .json import atomic_write_json, read_json
from .logging import ILogger, bind, configure_logging, get_logger, register_secret
from .paths import WorkLayout
from .process import CommandResult, run_command
from .provenance import RunProvenance, Timer, new_run_id
from .time import format_duration_ms, monotonic_ms, utc_now_iso

__all__ = [
    "Settings",
    "load_settings",
    "SequencerError",
    "PreconditionFailed",
    "BuildError",
    "ProbeError",
    "DeployError",
    "InternalError",
    "CommandError",
    "StageError",
    "error_kind",
    "stage_error_from_exc",
    "atomic_dir_swap",
    "atomic_write_text",
    "copy_tree_writable",
    "ensure_parent",
    "make_tmp_dir_for",
    "remove_tree",
    "replace_dir_contents",
    "safe_unlink",
    "sha256_file",
    "sha256_tree",
    "atomic_write_json",
    "read_json",
    "ILogger",
    "bind",
    "configure_logging",
    "get_logger",
    "register_secret",
    "WorkLayout",
    "CommandResult",
    "run_command",
    "RunProvenance",
    "Timer",
    "new_run_id",
    "format_duration_ms",
    "monotonic_ms",
    "utc_now_iso",
]

import logging
import os
import sys
from pathlib import Path

from src.rules.models import Rules

logger = logging.getLogger(__name__)


def validate_ops_rules(rules: Rules, data_dir: Path) -> None:
    """
    Validate operational requirements before startup.

    Exits the process when the data directory cannot be created or written
    to, or when a required environment variable is missing.
    """
    ops = rules.ops

    # 1. Data dir must exist and be writable
    if ops.data_dir_required:
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            print(f"CRITICAL: Cannot create data dir {data_dir}: {e}", file=sys.stderr)
            sys.exit(1)
        if not os.access(data_dir, os.W_OK):
            print(f"CRITICAL: Data dir {data_dir} is not writable", file=sys.stderr)
            sys.exit(1)

    # 2. Required env
    missing = [env_var for env_var in ops.required_env if env_var not in os.environ]
    if missing:
        print(
            f"CRITICAL: Missing required environment variables: {', '.join(missing)}",
            file=sys.stderr,
        )
        sys.exit(1)

    logger.info("Configuration validated (data dir %s)", data_dir)

"""
Initializes the Dynaconf settings object for the dumpfiles component.
This module is the single source of truth for all configuration.
"""

from pathlib import Path
from dynaconf import Dynaconf, Validator

PROJECT_ROOT = Path(__file__).parent.parent

settings = Dynaconf(
    root_path=PROJECT_ROOT,
    settings_files=["config/settings.toml"],
    secrets=["config/.secrets.toml"],
    envvar_prefix="DUMPFILES",
    validators=[
        Validator("dumpfiles.project_name", default="wikidatawiki"),
        Validator("dumpfiles.base_url", default="https://dumps.wikimedia.org"),
        Validator("dumpfiles.local_dump_dir", default="dumps"),
        Validator("dumpfiles.offline", default=False, is_type_of=bool),
        Validator("dumpfiles.user_agent", default="YOUR_USER_AGENT"),
        Validator("dumpfiles.timeout", default=60),
        Validator("dumpfiles.chunk_size", default=1048576, gte=1),
        Validator("dumpfiles.skip_corrupt_records", default=False),
        Validator("dumpfiles.isolate_consumer_failures", default=True),
        Validator("dumpfiles.show_progress", default=True),
        Validator("dumpfiles.max_reported_errors", default=1000, gte=0),
        Validator("dumpfiles.retry.attempts", default=3, gte=1),
        Validator("dumpfiles.retry.min_wait", default=1),
        Validator("dumpfiles.retry.max_wait", default=10),
        Validator("logging.level", default="INFO"),
    ],
)

import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip() in {"1", "true", "True", "yes", "YES", "y"}


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _get_env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


@dataclass
class Config:
    data_path: Path
    timezone_name: Optional[str]
    log_level: str
    recurring_task_hour: int
    exact_alarms_permitted: bool
    alarm_workers: int
    alert_audio_enabled: bool
    alert_sample_rate: int
    alert_output_device_index: Optional[int]
    alert_stop_timeout_s: float


def load_config(env_path: Optional[Path] = None) -> Config:
    if env_path is None:
        env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    data_path = Path(os.getenv("ROUTINE_DATA_PATH", "data/routine_os.json"))
    timezone_name = os.getenv("TIMEZONE") or None
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    recurring_task_hour = _get_env_int("RECURRING_TASK_HOUR", 8)
    if not 0 <= recurring_task_hour <= 23:
        raise ValueError("Environment variable RECURRING_TASK_HOUR must be between 0 and 23")
    exact_alarms_permitted = _get_env_bool("ALARM_EXACT_PERMITTED", True)
    alarm_workers = max(1, _get_env_int("ALARM_WORKERS", 2))
    alert_audio_enabled = _get_env_bool("ALERT_AUDIO_ENABLED", True)
    alert_sample_rate = _get_env_int("ALERT_SAMPLE_RATE", 44100)
    output_device_env = os.getenv("ALERT_OUTPUT_DEVICE_INDEX")
    alert_output_device_index = int(output_device_env) if output_device_env else None
    alert_stop_timeout_s = _get_env_float("ALERT_STOP_TIMEOUT_MS", 500.0) / 1000.0

    return Config(
        data_path=data_path,
        timezone_name=timezone_name,
        log_level=log_level,
        recurring_task_hour=recurring_task_hour,
        exact_alarms_permitted=exact_alarms_permitted,
        alarm_workers=alarm_workers,
        alert_audio_enabled=alert_audio_enabled,
        alert_sample_rate=alert_sample_rate,
        alert_output_device_index=alert_output_device_index,
        alert_stop_timeout_s=alert_stop_timeout_s,
    )


def setup_logging(log_level: str = "INFO") -> None:
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    log_path = logs_dir / "alarms.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[file_handler, console_handler],
    )

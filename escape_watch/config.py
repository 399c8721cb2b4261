from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from dotenv import load_dotenv

from .exceptions import ConfigError
from .models import Resource

DEFAULT_CALENDAR_SELECTORS = (
    ".dateCell",
    ".date-cell",
    "[data-day]",
    ".time-selection",
    ".calendar",
)


def _to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"", "0", "false", "no", "off"}


def _to_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _to_list(value: str | None, default: Tuple[str, ...] = ()) -> Tuple[str, ...]:
    if value is None:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


@dataclass(slots=True)
class ScanSettings:
    days_ahead: int = 14
    max_concurrent_rooms: int = 1
    stagger_start_ms: int = 1500
    min_delay_between_rooms_ms: int = 2500
    random_extra_delay_ms: int = 1500
    day_check_base_ms: int = 1000
    day_check_jitter_ms: int = 900
    day_check_min_ms: int = 100
    time_list_wait_ms: int = 2500
    calendar_wait_timeout_ms: int = 2500
    global_min_request_interval_ms: int = 1500
    navigation_timeout_ms: int = 30000
    navigation_attempts: int = 3
    navigation_retry_delay_ms: int = 2000
    click_attempts: int = 2
    click_retry_delay_ms: int = 300
    scan_attempts: int = 2
    scan_retry_delay_ms: int = 1000
    retry_jitter_ms: int = 500
    settle_pause_ms: int = 200
    settle_jitter_ms: int = 500
    click_pause_ms: int = 50
    click_jitter_ms: int = 300
    calendar_selectors: Tuple[str, ...] = DEFAULT_CALENDAR_SELECTORS
    time_list_selector: str = ".time-selection"

    @classmethod
    def from_env(cls) -> "ScanSettings":
        defaults = cls()
        return cls(
            days_ahead=max(_to_int(os.getenv("DAYS_AHEAD"), defaults.days_ahead), 0),
            max_concurrent_rooms=max(
                _to_int(os.getenv("MAX_CONCURRENT_REQUESTS"), defaults.max_concurrent_rooms), 1
            ),
            stagger_start_ms=_to_int(os.getenv("STAGGER_MS"), defaults.stagger_start_ms),
            min_delay_between_rooms_ms=_to_int(
                os.getenv("MIN_DELAY_BETWEEN_ROOMS_MS"), defaults.min_delay_between_rooms_ms
            ),
            random_extra_delay_ms=_to_int(
                os.getenv("RANDOM_EXTRA_DELAY_MS"), defaults.random_extra_delay_ms
            ),
            day_check_base_ms=_to_int(os.getenv("DAY_CHECK_BASE_MS"), defaults.day_check_base_ms),
            day_check_jitter_ms=_to_int(
                os.getenv("DAY_CHECK_JITTER_MS"), defaults.day_check_jitter_ms
            ),
            time_list_wait_ms=_to_int(os.getenv("TIME_LIST_WAIT_MS"), defaults.time_list_wait_ms),
            calendar_wait_timeout_ms=_to_int(
                os.getenv("CALENDAR_WAIT_TIMEOUT_MS"), defaults.calendar_wait_timeout_ms
            ),
            global_min_request_interval_ms=_to_int(
                os.getenv("GLOBAL_MIN_REQUEST_INTERVAL_MS"),
                defaults.global_min_request_interval_ms,
            ),
            navigation_timeout_ms=_to_int(
                os.getenv("NAVIGATION_TIMEOUT_MS"), defaults.navigation_timeout_ms
            ),
            calendar_selectors=_to_list(os.getenv("SEL_CALENDAR"), defaults.calendar_selectors),
            time_list_selector=os.getenv("SEL_TIME_LIST") or defaults.time_list_selector,
        )


@dataclass(slots=True)
class AppConfig:
    rooms_file: Path
    scan: ScanSettings
    headless: bool
    enable_email: bool
    smtp_host: str | None
    smtp_port: int
    smtp_user: str | None
    smtp_pass: str | None
    mail_subject: str
    mail_from_name: str | None
    mail_from_addr: str | None
    mail_to_addrs: List[str]
    enable_tg: bool
    tg_bot_token: str | None
    tg_chat_ids: List[str]
    enable_desktop: bool
    log_level: str = "INFO"

    @classmethod
    def load(cls) -> "AppConfig":
        load_dotenv()

        mail_to = os.getenv("MAIL_TO_ADDRS", "")
        mail_list = [addr.strip() for addr in mail_to.split(",") if addr.strip()]
        chat_ids = [chat.strip() for chat in os.getenv("ONLY_CHAT_ID", "").split(",") if chat.strip()]
        tg_token = os.getenv("TELEGRAM_TOKEN")

        return cls(
            rooms_file=Path(os.getenv("ROOMS_FILE", "./roomsToWatch.json")).expanduser(),
            scan=ScanSettings.from_env(),
            headless=_to_bool(os.getenv("HEADLESS"), True),
            enable_email=_to_bool(os.getenv("ENABLE_EMAIL"), False),
            smtp_host=os.getenv("SMTP_HOST"),
            smtp_port=_to_int(os.getenv("SMTP_PORT"), 587),
            smtp_user=os.getenv("SMTP_USER"),
            smtp_pass=os.getenv("SMTP_PASS"),
            mail_subject=os.getenv("MAIL_SUBJECT", "Escape room availability"),
            mail_from_name=os.getenv("MAIL_FROM_NAME"),
            mail_from_addr=os.getenv("MAIL_FROM_ADDR"),
            mail_to_addrs=mail_list,
            # Telegram stays on by default when credentials are present.
            enable_tg=_to_bool(os.getenv("ENABLE_TG"), bool(tg_token and chat_ids)),
            tg_bot_token=tg_token,
            tg_chat_ids=chat_ids,
            enable_desktop=_to_bool(os.getenv("ENABLE_DESKTOP"), False),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def load_resources(path: Path) -> List[Resource]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read resource file {path}: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Resource file {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, list):
        raise ConfigError(f"Resource file {path} must contain a JSON list")

    resources: List[Resource] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ConfigError(f"Entry {index} in {path} is not an object")
        name = str(entry.get("name") or "").strip()
        url = str(entry.get("url") or "").strip()
        if not name or not url:
            raise ConfigError(f"Entry {index} in {path} needs both 'name' and 'url'")
        resources.append(Resource(name=name, url=url))
    return resources

from __future__ import annotations

import asyncio
import html
import json
import logging
import platform
import re
import smtplib
import ssl
import subprocess
from email.message import EmailMessage
from typing import List
from urllib import error as urlerror
from urllib import parse as urlparse
from urllib import request as urlrequest

from .config import AppConfig

_TAG_RE = re.compile(r"<[^>]+>")


def strip_markup(message: str) -> str:
    return html.unescape(_TAG_RE.sub("", message))


class BaseNotifier:
    name = "base"

    async def send(self, message: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError


class EmailNotifier(BaseNotifier):
    name = "email"

    def __init__(self, config: AppConfig) -> None:
        self._host = config.smtp_host
        self._port = config.smtp_port
        self._user = config.smtp_user
        self._password = config.smtp_pass
        self._subject = config.mail_subject
        self._from_name = config.mail_from_name or "Escape Watch"
        self._from_addr = config.mail_from_addr or (config.smtp_user or "")
        self._recipients = config.mail_to_addrs

    async def send(self, message: str) -> bool:
        if not self._host or not self._recipients:
            logging.warning("Email notifier not configured properly")
            return False

        await asyncio.to_thread(self._send_sync, message)
        return True

    def _send_sync(self, message: str) -> None:
        email = EmailMessage()
        email["Subject"] = self._subject
        email["From"] = f"{self._from_name} <{self._from_addr}>"
        email["To"] = ", ".join(self._recipients)
        email.set_content(strip_markup(message))
        email.add_alternative(message.replace("\n", "<br>\n"), subtype="html")

        context = ssl.create_default_context()
        with smtplib.SMTP(self._host, self._port, timeout=30) as smtp:
            try:
                smtp.starttls(context=context)
            except smtplib.SMTPException:
                logging.info("SMTP server did not accept STARTTLS; continuing without it")
            if self._user and self._password:
                smtp.login(self._user, self._password)
            smtp.send_message(email)


class TelegramNotifier(BaseNotifier):
    name = "telegram"

    def __init__(self, config: AppConfig) -> None:
        self._bot_token = config.tg_bot_token
        self._chat_ids = list(config.tg_chat_ids)

    async def send(self, message: str) -> bool:
        if not self._bot_token or not self._chat_ids:
            logging.info("(telegram) skipping send: TELEGRAM_TOKEN or ONLY_CHAT_ID missing")
            return False

        delivered = True
        for chat_id in self._chat_ids:
            payload = {
                "chat_id": chat_id,
                "text": message,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            }
            if await asyncio.to_thread(self._post_message, payload):
                logging.info("Sent message to chat ID: %s", chat_id)
            else:
                delivered = False
        return delivered

    def _post_message(self, payload: dict) -> bool:
        url = f"https://api.telegram.org/bot{self._bot_token}/sendMessage"
        data = urlparse.urlencode(payload).encode("utf-8")
        req = urlrequest.Request(url, data=data, method="POST")
        req.add_header("Content-Type", "application/x-www-form-urlencoded")
        try:
            with urlrequest.urlopen(req, timeout=15) as resp:
                resp.read()
        except urlerror.URLError as exc:
            logging.error("Failed to send message to %s: %s", payload["chat_id"], exc)
            return False
        return True


class DesktopNotifier(BaseNotifier):
    name = "desktop"

    async def send(self, message: str) -> bool:
        title = "Escape room availability"
        text = strip_markup(message)
        if platform.system() == "Darwin":
            return await asyncio.to_thread(_notify_macos, title, text)

        try:
            from plyer import notification
        except ImportError:  # pragma: no cover - optional dependency
            logging.warning("plyer not available; desktop notifications disabled")
            return False

        try:
            await asyncio.to_thread(
                notification.notify,
                title=title,
                message=text,
                timeout=10,
            )
        except NotImplementedError:
            logging.error(
                "Desktop notifications not supported on this platform without additional dependencies"
            )
            return False
        return True


def _notify_macos(title: str, message: str) -> bool:
    script = (
        "display notification "
        + json.dumps(message, ensure_ascii=False)
        + " with title "
        + json.dumps(title, ensure_ascii=False)
    )
    try:
        subprocess.run(["osascript", "-e", script], check=True)
    except (FileNotFoundError, subprocess.CalledProcessError) as exc:
        logging.error("Failed to send macOS notification: %s", exc)
        return False
    return True


def build_notifiers(config: AppConfig) -> List[BaseNotifier]:
    notifiers: List[BaseNotifier] = []
    if config.enable_email:
        notifiers.append(EmailNotifier(config))
    if config.enable_tg:
        notifiers.append(TelegramNotifier(config))
    if config.enable_desktop:
        notifiers.append(DesktopNotifier())
    return notifiers

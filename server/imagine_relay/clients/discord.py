# ─────────────────────────────────────────────────────────────────────────────
# Discord Image Client — drives the Midjourney bot through Discord's REST API
# ─────────────────────────────────────────────────────────────────────────────
# Jobs are submitted as interactions (slash command for /imagine, button
# presses for upscale / variation / zoom out) and their results are picked up
# by polling the channel for bot messages newer than the submission.
#
# Built on httpx.AsyncClient; one client instance is shared by every request.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import asyncio
import re
import time
import uuid
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from imagine_relay.clients.base import (
    ClientMessage,
    ClientNotReadyError,
    ClientRequestError,
    ClientTimeoutError,
    ConfigurationError,
    JobOptions,
    LoadingCallback,
)
from imagine_relay.config import Settings

logger = structlog.get_logger(__name__)

MIDJOURNEY_APPLICATION_ID = "936929561302675456"
DISCORD_EPOCH_MS = 1420070400000

# A progress marker in the content means the job is still running.
_PROGRESS_RE = re.compile(r"\((\d{1,3}%|Waiting to start|Paused)\)")

# Outpaint button ids use the inverse zoom factor.
_ZOOM_FACTORS = {"2x": 50, "1.5x": 75}

# Explicit upscale button ids carry the image number.
_UPSAMPLE_RE = re.compile(r"MJ::JOB::upsample::(\d+)::")

MESSAGE_PAGE_SIZE = 50


def snowflake_at(timestamp: float) -> str:
    """Discord snowflake for a unix timestamp (seconds)."""
    return str((int(timestamp * 1000) - DISCORD_EPOCH_MS) << 22)


def uri_to_hash(uri: str) -> str | None:
    """Extract the job hash from a Midjourney attachment URL.

    Attachment filenames look like ``user_prompt_words_<hash>.png``.
    """
    filename = uri.split("?", 1)[0].rsplit("/", 1)[-1]
    if "_" not in filename:
        return None
    return filename.rsplit("_", 1)[-1].split(".", 1)[0] or None


def parse_progress(content: str) -> str | None:
    """Return the progress marker of an unfinished job message, else None."""
    match = _PROGRESS_RE.search(content)
    return match.group(1) if match else None


def to_client_message(raw: dict[str, Any]) -> ClientMessage:
    """Convert a Discord message payload into a ClientMessage."""
    attachments = raw.get("attachments") or []
    uri = attachments[0].get("url") if attachments else None
    content = raw.get("content") or ""
    return ClientMessage(
        id=raw.get("id"),
        flags=raw.get("flags", 0),
        hash=uri_to_hash(uri) if uri else None,
        uri=uri,
        content=content,
        progress=parse_progress(content),
    )


class DiscordImageClient:
    """Midjourney client over the Discord REST API.

    Not thread-safe, but safe for concurrent use from many asyncio tasks:
    per-job state lives on the stack of the calling coroutine, and the only
    shared state is the set of message ids already handed to a job.
    """

    def __init__(
        self,
        *,
        server_id: str,
        channel_id: str,
        salai_token: str,
        api_base: str = "https://discord.com/api/v9",
        poll_interval_seconds: float = 2.5,
        job_timeout_seconds: float = 600.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        missing = [
            name
            for name, value in (
                ("SERVER_ID", server_id),
                ("CHANNEL_ID", channel_id),
                ("SALAI_TOKEN", salai_token),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

        self._server_id = server_id
        self._channel_id = channel_id
        self._poll_interval = poll_interval_seconds
        self._job_timeout = job_timeout_seconds
        self._session_id = uuid.uuid4().hex
        self._imagine_command: dict[str, Any] | None = None
        self._claimed: set[str] = set()
        self._http = httpx.AsyncClient(
            base_url=api_base,
            headers={"Authorization": salai_token, "Content-Type": "application/json"},
            timeout=httpx.Timeout(30.0),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> DiscordImageClient:
        return cls(
            server_id=settings.server_id,
            channel_id=settings.channel_id,
            salai_token=settings.salai_token.get_secret_value(),
            api_base=settings.discord_api_base,
            poll_interval_seconds=settings.poll_interval_seconds,
            job_timeout_seconds=settings.job_timeout_seconds,
        )

    @property
    def is_ready(self) -> bool:
        return self._imagine_command is not None

    async def init(self) -> None:
        """Verify the token and resolve the /imagine command for the channel."""
        await self._request("GET", f"/channels/{self._channel_id}")

        data = await self._request(
            "GET",
            f"/channels/{self._channel_id}/application-commands/search",
            params={"type": 1, "include_applications": "true"},
        )
        for command in (data or {}).get("application_commands", []):
            if (
                command.get("application_id") == MIDJOURNEY_APPLICATION_ID
                and command.get("name") == "imagine"
            ):
                self._imagine_command = command
                break
        else:
            raise ClientRequestError("Midjourney /imagine command not available in channel")

        logger.info(
            "discord_client_ready",
            channel_id=self._channel_id,
            command_version=self._imagine_command.get("version"),
        )

    async def close(self) -> None:
        await self._http.aclose()

    # ── Jobs ─────────────────────────────────────────────────────────────────

    async def imagine(
        self, prompt: str, loading: LoadingCallback | None = None
    ) -> ClientMessage | None:
        command = self._require_command()
        nonce = snowflake_at(time.time())
        await self._request(
            "POST",
            "/interactions",
            json={
                "type": 2,
                "application_id": command["application_id"],
                "guild_id": self._server_id,
                "channel_id": self._channel_id,
                "session_id": self._session_id,
                "nonce": nonce,
                "data": {
                    "version": command["version"],
                    "id": command["id"],
                    "name": "imagine",
                    "type": 1,
                    "options": [{"type": 3, "name": "prompt", "value": prompt}],
                    "application_command": command,
                    "attachments": [],
                },
            },
        )
        return await self._wait_for_message(
            after=nonce,
            matches=lambda raw: (raw.get("content") or "").startswith(f"**{prompt}**"),
            loading=loading,
        )

    async def variation(self, options: JobOptions) -> ClientMessage | None:
        custom_id = options.custom_id or (
            f"MJ::JOB::variation::{options.index}::{options.hash}"
        )
        return await self._press_button(
            options, custom_id, content_filter=lambda content: "Variations" in content
        )

    async def upscale(self, options: JobOptions) -> ClientMessage | None:
        if options.custom_id:
            custom_id = options.custom_id
            match = _UPSAMPLE_RE.search(custom_id)
            index = int(match.group(1)) if match else None
        else:
            custom_id = f"MJ::JOB::upsample::{options.index}::{options.hash}"
            index = options.index

        content_filter = None
        if index is not None:
            marker = f"Image #{index}"
            content_filter = lambda content: marker in content  # noqa: E731
        return await self._press_button(options, custom_id, content_filter=content_filter)

    async def zoom_out(self, options: JobOptions) -> ClientMessage | None:
        factor = _ZOOM_FACTORS[options.level or "2x"]
        custom_id = options.custom_id or f"MJ::Outpaint::{factor}::1::{options.hash}::SOLO"
        return await self._press_button(
            options, custom_id, content_filter=lambda content: "Zoom Out" in content
        )

    # ── Internals ────────────────────────────────────────────────────────────

    def _require_command(self) -> dict[str, Any]:
        if self._imagine_command is None:
            raise ClientNotReadyError("Discord client has not been initialized")
        return self._imagine_command

    async def _press_button(
        self,
        options: JobOptions,
        custom_id: str,
        content_filter: Callable[[str], bool] | None = None,
    ) -> ClientMessage | None:
        self._require_command()
        nonce = snowflake_at(time.time())
        await self._request(
            "POST",
            "/interactions",
            json={
                "type": 3,
                "application_id": MIDJOURNEY_APPLICATION_ID,
                "guild_id": self._server_id,
                "channel_id": self._channel_id,
                "message_flags": options.flags,
                "message_id": options.msg_id,
                "session_id": self._session_id,
                "nonce": nonce,
                "data": {"component_type": 2, "custom_id": custom_id},
            },
        )

        def matches(raw: dict[str, Any]) -> bool:
            reference = raw.get("message_reference") or {}
            if reference.get("message_id") != options.msg_id:
                return False
            return content_filter is None or content_filter(raw.get("content") or "")

        return await self._wait_for_message(
            after=nonce, matches=matches, loading=options.loading
        )

    async def _wait_for_message(
        self,
        *,
        after: str,
        matches: Callable[[dict[str, Any]], bool],
        loading: LoadingCallback | None,
    ) -> ClientMessage | None:
        """Poll the channel until a finished bot message matches.

        A finished message is claimed by the first job that sees it, so
        concurrent jobs with identical prompts get distinct results.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._job_timeout
        last_progress: str | None = None
        cursor = after

        while True:
            in_progress: ClientMessage | None = None
            settled = True
            page_after = cursor

            while True:
                page = await self._fetch_messages(page_after, deadline)
                page.sort(key=lambda raw: int(raw["id"]))

                for raw in page:
                    candidate = (
                        (raw.get("author") or {}).get("id") == MIDJOURNEY_APPLICATION_ID
                        and raw["id"] not in self._claimed
                        and matches(raw)
                    )
                    if candidate:
                        message = to_client_message(raw)
                        if message.progress is None and message.uri:
                            self._claimed.add(raw["id"])
                            return message
                        if message.progress is not None:
                            in_progress = message
                            settled = False
                    if settled:
                        cursor = raw["id"]

                if len(page) < MESSAGE_PAGE_SIZE:
                    break
                page_after = page[-1]["id"]

            if in_progress is not None and in_progress.progress != last_progress:
                last_progress = in_progress.progress
                if loading is not None:
                    loading(in_progress.uri or "", in_progress.progress or "")

            if loop.time() >= deadline:
                raise ClientTimeoutError(
                    f"No finished message after {self._job_timeout:.0f}s"
                )
            await asyncio.sleep(self._poll_interval)

    async def _fetch_messages(self, after: str, deadline: float) -> list[dict[str, Any]]:
        """One page of channel messages newer than ``after``.

        Rate limits are waited out while the job's deadline allows.
        """
        loop = asyncio.get_running_loop()
        while True:
            try:
                messages = await self._request(
                    "GET",
                    f"/channels/{self._channel_id}/messages",
                    params={"after": after, "limit": MESSAGE_PAGE_SIZE},
                )
                return list(messages or [])
            except ClientRequestError as e:
                if e.status_code != 429:
                    raise
                delay = e.retry_after if e.retry_after is not None else self._poll_interval
                if loop.time() + delay >= deadline:
                    raise
                logger.warning("discord_poll_rate_limited", retry_after=delay)
                await asyncio.sleep(delay)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ClientRequestError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            logger.warning(
                "discord_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise ClientRequestError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                retry_after=_retry_after_seconds(response),
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


def _retry_after_seconds(response: httpx.Response) -> float | None:
    """Seconds to wait from a 429 body (``retry_after``) or Retry-After header."""
    if response.status_code != 429:
        return None
    value: Any = None
    if "application/json" in response.headers.get("content-type", ""):
        try:
            value = response.json().get("retry_after")
        except (ValueError, AttributeError):
            value = None
    if value is None:
        value = response.headers.get("retry-after")
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None

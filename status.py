# status.py

import asyncio
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger

STATUS_URL = "https://api.cod.pm/getstatus/{ip}/{port}"
STATUS_TIMEOUT = 5  # seconds


def summarize_response(status: int, reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    return f"{status} {reason}" if reason else str(status)


class ServerStatusClient:
    """
    Reads the live state of the game server from the public status API.

    `fetch` never raises: a failed lookup comes back as `{"error": summary}`
    so the Home view can still render and show the server as unavailable.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        ip: str,
        port: int,
        timeout: float = STATUS_TIMEOUT,
    ):
        self._session = session
        self.ip = ip
        self.port = port
        self.timeout = timeout

    @property
    def address(self) -> str:
        return f"{self.ip}:{self.port}"

    @property
    def url(self) -> str:
        return STATUS_URL.format(ip=self.ip, port=self.port)

    async def fetch(self) -> Dict[str, Any]:
        try:
            async with self._session.get(
                self.url, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                if resp.status != 200:
                    return self._failed(summarize_response(resp.status, resp.reason))
                data = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            return self._failed("TIMEOUT")
        except aiohttp.ClientError as exc:
            logger.debug(f"Status API request for {self.address} failed: {exc}")
            return self._failed("NETWORK ERROR")
        except ValueError:
            return self._failed("BAD RESPONSE")

        if not isinstance(data, dict):
            return self._failed("BAD RESPONSE")
        return data

    def _failed(self, summary: str) -> Dict[str, Any]:
        logger.warning(f"Status API error {self.address}: {summary}")
        return {"error": summary}

"""渲染服务客户端：把 mock 描述提交给图片服务器并取回 PNG 字节。"""

from __future__ import annotations

import json
import logging
import threading
from typing import Protocol

import requests

from pixel_regression.core.exceptions import RenderError, RendererUnavailableError
from pixel_regression.core.models import RegressionCase

LOGGER = logging.getLogger(__name__)


class Renderer(Protocol):
    def check_available(self) -> None:
        ...

    def render(self, case: RegressionCase) -> bytes:
        ...


class ImageServerRenderer:
    """通过 HTTP 调用图片服务器渲染用例。

    requests.Session 不保证线程安全，批量模式下每个工作线程使用各自的 Session。
    """

    def __init__(self, server_url: str, timeout: float = 30.0, image_format: str = "png", scale: float = 1) -> None:
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self.image_format = image_format
        self.scale = scale
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def check_available(self) -> None:
        """GET 服务器根路径确认可连接；任何 HTTP 响应都视为可用，连接失败属于进程级错误。"""

        try:
            self._session().get(self.server_url + "/", timeout=self.timeout)
        except requests.RequestException as exc:
            raise RendererUnavailableError(f"无法连接图片服务器: {self.server_url}") from exc

    def render(self, case: RegressionCase) -> bytes:
        try:
            figure = json.loads(case.paths.mock.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise RenderError(f"无法读取 mock 文件: {case.paths.mock}") from exc

        payload = {"figure": figure, "format": self.image_format, "scale": self.scale}
        try:
            response = self._session().post(self.server_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RenderError(f"渲染 {case.name} 失败: {exc}") from exc

        LOGGER.debug("渲染完成 %s（%d 字节）", case.name, len(response.content))
        return response.content

    def close(self) -> None:
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

# gist_notice_sync/notifier.py

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Dict, Mapping, Optional, Sequence

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from .models import PushPayload

LOGGER = logging.getLogger(__name__)

# send_each_for_multicast 한 번에 실을 수 있는 최대 토큰 수
MAX_TOKENS_PER_REQUEST = 500
FIREBASE_APP_NAME = "gist-notice-sync"


def build_message(
    payload: PushPayload, tokens: Sequence[str], data: Mapping[str, str]
) -> messaging.MulticastMessage:
    """푸시 정보를 FCM 멀티캐스트 메시지로 변환."""
    return messaging.MulticastMessage(
        tokens=list(tokens),
        notification=messaging.Notification(
            title=payload.title,
            body=payload.body,
            image=payload.image_url,
        ),
        data=dict(data),
    )


def _chunks(tokens: Sequence[str], size: int):
    for start in range(0, len(tokens), size):
        yield tokens[start : start + size]


def init_firebase_app(credentials_path: str) -> firebase_admin.App:
    """서비스 계정 키로 Firebase 앱을 한 번만 초기화."""
    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        cred = credentials.Certificate(credentials_path)
        return firebase_admin.initialize_app(cred, name=FIREBASE_APP_NAME)


class NotificationDispatcher:
    """Fire-and-forget push sender backed by Firebase Cloud Messaging.

    ``send`` hands the delivery to an executor and returns straight away;
    delivery errors are logged, never raised to the caller. Without
    credentials (or an app) deliveries are logged and skipped.
    """

    def __init__(
        self,
        credentials_path: str = "",
        executor: Optional[Executor] = None,
        app: Optional[firebase_admin.App] = None,
    ):
        self.credentials_path = credentials_path
        self._app = app
        self._app_lock = threading.Lock()
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="push"
        )

    def _get_app(self) -> Optional[firebase_admin.App]:
        with self._app_lock:
            if self._app is None and self.credentials_path:
                self._app = init_firebase_app(self.credentials_path)
            return self._app

    def send(
        self,
        payload: PushPayload,
        tokens: Sequence[str],
        data: Optional[Mapping[str, str]] = None,
    ) -> Optional[Future]:
        tokens = list(tokens)
        if not tokens:
            return None
        return self._executor.submit(self.deliver, payload, tokens, dict(data or {}))

    def deliver(self, payload: PushPayload, tokens: Sequence[str], data: Dict[str, str]) -> int:
        """Send the payload to every token; returns how many tokens were accepted."""
        try:
            app = self._get_app()
        except (ValueError, OSError) as exc:
            LOGGER.error("Firebase 초기화 실패, 전송 생략: %s", exc)
            return 0
        if app is None:
            LOGGER.info("FCM_CREDENTIALS_PATH 없음, 전송 생략: %s (%d tokens)", payload.title, len(tokens))
            return 0

        delivered = 0
        for batch in _chunks(list(tokens), MAX_TOKENS_PER_REQUEST):
            try:
                response = messaging.send_each_for_multicast(
                    build_message(payload, batch, data), app=app
                )
            except (exceptions.FirebaseError, ValueError) as exc:
                LOGGER.error("푸시 전송 실패 (%d tokens): %s", len(batch), exc)
                continue
            if response.failure_count:
                LOGGER.warning("푸시 일부 실패: %d/%d tokens", response.failure_count, len(batch))
            delivered += response.success_count

        LOGGER.info("푸시 전송 완료: %s (%d/%d tokens)", payload.title, delivered, len(tokens))
        return delivered

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

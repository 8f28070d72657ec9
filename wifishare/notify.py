import os
import json
import time
import queue
import threading

from watchdog.observers import Observer
from watchdog.events import (FileSystemEventHandler, EVENT_TYPE_CREATED, EVENT_TYPE_DELETED,
                             EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED)

from .config import logger

CLIENT_QUEUE_SIZE = 200
KEEPALIVE_SECONDS = 15
RECONNECT_MS = 3000

# 제거된 클라이언트의 스트림을 끝내기 위해 큐에 넣는 표시
_CLOSE = None

# 읽기 전용 이벤트(opened/closed)는 다운로드만으로도 발생하므로 무시
WATCHED_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


class Broadcaster:
    """접속 중인 브라우저마다 큐를 하나씩 두고 같은 메시지를 나눠줍니다."""

    def __init__(self, queue_size=CLIENT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._clients = set()
        self._lock = threading.Lock()

    @property
    def client_count(self):
        with self._lock:
            return len(self._clients)

    def subscribe(self):
        q = queue.Queue(maxsize=self.queue_size)
        with self._lock:
            self._clients.add(q)
            count = len(self._clients)
        logger.add(f"클라이언트 연결됨. 현재 {count}명")
        return q

    def unsubscribe(self, q):
        with self._lock:
            if q not in self._clients:
                return
            self._clients.discard(q)
            count = len(self._clients)
        logger.add(f"클라이언트 연결 해제. 현재 {count}명")

    def publish(self, msg_type, data=None):
        message = json.dumps({'type': msg_type, 'data': data, 'timestamp': int(time.time() * 1000)})
        with self._lock:
            clients = list(self._clients)

        dead = []
        for q in clients:
            try:
                q.put_nowait(message)
            except queue.Full:
                dead.append(q)

        for q in dead:
            logger.add("응답 없는 클라이언트 제거", "WARN")
            self.unsubscribe(q)
            self._close(q)
        return message

    @staticmethod
    def _close(q):
        # 밀린 메시지를 비우고 종료 표시만 남김
        while True:
            try:
                while True:
                    q.get_nowait()
            except queue.Empty:
                pass
            try:
                q.put_nowait(_CLOSE)
                return
            except queue.Full:
                continue


def event_stream(broadcaster, keepalive=KEEPALIVE_SECONDS):
    """Server-Sent Events 프레임을 생성하는 제너레이터"""
    q = broadcaster.subscribe()
    try:
        yield f"retry: {RECONNECT_MS}\n\n"
        while True:
            try:
                message = q.get(timeout=keepalive)
            except queue.Empty:
                yield ": keep-alive\n\n"
                continue
            if message is _CLOSE:
                return
            yield f"data: {message}\n\n"
    finally:
        broadcaster.unsubscribe(q)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, broadcaster, name, root):
        super().__init__()
        self.broadcaster = broadcaster
        self.name = name
        self.root = root

    def on_any_event(self, event):
        if event.event_type not in WATCHED_EVENTS:
            return
        path = getattr(event, 'dest_path', '') or event.src_path
        filename = os.path.relpath(os.fsdecode(path), self.root).replace('\\', '/')
        logger.add(f"{self.name} 변경 감지: {event.event_type} {filename}", "DEBUG")
        self.broadcaster.publish('file-change', {
            'directory': self.name,
            'event': {'eventType': event.event_type, 'filename': filename},
        })


class DirectoryWatcher:
    """공유 폴더들을 재귀적으로 감시하고 변경 시 'file-change'를 발행합니다."""

    def __init__(self, broadcaster, directories):
        self.broadcaster = broadcaster
        self.directories = dict(directories)
        self.observer = None

    def start(self):
        self.observer = Observer()
        self.observer.daemon = True
        for name, path in self.directories.items():
            self.observer.schedule(_ChangeHandler(self.broadcaster, name, path), path, recursive=True)
            logger.add(f"감시 시작: {name} -> {path}", "DEBUG")
        self.observer.start()
        return self

    def stop(self):
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join(timeout=5)
        self.observer = None

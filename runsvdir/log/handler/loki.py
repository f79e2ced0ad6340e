import os
import sys
import socket
import logging
import requests
import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from runsvdir.local.config import effective_settings as config

# (timestamp in ns, formatted line, level name, logger name)
_Entry = Tuple[str, str, str, str]


class LokiHandler(logging.Handler):
    """
    Ships supervisor log records to a Grafana Loki push endpoint.

    Records are buffered and pushed by a background thread every
    `flush_interval` seconds, or as soon as `batch_size` records are waiting.
    Records that share a level and logger go into the same Loki stream.
    """
    def __init__(
        self,
        url: str,
        org_id: Optional[str] = None,
        flush_interval: Optional[float] = None,
        batch_size: Optional[int] = None,
        labels: Optional[Dict[str, str]] = None,
    ):
        """
        :param url: The base URL of the Loki instance.
        :param org_id: The tenant ID for Loki, sent as 'X-Scope-OrgID'.
        :param flush_interval: Seconds between background pushes.
        :param batch_size: Buffered records that trigger an early push.
        :param labels: Extra labels attached to every stream.
        """
        super().__init__()
        self.url = f"{url.rstrip('/')}/loki/api/v1/push"
        self.flush_interval = config.LOG_BUFFER_FLUSH_INTERVAL if flush_interval is None else flush_interval
        self.batch_size = config.LOKI_BATCH_SIZE if batch_size is None else batch_size
        self.labels = {
            "job": "runsvdir",
            "hostname": os.getenv('HOSTNAME') or socket.gethostname(),
            "pid": str(os.getpid()),
        }
        self.labels.update(labels or {})

        self.session = requests.Session()
        self.session.headers['Content-Type'] = 'application/json'
        if org_id:
            self.session.headers['X-Scope-OrgID'] = org_id

        self._pending: List[_Entry] = []
        self._pending_lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._wakeup = threading.Event()
        self._closing = threading.Event()
        self._sender = threading.Thread(target=self._run_sender, daemon=True, name="LokiSenderThread")
        self._sender.start()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = (str(int(record.created * 1e9)), self.format(record), record.levelname.lower(), record.name)
        except Exception:
            self.handleError(record)
            return
        with self._pending_lock:
            self._pending.append(entry)
            full = len(self._pending) >= self.batch_size
        if full:
            self._wakeup.set()

    def _run_sender(self) -> None:
        while not self._closing.is_set():
            self._wakeup.wait(self.flush_interval)
            self._wakeup.clear()
            self.flush()
        self.flush()

    def _take_pending(self) -> List[_Entry]:
        with self._pending_lock:
            entries, self._pending = self._pending, []
        return entries

    def build_payload(self, entries: List[_Entry]) -> Dict[str, Any]:
        """Groups entries into one Loki stream per (level, logger)."""
        streams: Dict[Tuple[str, str], List[List[str]]] = defaultdict(list)
        for ts, line, level, logger_name in entries:
            streams[(level, logger_name)].append([ts, line])
        return {
            "streams": [
                {"stream": dict(self.labels, level=level, logger=logger_name), "values": values}
                for (level, logger_name), values in streams.items()
            ]
        }

    def flush(self) -> None:
        """Pushes everything buffered so far. Failures are reported on stderr and the batch dropped."""
        with self._send_lock:
            entries = self._take_pending()
            if not entries:
                return
            try:
                response = self.session.post(self.url, json=self.build_payload(entries), timeout=5)
            except requests.RequestException as e:
                print(f"CRITICAL: Failed to send {len(entries)} logs to Loki: {e}", file=sys.stderr)
                return
            # 204 No Content is the success status for Loki push
            if response.status_code != 204:
                print(f"ERROR: Loki returned {response.status_code}: {response.text}", file=sys.stderr)

    def close(self) -> None:
        """Stops the sender thread after a final push."""
        self._closing.set()
        self._wakeup.set()
        if self._sender.is_alive() and self._sender is not threading.current_thread():
            self._sender.join(timeout=self.flush_interval + 5)
        self.session.close()
        super().close()

"""Background job that reloads the restaurant feed on a fixed interval."""

import logging
import threading
from typing import Optional

from tresty.etl.looksmapping import DatasetError, DatasetIndex

logger = logging.getLogger(__name__)


class DatasetRefresher:
    def __init__(self, index: DatasetIndex, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.index = index
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="dataset-refresher", daemon=True)
        self._thread.start()
        logger.info("Dataset refresh scheduled every %.0f seconds", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def refresh_once(self) -> bool:
        """Reload the feed; on failure the previous index keeps serving."""
        logger.info("Refreshing restaurant data...")
        try:
            count = self.index.fetch_and_parse()
        except DatasetError as exc:
            logger.error("Failed to refresh restaurant data: %s", exc)
            return False
        logger.info("Restaurant data refreshed successfully (%d restaurants)", count)
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.refresh_once()

"""
Activity Repository - manages decoding and caching of activity files.

Decoded activities are kept in memory only; nothing is written back.
One file may hold several activities, each addressed as "<file id>-<index>".
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional

from ridelog.config import DecoderSettings, get_settings
from ridelog.models.activity import Activity, ActivitySummary
from ridelog.services.tcx_parser import FILE_PATTERNS, parse_tcx_file


logger = logging.getLogger(__name__)


class ActivityRepository:
    """
    Repository for decoded activities.

    Reads TCX files from a folder and caches the decoded activities per file.
    """

    def __init__(
        self,
        data_folder: Optional[Path] = None,
        settings: Optional[DecoderSettings] = None,
    ):
        """
        Initialize the repository.

        Args:
            data_folder: Folder containing TCX files. If None, must be set later.
            settings: Decoder settings; None uses the process-wide settings.
        """
        self._data_folder: Optional[Path] = data_folder
        self._settings = settings
        self._cache: dict[str, list[Activity]] = {}
        self._index: dict[str, Path] = {}  # file id -> filepath

        if data_folder is not None:
            self.scan_folder(data_folder)

    @property
    def data_folder(self) -> Optional[Path]:
        return self._data_folder

    @property
    def file_count(self) -> int:
        return len(self._index)

    def set_data_folder(self, folder: Path) -> int:
        """
        Set the data folder and scan for activity files.

        Returns:
            Number of files found
        """
        self._data_folder = folder
        self._cache.clear()
        self._index.clear()
        return self.scan_folder(folder)

    def scan_folder(self, folder: Path) -> int:
        """
        Scan a folder for activity files and build the index.

        Returns:
            Number of files found
        """
        if not folder.exists():
            logger.warning(f"Data folder does not exist: {folder}")
            return 0

        count = 0
        for pattern in FILE_PATTERNS:
            for path in sorted(folder.glob(pattern)):
                if path.is_file():
                    file_id = self._filepath_to_id(path)
                    self._index[file_id] = path
                    count += 1
                    logger.debug(f"Indexed file: {file_id} -> {path.name}")

        logger.info(f"Scanned {count} activity files in {folder}")
        return count

    def list_activities(self) -> list[ActivitySummary]:
        """
        List all decoded activities, newest first.
        """
        summaries = []
        for file_id in list(self._index):
            activities = self._get_file(file_id)
            if activities is None:
                continue
            summaries.extend(ActivitySummary.from_activity(a) for a in activities)

        summaries.sort(
            key=lambda s: (s.start_time or "", s.name, s.id),
            reverse=True,
        )
        return summaries

    def get_activity(self, activity_id: str) -> Optional[Activity]:
        """
        Get an activity by ID.

        Returns:
            Activity if found, None otherwise
        """
        file_id, index = self._split_id(activity_id)
        if file_id is None:
            return None

        activities = self._get_file(file_id)
        if activities is None or index >= len(activities):
            return None
        return activities[index]

    def has_activity(self, activity_id: str) -> bool:
        file_id, _ = self._split_id(activity_id)
        return file_id is not None and file_id in self._index

    def reload_activity(
        self,
        activity_id: str,
        smart_recording: Optional[bool] = None,
        high_water_mark: Optional[int] = None,
    ) -> Optional[Activity]:
        """
        Re-decode the file holding an activity with overridden settings.

        Returns:
            The re-decoded Activity, None if not found or decoding failed
        """
        file_id, index = self._split_id(activity_id)
        if file_id is None or file_id not in self._index:
            return None

        settings = self._effective_settings().with_overrides(
            smart_recording=smart_recording,
            high_water_mark=high_water_mark,
        )

        self._cache.pop(file_id, None)
        try:
            activities = self._load_file(file_id, settings)
        except Exception as e:
            logger.error(f"Failed to reload activity {activity_id}: {e}")
            return None

        if index >= len(activities):
            return None
        return activities[index]

    def clear_cache(self) -> None:
        """Clear the in-memory cache."""
        self._cache.clear()
        logger.info("Activity cache cleared")

    def _get_file(self, file_id: str) -> Optional[list[Activity]]:
        if file_id in self._cache:
            return self._cache[file_id]
        if file_id not in self._index:
            return None
        try:
            return self._load_file(file_id, self._effective_settings())
        except Exception as e:
            logger.error(f"Failed to load {self._index[file_id]}: {e}")
            return None

    def _load_file(self, file_id: str, settings: DecoderSettings) -> list[Activity]:
        """Decode a file and cache its activities."""
        filepath = self._index[file_id]
        activities = parse_tcx_file(filepath, settings)
        for i, activity in enumerate(activities):
            activity.id = f"{file_id}-{i}"

        self._cache[file_id] = activities
        logger.debug(f"Loaded and cached {len(activities)} activities from {filepath.name}")
        return activities

    def _effective_settings(self) -> DecoderSettings:
        if self._settings is not None:
            return self._settings
        return get_settings()

    def _split_id(self, activity_id: str) -> tuple[Optional[str], int]:
        file_id, sep, index = activity_id.rpartition("-")
        if not sep or not index.isdigit():
            return None, 0
        return file_id, int(index)

    def _filepath_to_id(self, filepath: Path) -> str:
        """Generate a consistent ID from filepath."""
        # Use filename + size + mtime hash for consistency
        stat = filepath.stat()
        id_string = f"{filepath.name}_{stat.st_size}_{stat.st_mtime}"
        return hashlib.sha256(id_string.encode()).hexdigest()[:16]


# Global repository instance (set up by app initialization)
_repository: Optional[ActivityRepository] = None


def get_repository() -> ActivityRepository:
    """Get the global repository instance."""
    global _repository
    if _repository is None:
        _repository = ActivityRepository()
    return _repository


def init_repository(data_folder: Path) -> ActivityRepository:
    """Initialize the global repository with a data folder."""
    global _repository
    _repository = ActivityRepository(data_folder)
    return _repository

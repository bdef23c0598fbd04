"""
Tournament registry, optionally persisted as one YAML file per tournament.
"""
import os
import logging
import threading
from typing import List, Dict, Optional

import yaml
from filelock import FileLock

from .models import Tournament

logger = logging.getLogger(__name__)


class TournamentStore:
    """
    In-memory tournament registry.

    With a data_dir, every saved tournament is also written to
    '{data_dir}/{id}.yaml' and existing files are loaded on start. File access
    goes through a FileLock so several processes can share the directory.
    """

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = data_dir
        self._tournaments: Dict[str, Tournament] = {}
        self._lock = threading.RLock()
        self._file_lock = None
        if data_dir:
            os.makedirs(data_dir, exist_ok=True)
            self._file_lock = FileLock(os.path.join(data_dir, '.lock'), timeout=10)
            self.load()

    def _path(self, tournament_id: str) -> str:
        return os.path.join(self.data_dir, f"{tournament_id}.yaml")

    def load(self) -> None:
        """Read every tournament file in data_dir into memory."""
        if not self.data_dir:
            return
        with self._lock, self._file_lock:
            for filename in sorted(os.listdir(self.data_dir)):
                if not filename.endswith('.yaml'):
                    continue
                path = os.path.join(self.data_dir, filename)
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        data = yaml.safe_load(f)
                    tournament = Tournament.from_dict(data)
                except (yaml.YAMLError, KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Failed to load tournament file {path}: {e}")
                    continue
                self._tournaments[tournament.id] = tournament
        logger.info(f"Loaded {len(self._tournaments)} tournaments from {self.data_dir}")

    def _write(self, tournament: Tournament) -> None:
        with self._file_lock:
            with open(self._path(tournament.id), 'w', encoding='utf-8') as f:
                yaml.dump(tournament.to_dict(), f, default_flow_style=False, sort_keys=False)

    def save(self, tournament: Tournament) -> Tournament:
        """Publish or update a tournament."""
        with self._lock:
            self._tournaments[tournament.id] = tournament
            if self.data_dir:
                self._write(tournament)
        return tournament

    def get(self, tournament_id: str) -> Optional[Tournament]:
        with self._lock:
            return self._tournaments.get(tournament_id)

    def all(self) -> List[Tournament]:
        with self._lock:
            return list(self._tournaments.values())

    def delete(self, tournament_id: str) -> bool:
        """Remove a tournament and its file. Returns False if it did not exist."""
        with self._lock:
            if self._tournaments.pop(tournament_id, None) is None:
                return False
            if self.data_dir:
                with self._file_lock:
                    path = self._path(tournament_id)
                    if os.path.exists(path):
                        os.remove(path)
            return True

    def __contains__(self, tournament_id: str) -> bool:
        return self.get(tournament_id) is not None

    def __len__(self) -> int:
        return len(self._tournaments)

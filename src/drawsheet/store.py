"""
YAML persistence for tournament snapshots.

Layout under the data directory:

    tournaments.yaml              registry: active id + list of tournaments
    tournaments/<id>.yaml         one snapshot per tournament
    .lock                         file lock shared by all writers
"""
import logging
import os
from datetime import datetime
from typing import Callable, Dict, List, Optional

import yaml
from filelock import FileLock

from drawsheet.errors import NotFound
from drawsheet.state import TournamentState

logger = logging.getLogger(__name__)


class TournamentStore:
    """Loads and saves TournamentState snapshots in a data directory."""

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.tournaments_dir = os.path.join(data_dir, 'tournaments')
        self.registry_file = os.path.join(data_dir, 'tournaments.yaml')
        os.makedirs(self.tournaments_dir, exist_ok=True)
        self._lock = FileLock(os.path.join(data_dir, '.lock'), timeout=10)

    def _snapshot_path(self, tournament_id: str) -> str:
        return os.path.join(self.tournaments_dir, f'{tournament_id}.yaml')

    @staticmethod
    def _write_yaml(path: str, data):
        tmp_path = path + '.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
        os.replace(tmp_path, path)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def load_registry(self) -> Dict:
        """Load the tournaments registry."""
        if not os.path.exists(self.registry_file):
            return {'active': None, 'tournaments': []}
        try:
            with open(self.registry_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f'Failed to parse {self.registry_file}: {e}')
            return {'active': None, 'tournaments': []}
        if not data:
            return {'active': None, 'tournaments': []}
        if not isinstance(data, dict) or not isinstance(data.get('tournaments', []), list):
            logger.warning(f'Ignoring malformed registry {self.registry_file}')
            return {'active': None, 'tournaments': []}
        data.setdefault('active', None)
        data.setdefault('tournaments', [])
        return data

    def _save_registry(self, registry: Dict):
        self._write_yaml(self.registry_file, registry)

    def list_tournaments(self) -> List[Dict]:
        return self.load_registry()['tournaments']

    def active_id(self) -> Optional[str]:
        return self.load_registry()['active']

    def set_active(self, tournament_id: str):
        with self._lock:
            registry = self.load_registry()
            if not any(t['id'] == tournament_id for t in registry['tournaments']):
                raise NotFound(tournament_id, 'Tournament')
            registry['active'] = tournament_id
            self._save_registry(registry)
        logger.info('Switched active tournament to %s', tournament_id)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def load(self, tournament_id: Optional[str] = None) -> Optional[TournamentState]:
        """Load a tournament snapshot; the active one when no id is given. None when absent."""
        tournament_id = tournament_id or self.active_id()
        if not tournament_id:
            return None
        path = self._snapshot_path(tournament_id)
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if not data:
            return None
        if not isinstance(data, dict):
            logger.warning(f'Ignoring malformed snapshot {path}')
            return None
        return TournamentState.from_snapshot(data)

    def load_active(self) -> TournamentState:
        """Active tournament, or a fresh empty one when nothing was saved yet."""
        return self.load() or TournamentState()

    def save(self, state: TournamentState, activate: bool = True):
        """
        Write the snapshot and update the registry entry.

        The bracket and its match results are written as one file, so a
        regenerated bracket never lands next to stale results.
        """
        snapshot = state.to_snapshot()
        with self._lock:
            self._write_yaml(self._snapshot_path(state.tournament_id), snapshot)
            registry = self.load_registry()
            entry = next((t for t in registry['tournaments'] if t['id'] == state.tournament_id), None)
            if entry is None:
                entry = {'id': state.tournament_id, 'created': datetime.now().isoformat()}
                registry['tournaments'].append(entry)
            entry['name'] = state.tournament_name
            entry['participants'] = state.participant_count
            entry['updated'] = datetime.now().isoformat()
            if activate:
                registry['active'] = state.tournament_id
            self._save_registry(registry)
        logger.debug('Saved tournament %s', state.tournament_id)

    def update(self, operation: Callable[[TournamentState], TournamentState]) -> TournamentState:
        """
        Apply `operation` to the active tournament and save the result.

        The lock is held from load to save, so concurrent requests cannot
        overwrite each other with states built from the same snapshot.
        """
        with self._lock:
            state = operation(self.load_active())
            self.save(state)
        return state

    def delete(self, tournament_id: str):
        with self._lock:
            registry = self.load_registry()
            before = len(registry['tournaments'])
            registry['tournaments'] = [t for t in registry['tournaments'] if t['id'] != tournament_id]
            if len(registry['tournaments']) == before:
                raise NotFound(tournament_id, 'Tournament')
            if registry['active'] == tournament_id:
                registry['active'] = None
            path = self._snapshot_path(tournament_id)
            if os.path.exists(path):
                os.remove(path)
            self._save_registry(registry)
        logger.info('Deleted tournament %s', tournament_id)

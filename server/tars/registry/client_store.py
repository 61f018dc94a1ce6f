# File-backed client registry: one JSON array, rewritten temp-then-replace on
# every mutation. A single lock serializes all access; every accessor hands
# out deep copies so callers can never alias the stored rows.

from __future__ import annotations

import os
import secrets
import shutil
import threading
from collections.abc import Callable
from pathlib import Path

import structlog
from pydantic import TypeAdapter, ValidationError

from tars.exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceError,
)
from tars.schemas import DEFAULT_MAX_CONCURRENT, DEFAULT_REQUESTS_PER_MINUTE, ClientIdentity

logger = structlog.get_logger(__name__)

_CLIENTS_ADAPTER = TypeAdapter(list[ClientIdentity])

# Swappable so tests can simulate filesystems without atomic rename.
FileReplacer = Callable[[Path, Path], None]


def _norm(value: str) -> str:
    return value.strip().casefold()


def generate_credential() -> str:
    """Random 128-bit credential rendered as 32 hex chars."""
    return secrets.token_hex(16)


class ClientStore:
    """Durable table of client identities.

    Mutations are applied in memory first, then persisted. A failed write is
    logged and flips persistence_healthy to False, but the mutation stays
    visible: a crash before the next successful write loses it.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        default_rate_limit: int = DEFAULT_REQUESTS_PER_MINUTE,
        default_max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        replace: FileReplacer = os.replace,
    ) -> None:
        self._path = Path(path)
        # High-water id mark lives beside the registry so deleted ids stay retired
        self._seq_path = self._path.with_suffix(".seq")
        self._default_rate_limit = default_rate_limit
        self._default_max_concurrent = default_max_concurrent
        self._replace = replace
        self._lock = threading.Lock()
        self._persistence_healthy = True

        self._ensure_file()
        self._clients: list[ClientIdentity] = self._load()
        self._high_water = max(
            self._load_high_water(),
            max((c.id for c in self._clients), default=0),
        )
        logger.info(
            "registry_loaded",
            path=str(self._path.resolve()),
            clients=len(self._clients),
            next_id=self._high_water + 1,
        )

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def path(self) -> Path:
        return self._path

    @property
    def persistence_healthy(self) -> bool:
        """False after a write failed, until the next write succeeds."""
        return self._persistence_healthy

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._clients)

    # ── Reads ────────────────────────────────────────────────────────────

    def find_by_credential(self, credential: str) -> ClientIdentity | None:
        """Linear scan with constant-time comparison per row."""
        if not credential:
            return None
        wanted = credential.encode()
        with self._lock:
            for client in self._clients:
                if client.credential and secrets.compare_digest(client.credential.encode(), wanted):
                    return client.model_copy(deep=True)
        return None

    def get(self, client_id: int) -> ClientIdentity | None:
        if client_id < 0:
            logger.warning("client_id_negative", client_id=client_id)
            return None
        with self._lock:
            index = self._index_of(client_id)
            return None if index is None else self._clients[index].model_copy(deep=True)

    def list(self) -> list[ClientIdentity]:
        with self._lock:
            return [c.model_copy(deep=True) for c in sorted(self._clients, key=lambda c: c.id)]

    # ── Mutations ────────────────────────────────────────────────────────

    def create(self, name: str, contact: str) -> ClientIdentity:
        """Register a new identity with the next id and a fresh credential."""
        name = (name or "").strip()
        contact = (contact or "").strip()
        if not name:
            raise InvalidArgumentError("Client name cannot be blank.")
        if not contact:
            raise InvalidArgumentError("Client contact cannot be blank.")

        with self._lock:
            if self._name_taken(name):
                logger.warning("client_create_conflict", field="name", name=name)
                raise ConflictError("Client name already exists.")
            if self._contact_taken(contact):
                logger.warning("client_create_conflict", field="contact", contact=contact)
                raise ConflictError("Client contact already exists.")

            self._high_water += 1
            identity = ClientIdentity(
                id=self._high_water,
                name=name,
                contact=contact,
                credential=self._unused_credential(),
                requests_per_minute=self._default_rate_limit,
                max_concurrent=self._default_max_concurrent,
            )
            self._clients.append(identity)
            self._persist()
            logger.info("client_created", client_id=identity.id, name=name)
            return identity.model_copy(deep=True)

    def update(self, identity: ClientIdentity) -> ClientIdentity:
        """Replace a stored identity. An empty credential keeps the stored one."""
        name = identity.name.strip()
        contact = identity.contact.strip()
        if not name:
            raise InvalidArgumentError("Client name cannot be blank.")
        if not contact:
            raise InvalidArgumentError("Client contact cannot be blank.")
        if identity.requests_per_minute <= 0:
            raise InvalidArgumentError("Rate limit must be a positive integer.")
        if identity.max_concurrent <= 0:
            raise InvalidArgumentError("Max concurrent must be a positive integer.")

        with self._lock:
            index = self._index_of(identity.id)
            if index is None:
                logger.warning("client_update_not_found", client_id=identity.id)
                raise NotFoundError(identity.id)
            if self._name_taken(name, exclude_id=identity.id):
                raise ConflictError("Client name already exists.")
            if self._contact_taken(contact, exclude_id=identity.id):
                raise ConflictError("Client contact already exists.")
            if identity.credential and self._credential_taken(
                identity.credential, exclude_id=identity.id
            ):
                raise ConflictError("Credential already in use.")

            current = self._clients[index]
            updated = identity.model_copy(
                deep=True,
                update={
                    "name": name,
                    "contact": contact,
                    "credential": identity.credential or current.credential,
                },
            )
            self._clients[index] = updated
            self._persist()
            logger.info("client_updated", client_id=updated.id)
            return updated.model_copy(deep=True)

    def remove(self, client_id: int) -> bool:
        with self._lock:
            index = self._index_of(client_id)
            if index is None:
                logger.warning("client_remove_not_found", client_id=client_id)
                return False
            del self._clients[index]
            self._persist()
        logger.info("client_removed", client_id=client_id)
        return True

    def rotate_credential(self, client_id: int) -> str:
        """Issue a new credential; the old one stops working immediately."""
        with self._lock:
            index = self._index_of(client_id)
            if index is None:
                raise NotFoundError(client_id)
            credential = self._unused_credential()
            self._clients[index] = self._clients[index].model_copy(
                update={"credential": credential}
            )
            self._persist()
        logger.info("client_credential_rotated", client_id=client_id)
        return credential

    def set_rate_limit(self, client_id: int, limit: int) -> ClientIdentity:
        if limit <= 0:
            raise InvalidArgumentError("Rate limit must be a positive integer.")
        with self._lock:
            index = self._index_of(client_id)
            if index is None:
                raise NotFoundError(client_id)
            updated = self._clients[index].model_copy(update={"requests_per_minute": limit})
            self._clients[index] = updated
            self._persist()
        logger.info("client_rate_limit_set", client_id=client_id, limit=limit)
        return updated.model_copy(deep=True)

    # ── Lookup helpers (caller holds the lock) ───────────────────────────

    def _index_of(self, client_id: int) -> int | None:
        for i, client in enumerate(self._clients):
            if client.id == client_id:
                return i
        return None

    def _name_taken(self, name: str, exclude_id: int | None = None) -> bool:
        wanted = _norm(name)
        return any(_norm(c.name) == wanted and c.id != exclude_id for c in self._clients)

    def _contact_taken(self, contact: str, exclude_id: int | None = None) -> bool:
        wanted = _norm(contact)
        return any(_norm(c.contact) == wanted and c.id != exclude_id for c in self._clients)

    def _credential_taken(self, credential: str, exclude_id: int | None = None) -> bool:
        return any(c.credential == credential and c.id != exclude_id for c in self._clients)

    def _unused_credential(self) -> str:
        while True:
            credential = generate_credential()
            if not self._credential_taken(credential):
                return credential

    # ── Persistence ──────────────────────────────────────────────────────

    def _ensure_file(self) -> None:
        """Create an empty registry before the first read."""
        if self._path.exists():
            logger.info("registry_file_found", path=str(self._path))
            return
        try:
            self._write_atomic(self._path, b"[]")
            logger.info("registry_file_created", path=str(self._path.resolve()))
        except PersistenceError as exc:
            self._persistence_healthy = False
            logger.error("registry_file_create_failed", path=str(self._path), error=exc.message)

    def _load(self) -> list[ClientIdentity]:
        try:
            return _CLIENTS_ADAPTER.validate_json(self._path.read_bytes())
        except (OSError, ValidationError) as exc:
            # Start empty; the unreadable file is only overwritten by the next mutation
            logger.error(
                "registry_load_failed",
                path=str(self._path),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return []

    def _load_high_water(self) -> int:
        try:
            return int(self._seq_path.read_text().strip())
        except FileNotFoundError:
            return 0
        except (OSError, ValueError) as exc:
            logger.warning("registry_sequence_unreadable", path=str(self._seq_path), error=str(exc))
            return 0

    def _persist(self) -> bool:
        """Write sequence then registry. Caller holds the lock."""
        try:
            # Sequence first: a high-water mark ahead of the registry is harmless
            self._write_atomic(self._seq_path, str(self._high_water).encode())
            self._write_atomic(
                self._path,
                _CLIENTS_ADAPTER.dump_json(self._clients, by_alias=True, indent=2),
            )
        except PersistenceError as exc:
            self._persistence_healthy = False
            logger.error(
                "registry_persist_failed",
                path=exc.path,
                error=exc.message,
                clients=len(self._clients),
                hint="In-memory state retained; last mutation is lost if the process dies now.",
            )
            return False
        self._persistence_healthy = True
        logger.debug("registry_persisted", path=str(self._path), clients=len(self._clients))
        return True

    def _write_atomic(self, target: Path, payload: bytes) -> None:
        """Temp sibling + fsync + replace, with a non-atomic copy fallback."""
        tmp = target.with_name(target.name + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            try:
                self._replace(tmp, target)
            except OSError as atomic_exc:
                try:
                    shutil.copyfile(tmp, target)
                except OSError as fallback_exc:
                    raise PersistenceError(
                        str(target),
                        f"atomic={type(atomic_exc).__name__} fallback={type(fallback_exc).__name__}",
                    ) from fallback_exc
                logger.warning(
                    "registry_atomic_replace_unavailable",
                    path=str(target),
                    cause=type(atomic_exc).__name__,
                )
        except OSError as exc:
            raise PersistenceError(str(target), str(exc)) from exc
        finally:
            tmp.unlink(missing_ok=True)

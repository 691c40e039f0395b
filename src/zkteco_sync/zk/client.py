"""Session-owning client facade, one per terminal."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Generator, Iterable, List, Optional, Sequence, Tuple

from zkteco_sync.zk import dispatcher
from zkteco_sync.zk.exceptions import AuthenticationError, NotConnectedError
from zkteco_sync.zk.models import (
    AttendanceRecord,
    DeviceEndpoint,
    DeviceInfo,
    DeviceProfile,
    UserRecord,
)
from zkteco_sync.zk.parser import RecordStream
from zkteco_sync.zk.session import ProfileSpec, Session, connect, disconnect
from zkteco_sync.zk.transport import Transport

logger = logging.getLogger(__name__)


class ZKClient:
    """Serializes sessions to one terminal and remembers its resolved profile.

    The lock is only meaningful when callers share the instance, which is
    what :meth:`DevicePool.get_client` does.
    """

    def __init__(
        self,
        endpoint: DeviceEndpoint,
        profile: ProfileSpec = None,
        name: str = "",
        transport: Optional[Transport] = None,
        passwords: Optional[Sequence[int]] = None,
    ):
        self.endpoint = endpoint
        self.profile = profile
        self.name = name or endpoint.ip
        self.passwords = list(passwords or [])
        self._transport = transport
        self._lock = threading.Lock()
        self._session: Optional[Session] = None

    @contextmanager
    def connect(self) -> Generator[ZKClient, None, None]:
        """Context manager holding the client lock for the session's lifetime.

        With ``passwords`` set, candidates are tried in order and the accepted
        one replaces the endpoint password. A profile detected on the first
        connect is kept, so later connects skip detection.
        """
        with self._lock:
            if self.passwords:
                self._session, _ = connect_with_passwords(
                    self.endpoint, self.passwords, self.profile, self._transport
                )
                self.endpoint = self._session.endpoint
            else:
                self._session = connect(self.endpoint, self.profile, self._transport)
            if self.profile in (None, "auto"):
                logger.debug("Keeping detected profile %s for %s", self._session.profile.name, self.name)
                self.profile = self._session.profile
            try:
                yield self
            finally:
                disconnect(self._session)
                self._session = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise NotConnectedError("Not connected. Use 'with client.connect() as c:'")
        return self._session

    @property
    def resolved_profile(self) -> Optional[DeviceProfile]:
        return self._session.profile if self._session else None

    def get_device_info(self) -> DeviceInfo:
        return dispatcher.get_device_info(self.session)

    def stream_users(self) -> RecordStream[UserRecord]:
        return dispatcher.get_users(self.session)

    def stream_attendance(
        self, users: Optional[Iterable[UserRecord]] = None
    ) -> RecordStream[AttendanceRecord]:
        """Stream the attendance log, reading the user table first when ``users`` is None."""
        if users is None:
            users = self.get_users()
        return dispatcher.get_attendance(self.session, users=users)

    def get_users(self) -> List[UserRecord]:
        users = list(self.stream_users())
        logger.info("Got %d users from %s", len(users), self.name)
        return users

    def get_attendance(self) -> List[AttendanceRecord]:
        records = list(self.stream_attendance())
        logger.info("Got %d attendance records from %s", len(records), self.name)
        return records

    def read_sizes(self) -> dict:
        """Read device record counts (fast, no data transfer)."""
        return dispatcher.read_sizes(self.session)


def connect_with_passwords(
    endpoint: DeviceEndpoint,
    passwords: Iterable[int],
    profile: ProfileSpec = None,
    transport: Optional[Transport] = None,
) -> Tuple[Session, int]:
    """Try candidate passwords in order; return the session and the password that worked.

    Only :class:`AuthenticationError` moves on to the next candidate; any
    other failure propagates immediately.
    """
    last_error: Optional[AuthenticationError] = None
    for password in passwords:
        candidate = endpoint.model_copy(update={"password": password})
        try:
            return connect(candidate, profile, transport), password
        except AuthenticationError as e:
            logger.warning("Password %s rejected by %s", "*" * len(str(password)), endpoint.ip)
            last_error = e
    if last_error is None:
        raise ValueError("No candidate passwords given")
    raise last_error

# certledger/services/ledger.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from certledger.services.ledger_errors import (
    LedgerStorageError,
    NonUniqueSerialError,
    UnknownSerialError,
)
from certledger.services.serial import SerialAllocator, decode_serial, encode_serial
from certledger.services.store import LedgerStore, Row
from certledger.services.store_errors import StoreConstraintError, StoreError
from certledger.utils.datetime import format_datetime, parse_datetime

log = logging.getLogger(__name__)

SERIAL_CONSTRAINT = "certs.serial"

_CERT_COLUMNS = "id, name, serial, keyid, expiry, cert, valid"


@dataclass(frozen=True)
class CertificateRecord:
    """ One row of the certs table """
    device_id: str
    name: str
    serial: int
    key_id: bytes
    expiry: datetime
    cert: bytes
    valid: bool

    @classmethod
    def from_row(cls, row: Row) -> "CertificateRecord":
        device_id, name, serial, key_id, expiry, cert, valid = row
        return cls(
            device_id=device_id,
            name=name,
            serial=decode_serial(serial),
            key_id=bytes(key_id) if key_id is not None else b"",
            expiry=parse_datetime(expiry),
            cert=bytes(cert) if cert is not None else b"",
            valid=bool(valid),
        )


@dataclass(frozen=True)
class DeviceRecord:
    """ One row of the devices table """
    device_id: str
    registered: bool


class CertificateLedger:
    """
    Durable record of issued certificates and the devices they belong to.

    Every write runs in its own store transaction, so a failure at any step
    leaves no partial change behind. Device rows are created the first time a
    certificate is recorded for them and are never deleted; certificates are
    never deleted either, only marked invalid.
    """

    def __init__(self, store: LedgerStore, allocator: Optional[SerialAllocator] = None) -> None:
        """
        Construct a ledger over a store.

        Args:
            store (LedgerStore): Where rows live
            allocator (SerialAllocator): Serial source for issue_certificate()
        """
        self.store = store
        self.allocator = allocator or SerialAllocator(store)

    # --------------------------
    # Writes
    # --------------------------

    def add_certificate(self, device_id: str, name: str, serial: int, key_id: bytes,
                        expiry: datetime, cert: bytes) -> None:
        """
        Record a newly generated certificate, creating its device if needed.

        Raises:
            NonUniqueSerialError: Another certificate already holds `serial`
            LedgerStorageError: Any other store failure
        """
        encoded = encode_serial(serial)

        try:
            with self.store.transaction() as session:
                row = session.fetch_one("SELECT COUNT(*) FROM devices WHERE id = ?", (device_id,))

                if not row or row[0] == 0:
                    session.execute(
                        "INSERT INTO devices (id, registered) VALUES (?, ?)", (device_id, 0)
                    )
                    log.debug("Created device %s", device_id)

                session.execute(
                    f"INSERT INTO certs ({_CERT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (device_id, name, encoded, bytes(key_id),
                     format_datetime(expiry, "openssl"), bytes(cert), 1),
                )

        except StoreConstraintError as store_error:
            if store_error.constraint == SERIAL_CONSTRAINT:
                raise NonUniqueSerialError(f"serial {serial} already issued") from store_error
            raise LedgerStorageError("add_certificate", f"serial {serial}", store_error) from store_error
        except StoreError as store_error:
            raise LedgerStorageError("add_certificate", f"serial {serial}", store_error) from store_error

        log.info("Recorded certificate %s (%s) for device %s", serial, name, device_id)

    def issue_certificate(self, device_id: str, name: str, key_id: bytes, expiry: datetime,
                          build_cert: Callable[[int], bytes]) -> int:
        """
        Allocate a serial and record the certificate built for it.

        The serial UNIQUE constraint decides whether a candidate is free, so
        there is no window between checking and inserting. On a collision a
        fresh candidate is drawn and `build_cert` is called again.

        Args:
            build_cert: Produces the encoded certificate for a given serial

        Returns:
            int: The serial recorded

        Raises:
            SerialExhaustedError: The allocator's retry policy ran out
            LedgerStorageError: Any other store failure
        """
        def attempt() -> int:
            serial = self.allocator.next_candidate()
            self.add_certificate(device_id, name, serial, key_id, expiry, build_cert(serial))
            return serial

        return self.allocator.retry(attempt)

    def revoke_certificate(self, serial: int) -> None:
        """
        Mark a certificate invalid. Revoking an invalid certificate is a no-op.

        Raises:
            UnknownSerialError: No certificate holds `serial`
        """
        try:
            with self.store.transaction() as session:
                matched = session.execute(
                    "UPDATE certs SET valid = 0 WHERE serial = ?", (encode_serial(serial),)
                )
        except StoreError as store_error:
            raise LedgerStorageError("revoke_certificate", f"serial {serial}", store_error) from store_error

        if matched == 0:
            raise UnknownSerialError(serial)

        log.info("Revoked certificate %s", serial)

    def mark_registered(self, device_id: str) -> None:
        """
        Record that a device has been registered with the cloud service.

        Registration never reverts, and marking a registered device again
        succeeds without change. An id with no device row changes nothing
        and is not an error.

        Raises:
            LedgerStorageError: The update failed
        """
        try:
            with self.store.transaction() as session:
                matched = session.execute(
                    "UPDATE devices SET registered = 1 WHERE id = ?", (device_id,)
                )
        except StoreError as store_error:
            raise LedgerStorageError("mark_registered", f"device {device_id!r}", store_error) from store_error

        if matched == 0:
            log.debug("No device %s to mark registered", device_id)
            return

        log.info("Device %s marked registered", device_id)

    # --------------------------
    # Queries
    # --------------------------

    def is_valid(self, serial: int) -> bool:
        """
        Report whether the certificate with `serial` is still valid.

        Raises:
            UnknownSerialError: No certificate holds `serial`
            LedgerStorageError: The lookup failed
        """
        try:
            row = self.store.fetch_one(
                "SELECT valid FROM certs WHERE serial = ?", (encode_serial(serial),)
            )
        except StoreError as store_error:
            raise LedgerStorageError("is_valid", f"serial {serial}", store_error) from store_error

        if row is None:
            raise UnknownSerialError(serial)

        return bool(row[0])

    def get_certificate(self, serial: int) -> CertificateRecord:
        """ Return the certificate holding `serial` """
        try:
            row = self.store.fetch_one(
                f"SELECT {_CERT_COLUMNS} FROM certs WHERE serial = ?", (encode_serial(serial),)
            )
        except StoreError as store_error:
            raise LedgerStorageError("get_certificate", f"serial {serial}", store_error) from store_error

        if row is None:
            raise UnknownSerialError(serial)

        return CertificateRecord.from_row(row)

    def list_certificates(self, device_id: str) -> List[CertificateRecord]:
        """ Return every certificate issued to a device, oldest serial first """
        try:
            rows = self.store.fetch_all(
                f"SELECT {_CERT_COLUMNS} FROM certs WHERE id = ?", (device_id,)
            )
        except StoreError as store_error:
            raise LedgerStorageError("list_certificates", f"device {device_id!r}", store_error) from store_error

        # serial is text, so order numerically here
        return sorted((CertificateRecord.from_row(row) for row in rows), key=lambda r: r.serial)

    def get_device(self, device_id: str) -> Optional[DeviceRecord]:
        try:
            row = self.store.fetch_one(
                "SELECT id, registered FROM devices WHERE id = ?", (device_id,)
            )
        except StoreError as store_error:
            raise LedgerStorageError("get_device", f"device {device_id!r}", store_error) from store_error

        if row is None:
            return None

        return DeviceRecord(device_id=row[0], registered=bool(row[1]))

    def list_unregistered_devices(self) -> List[str]:
        """
        Return the ids of devices holding at least one certificate that have
        not been registered with the cloud service yet. Each id appears once.
        """
        try:
            rows = self.store.fetch_all(
                """
                SELECT DISTINCT devices.id
                FROM devices
                INNER JOIN certs ON certs.id = devices.id
                WHERE devices.registered = 0
                ORDER BY devices.id
                """
            )
        except StoreError as store_error:
            raise LedgerStorageError("list_unregistered_devices", "all devices", store_error) from store_error

        return [row[0] for row in rows]

    def count_certs(self) -> int:
        """
        Count the number of certificates in the ledger.

        Returns:
            int: The number of certificates.
        """
        try:
            row = self.store.fetch_one("SELECT COUNT(*) FROM certs")
        except StoreError as store_error:
            raise LedgerStorageError("count_certs", "all certificates", store_error) from store_error

        return int(row[0]) if row else 0

"""Bullets: the HTTP request and tag line derived from one log record."""

import io
from dataclasses import dataclass
from typing import BinaryIO

from ammogen.parser import LogRecord, get_cgi_param_value_naive, get_host_port_resource_from_url

PLACE_PARAM = b"place"

REQUEST_HEAD = b"GET /"
REQUEST_TAIL = (
    b" HTTP/1.0\r\n"
    b"User-Agent: tank\r\n"
    b"Connection: close\r\n"
    b"\r\n"
)


@dataclass(frozen=True)
class BulletData:
    """Fields of one bullet, valid while the source line is being processed."""

    resource: bytes
    host: bytes
    place: bytes
    tags: bytes


@dataclass(frozen=True)
class StoredBullet:
    """Owned copy of a BulletData, for bullets kept after their line is gone."""

    resource: bytes
    host: bytes
    place: bytes
    tags: bytes

    @classmethod
    def from_data(cls, data: BulletData) -> "StoredBullet":
        return cls(
            resource=bytes(data.resource),
            host=bytes(data.host),
            place=bytes(data.place),
            tags=bytes(data.tags),
        )

    def get_data(self) -> BulletData:
        return BulletData(
            resource=self.resource,
            host=self.host,
            place=self.place,
            tags=self.tags,
        )


def make_bullet_data_from_log_record(rec: LogRecord) -> BulletData:
    host, _port, resource = get_host_port_resource_from_url(rec.url)
    place = get_cgi_param_value_naive(resource, PLACE_PARAM) or b""
    return BulletData(resource=resource, host=host, place=place, tags=rec.tags)


def write_tags(bullet: BulletData, to: BinaryIO) -> None:
    """Write 'place|tag1|tag2', skipping empty tags."""
    if bullet.place:
        to.write(bullet.place)
    for tag in bullet.tags.split(b","):
        if tag:
            to.write(b"|")
            to.write(tag)


def write_bullet(bullet: BulletData, buff: io.BytesIO, to: BinaryIO) -> None:
    """Write one ammo record: '<size> <tags>\\r\\n<request>\\r\\n'.

    The request is rendered into *buff* first to learn its size; *buff* is
    cleared on every call so it can be reused across bullets.
    """
    buff.seek(0)
    buff.truncate()
    buff.write(REQUEST_HEAD)
    buff.write(bullet.resource)
    buff.write(REQUEST_TAIL)

    to.write(b"%d " % buff.tell())
    write_tags(bullet, to)
    to.write(b"\r\n")
    to.write(buff.getvalue())
    to.write(b"\r\n")

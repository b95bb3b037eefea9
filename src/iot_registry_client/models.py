"""Resource and command models of the registry API.

Every resource read from the registry has the same envelope shape::

    {"metadata": {"name": "...", "resourceVersion": "...", ...}, "spec": {...}, "status": {...}}

``spec`` and ``status`` are free-form mappings of named sections. The models only
know about metadata; what a section means is up to the caller.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, TypeVar

# A JSON merge-patch document (RFC 7386): present keys replace, None removes, absent keys are untouched
MergePatch = dict[str, Any]


class Collection(str, Enum):
    """Resource collections of the registry, valued by their URL path segment."""

    APPLICATION = "apps"
    DEVICE = "devices"


@dataclass(frozen=True)
class ResourceRef:
    """Identifies a single resource.

    Devices are scoped by their application, so ``application`` is required for them.
    """

    collection: Collection
    name: str
    application: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Resource name must not be empty")
        if self.collection is Collection.DEVICE and not self.application:
            raise ValueError(f"Device reference '{self.name}' requires an application")

    @classmethod
    def app(cls, name: str) -> "ResourceRef":
        return cls(Collection.APPLICATION, name)

    @classmethod
    def device(cls, application: str, name: str) -> "ResourceRef":
        return cls(Collection.DEVICE, name, application)

    def __str__(self) -> str:
        if self.application:
            return f"{self.application}/{self.name}"
        return self.name


def _parse_timestamp(value: Any) -> Any:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        # Keep what the server sent, it is echoed back as-is
        return value


def _format_timestamp(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat().replace("+00:00", "Z")
    return value


@dataclass
class Metadata:
    """Metadata of a non-scoped resource (an application).

    ``resource_version`` is issued by the server and must be sent back unmodified
    on update. Fields the client does not know are kept in ``extra`` and sent back
    as they were received.
    """

    name: str
    uid: str = ""
    creation_timestamp: datetime | None = None
    modification_timestamp: datetime | None = None
    generation: int = 0
    resource_version: str = ""
    deletion_timestamp: datetime | None = None
    finalizers: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    _TIMESTAMPS: ClassVar[frozenset[str]] = frozenset(
        {"creation_timestamp", "modification_timestamp", "deletion_timestamp"}
    )

    @staticmethod
    def _wire_name(name: str) -> str:
        head, *rest = name.split("_")
        return head + "".join(part.title() for part in rest)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Metadata":
        known = {f.name: cls._wire_name(f.name) for f in fields(cls) if f.name != "extra"}
        kwargs: dict[str, Any] = {}
        for attr, wire in known.items():
            if wire in data and data[wire] is not None:
                value = data[wire]
                kwargs[attr] = _parse_timestamp(value) if attr in cls._TIMESTAMPS else value
        kwargs.setdefault("name", "")
        kwargs["extra"] = {k: v for k, v in data.items() if k not in known.values()}
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            # Empty values are omitted, like the server does
            if value is None or (value == "" and f.name != "name") or value == [] or value == {}:
                continue
            if f.name == "generation" and value == 0:
                continue
            if f.name in self._TIMESTAMPS:
                value = _format_timestamp(value)
            data[self._wire_name(f.name)] = value
        return data

    def has_label(self, label: str) -> bool:
        return label in self.labels

    def ensure_finalizer(self, finalizer: str) -> bool:
        """Add ``finalizer`` if missing. Returns True if the resource needs to be stored."""
        if finalizer in self.finalizers:
            return False
        self.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str) -> bool:
        """Remove ``finalizer``. Returns True if it was present."""
        if finalizer not in self.finalizers:
            return False
        self.finalizers = [f for f in self.finalizers if f != finalizer]
        return True


@dataclass
class ScopedMetadata(Metadata):
    """Metadata of an application scoped resource (a device)."""

    application: str = ""


E = TypeVar("E", bound="ResourceEnvelope")


@dataclass
class ResourceEnvelope:
    """A registry resource: metadata plus free-form spec and status sections."""

    metadata: Metadata
    spec: dict[str, Any] = field(default_factory=dict)
    status: dict[str, Any] = field(default_factory=dict)

    collection: ClassVar[Collection]
    metadata_type: ClassVar[type[Metadata]] = Metadata

    @classmethod
    def from_dict(cls: type[E], data: dict[str, Any]) -> E:
        if not isinstance(data, dict) or not isinstance(data.get("metadata"), dict):
            raise ValueError("Resource is missing its metadata")
        return cls(
            metadata=cls.metadata_type.from_dict(data["metadata"]),
            spec=dict(data.get("spec") or {}),
            status=dict(data.get("status") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"metadata": self.metadata.to_dict()}
        if self.spec:
            data["spec"] = self.spec
        if self.status:
            data["status"] = self.status
        return data

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def resource_version(self) -> str:
        return self.metadata.resource_version

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(self.collection, self.metadata.name)

    def section(self, key: str, *, status: bool = False) -> Any:
        """Get a named spec section, or status section with ``status=True``."""
        return (self.status if status else self.spec).get(key)


@dataclass
class Application(ResourceEnvelope):
    """An application, owning devices."""

    collection: ClassVar[Collection] = Collection.APPLICATION

    @classmethod
    def new(cls, name: str) -> "Application":
        return cls(metadata=Metadata(name=name))


@dataclass
class Device(ResourceEnvelope):
    """A device, belonging to exactly one application (referenced by name)."""

    metadata: ScopedMetadata

    collection: ClassVar[Collection] = Collection.DEVICE
    metadata_type: ClassVar[type[Metadata]] = ScopedMetadata

    @classmethod
    def new(cls, application: str, name: str) -> "Device":
        return cls(metadata=ScopedMetadata(name=name, application=application))

    @property
    def application(self) -> str:
        return self.metadata.application

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef.device(self.metadata.application, self.metadata.name)

    def is_enabled(self) -> bool:
        """A device is enabled unless ``spec.core.disabled`` is set or unreadable."""
        core = self.spec.get("core")
        if core is None:
            return True
        if not isinstance(core, dict):
            return False
        return not core.get("disabled", False)

    def gateway_names(self) -> list[str]:
        """Names of the devices allowed to act as gateway for this one."""
        selector = self.spec.get("gatewaySelector")
        if not isinstance(selector, dict):
            return []
        return [str(name) for name in selector.get("matchNames") or []]


@dataclass(frozen=True)
class Command:
    """An outbound instruction for a device. Not persisted, it has no identity.

    Attributes:
        device: Target device.
        channel: Command name, the channel the device receives it on.
        payload: Raw payload.
        response_timeout: Seconds to wait for a device response. None sends a
            one-way command.
        content_type: Content type of the payload.
    """

    device: ResourceRef
    channel: str
    payload: bytes = b""
    response_timeout: float | None = None
    content_type: str = "application/octet-stream"

    def __post_init__(self) -> None:
        if self.device.collection is not Collection.DEVICE:
            raise ValueError(f"Commands target devices, not {self.device.collection.name.lower()}s")
        if not self.channel:
            raise ValueError("Command channel must not be empty")


class CommandOutcome(str, Enum):
    ACCEPTED = "accepted"  # one-way command, accepted for delivery
    RESPONDED = "responded"  # the device responded within the deadline
    NO_RESPONSE = "no_response"  # the device did not respond within the deadline


@dataclass(frozen=True)
class CommandResult:
    outcome: CommandOutcome
    payload: bytes | None = None
    content_type: str | None = None
    status_code: int | None = None

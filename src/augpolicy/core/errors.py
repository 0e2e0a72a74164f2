"""Error types raised by the augpolicy core."""


class AugPolicyError(Exception):
    """Base class for all augpolicy errors."""


class NotFoundError(AugPolicyError):
    """The requested object does not exist in the cluster."""

    def __init__(self, kind: str, namespace: str | None, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        target = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} {target} not found")


class ResolutionError(AugPolicyError):
    """A hostname could not be resolved."""

    def __init__(self, hostname: str, cause: BaseException | str):
        self.hostname = hostname
        self.cause = cause
        super().__init__(f"failed to resolve hostname {hostname!r}: {cause}")


class FilterConfigurationError(AugPolicyError):
    """An allow or deny list contains a malformed CIDR."""


class ApplyError(AugPolicyError):
    """Writing to the object store failed."""


class InventoryListError(AugPolicyError):
    """The node inventory could not be listed."""


class InvalidPolicyError(AugPolicyError):
    """A source policy manifest cannot be parsed."""

    def __init__(self, namespace: str | None, name: str | None, cause: BaseException | str):
        self.namespace = namespace
        self.name = name
        self.cause = cause
        super().__init__(f"invalid NetworkPolicy {namespace}/{name}: {cause}")

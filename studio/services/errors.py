# studio/services/errors.py
# Domain errors raised while provisioning preview environments


class ProvisioningError(Exception):
    """Creating or seeding a preview schema failed. Terminal for the session."""

    def __init__(self, schema_name: str, reason: str):
        self.schema_name = schema_name
        self.reason = reason
        super().__init__(f"Provisioning of {schema_name} failed: {reason}")


class SeedingError(Exception):
    """One or more seeders rejected; carries the failing module names."""

    def __init__(self, failures: dict[str, BaseException]):
        self.failures = failures
        names = ", ".join(sorted(failures))
        super().__init__(f"Seeding failed for: {names}")

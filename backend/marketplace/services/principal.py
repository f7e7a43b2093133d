from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as handed over by the auth collaborator."""
    id: str
    role: str

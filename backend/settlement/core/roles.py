from enum import Enum


class Role(str, Enum):
    owner = "owner"
    admin = "admin"
    operator = "operator"
    representative = "representative"
    customer = "customer"


ADMIN_ROLES = {Role.owner, Role.admin}

# Pueden liquidar directamente sin pasar por aprobación
SETTLEMENT_ROLES = {Role.owner, Role.admin, Role.operator}

# Sólo pueden proponer liquidaciones (quedan pendientes)
REMOTE_ROLES = {Role.representative, Role.customer}
